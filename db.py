"""
Supabase client module.
Handles Supabase client initialization, logging setup, and test injection.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from dotenv import load_dotenv
from supabase import Client, ClientOptions, create_client
from tenacity import retry, stop_after_attempt, wait_exponential

from services.config import AppConfig

# Use a dedicated DB logger
logger = logging.getLogger("ps_db")


# ==============================================================
# 🧩 Protocol-based Dependency Injection
# ==============================================================


class SupabaseLike(Protocol):
    """Protocol to allow fake/mocked Supabase clients in tests."""

    auth: Any
    storage: Any

    def table(self, name: str) -> Any: ...


# Global Supabase client, only used by the CLI entry points
supabase_client: Optional[SupabaseLike] = None


def set_supabase_client(client: Optional[SupabaseLike]) -> None:
    """Dependency injection hook for tests."""
    global supabase_client
    supabase_client = client
    logger.info("[DB] Supabase client overridden")


def get_supabase_client() -> Optional[SupabaseLike]:
    return supabase_client


def setup_logging(level: int = logging.INFO):
    """Configure logging for the application.

    This function should be called at application startup.
    It configures the logging format and level.
    """
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def load_config() -> AppConfig:
    """Load .env (if present) and read the app configuration."""
    load_dotenv()
    return AppConfig()


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=4, max=10),
    reraise=True,
)
def _create(config: AppConfig) -> Client:
    options = ClientOptions(
        flow_type="pkce",
        auto_refresh_token=True,
        persist_session=True,
        postgrest_client_timeout=config.http_timeout,
        storage_client_timeout=int(config.http_timeout),
    )
    return create_client(config.supabase_url, config.supabase_key, options=options)


def init_supabase(config: Optional[AppConfig] = None) -> Optional[SupabaseLike]:
    """Initialize Supabase client with retry logic and proper error handling.

    Returns:
        Optional[SupabaseLike]: Supabase client if initialization succeeds, None otherwise

    Note:
        - Client creation is retried up to 3 times with exponential backoff
        - Returns None instead of raising exceptions
        - Remote calls made later through the client are never retried here
    """
    global supabase_client

    # Return existing client if already initialized
    if supabase_client is not None:
        return supabase_client

    config = config or load_config()
    if not config.is_configured:
        logger.warning("Missing Supabase environment variables - cannot connect")
        return None

    try:
        supabase_client = _create(config)
        logger.info("Supabase client initialized successfully")
        return supabase_client
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}")
        return None
