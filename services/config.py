# services/config.py
import os
from dataclasses import dataclass, field

from constants import AUTH_CALLBACK_URL, AVATAR_BUCKET, PROFILES_TABLE


@dataclass(frozen=True)
class AppConfig:
    """Configuration for the Supabase-backed sign-in and profile services."""

    supabase_url: str = field(default_factory=lambda: os.getenv("SUPABASE_URL", ""))
    supabase_key: str = field(
        default_factory=lambda: os.getenv("SUPABASE_ANON_KEY", "")
    )
    # Deep link the magic link redirects to
    callback_url: str = field(
        default_factory=lambda: os.getenv("AUTH_CALLBACK_URL", AUTH_CALLBACK_URL)
    )
    profiles_table: str = field(
        default_factory=lambda: os.getenv("PROFILES_TABLE", PROFILES_TABLE)
    )
    avatar_bucket: str = field(
        default_factory=lambda: os.getenv("AVATAR_BUCKET", AVATAR_BUCKET)
    )
    # Transport timeout for PostgREST and storage calls
    http_timeout: float = field(
        default_factory=lambda: float(os.getenv("HTTP_TIMEOUT", "20"))
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)
