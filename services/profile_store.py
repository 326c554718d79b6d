# services/profile_store.py
"""Profile row access on the Supabase ``profiles`` table."""

import asyncio
import logging
from datetime import datetime, timezone

import httpx
from supabase import PostgrestAPIError

from constants import PROFILE_ID_COLUMN, PROFILES_TABLE
from db import SupabaseLike
from services.errors import ProfileNotFoundError, ProfileTransportError
from services.models import Profile

logger = logging.getLogger(__name__)


class ProfileStore:
    """Fetch and upsert one profile row per user. Never retries."""

    def __init__(self, client: SupabaseLike, table: str = PROFILES_TABLE):
        self.client = client
        self.table = table

    async def fetch(self, user_id: str) -> Profile:
        """
        Read the profile row for a user.

        Args:
            user_id: Auth user id (the row's primary key)

        Returns:
            Profile built from the row

        Raises:
            ProfileNotFoundError: No row exists yet (a new user)
            ProfileTransportError: Network, API or deserialization failure
        """
        try:
            response = await asyncio.to_thread(self._select, user_id)
        except (PostgrestAPIError, httpx.HTTPError) as e:
            logger.error(f"[Profile] Fetch failed for user {user_id}: {e}")
            raise ProfileTransportError(str(e)) from e

        rows = getattr(response, "data", None)
        if rows is None or not isinstance(rows, list):
            raise ProfileTransportError(f"Unexpected response for user {user_id}")
        if not rows:
            logger.info(f"[Profile] No profile row for user {user_id}")
            raise ProfileNotFoundError(user_id)

        try:
            profile = Profile.from_row(rows[0])
        except (AttributeError, TypeError) as e:
            raise ProfileTransportError(f"Malformed profile row: {e}") from e

        logger.info(f"[Profile] Loaded profile for user {user_id}")
        return profile

    async def upsert(self, user_id: str, profile: Profile) -> None:
        """
        Create or fully replace the profile row in a single write.

        A ``None`` avatar key clears a previously stored reference.

        Raises:
            ProfileTransportError: The write did not go through
        """
        payload = {
            **profile.to_row(user_id),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await asyncio.to_thread(self._upsert, payload)
        except (PostgrestAPIError, httpx.HTTPError) as e:
            logger.error(f"[Profile] Upsert failed for user {user_id}: {e}")
            raise ProfileTransportError(str(e)) from e

        logger.info(f"[Profile] Saved profile for user {user_id}")

    def _select(self, user_id: str):
        return (
            self.client.table(self.table)
            .select("*")
            .eq(PROFILE_ID_COLUMN, user_id)
            .limit(1)
            .execute()
        )

    def _upsert(self, payload: dict):
        return (
            self.client.table(self.table)
            .upsert(payload, on_conflict=PROFILE_ID_COLUMN)
            .execute()
        )
