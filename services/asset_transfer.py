# services/asset_transfer.py
"""
Avatar blob transfer on Supabase storage.

Keys are generated per upload and never reused. A profile only stores the key;
nothing here deletes objects.
"""

import asyncio
import logging
import uuid
from typing import Any, Optional

import httpx
from supabase import StorageException

from constants import (
    AVATAR_BUCKET,
    AVATAR_CACHE_CONTROL,
    AVATAR_EXTENSIONS,
    DEFAULT_AVATAR_CONTENT_TYPE,
)
from db import SupabaseLike
from services.errors import (
    TransferNetworkError,
    TransferNotFoundError,
    TransferRejectedError,
)
from services.models import AvatarAsset

logger = logging.getLogger(__name__)


def new_object_key(content_type: str) -> str:
    """Globally unique object key, e.g. ``"3f2c...e1.jpg"``."""
    ext = AVATAR_EXTENSIONS.get(content_type.lower(), "jpg")
    return f"{uuid.uuid4()}.{ext}"


def _storage_error_details(exc: StorageException) -> dict:
    """storage3 raises with the decoded JSON body as the first argument."""
    details = exc.args[0] if exc.args else None
    return details if isinstance(details, dict) else {"message": str(exc)}


def _status_code(details: dict) -> Optional[int]:
    try:
        return int(details.get("statusCode"))
    except (TypeError, ValueError):
        return None


def _is_not_found(details: dict) -> bool:
    if _status_code(details) == 404:
        return True
    text = f"{details.get('error', '')} {details.get('message', '')}".lower()
    return "not found" in text or "not_found" in text


class AssetTransfer:
    """Upload and download avatar images. Never retries."""

    def __init__(self, client: SupabaseLike, bucket: str = AVATAR_BUCKET):
        self.client = client
        self.bucket = bucket

    def _bucket(self) -> Any:
        return self.client.storage.from_(self.bucket)

    async def upload(
        self, data: bytes, content_type: str = DEFAULT_AVATAR_CONTENT_TYPE
    ) -> str:
        """
        Write an image under a freshly generated key.

        Args:
            data: Image bytes
            content_type: MIME type stored with the object

        Returns:
            The new object key

        Raises:
            TransferRejectedError: Quota, permission or other refusal
            TransferNetworkError: Object store unreachable
        """
        key = new_object_key(content_type)
        file_options = {
            "content-type": content_type,
            "cache-control": AVATAR_CACHE_CONTROL,
            # A collision must fail rather than overwrite
            "upsert": "false",
        }

        try:
            await asyncio.to_thread(self._bucket().upload, key, data, file_options)
        except StorageException as e:
            details = _storage_error_details(e)
            logger.warning(f"⚠️  Avatar upload rejected ({key}): {details}")
            raise TransferRejectedError(details.get("message") or str(e)) from e
        except httpx.HTTPError as e:
            logger.warning(f"⚠️  Avatar upload network error ({key}): {e}")
            raise TransferNetworkError(str(e)) from e

        logger.info(f"✅ Uploaded avatar {key} ({len(data)} bytes)")
        return key

    async def download(self, key: str) -> bytes:
        """
        Fetch the raw bytes stored under ``key``.

        Raises:
            TransferNotFoundError: Key unknown remotely
            TransferNetworkError: Any other failure
        """
        try:
            data = await asyncio.to_thread(self._bucket().download, key)
        except StorageException as e:
            details = _storage_error_details(e)
            if _is_not_found(details):
                logger.info(f"[Avatar] Key not found: {key}")
                raise TransferNotFoundError(key) from e
            logger.warning(f"⚠️  Avatar download failed ({key}): {details}")
            raise TransferNetworkError(details.get("message") or str(e)) from e
        except httpx.HTTPError as e:
            logger.warning(f"⚠️  Avatar download network error ({key}): {e}")
            raise TransferNetworkError(str(e)) from e

        if not isinstance(data, (bytes, bytearray)):
            raise TransferNetworkError(f"Unexpected payload type for {key}")

        logger.debug(f"[Avatar] Downloaded {key} ({len(data)} bytes)")
        return bytes(data)

    async def download_avatar(self, key: str) -> AvatarAsset:
        """Download and decode in one step so a corrupt blob fails as a load error."""
        data = await self.download(key)
        return AvatarAsset.from_bytes(data)
