# services/models.py
"""Data types shared by the gateways and the flow controllers."""

import io
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from PIL import Image, UnidentifiedImageError

from constants import DEFAULT_AVATAR_CONTENT_TYPE
from services.errors import AvatarDecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """Authenticated identity issued by the auth service."""

    user_id: str
    email: Optional[str]
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None

    def __repr__(self) -> str:
        # keep tokens out of logs
        return f"Session(user_id={self.user_id!r}, email={self.email!r})"

    @classmethod
    def from_auth(cls, session: Any) -> "Session":
        """Build from a supabase auth ``Session`` object."""
        user = session.user
        return cls(
            user_id=str(user.id),
            email=getattr(user, "email", None),
            access_token=session.access_token,
            refresh_token=getattr(session, "refresh_token", None),
            expires_at=getattr(session, "expires_at", None),
        )


@dataclass(frozen=True)
class MagicLinkRequest:
    """Email a one-time sign-in link is requested for."""

    email: str

    def __post_init__(self):
        object.__setattr__(self, "email", (self.email or "").strip())


@dataclass(frozen=True)
class Profile:
    """Profile record keyed by user id."""

    username: Optional[str] = None
    full_name: Optional[str] = None
    website: Optional[str] = None
    avatar_key: Optional[str] = None

    @classmethod
    def empty(cls) -> "Profile":
        return cls()

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Profile":
        return cls(
            username=row.get("username"),
            full_name=row.get("full_name"),
            website=row.get("website"),
            avatar_key=row.get("avatar_url"),
        )

    def to_row(self, user_id: str) -> Dict[str, Any]:
        # All four fields go out on every write: upsert replaces the row.
        return {
            "id": user_id,
            "username": self.username,
            "full_name": self.full_name,
            "website": self.website,
            "avatar_url": self.avatar_key,
        }


@dataclass
class EditBuffer:
    """Typed, unsaved form values."""

    username: str = ""
    full_name: str = ""
    website: str = ""

    FIELDS = ("username", "full_name", "website")

    @classmethod
    def from_profile(cls, profile: Profile) -> "EditBuffer":
        return cls(
            username=profile.username or "",
            full_name=profile.full_name or "",
            website=profile.website or "",
        )

    def copy(self) -> "EditBuffer":
        return replace(self)

    def missing_fields(self):
        """Presence check: username and full name are required."""
        return [
            name for name in ("username", "full_name") if not getattr(self, name).strip()
        ]

    def to_profile(self, avatar_key: Optional[str]) -> Profile:
        website = self.website.strip()
        return Profile(
            username=self.username.strip(),
            full_name=self.full_name.strip(),
            website=website or None,
            avatar_key=avatar_key,
        )


@dataclass(frozen=True)
class AvatarAsset:
    """Image bytes plus the decoded Pillow image used for display."""

    data: bytes = field(repr=False)
    image: Image.Image = field(repr=False, compare=False)
    content_type: str = DEFAULT_AVATAR_CONTENT_TYPE

    @property
    def size(self):
        return self.image.size

    @classmethod
    def from_bytes(cls, data: bytes) -> "AvatarAsset":
        """
        Decode image bytes.

        Args:
            data: Raw image payload (picked locally or downloaded)

        Returns:
            AvatarAsset with the fully loaded image

        Raises:
            AvatarDecodeError: If the payload is empty or not a readable image
        """
        if not data:
            raise AvatarDecodeError("Empty image payload")

        try:
            image = Image.open(io.BytesIO(data))
            # Force a full decode so truncated files fail here
            image.load()
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
            SyntaxError,
            EOFError,
        ) as e:
            logger.warning(f"Failed to decode avatar image: {e}")
            raise AvatarDecodeError(f"Unreadable image: {e}") from e

        content_type = Image.MIME.get(image.format or "", DEFAULT_AVATAR_CONTENT_TYPE)
        return cls(data=bytes(data), image=image, content_type=content_type)
