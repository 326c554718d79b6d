# controllers/profile_flow.py
"""
Profile flow: load, buffer edits, stage an avatar, save with upload.

States:
    IDLE -> LOADING -> READY | LOAD_ERROR
    READY -> SAVING -> SAVED | SAVE_ERROR

Edits only touch the local buffer. A save uploads the staged avatar (if any)
before the single profile upsert; a failure at either step keeps the buffer as
typed. SAVED ends the edit session.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from controllers.base import FlowController
from services.asset_transfer import AssetTransfer
from services.errors import (
    AvatarDecodeError,
    BusyError,
    FlowError,
    IncompleteProfileError,
    ProfileError,
    ProfileNotFoundError,
    TransferError,
)
from services.models import AvatarAsset, EditBuffer, Profile, Session
from services.profile_store import ProfileStore

logger = logging.getLogger(__name__)


class ProfileStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    LOAD_ERROR = "load_error"
    SAVING = "saving"
    SAVE_ERROR = "save_error"
    SAVED = "saved"


@dataclass(frozen=True)
class ProfileFlowState:
    status: ProfileStatus = ProfileStatus.IDLE
    profile: Optional[Profile] = None
    buffer: EditBuffer = field(default_factory=EditBuffer)
    avatar: Optional[AvatarAsset] = None
    avatar_staged: bool = False
    error: Optional[BaseException] = None
    avatar_error: Optional[TransferError] = None

    @property
    def is_busy(self) -> bool:
        return self.status in (ProfileStatus.LOADING, ProfileStatus.SAVING)

    @property
    def can_save(self) -> bool:
        return (
            self.status in (ProfileStatus.READY, ProfileStatus.SAVE_ERROR)
            and not self.buffer.missing_fields()
        )


class ProfileFlowController(FlowController[ProfileFlowState]):
    """Profile screen state machine for one authenticated session."""

    BUSY = (ProfileStatus.LOADING, ProfileStatus.SAVING)
    EDITABLE = (ProfileStatus.READY, ProfileStatus.SAVE_ERROR)

    def __init__(self, session: Session, store: ProfileStore, transfer: AssetTransfer):
        super().__init__(ProfileFlowState())
        self.session = session
        self.store = store
        self.transfer = transfer

        self._profile: Profile = Profile.empty()
        self._buffer = EditBuffer()
        self._avatar: Optional[AvatarAsset] = None
        self._avatar_staged = False
        self._avatar_removed = False
        # key the staged avatar already went up under, reused by a save retry
        self._uploaded_key: Optional[str] = None
        self._avatar_error: Optional[TransferError] = None

    # ------------------------------------------------------------------
    # Snapshot helpers
    # ------------------------------------------------------------------
    def _snapshot(self, status: ProfileStatus, error: Optional[BaseException] = None):
        return ProfileFlowState(
            status=status,
            profile=self._profile,
            buffer=self._buffer.copy(),
            avatar=self._avatar,
            avatar_staged=self._avatar_staged,
            error=error,
            avatar_error=self._avatar_error,
        )

    def _load_failed(self, error: BaseException) -> ProfileFlowState:
        return self._snapshot(ProfileStatus.LOAD_ERROR, error=error)

    def _save_failed(self, error: BaseException) -> ProfileFlowState:
        return self._snapshot(ProfileStatus.SAVE_ERROR, error=error)

    def _check_editable(self, action: str) -> None:
        self._ensure_open()
        status = self.state.status
        if status in self.BUSY:
            raise BusyError(f"Cannot {action} while {status.value}")
        if status not in self.EDITABLE:
            raise FlowError(f"Cannot {action} while {status.value}")

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------
    async def enter(self) -> ProfileFlowState:
        """
        Start the screen: load the profile and its avatar.

        Only valid from IDLE; calling it again once loaded is a no-op.

        Raises:
            BusyError: A load or save is already in flight
            FlowClosedError: The controller was left
        """
        self._ensure_open()
        status = self.state.status
        if status in self.BUSY:
            raise BusyError(f"Cannot load while {status.value}")
        if status != ProfileStatus.IDLE:
            logger.debug(f"enter() ignored in {status.value}")
            return self.state

        self._publish(self._snapshot(ProfileStatus.LOADING))
        await self._run(self._load(), self._load_failed)
        return self.state

    async def _load(self) -> None:
        user_id = self.session.user_id

        try:
            profile = await self.store.fetch(user_id)
        except ProfileNotFoundError:
            logger.info(f"No profile yet for {user_id}; starting empty")
            profile = Profile.empty()
        except ProfileError as e:
            logger.warning(f"Profile load failed for {user_id}: {e}")
            self._publish(self._snapshot(ProfileStatus.LOAD_ERROR, error=e))
            return

        # READY waits for the avatar too, so fields and image appear together
        avatar = None
        avatar_error = None
        if profile.avatar_key:
            try:
                avatar = await self.transfer.download_avatar(profile.avatar_key)
            except TransferError as e:
                logger.warning(f"Avatar {profile.avatar_key} unavailable: {e}")
                avatar_error = e

        self._profile = profile
        self._buffer = EditBuffer.from_profile(profile)
        self._avatar = avatar
        self._avatar_staged = False
        self._avatar_removed = False
        self._uploaded_key = None
        self._avatar_error = avatar_error
        self._publish(self._snapshot(ProfileStatus.READY))

    # ------------------------------------------------------------------
    # Local edits
    # ------------------------------------------------------------------
    def edit(self, **fields) -> ProfileFlowState:
        """
        Update typed values. No network call.

        Args:
            **fields: any of ``username``, ``full_name``, ``website``
        """
        unknown = set(fields) - set(EditBuffer.FIELDS)
        if unknown:
            raise TypeError(f"Unknown profile fields: {', '.join(sorted(unknown))}")
        self._check_editable("edit")

        for name, value in fields.items():
            setattr(self._buffer, name, value or "")
        self._publish(self._snapshot(ProfileStatus.READY))
        return self.state

    def select_avatar(self, data: bytes) -> ProfileFlowState:
        """Stage a picked image in memory. Upload happens on save."""
        self._check_editable("select an avatar")

        try:
            asset = AvatarAsset.from_bytes(data)
        except AvatarDecodeError as e:
            self._avatar_error = e
            self._publish(self._snapshot(ProfileStatus.READY))
            return self.state

        self._avatar = asset
        self._avatar_staged = True
        self._avatar_removed = False
        self._uploaded_key = None
        self._avatar_error = None
        logger.debug(f"Staged avatar {asset.content_type} {asset.size}")
        self._publish(self._snapshot(ProfileStatus.READY))
        return self.state

    def remove_avatar(self) -> ProfileFlowState:
        """Clear the avatar reference on the next save. The blob itself is kept."""
        self._check_editable("remove the avatar")

        self._avatar = None
        self._avatar_staged = False
        self._avatar_removed = True
        self._uploaded_key = None
        self._avatar_error = None
        self._publish(self._snapshot(ProfileStatus.READY))
        return self.state

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------
    async def save(self) -> ProfileFlowState:
        """
        Persist the buffer, uploading a staged avatar first.

        Raises:
            BusyError: A load or save is already in flight
            IncompleteProfileError: Username or full name is blank
            FlowError: Nothing has been loaded, or the session already saved
            FlowClosedError: The controller was left
        """
        self._check_editable("save")
        missing = self._buffer.missing_fields()
        if missing:
            raise IncompleteProfileError(missing)

        self._publish(self._snapshot(ProfileStatus.SAVING))
        await self._run(self._save(), self._save_failed)
        return self.state

    def _avatar_key_for_save(self) -> Optional[str]:
        if self._avatar_staged:
            return self._uploaded_key
        if self._avatar_removed:
            return None
        return self._profile.avatar_key

    async def _save(self) -> None:
        user_id = self.session.user_id

        if self._avatar_staged and self._uploaded_key is None:
            try:
                self._uploaded_key = await self.transfer.upload(
                    self._avatar.data, self._avatar.content_type
                )
            except TransferError as e:
                logger.warning(f"Avatar upload failed for {user_id}: {e}")
                self._publish(self._snapshot(ProfileStatus.SAVE_ERROR, error=e))
                return

        profile = self._buffer.to_profile(self._avatar_key_for_save())
        try:
            await self.store.upsert(user_id, profile)
        except ProfileError as e:
            logger.warning(f"Profile save failed for {user_id}: {e}")
            self._publish(self._snapshot(ProfileStatus.SAVE_ERROR, error=e))
            return

        # TODO: the previous avatar object stays in the bucket once replaced;
        # decide whether orphaned avatars should be reclaimed server-side.
        self._profile = profile
        self._avatar_staged = False
        self._avatar_removed = False
        self._uploaded_key = None
        logger.info(f"✅ Profile saved for {user_id}")
        self._publish(self._snapshot(ProfileStatus.SAVED))

    # ------------------------------------------------------------------
    # Retry
    # ------------------------------------------------------------------
    async def retry(self) -> ProfileFlowState:
        """Re-run the failed load or save; a no-op in any other state."""
        self._ensure_open()
        status = self.state.status
        if status == ProfileStatus.LOAD_ERROR:
            self._publish(self._snapshot(ProfileStatus.LOADING))
            await self._run(self._load(), self._load_failed)
        elif status == ProfileStatus.SAVE_ERROR:
            await self.save()
        return self.state
