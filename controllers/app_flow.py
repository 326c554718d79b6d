# controllers/app_flow.py
"""
Root coordinator: sign-in gate first, profile screen once a session exists.

Routes deep links, hands the Session to the profile flow, and performs
sign-out by discarding both controllers and starting a fresh sign-in flow.
"""

import logging
from typing import Optional
from urllib.parse import urlsplit

from auth.session_gateway import SessionGateway
from controllers.auth_flow import AuthFlowController, AuthFlowState
from controllers.profile_flow import ProfileFlowController
from services.asset_transfer import AssetTransfer
from services.profile_store import ProfileStore

logger = logging.getLogger(__name__)


class AppFlow:
    """Owns the current AuthFlowController and, when authenticated, a ProfileFlowController."""

    def __init__(
        self,
        gateway: SessionGateway,
        store: ProfileStore,
        transfer: AssetTransfer,
    ):
        self.gateway = gateway
        self.store = store
        self.transfer = transfer
        self.auth: AuthFlowController = AuthFlowController(gateway)
        self.profile: Optional[ProfileFlowController] = None

    @property
    def callback_scheme(self) -> str:
        return urlsplit(self.gateway.callback_url).scheme.lower()

    def accepts_url(self, url: str) -> bool:
        try:
            return urlsplit(url or "").scheme.lower() == self.callback_scheme
        except ValueError:
            return False

    async def open_url(self, url: str) -> Optional[AuthFlowState]:
        """
        Route an OS-delivered URL. Foreign schemes are ignored (returns None).
        """
        if not self.accepts_url(url):
            logger.debug(f"Ignoring URL with foreign scheme: {url}")
            return None
        return await self.auth.handle_callback(url)

    def open_profile(self) -> ProfileFlowController:
        """
        Build a fresh profile controller for the authenticated session.

        Any previous profile controller is left first; re-entering the screen
        always starts a new load cycle.
        """
        session = self.auth.state.session
        if not self.auth.state.is_authenticated or session is None:
            raise RuntimeError("Profile screen requires an authenticated session")

        self.close_profile()
        self.profile = ProfileFlowController(session, self.store, self.transfer)
        return self.profile

    def close_profile(self) -> None:
        if self.profile is not None:
            self.profile.leave()
            self.profile = None

    async def sign_out(self) -> AuthFlowController:
        """Tear down both flows and return the new sign-in controller."""
        self.close_profile()
        self.auth.leave()
        # never blocked by a remote failure
        await self.gateway.sign_out()
        self.auth = AuthFlowController(self.gateway)
        logger.info("Signed out; sign-in flow reset")
        return self.auth
