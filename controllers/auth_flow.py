# controllers/auth_flow.py
"""
Sign-in flow: Unauthenticated -> LinkSent -> Authenticated.

Failures return to Unauthenticated with the error for display; nothing is
retried automatically. Authenticated is terminal; sign-out builds a new
controller instead of transitioning back.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from auth.session_gateway import SessionGateway
from controllers.base import FlowController
from services.errors import AuthError, BusyError
from services.models import MagicLinkRequest, Session

logger = logging.getLogger(__name__)


class AuthStatus(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    REQUESTING = "requesting"
    LINK_SENT = "link_sent"
    EXCHANGING = "exchanging"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthFlowState:
    status: AuthStatus = AuthStatus.UNAUTHENTICATED
    email: Optional[str] = None
    session: Optional[Session] = None
    error: Optional[BaseException] = None

    @property
    def is_loading(self) -> bool:
        return self.status in (AuthStatus.REQUESTING, AuthStatus.EXCHANGING)

    @property
    def is_authenticated(self) -> bool:
        return self.status == AuthStatus.AUTHENTICATED


class AuthFlowController(FlowController[AuthFlowState]):
    """Drives magic-link sign-in over a SessionGateway."""

    # A new link cannot be requested while one is pending or outstanding
    REQUEST_BUSY = (AuthStatus.REQUESTING, AuthStatus.LINK_SENT, AuthStatus.EXCHANGING)
    CALLBACK_BUSY = (AuthStatus.REQUESTING, AuthStatus.EXCHANGING)

    def __init__(self, gateway: SessionGateway):
        super().__init__(AuthFlowState())
        self.gateway = gateway

    @staticmethod
    def _failed(email: Optional[str]):
        def build(error: BaseException) -> AuthFlowState:
            return AuthFlowState(AuthStatus.UNAUTHENTICATED, email=email, error=error)

        return build

    async def request_sign_in(self, email: str) -> AuthFlowState:
        """
        Request a magic link for ``email``.

        Raises:
            BusyError: A request or exchange is pending, or a link is outstanding
            FlowClosedError: The controller was torn down
        """
        self._ensure_open()
        current = self.state
        if current.status == AuthStatus.AUTHENTICATED:
            logger.debug("Sign-in requested while authenticated; ignoring")
            return current
        if current.status in self.REQUEST_BUSY:
            raise BusyError(f"Cannot request a sign-in link while {current.status.value}")

        email = MagicLinkRequest(email).email
        self._publish(AuthFlowState(AuthStatus.REQUESTING, email=email))
        await self._run(self._request(email), self._failed(email))
        return self.state

    async def _request(self, email: str) -> None:
        try:
            await self.gateway.request_sign_in(email)
        except AuthError as e:
            logger.warning(f"Sign-in link request failed: {e}")
            self._publish(AuthFlowState(AuthStatus.UNAUTHENTICATED, email=email, error=e))
            return
        self._publish(AuthFlowState(AuthStatus.LINK_SENT, email=email))

    async def handle_callback(self, url: str) -> AuthFlowState:
        """
        Redeem an inbound deep link.

        A replayed URL while already authenticated is a no-op.

        Raises:
            BusyError: A request or exchange is pending
            FlowClosedError: The controller was torn down
        """
        self._ensure_open()
        current = self.state
        if current.status == AuthStatus.AUTHENTICATED:
            logger.debug("Callback replayed while authenticated; ignoring")
            return current
        if current.status in self.CALLBACK_BUSY:
            raise BusyError(f"Cannot redeem a callback while {current.status.value}")

        self._publish(AuthFlowState(AuthStatus.EXCHANGING, email=current.email))
        await self._run(
            self._exchange(url, current.email), self._failed(current.email)
        )
        return self.state

    async def _exchange(self, url: str, email: Optional[str]) -> None:
        try:
            session = await self.gateway.exchange_callback(url)
        except AuthError as e:
            logger.warning(f"Callback exchange failed: {e}")
            self._publish(AuthFlowState(AuthStatus.UNAUTHENTICATED, email=email, error=e))
            return
        self._publish(
            AuthFlowState(AuthStatus.AUTHENTICATED, email=session.email, session=session)
        )

    def restart(self) -> AuthFlowState:
        """Drop an outstanding link so another email can be used."""
        self._ensure_open()
        if self.state.status == AuthStatus.LINK_SENT:
            self._publish(AuthFlowState(AuthStatus.UNAUTHENTICATED, email=self.state.email))
        return self.state
