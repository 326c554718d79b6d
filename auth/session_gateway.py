"""
Passwordless sign-in gateway.
Requests magic links from Supabase auth and redeems the deep-link callback
they redirect to into a Session.
"""

import asyncio
import logging
from typing import Dict, Optional
from urllib.parse import parse_qs, urlsplit

import httpx
from supabase import AuthRetryableError
from supabase import AuthError as SupabaseAuthError

from constants import AUTH_CALLBACK_URL
from db import SupabaseLike
from services.errors import (
    AuthNetworkError,
    ExchangeRejectedError,
    InvalidCallbackError,
    InvalidEmailError,
    SignInRejectedError,
)
from services.models import MagicLinkRequest, Session

logger = logging.getLogger(__name__)


def parse_callback_params(url: str, callback_url: str = AUTH_CALLBACK_URL) -> Dict[str, str]:
    """
    Validate a callback URL and return its query + fragment parameters.

    Args:
        url: Inbound deep link
        callback_url: The redirect URL sign-in links were requested with

    Returns:
        Flat dict of parameters (fragment values win over query values)

    Raises:
        InvalidCallbackError: Wrong scheme/host or unparseable URL
    """
    try:
        parts = urlsplit(url or "")
        expected = urlsplit(callback_url)
    except ValueError as e:
        raise InvalidCallbackError(f"Unparseable callback URL: {e}") from e

    if parts.scheme.lower() != expected.scheme.lower():
        raise InvalidCallbackError(f"Unexpected scheme: {parts.scheme or '<none>'}")
    if parts.netloc.lower() != expected.netloc.lower():
        raise InvalidCallbackError(f"Unexpected callback host: {parts.netloc or '<none>'}")

    params: Dict[str, str] = {}
    for raw in (parts.query, parts.fragment):
        for key, values in parse_qs(raw).items():
            if values and values[0]:
                params[key] = values[0]
    return params


class SessionGateway:
    """Wraps the Supabase auth client. Holds at most one Session."""

    def __init__(self, client: SupabaseLike, callback_url: str = AUTH_CALLBACK_URL):
        self.client = client
        self.callback_url = callback_url
        self._session: Optional[Session] = None

    @property
    def current_session(self) -> Optional[Session]:
        return self._session

    async def request_sign_in(self, email: str) -> None:
        """
        Ask the auth service to email a one-time sign-in link.

        Succeeds once the service accepts the request; delivery is not observable.
        Each call triggers a new link.

        Raises:
            InvalidEmailError: Blank email
            SignInRejectedError: The service refused the request
            AuthNetworkError: The service could not be reached
        """
        request = MagicLinkRequest(email)
        if not request.email:
            raise InvalidEmailError("Email is required")

        credentials = {
            "email": request.email,
            "options": {
                "email_redirect_to": self.callback_url,
                "should_create_user": True,
            },
        }
        try:
            await asyncio.to_thread(self.client.auth.sign_in_with_otp, credentials)
        except (AuthRetryableError, httpx.HTTPError) as e:
            logger.error(f"❌ Sign-in link request failed (network): {e}")
            raise AuthNetworkError(str(e)) from e
        except SupabaseAuthError as e:
            logger.warning(f"⚠️  Sign-in link request rejected for {request.email}: {e}")
            raise SignInRejectedError(str(e)) from e

        logger.info(f"✅ Sign-in link requested for {request.email}")

    async def exchange_callback(self, url: str) -> Session:
        """
        Redeem a magic-link callback for a Session.

        Handles the PKCE ``code`` query, the implicit-grant token fragment and
        the ``error``/``error_description`` parameters the auth service
        redirects with when a link is expired or already used.

        Raises:
            InvalidCallbackError: URL does not match the callback scheme/shape
            ExchangeRejectedError: The service rejected the link
            AuthNetworkError: The service could not be reached
        """
        try:
            params = parse_callback_params(url, self.callback_url)
        except InvalidCallbackError:
            self._session = None
            raise

        if "error" in params or "error_description" in params or "error_code" in params:
            reason = params.get("error_description") or params.get("error", "rejected")
            self._session = None
            logger.warning(f"⚠️  Callback carried an auth error: {reason}")
            raise ExchangeRejectedError(reason)

        if "code" in params:
            func = self.client.auth.exchange_code_for_session
            args = ({"auth_code": params["code"]},)
        elif "access_token" in params and "refresh_token" in params:
            func = self.client.auth.set_session
            args = (params["access_token"], params["refresh_token"])
        else:
            self._session = None
            raise InvalidCallbackError("Callback carries no code or session tokens")

        try:
            response = await asyncio.to_thread(func, *args)
        except (AuthRetryableError, httpx.HTTPError) as e:
            self._session = None
            logger.error(f"❌ Session exchange failed (network): {e}")
            raise AuthNetworkError(str(e)) from e
        except SupabaseAuthError as e:
            self._session = None
            logger.warning(f"⚠️  Session exchange rejected: {e}")
            raise ExchangeRejectedError(str(e)) from e

        auth_session = getattr(response, "session", None)
        if auth_session is None or getattr(auth_session, "user", None) is None:
            self._session = None
            raise ExchangeRejectedError("Auth service returned no session")

        self._session = Session.from_auth(auth_session)
        logger.info(f"✅ Session established for {self._session.email}")
        return self._session

    async def sign_out(self) -> None:
        """
        End the session remotely and locally.

        Local state is always cleared; a remote failure is only logged.
        """
        session, self._session = self._session, None
        try:
            await asyncio.to_thread(self.client.auth.sign_out)
        except (SupabaseAuthError, httpx.HTTPError) as e:
            logger.warning(f"⚠️  Remote sign-out failed, local session cleared: {e}")
            return

        if session:
            logger.info(f"User {session.email} signed out")
