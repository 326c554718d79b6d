"""
errors.py
---------
Exception hierarchy for the sign-in and profile sync services.

Gateways raise these; controllers catch them and publish them in state.
"""


# ==============================================================
# Auth
# ==============================================================


class AuthError(Exception):
    """Base exception for session gateway errors."""


class InvalidEmailError(AuthError):
    """Raised when a sign-in link is requested for a blank email."""


class SignInRejectedError(AuthError):
    """Raised when the auth service refuses to send a sign-in link."""


class InvalidCallbackError(AuthError):
    """Raised when a callback URL does not match the expected scheme or shape."""


class ExchangeRejectedError(AuthError):
    """Raised when the auth service rejects a callback (expired or used link)."""


class AuthNetworkError(AuthError):
    """Raised when the auth service cannot be reached."""


# ==============================================================
# Profile
# ==============================================================


class ProfileError(Exception):
    """Base exception for profile store errors."""


class ProfileNotFoundError(ProfileError):
    """Raised when no profile row exists for the user yet."""


class ProfileTransportError(ProfileError):
    """Raised on network, API or deserialization failure."""


# ==============================================================
# Asset transfer
# ==============================================================


class TransferError(Exception):
    """Base exception for avatar upload/download errors."""


class TransferRejectedError(TransferError):
    """Raised when the object store refuses a write (quota, permission)."""


class TransferNotFoundError(TransferError):
    """Raised when a stored key does not exist remotely."""


class TransferNetworkError(TransferError):
    """Raised when the object store cannot be reached."""


class AvatarDecodeError(TransferError):
    """Raised when image bytes cannot be decoded."""


# ==============================================================
# Flow
# ==============================================================


class FlowError(Exception):
    """Base exception for controller entry point misuse."""


class BusyError(FlowError):
    """Raised when an entry point is called while another operation is pending."""


class FlowClosedError(FlowError):
    """Raised when an entry point is called after the controller was left."""


class IncompleteProfileError(FlowError):
    """Raised when saving a profile with a blank username or full name."""

    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__(f"Missing required fields: {', '.join(self.missing)}")
