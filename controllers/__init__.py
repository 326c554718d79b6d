"""
Flow controllers.

Each controller is a single logical actor that exposes:
- a read-only ``state`` plus ``subscribe`` / ``states`` for observers
- async entry points that perform remote work and publish new states
"""

from .app_flow import AppFlow
from .auth_flow import AuthFlowController, AuthFlowState, AuthStatus
from .profile_flow import ProfileFlowController, ProfileFlowState, ProfileStatus

# ✅ Re-export for convenience
__all__ = [
    "AppFlow",
    # Auth
    "AuthFlowController",
    "AuthFlowState",
    "AuthStatus",
    # Profile
    "ProfileFlowController",
    "ProfileFlowState",
    "ProfileStatus",
]
