"""
Auth package: passwordless sign-in against Supabase auth.
"""

from auth.session_gateway import SessionGateway, parse_callback_params

__all__ = ["SessionGateway", "parse_callback_params"]
