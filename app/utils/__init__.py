"""
Utility functions package.
"""
from app.utils.security import (
    create_oauth_state,
    create_session_token,
    decode_session_token,
    verify_oauth_state,
)

__all__ = [
    "create_oauth_state",
    "create_session_token",
    "decode_session_token",
    "verify_oauth_state",
]
