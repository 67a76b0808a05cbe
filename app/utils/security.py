"""
Security helpers: admin session tokens and OAuth state tokens (python-jose JWT).
"""
import hmac
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.config import get_settings
from app.schemas.auth import SessionPayload

ADMIN_SUBJECT = "admin"


def secrets_match(submitted: str, expected: str) -> bool:
    """Constant-time comparison of the submitted secret."""
    return hmac.compare_digest(submitted.encode("utf-8"), expected.encode("utf-8"))


def create_session_token(
    subject: str = ADMIN_SUBJECT,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Create a signed session token.

    Args:
        subject: Session subject (always "admin": there is a single shared credential)
        expires_delta: Optional lifetime, defaults to SESSION_MAX_AGE_DAYS

    Returns:
        Encoded JWT string
    """
    settings = get_settings()
    if expires_delta is None:
        expires_delta = timedelta(days=settings.session_max_age_days)

    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {
        "sub": subject,
        "exp": expire,
        "scope": "session",
    }
    return jwt.encode(
        to_encode,
        settings.session_secret_key,
        algorithm=settings.session_algorithm,
    )


def decode_session_token(token: str) -> Optional[SessionPayload]:
    """
    Decode and validate a session token.

    Returns:
        SessionPayload if valid, None if invalid or expired
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token,
            settings.session_secret_key,
            algorithms=[settings.session_algorithm],
        )
    except JWTError:
        return None

    if payload.get("scope") != "session" or payload.get("sub") is None:
        return None
    return SessionPayload(sub=payload["sub"], exp=int(payload["exp"]))


def create_oauth_state() -> str:
    """
    Short-lived signed `state` for the Google OAuth round trip.
    The callback rejects anything it did not issue.
    """
    settings = get_settings()
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=settings.google_oauth_state_expire_minutes
    )
    to_encode = {
        "nonce": secrets.token_urlsafe(16),
        "exp": expire,
        "scope": "oauth_state",
    }
    return jwt.encode(
        to_encode,
        settings.session_secret_key,
        algorithm=settings.session_algorithm,
    )


def verify_oauth_state(state: Optional[str]) -> bool:
    if not state:
        return False
    settings = get_settings()
    try:
        payload = jwt.decode(
            state,
            settings.session_secret_key,
            algorithms=[settings.session_algorithm],
        )
    except JWTError:
        return False
    return payload.get("scope") == "oauth_state"
