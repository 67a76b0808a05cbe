"""
Authentication dependencies for FastAPI.

The session token is read from the session cookie first and from an
`Authorization: Bearer` header second (scripts, API clients). A cookie
that does not decode does not hide a valid Bearer token.
"""
import logging
from typing import List, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import get_settings
from app.exceptions import AuthorizationError
from app.schemas.auth import SessionPayload
from app.services.auth import AuthService

logger = logging.getLogger("app.auth")

# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def _session_tokens(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> List[str]:
    """Cookie token first, then the Bearer token."""
    tokens = []
    cookie = request.cookies.get(get_settings().session_cookie_name)
    if cookie:
        tokens.append(cookie)
    if credentials and credentials.credentials:
        tokens.append(credentials.credentials)
    return tokens


def _first_valid_session(tokens: List[str]) -> Optional[SessionPayload]:
    # 만료된 쿠키가 남아 있어도 유효한 Bearer 토큰은 인정
    for token in tokens:
        session = AuthService.verify(token)
        if session is not None:
            return session
    return None


async def get_optional_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[SessionPayload]:
    """
    Dependency to optionally get the admin session.
    Returns None if no valid token is provided.
    """
    return _first_valid_session(_session_tokens(request, credentials))


async def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> SessionPayload:
    """
    Dependency for admin-only endpoints.

    Raises:
        AuthorizationError: If the token is missing, invalid, or expired
    """
    tokens = _session_tokens(request, credentials)
    if not tokens:
        logger.warning("Auth failed", extra={"event": "auth", "reason": "no_token"})
        raise AuthorizationError("Unauthorized")

    session = _first_valid_session(tokens)
    if session is None:
        logger.warning("Auth failed", extra={"event": "auth", "reason": "invalid_or_expired_token"})
        raise AuthorizationError("Unauthorized")
    return session
