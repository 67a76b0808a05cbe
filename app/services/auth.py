"""
Authentication service for the single administrator session.
"""
import time
from typing import Optional

from app.config import get_settings
from app.exceptions import AuthorizationError, ConfigurationError
from app.schemas.auth import SessionPayload
from app.utils.logger import log_info, log_warning
from app.utils.prometheus_metrics import admin_login_total, login_duration_seconds
from app.utils.security import (
    ADMIN_SUBJECT,
    create_session_token,
    decode_session_token,
    secrets_match,
)


class AuthService:
    """
    Exchanges the shared admin secret for a signed session token.
    There are no user accounts: every valid session is the administrator.
    """

    def __init__(self, settings=None):
        self.settings = settings or get_settings()

    def login(self, code: str) -> str:
        """
        Check the submitted code and issue a session token.

        Raises:
            ConfigurationError: ADMIN_SECRET_CODE is not configured
            AuthorizationError: the code does not match
        """
        start = time.perf_counter()
        expected = self.settings.admin_secret_code
        if not expected:
            admin_login_total.labels(result="misconfigured").inc()
            raise ConfigurationError("ADMIN_SECRET_CODE is not configured")

        if not secrets_match(code, expected):
            admin_login_total.labels(result="failure").inc()
            login_duration_seconds.labels(result="failure").observe(time.perf_counter() - start)
            log_warning("Login failed", event="auth", reason="invalid_code")
            raise AuthorizationError("Invalid code")

        token = create_session_token(ADMIN_SUBJECT)
        admin_login_total.labels(result="success").inc()
        login_duration_seconds.labels(result="success").observe(time.perf_counter() - start)
        log_info("Login", event="auth", subject=ADMIN_SUBJECT)
        return token

    @staticmethod
    def verify(token: Optional[str]) -> Optional[SessionPayload]:
        """Decoded session, or None for a missing, forged or expired token."""
        if not token:
            return None
        return decode_session_token(token)
