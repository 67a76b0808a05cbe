"""
설정 검증 유틸리티.

애플리케이션 시작 시 필수 설정을 검증합니다.
프로덕션 환경에서만 실행됩니다 (main.py lifespan).
"""
import logging
from typing import List, Tuple

from sqlalchemy import text

from app.config import Settings, StorageBackend, get_settings
from app.database import engine

logger = logging.getLogger("app.config_validator")

INSECURE_SESSION_SECRET = "session-secret-change-in-production"


def _validate_auth_config(settings: Settings) -> List[str]:
    errors: List[str] = []
    if not settings.admin_secret_code:
        errors.append("ADMIN_SECRET_CODE is required")
    if settings.session_secret_key == INSECURE_SESSION_SECRET:
        errors.append("SESSION_SECRET_KEY must be changed from the default value")
    if not settings.session_cookie_secure:
        logger.warning(
            "SESSION_COOKIE_SECURE is off (cookie sent over plain HTTP)",
            extra={"event": "config"},
        )
    return errors


def _validate_storage_config(settings: Settings) -> List[str]:
    """선택된 스토리지 백엔드의 자격 증명 확인."""
    errors: List[str] = []
    backend = settings.storage_backend

    if backend == StorageBackend.S3:
        for env_name, value in (
            ("S3_ACCESS_KEY", settings.s3_access_key),
            ("S3_SECRET_KEY", settings.s3_secret_key),
            ("S3_BUCKET", settings.s3_bucket),
        ):
            if not value:
                errors.append(f"{env_name} is required when STORAGE_BACKEND=s3")
    elif backend == StorageBackend.GOOGLE_DRIVE:
        for env_name, value in (
            ("GOOGLE_CLIENT_ID", settings.google_client_id),
            ("GOOGLE_CLIENT_SECRET", settings.google_client_secret),
        ):
            if not value:
                errors.append(f"{env_name} is required when STORAGE_BACKEND=google_drive")

    if errors:
        logger.error(
            "Storage configuration validation failed",
            extra={"event": "config", "backend": backend.value, "errors": errors},
        )
    else:
        logger.info(
            "Storage configuration: OK",
            extra={"event": "config", "backend": backend.value},
        )
    return errors


async def _validate_database() -> List[str]:
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Database connection failed", extra={"event": "config"}, exc_info=True)
        return [f"Database connection failed: {e}"]
    logger.info("Database connection: OK", extra={"event": "config"})
    return []


async def validate_all_config() -> Tuple[bool, List[str]]:
    """
    Run every check and collect the problems.

    Returns:
        (ok, errors)
    """
    settings = get_settings()
    errors: List[str] = []
    errors.extend(_validate_auth_config(settings))
    errors.extend(_validate_storage_config(settings))
    errors.extend(await _validate_database())
    return not errors, errors
