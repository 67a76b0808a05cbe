"""
Health Check 라우터.

로드밸런서/오케스트레이터용 상태 확인 엔드포인트를 제공합니다.
"""
import asyncio
import logging
import time
from typing import Any, Dict

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import text

from app.config import get_settings
from app.database import engine
from app.utils.prometheus_metrics import ready

logger = logging.getLogger("app.health")
router = APIRouter(prefix="/health", tags=["Health"])

DB_CHECK_TIMEOUT_SECONDS = 1.0


async def _check_db() -> None:
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))


@router.get(
    "",
    summary="Health check (liveness + database)",
)
async def health_check() -> Dict[str, Any]:
    """
    빠른 Health Check.

    - 종료 중이면 503 (ready=0)
    - DB 연결 확인 (타임아웃 1초)
    """
    start_time = time.perf_counter()

    if ready._value.get() == 0:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is not ready",
        )

    try:
        await asyncio.wait_for(_check_db(), timeout=DB_CHECK_TIMEOUT_SECONDS)
    except asyncio.TimeoutError:
        logger.warning("DB health check timeout", extra={"event": "health"})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection timeout",
        )
    except Exception as e:
        logger.warning("DB health check failed", extra={"event": "health", "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database connection failed",
        )

    settings = get_settings()
    return {
        "status": "healthy",
        "duration_ms": round((time.perf_counter() - start_time) * 1000, 2),
        "storage_backend": settings.storage_backend.value,
        "instance": settings.instance_ip or "unknown",
    }


@router.get(
    "/liveness",
    summary="Liveness probe",
)
async def liveness_probe() -> Dict[str, str]:
    """프로세스가 살아있는지만 확인 (DB 미확인)."""
    if ready._value.get() == 0:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Application is shutting down",
        )
    return {"status": "alive"}
