"""
Rate limiting middleware using slowapi.
Protects the admin login against brute force guessing of the shared secret.
"""
import logging
from typing import Callable

from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import get_settings
from app.utils.client_ip import get_client_ip
from app.utils.prometheus_metrics import rate_limit_hits_total

logger = logging.getLogger("app.rate_limit")
settings = get_settings()


def get_client_identifier(request: Request) -> str:
    """
    클라이언트 식별자 추출 (Rate limiting 키로 사용).
    우선순위: X-Forwarded-For > X-Real-IP > 직접 연결 IP
    """
    return get_client_ip(request)


# 전역 기본 제한 없음: 로그인처럼 명시한 엔드포인트만 제한
limiter = Limiter(
    key_func=get_client_identifier,
    enabled=settings.rate_limit_enabled,
    storage_uri="memory://",  # 메모리 기반 (워커별 카운터)
)


def setup_rate_limit_exception_handler(app) -> None:
    """
    Rate limit 초과 시 예외 처리 핸들러 등록.
    """
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        endpoint = request.url.path
        rate_limit_hits_total.labels(endpoint=endpoint).inc()

        logger.warning(
            "Rate limit exceeded",
            extra={
                "event": "rate_limit",
                "client_id": get_client_identifier(request),
                "endpoint": endpoint,
                "limit": getattr(exc, "detail", "unknown"),
            },
        )
        # 표준 rate limit 응답 (429)
        return _rate_limit_exceeded_handler(request, exc)


def get_rate_limit_decorator(limit: str):
    """
    Rate limit 데코레이터 생성 헬퍼.

    Args:
        limit: Rate limit 문자열 (예: "10/minute", "60/hour")
    """
    if not settings.rate_limit_enabled:
        def noop_decorator(func: Callable) -> Callable:
            return func
        return noop_decorator

    return limiter.limit(limit)
