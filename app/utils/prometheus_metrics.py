"""
Prometheus metrics for stability and gallery traffic.

- FastAPI: request count, latency (Instrumentator)
- Node/instance: app_info
- Stability: exceptions_total, db_errors_total, external_request_errors_total
- HA: ready gauge (1=up, 0=shutting down)
- Gallery: uploads, downloads (original vs watermarked), watermark latency, logins
"""
import logging
import socket
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from prometheus_client import REGISTRY, Counter, Gauge, Histogram
from prometheus_fastapi_instrumentator import Instrumentator

from app.config import get_settings

logger = logging.getLogger(__name__)

# --- Stability ---
exceptions_total = Counter(
    "gallery_exceptions_total",
    "Total unhandled exceptions",
    registry=REGISTRY,
)
db_errors_total = Counter(
    "gallery_db_errors_total",
    "Total database session/transaction errors",
    registry=REGISTRY,
)
external_request_errors_total = Counter(
    "gallery_external_request_errors_total",
    "Total external API request failures",
    ["service"],
    registry=REGISTRY,
)

# 외부 서비스 요청 수 (성공/실패 구분)
external_request_total = Counter(
    "gallery_external_request_total",
    "Total external API requests by service and outcome",
    ["service", "status"],  # status: success | failure
    registry=REGISTRY,
)

# --- HA ---
ready = Gauge(
    "gallery_ready",
    "Application ready (1=up, 0=shutting down)",
    registry=REGISTRY,
)

# --- Performance ---
external_request_duration_seconds = Histogram(
    "gallery_external_request_duration_seconds",
    "External API request duration in seconds",
    ["service", "result"],  # result: success | failure
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)

login_duration_seconds = Histogram(
    "gallery_login_duration_seconds",
    "Admin login request duration in seconds",
    ["result"],  # success | failure
    buckets=(0.01, 0.05, 0.1, 0.2, 0.5, 1.0),
    registry=REGISTRY,
)

admin_login_total = Counter(
    "gallery_admin_login_total",
    "Admin login attempts",
    ["result"],  # success | failure
    registry=REGISTRY,
)

# --- Rate Limiting ---
rate_limit_hits_total = Counter(
    "gallery_rate_limit_hits_total",
    "Total number of rate limit hits (requests blocked)",
    ["endpoint"],
    registry=REGISTRY,
)

# --- Gallery ---
photo_upload_total = Counter(
    "gallery_photo_upload_total",
    "Photo uploads by storage backend and result",
    ["backend", "result"],  # result: success | rejected | failure
    registry=REGISTRY,
)

photo_upload_file_size_bytes = Histogram(
    "gallery_photo_upload_file_size_bytes",
    "Size of accepted uploads in bytes",
    buckets=(
        100 * 1024,
        500 * 1024,
        1024 * 1024,
        2 * 1024 * 1024,
        5 * 1024 * 1024,
        10 * 1024 * 1024,
        20 * 1024 * 1024,
    ),
    registry=REGISTRY,
)

photo_download_total = Counter(
    "gallery_photo_download_total",
    "Photo downloads by variant",
    ["variant"],  # original | watermarked
    registry=REGISTRY,
)

watermark_duration_seconds = Histogram(
    "gallery_watermark_duration_seconds",
    "Time spent compositing a watermark",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
    registry=REGISTRY,
)

drive_sync_photos_total = Counter(
    "gallery_drive_sync_photos_total",
    "Photos seen by Drive sync",
    ["result"],  # imported | skipped
    registry=REGISTRY,
)

app_info = Gauge(
    "gallery_app_info",
    "Application and node identity (labels only, value is 1)",
    ["node", "app", "version", "environment", "storage_backend"],
    registry=REGISTRY,
)


def _node_identity() -> str:
    """Node/instance identifier: INSTANCE_IP env or hostname."""
    settings = get_settings()
    if settings.instance_ip:
        return settings.instance_ip
    try:
        return socket.gethostname()
    except OSError:
        return "unknown"


@asynccontextmanager
async def record_external_request(service: str) -> AsyncGenerator[None, None]:
    """
    Context manager to record external request duration, total count, and errors.
    Use around S3 / Google Drive / Google OAuth calls.
    """
    start = time.perf_counter()
    exc_raised = None
    try:
        yield
    except Exception as e:
        exc_raised = e
        external_request_errors_total.labels(service=service).inc()
        external_request_total.labels(service=service, status="failure").inc()
        raise
    finally:
        duration = time.perf_counter() - start
        result = "failure" if exc_raised is not None else "success"
        if exc_raised is None:
            external_request_total.labels(service=service, status="success").inc()
        external_request_duration_seconds.labels(service=service, result=result).observe(duration)


def setup_prometheus(app) -> None:
    """
    Register Prometheus instrumentation.

    1. app_info (node identity + active storage backend).
    2. Instrumentator (FastAPI request metrics).
    3. /metrics 엔드포인트 노출 (스크래핑용).
    """
    settings = get_settings()
    app_info.labels(
        node=_node_identity(),
        app=settings.app_name,
        version=settings.app_version,
        environment=settings.environment.value,
        storage_backend=settings.storage_backend.value,
    ).set(1)

    # status 라벨을 2xx/3xx 대신 구체 코드(200, 201, 404, 500 등)로 노출
    Instrumentator(should_group_status_codes=False).instrument(app).expose(
        app, endpoint="/metrics"
    )
