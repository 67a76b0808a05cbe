"""
FastAPI Photo Gallery Application.

Main application entry point that configures:
- CORS middleware
- API routers (all under /api)
- Database lifecycle (tables + predefined tags)
- Logging system
- Exception handlers
- Prometheus metrics
- Static file serving for the local storage backend
"""
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import StorageBackend, get_settings
from app.database import close_db, init_db
from app.exceptions import GalleryError
from app.middlewares.logging_middleware import LoggingMiddleware
from app.middlewares.rate_limit_middleware import setup_rate_limit_exception_handler
from app.routers import (
    auth_router,
    google_drive_router,
    health_router,
    photos_router,
    tags_router,
    upload_router,
)
from app.utils.logger import get_request_id, log_error, log_info, setup_logging
from app.utils.prometheus_metrics import exceptions_total, ready, setup_prometheus

settings = get_settings()
logger = logging.getLogger("app")

# Python logging 설정
setup_logging()

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup: 설정 검증 (프로덕션), 테이블 생성 + 기본 태그 시드.
    Shutdown: health check 실패로 전환 후 DB 연결 종료.
    """
    if settings.is_production:
        from app.utils.config_validator import validate_all_config
        config_ok, config_errors = await validate_all_config()
        if not config_ok:
            error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in config_errors)
            log_error(
                "Startup failed: configuration validation errors",
                error_message=error_msg,
                event="lifecycle",
            )
            raise RuntimeError(error_msg)
        log_info("Configuration validation passed", event="lifecycle")

    await init_db()
    ready.set(1)
    log_info(
        "Application startup completed",
        event="lifecycle",
        version=settings.app_version,
        environment=settings.environment.value,
        storage_backend=settings.storage_backend.value,
    )

    yield

    ready.set(0)  # Health check 즉시 실패
    log_info("Application shutdown initiated", event="lifecycle")
    await close_db()
    log_info("Shutdown completed", event="lifecycle")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
## Photo Gallery API

Backend of a single-owner photo portfolio:

- **Gallery**: public photos with tags, private photos for the admin
- **Upload**: local disk, S3-compatible object storage or Google Drive
- **Downloads**: originals for the admin, watermarked JPEG for everyone else

### Authentication
Admin endpoints need the session cookie set by `POST /api/auth/login`
(or the same token as `Authorization: Bearer <token>`).
    """,
    openapi_tags=[
        {"name": "Authentication", "description": "Admin session"},
        {"name": "Photos", "description": "Photo records, tags and downloads"},
        {"name": "Upload", "description": "Image upload to the storage backend"},
        {"name": "Tags", "description": "Tag list and creation"},
        {"name": "Google Drive", "description": "Drive connection and import"},
    ],
    lifespan=lifespan,
)

# Prometheus: FastAPI metrics + node info at /metrics
setup_prometheus(app)

# Rate limiting: 예외 처리 핸들러 등록
setup_rate_limit_exception_handler(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add structured logging middleware
app.add_middleware(LoggingMiddleware)


@app.exception_handler(GalleryError)
async def gallery_error_handler(request: Request, exc: GalleryError):
    """Application errors carry their own status; the message goes out as `detail`."""
    if exc.status_code >= 500:
        log_error(
            "Request failed",
            error_type=type(exc).__name__,
            error_message=exc.message,
            http_method=request.method,
            http_path=request.url.path,
            request_id=get_request_id(),
            event="exception",
        )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and parameters are plain 400s."""
    errors = jsonable_encoder(exc.errors())
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": message, "errors": errors},
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Unhandled exception handler with structured logging.
    Request ID 를 응답에 포함 (장애 추적용).
    """
    exceptions_total.inc()
    rid = get_request_id()

    log_error(
        "Unhandled exception occurred",
        error_type=type(exc).__name__,
        error_message=str(exc),
        error_code="INTERNAL_SERVER_ERROR",
        http_method=request.method,
        http_path=request.url.path,
        request_id=rid,
        event="exception",
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "request_id": rid,
        },
    )


# Include routers
app.include_router(health_router)
app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(google_drive_router, prefix=API_PREFIX)
app.include_router(photos_router, prefix=API_PREFIX)
app.include_router(upload_router, prefix=API_PREFIX)
app.include_router(tags_router, prefix=API_PREFIX)

# 로컬 백엔드: 업로드 파일을 직접 서빙
if settings.storage_backend == StorageBackend.LOCAL:
    upload_dir = Path(settings.local_upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.local_upload_url_prefix,
        StaticFiles(directory=str(upload_dir)),
        name="uploads",
    )


# Root endpoint
@app.get(
    "/",
    tags=["Root"],
    summary="API information",
)
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "storage_backend": settings.storage_backend.value,
        "docs": "/docs",
    }
