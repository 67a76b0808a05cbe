"""
Application configuration using Pydantic Settings.
Manages all environment variables and settings.
"""
from enum import Enum
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator, model_validator


DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./gallery.db"


class Environment(str, Enum):
    """Application environment modes."""
    DEV = "DEV"
    PRODUCTION = "PRODUCTION"


class StorageBackend(str, Enum):
    """Where uploaded photo bytes live."""
    LOCAL = "local"
    S3 = "s3"
    GOOGLE_DRIVE = "google_drive"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Environment
    environment: Environment = Field(
        default=Environment.DEV,
        description="Application environment: DEV or PRODUCTION"
    )

    # Application
    app_name: str = Field(default="Photo Gallery API")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)

    @model_validator(mode='after')
    def set_debug_from_environment(self):
        """Set debug mode based on environment if not explicitly set via environment variable."""
        # DEBUG 환경 변수가 명시적으로 설정되지 않은 경우에만 환경 모드에 따라 설정
        import os
        if 'DEBUG' not in os.environ:
            self.debug = self.environment == Environment.DEV
        return self

    @property
    def is_dev(self) -> bool:
        """Check if running in development mode."""
        return self.environment == Environment.DEV

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION

    # Database (빈 문자열이면 기본값 사용)
    database_url: str = Field(default=DEFAULT_DATABASE_URL)
    db_pool_size: int = Field(default=5, description="QueuePool size (non-SQLite only)")
    db_max_overflow: int = Field(default=10)
    db_pool_timeout: int = Field(default=30, description="Seconds to wait for a pooled connection")
    db_pool_recycle: int = Field(default=1800, description="Seconds before a pooled connection is recycled")

    @field_validator("database_url", mode="before")
    @classmethod
    def coerce_empty_database_url(cls, v: str) -> str:
        if not v or not str(v).strip():
            return DEFAULT_DATABASE_URL
        return v

    # Admin session (single shared secret)
    admin_secret_code: str = Field(default="", description="Shared secret the administrator logs in with")
    session_secret_key: str = Field(default="session-secret-change-in-production")
    session_algorithm: str = Field(default="HS256")
    session_cookie_name: str = Field(default="gallery_session")
    session_max_age_days: int = Field(default=30)
    session_cookie_secure: bool = Field(default=False, description="Set the Secure flag on the session cookie")

    # Storage backend selection
    storage_backend: StorageBackend = Field(
        default=StorageBackend.LOCAL,
        description="local | s3 | google_drive",
    )

    @field_validator("storage_backend", mode="before")
    @classmethod
    def normalize_storage_backend(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v

    # Local filesystem backend
    local_upload_dir: str = Field(default="./uploads")
    local_upload_url_prefix: str = Field(default="/uploads")

    # S3-compatible object storage (AWS S3, DigitalOcean Spaces, ...)
    s3_access_key: str = Field(default="")
    s3_secret_key: str = Field(default="")
    s3_bucket: str = Field(default="")
    s3_region: str = Field(default="us-east-1")
    s3_endpoint_url: str = Field(default="", description="Custom endpoint. 비우면 AWS 기본 엔드포인트")
    s3_public_base_url: str = Field(
        default="",
        description="CDN endpoint used to build public URLs. 비우면 버킷 직접 URL",
    )
    s3_key_prefix: str = Field(default="photos")

    # Google Drive
    google_client_id: str = Field(default="")
    google_client_secret: str = Field(default="")
    google_redirect_uri: str = Field(
        default="",
        description="OAuth callback URL. 비우면 {public_base_url}/api/auth/google/callback",
    )
    google_drive_root_folder: str = Field(default="photos")
    google_oauth_state_expire_minutes: int = Field(default=10)
    public_base_url: str = Field(default="http://localhost:8000")
    frontend_url: str = Field(default="", description="Where the OAuth callback redirects. 비우면 public_base_url")

    @property
    def effective_google_redirect_uri(self) -> str:
        if self.google_redirect_uri:
            return self.google_redirect_uri
        return f"{self.public_base_url.rstrip('/')}/api/auth/google/callback"

    @property
    def effective_frontend_url(self) -> str:
        return (self.frontend_url or self.public_base_url).rstrip("/")

    # Upload limits
    max_upload_bytes: int = Field(default=20 * 1024 * 1024, description="Maximum upload size (20MB)")

    # Watermark
    watermark_text: str = Field(default="© Glass Eye Photography")
    watermark_caption: str = Field(default="© Glass Eye Photography - All Rights Reserved")
    watermark_font_path: str = Field(default="", description="TrueType font. 비우면 DejaVuSans 또는 기본 폰트")
    watermark_jpeg_quality: int = Field(default=90)

    # CORS (쉼표 구분). 쿠키 세션을 쓰므로 운영에서는 프론트엔드 origin 을 지정
    cors_origins: str = Field(default="*")

    @property
    def cors_origin_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    # Rate limiting (login only)
    rate_limit_enabled: bool = Field(default=True)
    login_rate_limit: str = Field(default="10/minute")

    # Logging
    log_dir: str = Field(
        default="/var/log/photo-gallery",
        description="NDJSON log directory. 비우면 파일 로그 비활성화",
    )
    # 인스턴스 식별용 사설 IP (로그·메트릭용). 비우면 hostname
    instance_ip: str = Field(default="", description="서버 사설 IP (비우면 자동 감지)")

    class Config:
        # 환경변수만 사용 (.env 파일 미사용)
        env_file = None
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Using lru_cache to avoid reading the environment on every request.
    """
    return Settings()
