"""
Storage provider abstraction.

One interface, three backends (local disk, S3-compatible object storage,
Google Drive). The backend is chosen once from STORAGE_BACKEND; handlers
only ever see a StorageProvider.
"""
import logging
import mimetypes
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional

from app.config import StorageBackend, get_settings
from app.exceptions import ConfigurationError

logger = logging.getLogger("app.storage")


@dataclass(frozen=True)
class UploadResult:
    """Where an uploaded payload ended up."""

    key: str
    url: str
    size: int


def file_extension(filename: str, mime_type: Optional[str] = None) -> str:
    """
    Lowercased extension with the leading dot, e.g. ".jpg".
    Falls back to the MIME type when the filename has none.
    """
    suffix = PurePosixPath(filename or "").suffix.lower()
    if suffix and len(suffix) <= 6:
        return suffix
    if mime_type:
        guessed = mimetypes.guess_extension(mime_type)
        if guessed:
            # mimetypes 는 image/jpeg 에 ".jpe" 를 줄 수 있음
            return ".jpg" if guessed in (".jpe", ".jpeg") else guessed
    return ""


class StorageProvider(ABC):
    """
    Contract every backend satisfies.

    - upload: store bytes, return key/url/size
    - delete: remove the payload identified by key
    - fetch: read the payload back into memory
    """

    #: recorded in photos.storage_provider
    name: str = ""

    @abstractmethod
    async def upload(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        primary_tag: Optional[str] = None,
    ) -> UploadResult:
        """
        Store `content`.
        `primary_tag` only matters to backends that organise files into folders.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def fetch(self, key: str) -> bytes:
        ...


# Singleton instance
_provider: Optional[StorageProvider] = None


def _build_provider() -> StorageProvider:
    settings = get_settings()
    backend = settings.storage_backend

    if backend == StorageBackend.LOCAL:
        from app.services.local_storage import LocalStorageProvider
        return LocalStorageProvider(settings)
    if backend == StorageBackend.S3:
        from app.services.s3_storage import S3StorageProvider
        return S3StorageProvider(settings)
    if backend == StorageBackend.GOOGLE_DRIVE:
        from app.services.google_drive import get_google_drive_service
        return get_google_drive_service()

    raise ConfigurationError(f"Unknown storage backend: {backend}")


def get_storage_provider() -> StorageProvider:
    """
    Get the singleton provider for the configured backend.
    Construction errors (missing credentials) are raised to the caller
    and nothing is cached, so fixing the environment and retrying works.
    """
    global _provider
    if _provider is None:
        _provider = _build_provider()
        logger.info(
            "Storage provider ready",
            extra={"event": "storage", "backend": _provider.name},
        )
    return _provider


def reset_storage_provider(provider: Optional[StorageProvider] = None) -> None:
    """Drop the cached provider (settings reload), or pin `provider` in its place (tests)."""
    global _provider
    _provider = provider
