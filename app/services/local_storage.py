"""
Local filesystem storage backend.
Files are written flat under LOCAL_UPLOAD_DIR and served under LOCAL_UPLOAD_URL_PREFIX.
"""
import asyncio
import logging
import uuid
from pathlib import Path
from typing import Optional

from app.config import Settings, get_settings
from app.exceptions import NotFoundError, UpstreamError
from app.services.storage import StorageProvider, UploadResult, file_extension

logger = logging.getLogger("app.storage.local")


class LocalStorageProvider(StorageProvider):
    """Stores photos as `<uuid>.<ext>` files in a single directory."""

    name = "local"

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.root = Path(self.settings.local_upload_dir)
        self.url_prefix = self.settings.local_upload_url_prefix.rstrip("/")

    def _path_for(self, key: str) -> Path:
        # 키는 파일명 하나만 허용 (경로 이탈 방지)
        if not key or key != Path(key).name or key.startswith("."):
            raise NotFoundError("Stored file not found")
        return self.root / key

    async def upload(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        primary_tag: Optional[str] = None,
    ) -> UploadResult:
        key = f"{uuid.uuid4().hex}{file_extension(filename, mime_type)}"
        path = self.root / key

        def _write() -> None:
            self.root.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, _write)
        except OSError as e:
            logger.error("Local write failed", extra={"event": "storage", "key": key, "error": str(e)})
            raise UpstreamError(str(e))
        return UploadResult(key=key, url=f"{self.url_prefix}/{key}", size=len(content))

    async def delete(self, key: str) -> None:
        path = self._path_for(key)
        loop = asyncio.get_running_loop()
        try:
            # 이미 없는 파일은 삭제된 것으로 간주
            await loop.run_in_executor(None, lambda: path.unlink(missing_ok=True))
        except OSError as e:
            raise UpstreamError(str(e))

    async def fetch(self, key: str) -> bytes:
        path = self._path_for(key)
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, path.read_bytes)
        except FileNotFoundError:
            logger.warning("Stored file missing", extra={"event": "storage", "key": key})
            raise NotFoundError("Stored file not found")
        except OSError as e:
            raise UpstreamError(str(e))
