"""
S3-compatible object storage backend (AWS S3, DigitalOcean Spaces, ...).

Objects are written public-read under `{S3_KEY_PREFIX}/` with a
content-addressed name plus a random suffix; public URLs go through
S3_PUBLIC_BASE_URL (CDN) when it is set.
"""
import asyncio
import functools
import hashlib
import logging
import uuid
from typing import Any, List, Optional
from urllib.parse import urlparse

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings, get_settings
from app.exceptions import ConfigurationError, NotFoundError, UpstreamError
from app.services.storage import StorageProvider, UploadResult, file_extension
from app.utils.prometheus_metrics import record_external_request

logger = logging.getLogger("app.storage.s3")

_MISSING_KEY_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class S3StorageProvider(StorageProvider):
    """Stores photos as public-read objects in one bucket."""

    name = "s3"

    def __init__(self, settings: Optional[Settings] = None, client: Any = None):
        self.settings = settings or get_settings()
        self._validate_config()
        self.bucket = self.settings.s3_bucket
        self.prefix = self.settings.s3_key_prefix.strip("/")
        self._client = client or self._create_client()

    def _validate_config(self) -> None:
        missing: List[str] = []
        if not self.settings.s3_access_key:
            missing.append("S3_ACCESS_KEY")
        if not self.settings.s3_secret_key:
            missing.append("S3_SECRET_KEY")
        if not self.settings.s3_bucket:
            missing.append("S3_BUCKET")
        if missing:
            raise ConfigurationError(
                "S3 storage is not configured. Missing environment variables: "
                + ", ".join(missing)
            )

    def _create_client(self):
        return boto3.client(
            "s3",
            aws_access_key_id=self.settings.s3_access_key,
            aws_secret_access_key=self.settings.s3_secret_key,
            endpoint_url=self.settings.s3_endpoint_url or None,
            region_name=self.settings.s3_region,
            config=Config(signature_version="s3v4"),
        )

    def build_key(self, content: bytes, filename: str, mime_type: Optional[str] = None) -> str:
        """`photos/<sha256[:16]>-<random8>.<ext>`"""
        digest = hashlib.sha256(content).hexdigest()[:16]
        name = f"{digest}-{uuid.uuid4().hex[:8]}{file_extension(filename, mime_type)}"
        return f"{self.prefix}/{name}" if self.prefix else name

    def public_url(self, key: str) -> str:
        """CDN URL when configured, otherwise the bucket's direct endpoint."""
        cdn = self.settings.s3_public_base_url.strip().rstrip("/")
        if cdn:
            return f"{cdn}/{key}"

        endpoint = self.settings.s3_endpoint_url.strip()
        if endpoint:
            parsed = urlparse(endpoint if "://" in endpoint else f"https://{endpoint}")
            return f"{parsed.scheme or 'https'}://{self.bucket}.{parsed.netloc}/{key}"

        return f"https://{self.bucket}.s3.{self.settings.s3_region}.amazonaws.com/{key}"

    async def _call(self, method: str, **kwargs: Any) -> Any:
        # boto3 는 동기 API 이므로 스레드 풀에서 실행
        loop = asyncio.get_running_loop()
        func = functools.partial(getattr(self._client, method), **kwargs)
        async with record_external_request("s3"):
            return await loop.run_in_executor(None, func)

    async def upload(
        self,
        content: bytes,
        filename: str,
        mime_type: str,
        primary_tag: Optional[str] = None,
    ) -> UploadResult:
        key = self.build_key(content, filename, mime_type)
        try:
            await self._call(
                "put_object",
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=mime_type,
                ACL="public-read",
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload failed", exc_info=e, extra={"event": "storage", "key": key})
            raise UpstreamError(str(e))
        return UploadResult(key=key, url=self.public_url(key), size=len(content))

    async def delete(self, key: str) -> None:
        try:
            await self._call("delete_object", Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 delete failed", exc_info=e, extra={"event": "storage", "key": key})
            raise UpstreamError(str(e))

    async def fetch(self, key: str) -> bytes:
        def _read() -> bytes:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            # 스트리밍 응답을 청크 단위로 읽어 하나의 버퍼로 합침
            try:
                return b"".join(body.iter_chunks())
            finally:
                body.close()

        loop = asyncio.get_running_loop()
        try:
            async with record_external_request("s3"):
                return await loop.run_in_executor(None, _read)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_KEY_CODES:
                raise NotFoundError("Stored object not found")
            logger.error("S3 fetch failed", exc_info=e, extra={"event": "storage", "key": key})
            raise UpstreamError(str(e))
        except BotoCoreError as e:
            logger.error("S3 fetch failed", exc_info=e, extra={"event": "storage", "key": key})
            raise UpstreamError(str(e))
