"""
Shared fixtures.

Environment variables are set before anything from `app` is imported:
Settings is cached and the engine is built at import time.
"""
import asyncio
import io
import os
import tempfile
from typing import Dict, List, Optional, Tuple

_TMP_DIR = tempfile.mkdtemp(prefix="gallery-tests-")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["ADMIN_SECRET_CODE"] = "let-me-in"
os.environ["SESSION_SECRET_KEY"] = "test-session-secret"
os.environ["STORAGE_BACKEND"] = "local"
os.environ["LOCAL_UPLOAD_DIR"] = os.path.join(_TMP_DIR, "uploads")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_DIR"] = ""
os.environ["ENVIRONMENT"] = "DEV"
os.environ["FRONTEND_URL"] = "http://frontend.test"

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.database import Base, engine
from app.exceptions import UpstreamError
from app.main import app
from app.services.google_drive import reset_google_drive_service
from app.services.storage import StorageProvider, UploadResult, reset_storage_provider

ADMIN_CODE = "let-me-in"


class MemoryStorage(StorageProvider):
    """In-memory backend that records every call."""

    name = "local"

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.uploads: List[Tuple[str, str, Optional[str]]] = []
        self.deleted: List[str] = []
        self.fail_delete = False

    async def upload(self, content, filename, mime_type, primary_tag=None):
        key = f"mem-{len(self.uploads) + 1}-{filename}"
        self.objects[key] = content
        self.uploads.append((filename, mime_type, primary_tag))
        return UploadResult(key=key, url=f"/uploads/{key}", size=len(content))

    async def delete(self, key):
        if self.fail_delete:
            raise UpstreamError("storage unavailable")
        self.deleted.append(key)
        self.objects.pop(key, None)

    async def fetch(self, key):
        return self.objects[key]


def make_image_bytes(size=(320, 200), color=(0, 0, 0), fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


async def _recreate_tables() -> None:
    import app.models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def storage():
    fake = MemoryStorage()
    reset_storage_provider(fake)
    yield fake
    reset_storage_provider()


@pytest.fixture
def client(storage):
    """Anonymous client. Entering the context runs startup (tables + seed tags)."""
    asyncio.run(_recreate_tables())
    with TestClient(app) as test_client:
        yield test_client
    reset_google_drive_service()


@pytest.fixture
def admin_client(client):
    """Second client on the same app holding an admin session cookie."""
    admin = TestClient(app)
    response = admin.post("/api/auth/login", json={"code": ADMIN_CODE})
    assert response.status_code == 200
    return admin


@pytest.fixture
def create_photo(admin_client, storage):
    """Store bytes in the fake backend and create the photo record through the API."""

    def _create(title=None, is_public=True, tags=None, content=None, mime_type="image/png"):
        content = content if content is not None else make_image_bytes()
        key = f"stored-{len(storage.objects) + 1}.png"
        storage.objects[key] = content
        response = admin_client.post(
            "/api/photos",
            json={
                "title": title,
                "filename": f"{key}",
                "storage_key": key,
                "storage_url": f"/uploads/{key}",
                "mime_type": mime_type,
                "size": len(content),
                "is_public": is_public,
                "tags": tags or [],
            },
        )
        assert response.status_code == 201, response.text
        return response.json()

    return _create
