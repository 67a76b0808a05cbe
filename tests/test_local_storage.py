"""
Local filesystem backend.
"""
import asyncio

import pytest

from app.config import Settings
from app.exceptions import NotFoundError, UpstreamError
from app.services.local_storage import LocalStorageProvider
from app.services.storage import file_extension


@pytest.fixture
def provider(tmp_path):
    settings = Settings(local_upload_dir=str(tmp_path / "uploads"), local_upload_url_prefix="/uploads/")
    return LocalStorageProvider(settings)


def test_upload_fetch_delete(provider):
    result = asyncio.run(provider.upload(b"pixels", "Photo.JPEG", "image/jpeg"))

    assert result.key.endswith(".jpeg")
    assert result.url == f"/uploads/{result.key}"
    assert result.size == 6
    assert (provider.root / result.key).read_bytes() == b"pixels"
    assert asyncio.run(provider.fetch(result.key)) == b"pixels"

    asyncio.run(provider.delete(result.key))
    assert not (provider.root / result.key).exists()
    # deleting twice is not an error
    asyncio.run(provider.delete(result.key))


def test_keys_are_unique(provider):
    first = asyncio.run(provider.upload(b"a", "same.png", "image/png"))
    second = asyncio.run(provider.upload(b"b", "same.png", "image/png"))

    assert first.key != second.key


def test_fetch_missing_file(provider):
    with pytest.raises(NotFoundError):
        asyncio.run(provider.fetch("missing.png"))


def test_disk_errors_become_upstream_errors(provider):
    provider.root.mkdir(parents=True)
    (provider.root / "stuck.png").mkdir()

    with pytest.raises(UpstreamError):
        asyncio.run(provider.delete("stuck.png"))
    with pytest.raises(UpstreamError):
        asyncio.run(provider.fetch("stuck.png"))


def test_upload_into_unwritable_location(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_bytes(b"")
    provider = LocalStorageProvider(Settings(local_upload_dir=str(blocker)))

    with pytest.raises(UpstreamError):
        asyncio.run(provider.upload(b"x", "a.png", "image/png"))


@pytest.mark.parametrize("key", ["../secret.txt", "nested/file.png", ".hidden", ""])
def test_keys_cannot_escape_the_upload_dir(provider, key):
    with pytest.raises(NotFoundError):
        asyncio.run(provider.fetch(key))


@pytest.mark.parametrize(
    "filename, mime_type, ext",
    [
        ("a.PNG", "image/png", ".png"),
        ("noext", "image/jpeg", ".jpg"),
        ("noext", None, ""),
    ],
)
def test_file_extension(filename, mime_type, ext):
    assert file_extension(filename, mime_type) == ext
