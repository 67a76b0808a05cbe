"""
One-way import of the legacy photos.json metadata file.
"""
import asyncio
import json

import pytest

from app.database import get_db_context
from app.exceptions import ValidationError
from app.services.legacy_import import import_legacy_photos

LEGACY_ENTRIES = [
    {
        "id": "legacy-1",
        "filename": "sunrise.jpg",
        "url": "/uploads/sunrise.jpg",
        "storageKey": "sunrise.jpg",
        "storageProvider": "local",
        "tags": ["Nature", "Harbour Lights"],
        "uploadedAt": "2024-05-01T10:00:00.000Z",
        "size": 1234,
        "width": 800,
        "height": 600,
    },
    {
        "id": "legacy-2",
        "filename": "street.jpg",
        "url": "/uploads/street.jpg",
        "storageKey": "street.jpg",
        "tags": ["street"],
    },
    {"id": "legacy-3", "filename": "no-key.jpg"},
    "not an object",
]


def _run(path):
    async def _import():
        async with get_db_context() as db:
            return await import_legacy_photos(db, path)

    return asyncio.run(_import())


@pytest.fixture
def legacy_file(tmp_path):
    path = tmp_path / "photos.json"
    path.write_text(json.dumps(LEGACY_ENTRIES), encoding="utf-8")
    return path


def test_imports_valid_entries_as_public(client, legacy_file):
    result = _run(legacy_file)

    assert (result.imported, result.skipped, result.invalid) == (2, 0, 2)

    photos = {p["id"]: p for p in client.get("/api/photos").json()}
    assert set(photos) == {"legacy-1", "legacy-2"}
    sunrise = photos["legacy-1"]
    assert sunrise["is_public"] is True
    assert sunrise["uploaded_by"] == "legacy_import"
    assert sunrise["width"] == 800
    assert sunrise["created_at"].startswith("2024-05-01T10:00:00")
    assert sorted(t["slug"] for t in sunrise["tags"]) == ["harbour-lights", "nature"]
    assert [t["slug"] for t in photos["legacy-2"]["tags"]] == ["street"]


def test_tags_are_reused_or_created(client, legacy_file):
    _run(legacy_file)

    tags = {t["slug"]: t for t in client.get("/api/tags").json()}
    assert tags["nature"]["source"] == "seed"
    assert tags["street"]["source"] == "seed"
    assert tags["harbour-lights"]["source"] == "legacy_import"
    assert tags["harbour-lights"]["count"] == 1


def test_rerun_skips_existing_ids(client, legacy_file):
    _run(legacy_file)
    result = _run(legacy_file)

    assert (result.imported, result.skipped, result.invalid) == (0, 2, 2)
    assert len(client.get("/api/photos").json()) == 2


@pytest.mark.parametrize("content", ["{not json", '{"id": "x"}'])
def test_unreadable_file(client, tmp_path, content):
    path = tmp_path / "photos.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValidationError):
        _run(path)


def test_missing_file(client, tmp_path):
    with pytest.raises(ValidationError):
        _run(tmp_path / "missing.json")
