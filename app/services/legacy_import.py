"""
One-way import of the flat `photos.json` metadata file used by earlier
deployments of the gallery.

Each entry looks like:
    {"id": "...", "filename": "...", "url": "...", "storageKey": "...",
     "storageProvider": "local", "tags": ["Nature"], "uploadedAt": "2024-05-01T10:00:00.000Z",
     "size": 1234, "width": 800, "height": 600}
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationError
from app.models.photo import Photo, utcnow
from app.models.tag import TagSource
from app.services.tag import TagService

logger = logging.getLogger("app.legacy_import")


@dataclass
class LegacyImportResult:
    imported: int = 0
    skipped: int = 0
    invalid: int = 0


def _parse_uploaded_at(value: Optional[str]) -> datetime:
    if not value:
        return utcnow()
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return utcnow()
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _load_entries(path: Path) -> List[Dict[str, Any]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValidationError(f"Cannot read legacy metadata file {path}: {e}")
    if not isinstance(data, list):
        raise ValidationError("Legacy metadata file must contain a JSON array")
    return data


async def import_legacy_photos(db: AsyncSession, path: Union[str, Path]) -> LegacyImportResult:
    """
    Insert every entry whose id is not in the database yet.
    Imported photos are public, matching how the flat file was served.
    Tags are matched by slug or name; unknown ones are created.
    """
    entries = _load_entries(Path(path))
    tag_service = TagService(db)
    result = LegacyImportResult()

    existing = await db.execute(select(Photo.id))
    known_ids = set(existing.scalars().all())

    for entry in entries:
        if not isinstance(entry, dict) or not entry.get("storageKey") or not entry.get("filename"):
            result.invalid += 1
            continue
        photo_id = str(entry.get("id") or "")
        if photo_id and photo_id in known_ids:
            result.skipped += 1
            continue

        tags = []
        for name in entry.get("tags") or []:
            if isinstance(name, str) and name.strip():
                tag = await tag_service.get_or_create(name, TagSource.LEGACY_IMPORT)
                if tag not in tags:
                    tags.append(tag)

        uploaded_at = _parse_uploaded_at(entry.get("uploadedAt"))
        photo = Photo(
            filename=entry["filename"],
            storage_key=entry["storageKey"],
            storage_url=entry.get("url") or "",
            storage_provider=entry.get("storageProvider") or "local",
            size=entry.get("size"),
            width=entry.get("width"),
            height=entry.get("height"),
            is_public=True,
            uploaded_by="legacy_import",
            created_at=uploaded_at,
            updated_at=uploaded_at,
            tags=tags,
        )
        if photo_id:
            photo.id = photo_id
            known_ids.add(photo_id)
        db.add(photo)
        result.imported += 1

    await db.flush()
    logger.info(
        "Legacy import completed",
        extra={
            "event": "legacy_import",
            "imported": result.imported,
            "skipped": result.skipped,
            "invalid": result.invalid,
        },
    )
    return result
