"""
Upload router: puts image bytes into the active storage backend.

The response is the input for `POST /api/photos`; no photo record is
created here.
"""
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from app.config import get_settings
from app.dependencies.auth import require_admin
from app.exceptions import GalleryError, ValidationError
from app.schemas.auth import SessionPayload
from app.schemas.photo import PhotoUploadResponse
from app.services.storage import get_storage_provider
from app.services.watermark import probe_dimensions
from app.utils.prometheus_metrics import photo_upload_file_size_bytes, photo_upload_total

logger = logging.getLogger("app.upload")

router = APIRouter(prefix="/upload", tags=["Upload"])

# Allowed content types for photo upload
ALLOWED_CONTENT_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
}


def parse_tags_field(raw: Optional[str]) -> List[str]:
    """
    `tags` form field: a JSON array (`["Nature", "Urban"]`) or a comma list
    (`Nature, Urban`). Order is kept; the first entry is the primary tag.
    """
    if not raw or not raw.strip():
        return []
    raw = raw.strip()
    if raw.startswith("["):
        try:
            values = json.loads(raw)
        except json.JSONDecodeError:
            raise ValidationError("Invalid tags field: malformed JSON array")
        if not isinstance(values, list) or not all(isinstance(v, str) for v in values):
            raise ValidationError("Invalid tags field: expected an array of strings")
    else:
        values = raw.split(",")

    tags: List[str] = []
    for value in values:
        value = value.strip()
        if value and value not in tags:
            tags.append(value)
    return tags


@router.post(
    "",
    response_model=PhotoUploadResponse,
    summary="Upload image bytes to the storage backend",
)
async def upload_photo(
    file: UploadFile = File(..., description="Image file (JPEG, PNG, GIF, WebP)"),
    tags: Optional[str] = Form(None, description="JSON array or comma-separated tag names"),
    session: SessionPayload = Depends(require_admin),
) -> PhotoUploadResponse:
    """
    Validate and store an image.

    - **file**: JPEG, PNG, GIF or WebP, at most MAX_UPLOAD_BYTES
    - **tags**: optional; the first tag picks the Drive folder

    Nothing is written to storage when validation fails.
    """
    settings = get_settings()
    backend = settings.storage_backend.value
    content_type = file.content_type or ""

    if content_type not in ALLOWED_CONTENT_TYPES:
        photo_upload_total.labels(backend=backend, result="rejected").inc()
        raise ValidationError("Invalid file type. Supported: JPEG, PNG, GIF, WebP")

    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        photo_upload_total.labels(backend=backend, result="rejected").inc()
        raise ValidationError(
            f"File too large. Maximum size is {settings.max_upload_bytes // (1024 * 1024)}MB"
        )
    if not content:
        photo_upload_total.labels(backend=backend, result="rejected").inc()
        raise ValidationError("No file provided")

    tag_names = parse_tags_field(tags)
    filename = file.filename or "photo"

    try:
        storage = get_storage_provider()
        result = await storage.upload(
            content,
            filename,
            content_type,
            primary_tag=tag_names[0] if tag_names else None,
        )
    except GalleryError as e:
        photo_upload_total.labels(backend=backend, result="failure").inc()
        logger.error(
            "Photo upload failed",
            extra={"event": "photo_upload", "backend": backend, "error": e.message},
        )
        raise

    width, height = probe_dimensions(content)
    photo_upload_total.labels(backend=storage.name, result="success").inc()
    photo_upload_file_size_bytes.observe(len(content))
    # 업로드는 INFO (중요 비즈니스 이벤트)
    logger.info(
        "Photo uploaded",
        extra={
            "event": "photo_upload",
            "backend": storage.name,
            "storage_key": result.key,
            "size": result.size,
            "subject": session.sub,
        },
    )

    return PhotoUploadResponse(
        storage_key=result.key,
        storage_url=result.url,
        storage_provider=storage.name,
        filename=filename,
        size=result.size,
        mime_type=content_type,
        width=width,
        height=height,
        tags=tag_names,
    )
