"""
Photos router for gallery photo management.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_optional_session, require_admin
from app.schemas.auth import SessionPayload
from app.schemas.photo import (
    DeleteResponse,
    PhotoCreate,
    PhotoResponse,
    PhotoTagsUpdate,
    PhotoUpdate,
)
from app.services.photo import PhotoService

router = APIRouter(prefix="/photos", tags=["Photos"])


@router.get(
    "",
    response_model=List[PhotoResponse],
    summary="List photos",
)
async def get_photos(
    tag: Optional[str] = Query(None, description="Tag slug or display name"),
    include_private: bool = Query(False, alias="includePrivate"),
    skip: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    session: Optional[SessionPayload] = Depends(get_optional_session),
) -> List[PhotoResponse]:
    """
    Photos newest first, each with its tags.

    - **tag**: only photos carrying this tag
    - **includePrivate**: include private photos (ignored without an admin session)
    - **skip** / **limit**: pagination
    """
    photo_service = PhotoService(db)
    photos = await photo_service.list_photos(
        session,
        tag=tag,
        include_private=include_private,
        skip=skip,
        limit=limit,
    )
    return [PhotoResponse.model_validate(photo) for photo in photos]


@router.post(
    "",
    response_model=PhotoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a photo record",
)
async def create_photo(
    photo_data: PhotoCreate,
    db: AsyncSession = Depends(get_db),
    session: SessionPayload = Depends(require_admin),
) -> PhotoResponse:
    """
    Record metadata for an object returned by `POST /api/upload`.
    Photos are private unless `is_public` is true.
    """
    photo_service = PhotoService(db)
    photo = await photo_service.create_photo(photo_data, session)
    return PhotoResponse.model_validate(photo)


@router.get(
    "/{photo_id}",
    response_model=PhotoResponse,
    summary="Get a specific photo",
)
async def get_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    session: Optional[SessionPayload] = Depends(get_optional_session),
) -> PhotoResponse:
    """Private photos answer 404 unless the caller is the admin."""
    photo_service = PhotoService(db)
    photo = await photo_service.get_photo(photo_id, session)
    return PhotoResponse.model_validate(photo)


@router.patch(
    "/{photo_id}",
    response_model=PhotoResponse,
    summary="Update photo metadata",
)
async def update_photo(
    photo_id: str,
    update_data: PhotoUpdate,
    db: AsyncSession = Depends(get_db),
    session: SessionPayload = Depends(require_admin),
) -> PhotoResponse:
    """
    Partial update.

    - **title** / **description**: `null` clears the value
    - **is_public**: visibility
    - **tags**: replaces the whole tag set (unknown names are dropped)
    """
    photo_service = PhotoService(db)
    photo = await photo_service.update_photo(photo_id, update_data)
    return PhotoResponse.model_validate(photo)


@router.put(
    "/{photo_id}/tags",
    response_model=PhotoResponse,
    summary="Replace the tags of a photo",
)
async def replace_photo_tags(
    photo_id: str,
    tags_data: PhotoTagsUpdate,
    db: AsyncSession = Depends(get_db),
    session: SessionPayload = Depends(require_admin),
) -> PhotoResponse:
    photo_service = PhotoService(db)
    photo = await photo_service.replace_photo_tags(photo_id, tags_data.tags)
    return PhotoResponse.model_validate(photo)


@router.delete(
    "/{photo_id}",
    response_model=DeleteResponse,
    summary="Delete a photo",
)
async def delete_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    session: SessionPayload = Depends(require_admin),
) -> DeleteResponse:
    """
    Delete a photo from storage and database.
    A storage failure is logged; the record is removed regardless.
    """
    photo_service = PhotoService(db)
    await photo_service.delete_photo(photo_id)
    return DeleteResponse()


@router.get(
    "/{photo_id}/download",
    summary="Download a photo (watermarked unless admin)",
)
async def download_photo(
    photo_id: str,
    db: AsyncSession = Depends(get_db),
    session: Optional[SessionPayload] = Depends(get_optional_session),
) -> Response:
    """
    - Admin: original bytes as an attachment
    - Everyone else: public photos only, re-encoded as a watermarked JPEG
    """
    photo_service = PhotoService(db)
    download = await photo_service.download_photo(photo_id, session)

    headers = {
        "Cache-Control": "no-store",
        "Content-Disposition": f'attachment; filename="{download.filename}"',
    }
    if download.watermarked:
        headers["X-Watermark"] = "applied"

    return Response(content=download.content, media_type=download.media_type, headers=headers)
