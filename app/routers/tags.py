"""
Tags router: tag list with visible photo counts, and admin tag creation.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies.auth import get_optional_session, require_admin
from app.schemas.auth import SessionPayload
from app.schemas.tag import TagCreate, TagWithCount
from app.services.tag import TagService

router = APIRouter(prefix="/tags", tags=["Tags"])


@router.get(
    "",
    response_model=List[TagWithCount],
    summary="List tags with photo counts",
)
async def get_tags(
    db: AsyncSession = Depends(get_db),
    session: Optional[SessionPayload] = Depends(get_optional_session),
) -> List[TagWithCount]:
    """
    All tags ordered by name.
    Without an admin session `count` only includes public photos.
    """
    tag_service = TagService(db)
    rows = await tag_service.list_with_counts(include_private=session is not None)
    return [
        TagWithCount(
            id=tag.id,
            name=tag.name,
            slug=tag.slug,
            source=tag.source,
            created_at=tag.created_at,
            count=count,
        )
        for tag, count in rows
    ]


@router.post(
    "",
    response_model=TagWithCount,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tag",
)
async def create_tag(
    tag_data: TagCreate,
    db: AsyncSession = Depends(get_db),
    session: SessionPayload = Depends(require_admin),
) -> TagWithCount:
    """Duplicate slugs are rejected with 400."""
    tag_service = TagService(db)
    tag = await tag_service.create_tag(tag_data.name)
    return TagWithCount(
        id=tag.id,
        name=tag.name,
        slug=tag.slug,
        source=tag.source,
        created_at=tag.created_at,
        count=0,
    )
