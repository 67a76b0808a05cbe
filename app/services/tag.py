"""
Tag service: slugs, seeding, lookup by slug-or-name and visibility-aware counts.
"""
import logging
import re
import uuid
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import ValidationError
from app.models.photo import Photo
from app.models.tag import PhotoTag, Tag, TagSource

logger = logging.getLogger("app.tag")

PREDEFINED_TAGS = (
    "Nature",
    "Urban",
    "Portrait",
    "Landscape",
    "Abstract",
    "Architecture",
    "Street",
    "Wildlife",
    "Travel",
    "Black & White",
    "Colour",
    "Minimalist",
    "Documentary",
    "Fine Art",
    "Experimental",
)

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """'Black & White' -> 'black-white'"""
    return _NON_SLUG_CHARS.sub("-", text.lower()).strip("-")


def generated_slug() -> str:
    """Slug for names with no ASCII letters or digits (e.g. '풍경')."""
    return f"tag-{uuid.uuid4().hex[:8]}"


def _clean_names(values: Iterable[str]) -> List[str]:
    seen = set()
    names: List[str] = []
    for value in values:
        name = (value or "").strip()
        if name and name not in seen:
            seen.add(name)
            names.append(name)
    return names


class TagService:
    """Service for tag lookups and maintenance."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def seed_predefined_tags(self) -> int:
        """Insert missing predefined tags. Returns how many were created."""
        result = await self.db.execute(select(Tag.slug))
        existing = set(result.scalars().all())
        created = 0
        for name in PREDEFINED_TAGS:
            slug = slugify(name)
            if slug in existing:
                continue
            self.db.add(Tag(name=name, slug=slug, source=TagSource.SEED.value))
            existing.add(slug)
            created += 1
        await self.db.flush()
        return created

    async def resolve(self, values: Iterable[str]) -> List[Tag]:
        """
        Tags whose slug or display name equals one of `values`.
        Unknown values are dropped; each tag appears once.
        """
        names = _clean_names(values)
        if not names:
            return []
        result = await self.db.execute(
            select(Tag).where(or_(Tag.slug.in_(names), Tag.name.in_(names)))
        )
        tags = {tag.id: tag for tag in result.scalars().all()}
        return sorted(tags.values(), key=lambda t: t.name)

    async def get_by_slug_or_name(self, value: str) -> Optional[Tag]:
        result = await self.db.execute(
            select(Tag).where(or_(Tag.slug == value, Tag.name == value)).limit(1)
        )
        return result.scalar_one_or_none()

    async def get_or_create(self, name: str, source: TagSource) -> Tag:
        """Existing tag matching `name` (slug or display name), or a new one from `source`."""
        name = name.strip()
        slug = slugify(name)
        tag = await self.get_by_slug_or_name(name)
        # 빈 slug 로 조회하면 다른 비ASCII 태그와 섞임
        if tag is None and slug:
            tag = await self.get_by_slug_or_name(slug)
        if tag is None:
            tag = Tag(name=name, slug=slug or generated_slug(), source=source.value)
            self.db.add(tag)
            await self.db.flush()
            logger.info("Tag created", extra={"event": "tag", "slug": tag.slug, "source": source.value})
        return tag

    async def create_tag(self, name: str) -> Tag:
        name = name.strip()
        if not any(ch.isalnum() for ch in name):
            raise ValidationError("Tag name must contain letters or digits")
        slug = slugify(name) or generated_slug()
        result = await self.db.execute(
            select(Tag.id).where(or_(Tag.slug == slug, Tag.name == name)).limit(1)
        )
        if result.scalar_one_or_none() is not None:
            raise ValidationError(f"Tag '{name}' already exists")
        tag = Tag(name=name, slug=slug, source=TagSource.MANUAL.value)
        self.db.add(tag)
        await self.db.flush()
        await self.db.refresh(tag)
        logger.info("Tag created", extra={"event": "tag", "slug": slug, "source": tag.source})
        return tag

    async def list_with_counts(self, include_private: bool) -> List[Tuple[Tag, int]]:
        """
        All tags ordered by name, each with the number of photos the caller may see.
        One LEFT JOIN against a grouped count instead of a query per tag.
        """
        counts = (
            select(PhotoTag.tag_id, func.count(PhotoTag.photo_id).label("photo_count"))
            .join(Photo, Photo.id == PhotoTag.photo_id)
        )
        if not include_private:
            counts = counts.where(Photo.is_public.is_(True))
        counts = counts.group_by(PhotoTag.tag_id).subquery()

        result = await self.db.execute(
            select(Tag, func.coalesce(counts.c.photo_count, 0))
            .outerjoin(counts, counts.c.tag_id == Tag.id)
            .order_by(Tag.name)
        )
        return [(tag, int(count)) for tag, count in result.all()]
