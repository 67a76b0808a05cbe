"""
Tag model and the photo/tag association.
"""
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.photo import new_id, utcnow


class TagSource(str, Enum):
    """Where a tag came from."""
    SEED = "seed"
    MANUAL = "manual"
    # Drive 폴더명에서 유도된 태그 (사용자 지정 태그와 구분)
    DRIVE_FOLDER = "drive_folder"
    LEGACY_IMPORT = "legacy_import"


class Tag(Base):
    """Tag with a unique URL-safe slug."""

    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True, index=True)
    source: Mapped[str] = mapped_column(String(32), nullable=False, default=TagSource.MANUAL.value)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    def __repr__(self) -> str:
        return f"<Tag(slug={self.slug})>"


class PhotoTag(Base):
    """
    Association table between Photo and Tag.
    Composite primary key: a (photo, tag) pair can exist only once.
    """

    __tablename__ = "photo_tags"

    photo_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("photos.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )

    def __repr__(self) -> str:
        return f"<PhotoTag(photo_id={self.photo_id}, tag_id={self.tag_id})>"
