"""
Photo model for storing photo metadata.
The image bytes live in the active storage backend (local disk, S3, Google Drive).
"""
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.tag import Tag


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite stores DateTime without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class Photo(Base):
    """
    Photo metadata row.
    `storage_key` is the backend-specific locator: a file name, an object key or a Drive file id.
    """

    __tablename__ = "photos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    # Optional metadata
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # File metadata
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # Storage information
    storage_key: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    storage_url: Mapped[str] = mapped_column(String(1000), nullable=False)
    storage_provider: Mapped[str] = mapped_column(String(32), nullable=False, default="local")

    # Visibility (기본 비공개)
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)

    uploaded_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    tags: Mapped[List["Tag"]] = relationship(
        "Tag",
        secondary="photo_tags",
        lazy="selectin",
        order_by="Tag.name",
    )

    def __repr__(self) -> str:
        return f"<Photo(id={self.id}, filename={self.filename})>"
