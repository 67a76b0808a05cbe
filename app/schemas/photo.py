"""
Photo-related Pydantic schemas for request/response validation.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

from app.config import StorageBackend
from app.schemas.tag import TagResponse


class PhotoBase(BaseModel):
    """Base schema with common photo attributes."""

    title: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None


class PhotoCreate(PhotoBase):
    """
    Schema for creating a photo record from a previously uploaded object.
    Tags are matched by slug or display name; unknown names are dropped.
    """

    filename: str = Field(..., min_length=1, max_length=255)
    storage_key: str = Field(..., min_length=1, max_length=500)
    storage_url: str = Field(..., min_length=1, max_length=1000)
    storage_provider: Optional[StorageBackend] = Field(
        None, description="local | s3 | google_drive. 비우면 현재 설정된 백엔드"
    )
    width: Optional[int] = Field(None, ge=0)
    height: Optional[int] = Field(None, ge=0)
    size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = Field(None, max_length=100)
    is_public: bool = False
    tags: List[str] = Field(default_factory=list)


class PhotoUpdate(PhotoBase):
    """
    Schema for partial photo updates.
    Only fields present in the request body are applied.
    `tags`, when present, replaces the whole tag set.
    """

    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None


class PhotoTagsUpdate(BaseModel):
    """Body of PUT /api/photos/{id}/tags."""

    tags: List[str]


class PhotoResponse(PhotoBase):
    """Schema for photo response with embedded tags."""

    id: str
    filename: str
    storage_key: str
    storage_url: str
    storage_provider: str
    width: Optional[int] = None
    height: Optional[int] = None
    size: Optional[int] = None
    mime_type: Optional[str] = None
    is_public: bool
    uploaded_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    tags: List[TagResponse] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class PhotoUploadResponse(BaseModel):
    """Schema for POST /api/upload. Feed it back into POST /api/photos."""

    storage_key: str
    storage_url: str
    storage_provider: str
    filename: str
    size: int
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    tags: List[str] = Field(default_factory=list)


class DeleteResponse(BaseModel):
    success: bool = True
