"""
Tag schemas.
"""
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict


class TagResponse(BaseModel):
    """Tag as embedded in photo responses."""

    id: str
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class TagWithCount(TagResponse):
    """Tag with the number of photos visible to the caller."""

    source: str
    created_at: datetime
    count: int = 0


class TagCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
