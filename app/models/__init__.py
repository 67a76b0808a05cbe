"""
Database models package.
All models are exported here for easy import.
"""
from app.models.photo import Photo
from app.models.tag import PhotoTag, Tag, TagSource
from app.models.drive_token import DriveToken

__all__ = ["Photo", "Tag", "TagSource", "PhotoTag", "DriveToken"]
