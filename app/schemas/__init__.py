"""
Pydantic schemas package.
All schemas are exported here for easy import.
"""
from app.schemas.tag import TagCreate, TagResponse, TagWithCount
from app.schemas.photo import (
    DeleteResponse,
    PhotoCreate,
    PhotoResponse,
    PhotoTagsUpdate,
    PhotoUpdate,
    PhotoUploadResponse,
)
from app.schemas.auth import (
    AuthCheckResponse,
    LoginRequest,
    SessionPayload,
    SuccessResponse,
)
from app.schemas.drive import (
    DriveStatusResponse,
    DriveSyncResponse,
    DriveTokenStatusResponse,
    GoogleAuthUrlResponse,
)

__all__ = [
    # Tag schemas
    "TagCreate",
    "TagResponse",
    "TagWithCount",
    # Photo schemas
    "DeleteResponse",
    "PhotoCreate",
    "PhotoResponse",
    "PhotoTagsUpdate",
    "PhotoUpdate",
    "PhotoUploadResponse",
    # Auth schemas
    "AuthCheckResponse",
    "LoginRequest",
    "SessionPayload",
    "SuccessResponse",
    # Drive schemas
    "DriveStatusResponse",
    "DriveSyncResponse",
    "DriveTokenStatusResponse",
    "GoogleAuthUrlResponse",
]
