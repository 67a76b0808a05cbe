"""
Google Drive connection schemas.
"""
from pydantic import BaseModel


class GoogleAuthUrlResponse(BaseModel):
    auth_url: str


class DriveStatusResponse(BaseModel):
    connected: bool


class DriveTokenStatusResponse(BaseModel):
    has_tokens: bool


class DriveSyncResponse(BaseModel):
    """Result of importing Drive files that have no photo record yet."""

    imported: int
    skipped: int
