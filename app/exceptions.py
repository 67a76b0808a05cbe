"""
Gallery error taxonomy.

Every error the services raise carries its HTTP status; main.py turns them
into `{"detail": message}` responses with a single exception handler.
"""
from typing import Any, Dict, Optional

from fastapi import status


class GalleryError(Exception):
    """Base class for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(GalleryError):
    """Missing credentials or environment variables. Surfaced verbatim."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Server is not configured for this operation"


class AuthorizationError(GalleryError):
    """Missing or invalid admin session, or a wrong login secret."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Unauthorized"


class NotFoundError(GalleryError):
    """Missing record, or a private record requested without a session."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Photo not found"


class ValidationError(GalleryError):
    """Bad input: MIME type, size, tag payload shape, ..."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class UpstreamError(GalleryError):
    """Object storage or Drive API failure. Message comes from the SDK."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Storage backend request failed"
