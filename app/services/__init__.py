"""
Services package.
Contains business logic and storage backend integrations.
"""
from app.services.auth import AuthService
from app.services.photo import PhotoService
from app.services.storage import StorageProvider, get_storage_provider
from app.services.tag import TagService

__all__ = [
    "AuthService",
    "PhotoService",
    "StorageProvider",
    "TagService",
    "get_storage_provider",
]
