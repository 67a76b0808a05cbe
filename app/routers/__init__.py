"""
API routers package.
"""
from app.routers.auth import router as auth_router
from app.routers.google_drive import router as google_drive_router
from app.routers.health import router as health_router
from app.routers.photos import router as photos_router
from app.routers.tags import router as tags_router
from app.routers.upload import router as upload_router

__all__ = [
    "auth_router",
    "google_drive_router",
    "health_router",
    "photos_router",
    "tags_router",
    "upload_router",
]
