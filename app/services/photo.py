"""
Photo service for managing gallery photos.
"""
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple

from sqlalchemy import delete, insert, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import StorageBackend, get_settings
from app.exceptions import ConfigurationError, GalleryError, NotFoundError
from app.models.photo import Photo, utcnow
from app.models.tag import PhotoTag, Tag, TagSource
from app.schemas.auth import SessionPayload
from app.schemas.photo import PhotoCreate, PhotoUpdate
from app.services.storage import StorageProvider, get_storage_provider
from app.services.tag import TagService
from app.services.watermark import watermark_image_async
from app.utils.prometheus_metrics import drive_sync_photos_total, photo_download_total

if TYPE_CHECKING:
    from app.services.google_drive import GoogleDriveStorageProvider

logger = logging.getLogger("app.photo")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9]", re.IGNORECASE)


@dataclass
class PhotoDownload:
    """Bytes plus the response metadata the router needs."""

    content: bytes
    media_type: str
    filename: str
    watermarked: bool


def download_filename(photo: Photo) -> str:
    ext = (photo.mime_type or "image/jpeg").split("/")[-1] or "jpg"
    if photo.title:
        return f"{_UNSAFE_FILENAME_CHARS.sub('_', photo.title)}.{ext}"
    return f"photo_{photo.id}.{ext}"


class PhotoService:
    """
    Service for handling photo operations.
    Visibility rule: private photos exist only for callers holding an admin session.
    """

    def __init__(self, db: AsyncSession, storage: Optional[StorageProvider] = None):
        self.db = db
        self.tags = TagService(db)
        self._storage = storage

    @property
    def storage(self) -> StorageProvider:
        # 목록 조회 등 스토리지가 필요 없는 요청에서는 백엔드 설정을 요구하지 않음
        if self._storage is None:
            self._storage = get_storage_provider()
        return self._storage

    async def _load(self, photo_id: str) -> Optional[Photo]:
        result = await self.db.execute(
            select(Photo)
            .where(Photo.id == photo_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_photos(
        self,
        session: Optional[SessionPayload],
        tag: Optional[str] = None,
        include_private: bool = False,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[Photo]:
        """
        Photos newest first, each with its tags.

        `include_private` without a session is silently ignored.
        `tag` matches a tag slug or display name.
        """
        query = select(Photo)
        if not (include_private and session is not None):
            query = query.where(Photo.is_public.is_(True))
        if tag:
            query = query.where(Photo.tags.any(or_(Tag.slug == tag, Tag.name == tag)))
        query = query.order_by(Photo.created_at.desc()).offset(skip)
        if limit is not None:
            query = query.limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_photo(self, photo_id: str, session: Optional[SessionPayload]) -> Photo:
        """
        Get a photo by ID.

        Raises:
            NotFoundError: missing, or private and the caller has no session
        """
        photo = await self._load(photo_id)
        if photo is None or (not photo.is_public and session is None):
            raise NotFoundError("Photo not found")
        return photo

    async def create_photo(self, data: PhotoCreate, session: SessionPayload) -> Photo:
        """Create the metadata record for an object that is already in storage."""
        tags = await self.tags.resolve(data.tags)
        photo = Photo(
            title=data.title,
            description=data.description,
            filename=data.filename,
            storage_key=data.storage_key,
            storage_url=data.storage_url,
            storage_provider=(data.storage_provider or self._active_backend()).value,
            width=data.width,
            height=data.height,
            size=data.size,
            mime_type=data.mime_type,
            is_public=data.is_public,
            uploaded_by=session.sub,
            tags=tags,
        )
        self.db.add(photo)
        await self.db.flush()
        # 사진 등록은 INFO (중요 비즈니스 이벤트)
        logger.info(
            "Photo created",
            extra={"event": "photo", "photo_id": photo.id, "tag_count": len(tags)},
        )
        return await self._load(photo.id)

    def _active_backend(self) -> StorageBackend:
        return get_settings().storage_backend

    async def _replace_tags(self, photo_id: str, values: Iterable[str]) -> None:
        """Delete every association of the photo, then insert the resolved set."""
        tags = await self.tags.resolve(values)
        await self.db.execute(delete(PhotoTag).where(PhotoTag.photo_id == photo_id))
        if tags:
            await self.db.execute(
                insert(PhotoTag),
                [{"photo_id": photo_id, "tag_id": tag.id} for tag in tags],
            )

    async def update_photo(self, photo_id: str, update_data: PhotoUpdate) -> Photo:
        """
        Apply only the fields present in the request body.
        Concurrent updates are not serialized: last write wins.
        """
        photo = await self._load(photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")

        fields = update_data.model_dump(exclude_unset=True)
        new_tags = fields.pop("tags", None)

        if "title" in fields:
            photo.title = fields["title"]
        if "description" in fields:
            photo.description = fields["description"]
        if fields.get("is_public") is not None:
            photo.is_public = fields["is_public"]
        photo.updated_at = utcnow()
        await self.db.flush()

        if new_tags is not None:
            await self._replace_tags(photo_id, new_tags)
            await self.db.flush()

        return await self._load(photo_id)

    async def replace_photo_tags(self, photo_id: str, values: List[str]) -> Photo:
        photo = await self._load(photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")
        photo.updated_at = utcnow()
        await self.db.flush()
        await self._replace_tags(photo_id, values)
        await self.db.flush()
        return await self._load(photo_id)

    async def delete_photo(self, photo_id: str) -> None:
        """
        Delete a photo from storage and database.

        Storage deletion is best-effort: a failure is logged and the row is
        deleted anyway (an orphaned object is tolerated).
        """
        photo = await self._load(photo_id)
        if photo is None:
            raise NotFoundError("Photo not found")

        try:
            storage = self.storage
            if storage.name != photo.storage_provider:
                logger.warning(
                    "Photo stored in another backend, storage object left in place",
                    extra={
                        "event": "photo",
                        "photo_id": photo.id,
                        "photo_backend": photo.storage_provider,
                        "active_backend": storage.name,
                    },
                )
            else:
                await storage.delete(photo.storage_key)
        except GalleryError as e:
            # 스토리지 삭제 실패해도 DB에서는 삭제 (고아 파일 허용)
            logger.error(
                "Photo storage delete failed",
                extra={"event": "photo", "photo_id": photo.id, "error": e.message},
            )

        await self.db.delete(photo)
        await self.db.flush()
        logger.info("Photo deleted", extra={"event": "photo", "photo_id": photo_id})

    async def _fetch_bytes(self, photo: Photo) -> bytes:
        storage = self.storage
        if storage.name != photo.storage_provider:
            raise ConfigurationError(
                f"Photo is stored in '{photo.storage_provider}' but the active "
                f"storage backend is '{storage.name}'"
            )
        return await storage.fetch(photo.storage_key)

    async def download_photo(
        self,
        photo_id: str,
        session: Optional[SessionPayload],
    ) -> PhotoDownload:
        """
        Admin: stored bytes verbatim.
        Everyone else: public photos only, watermarked JPEG.
        """
        photo = await self.get_photo(photo_id, session)
        original = await self._fetch_bytes(photo)

        if session is not None:
            photo_download_total.labels(variant="original").inc()
            return PhotoDownload(
                content=original,
                media_type=photo.mime_type or "application/octet-stream",
                filename=download_filename(photo),
                watermarked=False,
            )

        watermarked = await watermark_image_async(original)
        photo_download_total.labels(variant="watermarked").inc()
        stem = download_filename(photo).rsplit(".", 1)[0]
        return PhotoDownload(
            content=watermarked,
            media_type="image/jpeg",
            filename=f"{stem}.jpg",
            watermarked=True,
        )

    async def sync_drive_photos(
        self,
        drive: "GoogleDriveStorageProvider",
        session: SessionPayload,
    ) -> Tuple[int, int]:
        """
        Import Drive images that have no photo record yet.
        Imported photos are private and tagged with their folder name.

        Returns:
            (imported, skipped)
        """
        from app.services.google_drive import view_url

        files = await drive.list_photos()
        result = await self.db.execute(
            select(Photo.storage_key).where(Photo.storage_provider == drive.name)
        )
        known = set(result.scalars().all())

        imported = skipped = 0
        for item in files:
            if item.id in known:
                skipped += 1
                continue
            tags = []
            if item.folder_name:
                tags.append(await self.tags.get_or_create(item.folder_name, TagSource.DRIVE_FOLDER))
            self.db.add(
                Photo(
                    filename=item.name,
                    storage_key=item.id,
                    storage_url=view_url(item.id),
                    storage_provider=drive.name,
                    mime_type=item.mime_type,
                    size=item.size,
                    is_public=False,
                    uploaded_by=session.sub,
                    tags=tags,
                )
            )
            known.add(item.id)
            imported += 1

        await self.db.flush()
        drive_sync_photos_total.labels(result="imported").inc(imported)
        drive_sync_photos_total.labels(result="skipped").inc(skipped)
        logger.info(
            "Drive sync completed",
            extra={"event": "drive", "imported": imported, "skipped": skipped},
        )
        return imported, skipped
