"""
Google Drive connection router: OAuth consent, callback, status and sync.
"""
import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.database import get_db
from app.dependencies.auth import require_admin
from app.exceptions import ConfigurationError, UpstreamError
from app.schemas.auth import SessionPayload, SuccessResponse
from app.schemas.drive import (
    DriveStatusResponse,
    DriveSyncResponse,
    DriveTokenStatusResponse,
    GoogleAuthUrlResponse,
)
from app.services.google_drive import get_google_drive_service
from app.services.photo import PhotoService
from app.utils.security import create_oauth_state, verify_oauth_state

logger = logging.getLogger("app.google_drive")

router = APIRouter(tags=["Google Drive"])


def _frontend_redirect(**params: str) -> RedirectResponse:
    url = f"{get_settings().effective_frontend_url.rstrip('/')}/upload?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=302)


@router.get(
    "/auth/google",
    response_model=GoogleAuthUrlResponse,
    summary="Google consent screen URL",
)
async def google_auth_url(
    session: SessionPayload = Depends(require_admin),
) -> GoogleAuthUrlResponse:
    drive = get_google_drive_service()
    return GoogleAuthUrlResponse(auth_url=drive.build_authorization_url(create_oauth_state()))


@router.get(
    "/auth/google/callback",
    summary="OAuth redirect target",
)
async def google_auth_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
) -> RedirectResponse:
    """
    Exchange the authorization code and send the browser back to the upload page
    with `connected=true` or `error=<reason>`.
    """
    if error:
        logger.warning("Google OAuth denied", extra={"event": "drive", "reason": error})
        return _frontend_redirect(error=error)
    if not code:
        return _frontend_redirect(error="no_code")
    if not verify_oauth_state(state):
        logger.warning("Google OAuth state rejected", extra={"event": "drive", "reason": "invalid_state"})
        return _frontend_redirect(error="invalid_state")

    drive = get_google_drive_service()
    try:
        await drive.exchange_code(code)
    except ConfigurationError as e:
        logger.error("Google OAuth not configured", extra={"event": "drive", "error": e.message})
        return _frontend_redirect(error="config")
    except UpstreamError as e:
        logger.error("Google OAuth code exchange failed", extra={"event": "drive", "error": e.message})
        return _frontend_redirect(error="auth_failed")

    return _frontend_redirect(connected="true")


@router.get(
    "/auth/google/status",
    response_model=DriveStatusResponse,
    summary="Whether Drive is connected",
)
async def google_status(
    session: SessionPayload = Depends(require_admin),
) -> DriveStatusResponse:
    drive = get_google_drive_service()
    return DriveStatusResponse(connected=await drive.is_connected())


@router.get(
    "/auth/google/token-status",
    response_model=DriveTokenStatusResponse,
    summary="Whether any Drive token is stored (public)",
)
async def google_token_status() -> DriveTokenStatusResponse:
    drive = get_google_drive_service()
    return DriveTokenStatusResponse(has_tokens=await drive.has_tokens())


@router.post(
    "/auth/google/disconnect",
    response_model=SuccessResponse,
    summary="Forget the stored Drive tokens",
)
async def google_disconnect(
    session: SessionPayload = Depends(require_admin),
) -> SuccessResponse:
    drive = get_google_drive_service()
    await drive.disconnect()
    return SuccessResponse()


@router.post(
    "/drive/sync",
    response_model=DriveSyncResponse,
    summary="Import Drive images that have no photo record",
)
async def drive_sync(
    db: AsyncSession = Depends(get_db),
    session: SessionPayload = Depends(require_admin),
) -> DriveSyncResponse:
    """
    Imported photos are private and tagged with their Drive folder name.
    Files already recorded (same Drive file id) are skipped.
    """
    photo_service = PhotoService(db)
    imported, skipped = await photo_service.sync_drive_photos(get_google_drive_service(), session)
    return DriveSyncResponse(imported=imported, skipped=skipped)
