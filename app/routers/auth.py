"""
Authentication router for the admin session (shared secret code).
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from app.config import get_settings
from app.dependencies.auth import get_optional_session
from app.middlewares.rate_limit_middleware import get_rate_limit_decorator
from app.schemas.auth import AuthCheckResponse, LoginRequest, SessionPayload, SuccessResponse
from app.services.auth import AuthService
from app.utils.logger import log_info

router = APIRouter(prefix="/auth", tags=["Authentication"])

settings = get_settings()


@router.post(
    "/login",
    response_model=SuccessResponse,
    summary="Exchange the admin code for a session cookie",
)
@get_rate_limit_decorator(settings.login_rate_limit)
async def login(
    request: Request,
    response: Response,
    login_data: LoginRequest,
) -> SuccessResponse:
    """
    Login with the shared admin secret.

    - **code**: ADMIN_SECRET_CODE value

    On success an HttpOnly session cookie valid for SESSION_MAX_AGE_DAYS is set.
    The same token is accepted as `Authorization: Bearer <token>`.
    """
    token = AuthService(settings).login(login_data.code)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
        path="/",
    )
    return SuccessResponse()


@router.post(
    "/logout",
    response_model=SuccessResponse,
    summary="Clear the session cookie",
)
async def logout(response: Response) -> SuccessResponse:
    response.delete_cookie(key=settings.session_cookie_name, path="/")
    log_info("Logout", event="auth")
    return SuccessResponse()


@router.get(
    "/check",
    response_model=AuthCheckResponse,
    summary="Whether the caller holds a valid admin session",
)
async def check(
    session: Optional[SessionPayload] = Depends(get_optional_session),
) -> AuthCheckResponse:
    return AuthCheckResponse(authenticated=session is not None)
