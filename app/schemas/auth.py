"""
Admin session schemas.
"""
from pydantic import BaseModel, Field


class LoginRequest(BaseModel):
    """Shared secret submitted by the administrator."""

    code: str = Field(..., min_length=1, description="Admin secret code")


class SessionPayload(BaseModel):
    """Decoded session token."""

    sub: str
    exp: int


class AuthCheckResponse(BaseModel):
    authenticated: bool


class SuccessResponse(BaseModel):
    success: bool = True
