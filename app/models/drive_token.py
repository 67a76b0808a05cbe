"""
Google Drive OAuth token storage (single row).
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.photo import utcnow

# 관리자 계정이 하나뿐이므로 토큰도 한 행만 사용
DRIVE_TOKEN_ROW_ID = 1


class DriveToken(Base):
    """OAuth tokens for the connected Google Drive account."""

    __tablename__ = "google_drive_tokens"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=DRIVE_TOKEN_ROW_ID)
    access_token: Mapped[str] = mapped_column(Text, nullable=False)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    token_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    scope: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expiry: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<DriveToken(expiry={self.expiry})>"
