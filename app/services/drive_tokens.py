"""
Persistent store for the Google Drive OAuth tokens.

Tokens live in a single database row rather than in process memory, so
every worker sees the same token and refreshes are visible to all of them.
"""
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator, Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.drive_token import DRIVE_TOKEN_ROW_ID, DriveToken


class DriveTokenStore:
    """Load/save/clear the single DriveToken row through its own sessions."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def load(self) -> Optional[DriveToken]:
        async with self._session() as session:
            return await session.get(DriveToken, DRIVE_TOKEN_ROW_ID)

    async def save(
        self,
        access_token: str,
        refresh_token: Optional[str],
        expiry: Optional[datetime],
        token_type: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> DriveToken:
        """
        Upsert the token row.
        A refresh response usually omits refresh_token; the stored one is kept then.
        """
        async with self._session() as session:
            token = await session.get(DriveToken, DRIVE_TOKEN_ROW_ID)
            if token is None:
                token = DriveToken(id=DRIVE_TOKEN_ROW_ID, access_token=access_token)
                session.add(token)
            token.access_token = access_token
            if refresh_token:
                token.refresh_token = refresh_token
            token.expiry = expiry
            if token_type:
                token.token_type = token_type
            if scope:
                token.scope = scope
            await session.flush()
            return token

    async def clear(self) -> None:
        async with self._session() as session:
            await session.execute(delete(DriveToken))

    async def has_tokens(self) -> bool:
        async with self._session() as session:
            result = await session.execute(
                select(DriveToken.access_token).where(DriveToken.id == DRIVE_TOKEN_ROW_ID)
            )
            return bool(result.scalar_one_or_none())
