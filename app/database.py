"""
Async SQLAlchemy engine, session factory and the table/seed bootstrap.

SQLite (default, single file) runs without a pool; any other URL gets a
QueuePool sized from DB_POOL_* settings.

로깅:
- SQL echo 비활성화
- 1초 이상 걸린 쿼리만 WARNING
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict

from starlette.exceptions import HTTPException
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import get_settings
from app.exceptions import GalleryError
from app.utils.prometheus_metrics import db_errors_total

_logger = logging.getLogger("app.db")

settings = get_settings()

SLOW_QUERY_THRESHOLD = 1.0  # seconds

DATABASE_URL = settings.database_url.strip()
IS_SQLITE = DATABASE_URL.startswith("sqlite")


def _engine_options() -> Dict[str, Any]:
    if IS_SQLITE:
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": True,
    }


engine = create_async_engine(DATABASE_URL, echo=False, **_engine_options())


if IS_SQLITE:
    # photo_tags 의 ON DELETE CASCADE 는 SQLite 에서 pragma 가 켜져 있어야 동작
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@event.listens_for(engine.sync_engine, "before_cursor_execute")
def _start_query_timer(conn, cursor, statement, parameters, context, executemany):
    conn.info.setdefault("query_start_time", []).append(time.perf_counter())


@event.listens_for(engine.sync_engine, "after_cursor_execute")
def _log_slow_query(conn, cursor, statement, parameters, context, executemany):
    timers = conn.info.get("query_start_time")
    if not timers:
        return
    elapsed = time.perf_counter() - timers.pop()
    if elapsed < SLOW_QUERY_THRESHOLD:
        return
    # 파라미터는 남기지 않음, 문장 앞 100자만
    _logger.warning(
        "Slow query",
        extra={
            "event": "db",
            "ms": round(elapsed * 1000),
            "query": statement if len(statement) <= 100 else statement[:100] + "...",
        },
    )


async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base for photos, tags and the Drive token row."""


async def init_db() -> None:
    """Create all tables and seed the predefined tag list."""
    # 모델 등록 후 create_all
    import app.models  # noqa: F401
    from app.services.tag import TagService

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with get_db_context() as session:
        created = await TagService(session).seed_predefined_tags()
    if created:
        _logger.info("Seeded predefined tags", extra={"event": "db", "count": created})


async def close_db() -> None:
    await engine.dispose()


def _log_db_failure(message: str, error: Exception) -> None:
    db_errors_total.inc()
    _logger.error(
        message,
        extra={
            "event": "db",
            "error_type": type(error).__name__,
            "error": str(error)[:200],
        },
    )


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session dependency.
    Commits when the handler returns, rolls back when it raises.

    Usage:
        @router.get("/photos")
        async def get_photos(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except (GalleryError, HTTPException):
            # 도메인 에러 (404, 400 ...) 는 DB 장애가 아님
            await session.rollback()
            raise
        except Exception as e:
            _log_db_failure("DB error", e)
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Same transaction handling as get_db, outside a request:
    startup seeding and the legacy import script.

    Usage:
        async with get_db_context() as session:
            await session.execute(query)
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except GalleryError:
            await session.rollback()
            raise
        except Exception as e:
            _log_db_failure("DB context error", e)
            await session.rollback()
            raise
