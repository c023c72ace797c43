"""
Async SQLAlchemy engine & session factory.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for tests and
local kiosks.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from facecheck.core.config import settings

logger = logging.getLogger(__name__)

engine_args: dict = {
    "echo": False,
    "pool_pre_ping": True,
}

if "postgresql" in settings.DATABASE_URL:
    engine_args.update(
        {
            "pool_size": 10,
            "max_overflow": 10,
            "pool_recycle": 300,
            # Fail fast when the database host is unreachable
            "connect_args": {"timeout": settings.DB_QUERY_TIMEOUT_SECONDS},
        }
    )

engine = create_async_engine(settings.DATABASE_URL, **engine_args)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency — yields an AsyncSession and closes it after use."""
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def safe_rollback(session: AsyncSession) -> None:
    """Roll back after a failed statement without masking the original error."""
    try:
        await session.rollback()
    except (SQLAlchemyError, OSError) as exc:
        logger.debug("Rollback failed: %s", exc)
