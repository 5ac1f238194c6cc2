# app/db/session_async.py
"""Async SQLAlchemy session utilities."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

T = TypeVar("T")


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True, "echo": settings.DB_ECHO}
    # SQLite en memoria usa StaticPool, que no acepta pool_timeout
    if ":memory:" not in url:
        options["pool_timeout"] = settings.DB_POOL_TIMEOUT_SECONDS
    return options


async_engine: AsyncEngine = create_async_engine(
    settings.ASYNC_DATABASE_URL,
    **_engine_options(settings.ASYNC_DATABASE_URL),
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    expire_on_commit=False,
    autoflush=False,
)


async def run_in_transaction(
    operation: Callable[[AsyncSession], Awaitable[T]],
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> T:
    """Execute an async operation within a managed transaction."""
    async with session_factory() as session:
        try:
            result = await operation(session)
            await session.commit()
            return result
        except Exception:
            await session.rollback()
            raise
