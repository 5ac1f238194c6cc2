# app/services/product_service/persistence.py
"""Transaction scope and version-guarded writes shared by the store and the ledger."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.core.metrics import record_concurrency_conflict
from app.db.operations import commit_async, rollback_async
from app.domain.versioning import new_version_token
from app.services.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    StorageUnavailableError,
)

logger = get_logger("app.catalog.persistence")


@asynccontextmanager
async def storage_errors() -> AsyncIterator[None]:
    """Translate driver failures into service errors."""
    try:
        yield
    except IntegrityError as exc:
        raise ConflictError("Unable to persist product due to integrity violation (duplicate slug or SKU)") from exc
    except (PoolTimeoutError, OperationalError, asyncio.TimeoutError) as exc:
        logger.warning("Storage unavailable", extra={"error": str(exc)})
        raise StorageUnavailableError("Storage is unavailable, retry later") from exc
    except DBAPIError as exc:
        if not exc.connection_invalidated:
            raise
        logger.warning("Storage connection lost", extra={"error": str(exc)})
        raise StorageUnavailableError("Storage is unavailable, retry later") from exc


@asynccontextmanager
async def transaction(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """One atomic unit: everything commits on clean exit, nothing on error."""
    async with session_factory() as session:
        try:
            async with storage_errors():
                yield session
                await commit_async(session)
        except BaseException:
            await rollback_async(session)
            raise


def concurrency_conflict(entity: str, entity_id: int | None) -> ConcurrencyConflictError:
    record_concurrency_conflict(entity)
    logger.warning("Version token mismatch", extra={"entity": entity, "entity_id": entity_id})
    return ConcurrencyConflictError(entity, entity_id)


async def guarded_update(
    session: AsyncSession,
    model: Any,
    entity_id: int,
    expected_token: str | None,
    values: dict[str, Any],
    *criteria: Any,
) -> str:
    """Compare-and-swap update by id and version token. Returns the new token."""
    token = new_version_token()
    stmt = (
        update(model)
        .where(model.id == entity_id, model.version_token == expected_token, *criteria)
        .values(**values, version_token=token)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != 1:
        raise concurrency_conflict(model.__name__, entity_id)
    return token
