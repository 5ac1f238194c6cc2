# app/services/product_service/inventory.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.core.metrics import record_inventory_adjustment
from app.domain.versioning import tokens_match
from app.models.inventory import Inventory
from app.models.product import ProductVariant
from app.services.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    ResourceNotFoundError,
)
from .persistence import concurrency_conflict, guarded_update, transaction

logger = get_logger("app.catalog.inventory")


@dataclass(frozen=True, slots=True)
class AdjustmentResult:
    product_id: int
    variant_id: int
    quantity: int
    version_token: str


class InventoryLedger:
    """Signed quantity adjustments on a single inventory row.

    Runs in its own transaction, independent of aggregate create/update.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def adjust(self, variant_id: int, delta: int, expected_token: str) -> AdjustmentResult:
        try:
            async with transaction(self._session_factory) as session:
                row = (
                    await session.execute(
                        select(Inventory, ProductVariant.product_id)
                        .join(ProductVariant, ProductVariant.id == Inventory.product_variant_id)
                        .where(Inventory.product_variant_id == variant_id)
                    )
                ).first()
                if row is None:
                    raise ResourceNotFoundError(f"Inventory for variant {variant_id} not found")
                inventory, product_id = row

                if not tokens_match(inventory.version_token, expected_token):
                    raise concurrency_conflict("Inventory", inventory.id)

                new_quantity = inventory.quantity + delta
                if new_quantity < 0:
                    raise InsufficientStockError()

                token = await guarded_update(
                    session,
                    Inventory,
                    inventory.id,
                    expected_token,
                    {"quantity": new_quantity, "updated_at": datetime.now(timezone.utc)},
                )
        except InsufficientStockError:
            record_inventory_adjustment("insufficient_stock")
            raise
        except ConcurrencyConflictError:
            record_inventory_adjustment("conflict")
            raise

        record_inventory_adjustment("applied")
        logger.info(
            "Inventory adjusted",
            extra={"variant_id": variant_id, "product_id": product_id, "delta": delta, "quantity": new_quantity},
        )
        return AdjustmentResult(
            product_id=product_id,
            variant_id=variant_id,
            quantity=new_quantity,
            version_token=token,
        )
