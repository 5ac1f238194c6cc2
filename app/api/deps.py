# app/api/deps.py
from functools import lru_cache

from app.db.session_async import AsyncSessionLocal
from app.services.product_service import (
    InventoryLedger,
    ProductAggregateService,
    ProductAggregateStore,
    build_detail_cache,
)


@lru_cache(maxsize=1)
def get_product_service() -> ProductAggregateService:
    """Process-wide service; sessions are opened per operation, the cache is shared."""
    return ProductAggregateService(
        store=ProductAggregateStore(AsyncSessionLocal),
        ledger=InventoryLedger(AsyncSessionLocal),
        cache=build_detail_cache(),
    )
