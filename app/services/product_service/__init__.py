# Re-exporta los componentes del agregado de producto:
from .cache import (
    CacheBackend,
    DetailCache,
    MemoryCacheBackend,
    RedisCacheBackend,
    build_detail_cache,
)

from .inventory import (
    AdjustmentResult,
    InventoryLedger,
)

from .reconciler import (
    ReconcilePlan,
    reconcile_variants,
)

from .service import (
    ProductAggregateService,
)

from .store import (
    ProductAggregateStore,
)

__all__ = [
    # cache
    "CacheBackend", "DetailCache", "MemoryCacheBackend", "RedisCacheBackend", "build_detail_cache",
    # inventory
    "AdjustmentResult", "InventoryLedger",
    # reconciler
    "ReconcilePlan", "reconcile_variants",
    # service
    "ProductAggregateService",
    # store
    "ProductAggregateStore",
]
