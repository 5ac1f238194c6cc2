# app/services/product_service/service.py
from __future__ import annotations

from datetime import datetime, timezone
from math import ceil

from app.core.logging import get_logger
from app.schemas.pagination import PaginatedProducts
from app.schemas.product import InventoryAdjust, ProductCreate, ProductDetail, ProductUpdate
from app.services.exceptions import InvalidOperationError
from .cache import DetailCache
from .inventory import InventoryLedger
from .mapping import build_product, normalize_image_urls, product_changes, to_detail, to_summary
from .read import DEFAULT_PAGE_SIZE
from .reconciler import reconcile_variants
from .store import ProductAggregateStore

logger = get_logger("app.catalog.service")


class ProductAggregateService:
    """Entry point for catalog commands.

    Errors from the store and the ledger propagate unchanged. The detail
    cache is evicted after every committed mutation of a product.
    """

    def __init__(
        self,
        store: ProductAggregateStore,
        ledger: InventoryLedger,
        cache: DetailCache,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.cache = cache

    async def create_product(self, payload: ProductCreate) -> ProductDetail:
        await self._ensure_references(payload.category_id, payload.brand_id)

        product = build_product(payload, now=datetime.now(timezone.utc))
        product_id = await self.store.create(product)
        logger.info("Product created", extra={"product_id": product_id, "variants": len(payload.variants)})

        await self.cache.invalidate(product_id)
        return to_detail(await self.store.load(product_id))

    async def get_product_detail(self, product_id: int) -> ProductDetail:
        cached = await self.cache.get(product_id)
        if cached is not None:
            return cached

        detail = to_detail(await self.store.load(product_id))
        await self.cache.set(product_id, detail)
        return detail

    async def update_product(self, product_id: int, payload: ProductUpdate) -> ProductDetail:
        await self._ensure_references(payload.category_id, payload.brand_id)

        current = await self.store.load(product_id)
        persisted_ids = {variant.id for variant in current.variants}
        unknown_ids = {v.id for v in payload.variants if v.id is not None} - persisted_ids
        owners = await self.store.variant_owners(unknown_ids)
        foreign_ids = {variant_id for variant_id, owner in owners.items() if owner != product_id}

        plan = reconcile_variants(current.variants, payload.variants, foreign_ids=foreign_ids)
        await self.store.update(
            product_id,
            payload.expected_token,
            product_changes(payload),
            normalize_image_urls(payload.images),
            plan,
        )
        logger.info("Product updated", extra={"product_id": product_id})

        await self.cache.invalidate(product_id)
        return to_detail(await self.store.load(product_id))

    async def delete_product(self, product_id: int) -> bool:
        await self.store.delete(product_id)
        logger.info("Product deleted", extra={"product_id": product_id})
        await self.cache.invalidate(product_id)
        return True

    async def adjust_inventory(self, variant_id: int, payload: InventoryAdjust) -> None:
        result = await self.ledger.adjust(variant_id, payload.delta, payload.expected_token)
        await self.cache.invalidate(result.product_id)

    async def list_products(
        self,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        category_id: int | None = None,
        brand_id: int | None = None,
        search: str | None = None,
    ) -> PaginatedProducts:
        if page <= 0:
            page = 1
        if page_size <= 0:
            page_size = DEFAULT_PAGE_SIZE
        # los listados no se cachean: siempre leen del store
        items, total = await self.store.list_page(page, page_size, category_id, brand_id, search)
        return PaginatedProducts(
            total=total,
            page=page,
            pages=ceil(total / page_size) if total else 1,
            page_size=page_size,
            items=[to_summary(product) for product in items],
        )

    async def _ensure_references(self, category_id: int, brand_id: int | None) -> None:
        if not await self.store.category_exists(category_id):
            raise InvalidOperationError("Category not found")
        if brand_id is not None and not await self.store.brand_exists(brand_id):
            raise InvalidOperationError("Brand not found")
