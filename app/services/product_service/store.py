# app/services/product_service/store.py
from __future__ import annotations

from collections import Counter
from collections.abc import Collection, Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.db.operations import flush_async
from app.models.inventory import Inventory
from app.models.product import Brand, Category, Product, ProductImage, ProductVariant
from app.services.exceptions import ConflictError, ResourceNotFoundError
from .mapping import build_images
from .persistence import concurrency_conflict, guarded_update, transaction
from .read import get_aggregate, list_products_with_total
from .reconciler import ReconcilePlan

logger = get_logger("app.catalog.store")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_unique_skus(skus: Iterable[str]) -> None:
    duplicated = sorted(sku for sku, count in Counter(skus).items() if count > 1)
    if duplicated:
        raise ConflictError(f"Duplicate SKU in product: {', '.join(duplicated)}")


class ProductAggregateStore:
    """Loads and saves a Product together with its images, variants and inventory.

    Every method runs in its own session and transaction. Writes to existing
    product, variant and inventory rows are compare-and-swap on version_token.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ---------- Lectura ----------
    async def load(self, product_id: int) -> Product:
        async with transaction(self._session_factory) as session:
            product = await get_aggregate(session, product_id)
        if product is None:
            raise ResourceNotFoundError(f"Product {product_id} not found")
        return product

    async def category_exists(self, category_id: int) -> bool:
        async with transaction(self._session_factory) as session:
            result = await session.execute(select(Category.id).where(Category.id == category_id))
            return result.scalar_one_or_none() is not None

    async def brand_exists(self, brand_id: int) -> bool:
        async with transaction(self._session_factory) as session:
            result = await session.execute(select(Brand.id).where(Brand.id == brand_id))
            return result.scalar_one_or_none() is not None

    async def slug_exists(self, slug: str) -> bool:
        async with transaction(self._session_factory) as session:
            return await self._slug_taken(session, slug)

    async def variant_owners(self, variant_ids: Collection[int]) -> dict[int, int]:
        if not variant_ids:
            return {}
        async with transaction(self._session_factory) as session:
            result = await session.execute(
                select(ProductVariant.id, ProductVariant.product_id).where(ProductVariant.id.in_(list(variant_ids)))
            )
            return {variant_id: product_id for variant_id, product_id in result.all()}

    async def list_page(
        self,
        page: int,
        page_size: int,
        category_id: int | None = None,
        brand_id: int | None = None,
        search: str | None = None,
    ) -> tuple[Sequence[Product], int]:
        async with transaction(self._session_factory) as session:
            return await list_products_with_total(
                session,
                page=page,
                page_size=page_size,
                category_id=category_id,
                brand_id=brand_id,
                search=search,
            )

    # ---------- Escritura ----------
    async def create(self, product: Product) -> int:
        _ensure_unique_skus(variant.sku for variant in product.variants)
        async with transaction(self._session_factory) as session:
            if await self._slug_taken(session, product.slug):
                raise ConflictError("Product slug already exists")
            session.add(product)
            await flush_async(session)
            product_id = product.id
        return product_id

    async def update(
        self,
        product_id: int,
        expected_token: str,
        changes: dict[str, Any],
        image_urls: Sequence[str],
        plan: ReconcilePlan,
    ) -> None:
        _ensure_unique_skus(plan.final_skus)
        now = _utcnow()
        async with transaction(self._session_factory) as session:
            await self._update_product_row(session, product_id, expected_token, {**changes, "updated_at": now})
            await self._replace_images(session, product_id, image_urls)

            # borrar primero permite reutilizar el SKU de una variante eliminada
            for planned in plan.deletes:
                await session.execute(
                    delete(Inventory)
                    .where(Inventory.product_variant_id == planned.variant_id)
                    .execution_options(synchronize_session=False)
                )
                result = await session.execute(
                    delete(ProductVariant)
                    .where(
                        ProductVariant.id == planned.variant_id,
                        ProductVariant.product_id == product_id,
                        ProductVariant.version_token == planned.expected_token,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise concurrency_conflict("ProductVariant", planned.variant_id)

            await self._stage_renamed_skus(session, product_id, plan)

            for planned in plan.updates:
                fields = planned.fields
                await guarded_update(
                    session,
                    ProductVariant,
                    planned.variant_id,
                    planned.expected_token,
                    {
                        "sku": fields.sku,
                        "color": fields.color,
                        "size": fields.size,
                        "additional_price": fields.additional_price,
                        "is_active": fields.is_active,
                        "updated_at": now,
                    },
                    ProductVariant.product_id == product_id,
                )
                inventory = planned.inventory
                if inventory.inventory_id is None:
                    session.add(
                        Inventory(
                            product_variant_id=planned.variant_id,
                            quantity=inventory.quantity,
                            reserved=0,
                            updated_at=now,
                        )
                    )
                else:
                    await guarded_update(
                        session,
                        Inventory,
                        inventory.inventory_id,
                        inventory.expected_token,
                        {"quantity": inventory.quantity, "updated_at": now},
                    )

            for planned in plan.creates:
                fields = planned.fields
                session.add(
                    ProductVariant(
                        product_id=product_id,
                        sku=fields.sku,
                        color=fields.color,
                        size=fields.size,
                        additional_price=fields.additional_price,
                        is_active=fields.is_active,
                        created_at=now,
                        updated_at=now,
                        inventory=Inventory(quantity=planned.quantity, reserved=0, updated_at=now),
                    )
                )

            await flush_async(session)

        logger.info(
            "Product aggregate persisted",
            extra={
                "product_id": product_id,
                "variants_updated": len(plan.updates),
                "variants_created": len(plan.creates),
                "variants_deleted": len(plan.deletes),
            },
        )

    async def delete(self, product_id: int) -> None:
        async with transaction(self._session_factory) as session:
            exists = await session.execute(select(Product.id).where(Product.id == product_id))
            if exists.scalar_one_or_none() is None:
                raise ResourceNotFoundError(f"Product {product_id} not found")

            variant_ids = select(ProductVariant.id).where(ProductVariant.product_id == product_id)
            for stmt in (
                delete(Inventory).where(Inventory.product_variant_id.in_(variant_ids)),
                delete(ProductVariant).where(ProductVariant.product_id == product_id),
                delete(ProductImage).where(ProductImage.product_id == product_id),
                delete(Product).where(Product.id == product_id),
            ):
                await session.execute(stmt.execution_options(synchronize_session=False))

    # ---------- Helpers ----------
    @staticmethod
    async def _slug_taken(session: AsyncSession, slug: str) -> bool:
        result = await session.execute(select(Product.id).where(Product.slug == slug))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def _update_product_row(
        session: AsyncSession,
        product_id: int,
        expected_token: str,
        values: dict[str, Any],
    ) -> None:
        exists = await session.execute(select(Product.id).where(Product.id == product_id))
        if exists.scalar_one_or_none() is None:
            raise ResourceNotFoundError(f"Product {product_id} not found")
        await guarded_update(session, Product, product_id, expected_token, values)

    @staticmethod
    async def _stage_renamed_skus(session: AsyncSession, product_id: int, plan: ReconcilePlan) -> None:
        """Move renamed variants to placeholder SKUs so renames can permute SKUs.

        UNIQUE(product_id, sku) is checked per statement; swapping SKUs between
        two kept variants would otherwise collide on the first update. The
        token is not rotated here, the final guarded update does that.
        """
        renamed = [planned for planned in plan.updates if planned.renames_sku]
        if len(renamed) < 2:
            return
        for planned in renamed:
            result = await session.execute(
                update(ProductVariant)
                .where(
                    ProductVariant.id == planned.variant_id,
                    ProductVariant.product_id == product_id,
                    ProductVariant.version_token == planned.expected_token,
                )
                .values(sku=f"~{planned.variant_id}")
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                raise concurrency_conflict("ProductVariant", planned.variant_id)

    @staticmethod
    async def _replace_images(session: AsyncSession, product_id: int, image_urls: Sequence[str]) -> None:
        await session.execute(
            delete(ProductImage)
            .where(ProductImage.product_id == product_id)
            .execution_options(synchronize_session=False)
        )
        for image in build_images(image_urls):
            image.product_id = product_id
            session.add(image)
