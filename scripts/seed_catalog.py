"""Seed script for populating a development catalog."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Sequence

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.db.session_async import AsyncSessionLocal, run_in_transaction
from app.models.product import Brand, Category
from app.schemas.product import ProductCreate, ProductVariantCreate
from app.services.product_service import (
    DetailCache,
    InventoryLedger,
    MemoryCacheBackend,
    ProductAggregateService,
    ProductAggregateStore,
)
from app.services.product_service.utils import slugify


@dataclass(frozen=True, slots=True)
class ReferenceSeed:
    name: str
    slug: str | None = None


@dataclass(frozen=True, slots=True)
class VariantSeed:
    sku: str
    color: str | None = None
    size: str | None = None
    additional_price: Decimal = Decimal("0")
    initial_quantity: int = 0


@dataclass(frozen=True, slots=True)
class ProductSeed:
    name: str
    base_price: Decimal
    category_key: str
    brand_key: str | None = None
    description: str | None = None
    is_published: bool = True
    images: Sequence[str] = field(default_factory=tuple)
    variants: Sequence[VariantSeed] = field(default_factory=tuple)


CATEGORIES: dict[str, ReferenceSeed] = {
    "jackets": ReferenceSeed(name="Jackets", slug="jackets"),
    "accessories": ReferenceSeed(name="Accessories", slug="accessories"),
}

BRANDS: dict[str, ReferenceSeed] = {
    "norte": ReferenceSeed(name="Norte Denim", slug="norte-denim"),
    "andina": ReferenceSeed(name="Andina Outdoor", slug="andina-outdoor"),
}

PRODUCTS: tuple[ProductSeed, ...] = (
    ProductSeed(
        name="Denim Jacket Classic",
        base_price=Decimal("89.90"),
        category_key="jackets",
        brand_key="norte",
        description="Stonewashed denim jacket with metal buttons.",
        images=(
            "https://cdn.example.test/products/denim-jacket-front.jpg",
            "https://cdn.example.test/products/denim-jacket-back.jpg",
        ),
        variants=(
            VariantSeed(sku="DJC-BLU-S", color="Blue", size="S", initial_quantity=12),
            VariantSeed(sku="DJC-BLU-M", color="Blue", size="M", initial_quantity=20),
            VariantSeed(sku="DJC-BLK-L", color="Black", size="L", additional_price=Decimal("5.00"), initial_quantity=6),
        ),
    ),
    ProductSeed(
        name="Trail Backpack 28L",
        base_price=Decimal("64.50"),
        category_key="accessories",
        brand_key="andina",
        images=("https://cdn.example.test/products/trail-backpack.jpg",),
        variants=(
            VariantSeed(sku="TBP-GRN", color="Green", initial_quantity=15),
            VariantSeed(sku="TBP-ORG", color="Orange"),
        ),
    ),
    ProductSeed(
        name="Wool Beanie",
        base_price=Decimal("14.00"),
        category_key="accessories",
        is_published=False,
    ),
)


async def _ensure_reference(db: AsyncSession, model, seed: ReferenceSeed) -> int:
    slug = seed.slug or slugify(seed.name)
    existing = (await db.execute(select(model).where(model.slug == slug))).scalar_one_or_none()
    if existing is not None:
        return existing.id
    item = model(name=seed.name, slug=slug)
    db.add(item)
    await db.flush()
    return item.id


async def seed_reference_data(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> tuple[dict[str, int], dict[str, int]]:
    async def _operation(db: AsyncSession) -> tuple[dict[str, int], dict[str, int]]:
        category_ids = {key: await _ensure_reference(db, Category, seed) for key, seed in CATEGORIES.items()}
        brand_ids = {key: await _ensure_reference(db, Brand, seed) for key, seed in BRANDS.items()}
        return category_ids, brand_ids

    return await run_in_transaction(_operation, session_factory=session_factory)


async def seed_catalog(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> tuple[int, int]:
    logger = logging.getLogger("seed_catalog")
    logger.info("Seeding catalog into %s", settings.ASYNC_DATABASE_URL)

    category_ids, brand_ids = await seed_reference_data(session_factory)
    store = ProductAggregateStore(session_factory)
    service = ProductAggregateService(store, InventoryLedger(session_factory), DetailCache(MemoryCacheBackend()))

    created = skipped = 0
    for seed in PRODUCTS:
        if await store.slug_exists(slugify(seed.name)):
            skipped += 1
            continue
        payload = ProductCreate(
            name=seed.name,
            description=seed.description,
            category_id=category_ids[seed.category_key],
            brand_id=brand_ids[seed.brand_key] if seed.brand_key else None,
            base_price=seed.base_price,
            is_published=seed.is_published,
            images=list(seed.images),
            variants=[
                ProductVariantCreate(
                    sku=variant.sku,
                    color=variant.color,
                    size=variant.size,
                    additional_price=variant.additional_price,
                    initial_quantity=variant.initial_quantity,
                )
                for variant in seed.variants
            ],
        )
        await service.create_product(payload)
        created += 1
        logger.debug("Created product %s", seed.name)

    logger.info("Seed completed: %s created, %s skipped", created, skipped)
    return created, skipped


async def main() -> None:
    await seed_catalog()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
