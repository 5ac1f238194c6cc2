from typing import Sequence
from sqlalchemy import select, or_, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.product import Product, ProductVariant

EAGER_AGGREGATE_LOAD = (
    selectinload(Product.images),
    selectinload(Product.variants).selectinload(ProductVariant.inventory),
)

DEFAULT_PAGE_SIZE = 20


async def get_aggregate(db: AsyncSession, product_id: int) -> Product | None:
    result = await db.execute(
        select(Product)
        .options(*EAGER_AGGREGATE_LOAD)
        .where(Product.id == product_id)
    )
    return result.unique().scalar_one_or_none()


async def list_products_with_total(
    db: AsyncSession,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    category_id: int | None = None,
    brand_id: int | None = None,
    search: str | None = None,
) -> tuple[Sequence[Product], int]:
    if page <= 0:
        page = 1
    if page_size <= 0:
        page_size = DEFAULT_PAGE_SIZE

    stmt = select(Product)
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    if brand_id is not None:
        stmt = stmt.where(Product.brand_id == brand_id)
    if search and search.strip():
        like = f"%{search.strip()}%"
        stmt = stmt.where(or_(Product.name.ilike(like), Product.slug.ilike(like)))

    base_subq = stmt.order_by(None).subquery()
    total_result = await db.execute(select(func.count()).select_from(base_subq))
    total = total_result.scalar_one()

    items_result = await db.execute(
        stmt.order_by(Product.created_at.desc(), Product.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    items = items_result.unique().scalars().all()

    return items, total
