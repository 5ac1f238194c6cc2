# tests/test_product_store.py
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.domain.versioning import TOKEN_LENGTH
from app.models.inventory import Inventory
from app.models.product import ProductImage, ProductVariant
from app.schemas.product import ProductVariantCreate, ProductVariantUpdate
from app.services.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    ResourceNotFoundError,
    StorageUnavailableError,
)
from app.services.product_service import ProductAggregateStore, reconcile_variants
from app.services.product_service.mapping import build_product


async def _create(store, payload) -> int:
    return await store.create(build_product(payload, now=datetime.now(timezone.utc)))


@pytest.mark.asyncio
async def test_create_persists_full_aggregate(store, product_payload):
    product_id = await _create(store, product_payload())

    product = await store.load(product_id)
    assert len(product.version_token) == TOKEN_LENGTH
    assert [image.image_url for image in product.images] == ["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"]
    assert [image.sort_order for image in product.images] == [0, 1]
    assert [variant.sku for variant in product.variants] == ["DJ-S", "DJ-M"]
    assert [variant.inventory.quantity for variant in product.variants] == [10, 4]
    assert all(variant.inventory.reserved == 0 for variant in product.variants)


@pytest.mark.asyncio
async def test_create_without_initial_quantity_leaves_variant_untracked(store, product_payload):
    payload = product_payload(variants=[ProductVariantCreate(sku="NO-STOCK")])
    product_id = await _create(store, payload)

    product = await store.load(product_id)
    assert product.variants[0].inventory is None


@pytest.mark.asyncio
async def test_create_rejects_duplicate_sku_in_request(store, product_payload, async_db_session):
    payload = product_payload(
        variants=[ProductVariantCreate(sku="DUP"), ProductVariantCreate(sku="DUP")],
    )

    with pytest.raises(ConflictError):
        await _create(store, payload)

    rows = (await async_db_session.execute(select(ProductVariant))).scalars().all()
    assert rows == []


@pytest.mark.asyncio
async def test_create_rejects_existing_slug(store, product_payload):
    await _create(store, product_payload(slug="same-slug"))

    with pytest.raises(ConflictError):
        await _create(store, product_payload(slug="same-slug"))


@pytest.mark.asyncio
async def test_load_missing_product_raises_not_found(store):
    with pytest.raises(ResourceNotFoundError):
        await store.load(999_999)


@pytest.mark.asyncio
async def test_update_with_stale_token_changes_nothing(store, product_payload):
    product_id = await _create(store, product_payload())
    before = await store.load(product_id)

    plan = reconcile_variants(before.variants, [ProductVariantUpdate(sku="ONLY")])
    with pytest.raises(ConcurrencyConflictError) as exc_info:
        await store.update(product_id, "0" * TOKEN_LENGTH, {"name": "Changed"}, ["https://cdn.test/z.jpg"], plan)

    assert exc_info.value.entity == "Product"
    after = await store.load(product_id)
    assert after.name == before.name
    assert after.version_token == before.version_token
    assert [v.sku for v in after.variants] == ["DJ-S", "DJ-M"]
    assert [i.image_url for i in after.images] == [i.image_url for i in before.images]


@pytest.mark.asyncio
async def test_stale_variant_token_rolls_back_product_row_and_images(store, product_payload):
    product_id = await _create(store, product_payload())
    before = await store.load(product_id)
    first = before.variants[0]

    plan = reconcile_variants(
        before.variants,
        [ProductVariantUpdate(id=first.id, sku=first.sku, quantity=1, expected_token="stale")],
    )
    with pytest.raises(ConcurrencyConflictError) as exc_info:
        await store.update(product_id, before.version_token, {"name": "Renamed"}, ["https://cdn.test/new.jpg"], plan)

    assert exc_info.value.entity == "ProductVariant"
    after = await store.load(product_id)
    assert after.name == before.name
    assert after.version_token == before.version_token
    assert [i.image_url for i in after.images] == ["https://cdn.test/a.jpg", "https://cdn.test/b.jpg"]
    assert [v.id for v in after.variants] == [v.id for v in before.variants]


@pytest.mark.asyncio
async def test_update_rotates_tokens_of_written_rows(store, product_payload):
    product_id = await _create(store, product_payload())
    before = await store.load(product_id)
    kept = before.variants[0]

    plan = reconcile_variants(
        before.variants,
        [ProductVariantUpdate(id=kept.id, sku=kept.sku, quantity=3), ProductVariantUpdate(sku="DJ-L", quantity=2)],
    )
    await store.update(product_id, before.version_token, {"name": "Renamed"}, [], plan)

    after = await store.load(product_id)
    assert after.name == "Renamed"
    assert after.version_token != before.version_token
    assert after.images == []

    by_sku = {v.sku: v for v in after.variants}
    assert set(by_sku) == {"DJ-S", "DJ-L"}
    assert by_sku["DJ-S"].version_token != kept.version_token
    assert by_sku["DJ-S"].inventory.quantity == 3
    assert by_sku["DJ-S"].inventory.version_token != kept.inventory.version_token
    assert by_sku["DJ-L"].inventory.quantity == 2


@pytest.mark.asyncio
async def test_deleted_variant_sku_can_be_reused_in_same_update(store, product_payload):
    product_id = await _create(store, product_payload())
    before = await store.load(product_id)

    plan = reconcile_variants(before.variants, [ProductVariantUpdate(sku="DJ-S", quantity=1)])
    await store.update(product_id, before.version_token, {}, [], plan)

    after = await store.load(product_id)
    assert [v.sku for v in after.variants] == ["DJ-S"]
    assert after.variants[0].id not in {v.id for v in before.variants}


@pytest.mark.asyncio
async def test_ids_of_deleted_rows_are_not_reused(store, product_payload):
    first_id = await _create(store, product_payload())
    first = await store.load(first_id)
    await store.delete(first_id)

    second_id = await _create(store, product_payload())
    second = await store.load(second_id)

    assert second_id > first_id
    assert min(v.id for v in second.variants) > max(v.id for v in first.variants)
    assert min(v.inventory.id for v in second.variants) > max(v.inventory.id for v in first.variants)


@pytest.mark.asyncio
async def test_kept_variants_can_swap_skus(store, product_payload):
    product_id = await _create(store, product_payload())
    before = await store.load(product_id)
    small, medium = before.variants

    plan = reconcile_variants(
        before.variants,
        [
            ProductVariantUpdate(id=small.id, sku=medium.sku, quantity=1),
            ProductVariantUpdate(id=medium.id, sku=small.sku, quantity=2),
        ],
    )
    await store.update(product_id, before.version_token, {}, [], plan)

    after = {v.id: v for v in (await store.load(product_id)).variants}
    assert after[small.id].sku == "DJ-M"
    assert after[medium.id].sku == "DJ-S"
    assert after[small.id].version_token != small.version_token
    assert after[medium.id].inventory.quantity == 2


@pytest.mark.asyncio
async def test_sku_swap_with_stale_variant_token_conflicts(store, product_payload):
    product_id = await _create(store, product_payload())
    before = await store.load(product_id)
    small, medium = before.variants

    plan = reconcile_variants(
        before.variants,
        [
            ProductVariantUpdate(id=small.id, sku=medium.sku, expected_token="stale"),
            ProductVariantUpdate(id=medium.id, sku=small.sku),
        ],
    )
    with pytest.raises(ConcurrencyConflictError):
        await store.update(product_id, before.version_token, {}, [], plan)

    after = {v.id: v.sku for v in (await store.load(product_id)).variants}
    assert after == {small.id: "DJ-S", medium.id: "DJ-M"}

@pytest.mark.asyncio
async def test_update_rejects_duplicate_final_skus(store, product_payload):
    product_id = await _create(store, product_payload())
    before = await store.load(product_id)

    plan = reconcile_variants(
        before.variants,
        [ProductVariantUpdate(sku="SAME"), ProductVariantUpdate(sku="SAME")],
    )
    with pytest.raises(ConflictError):
        await store.update(product_id, before.version_token, {}, [], plan)


@pytest.mark.asyncio
async def test_delete_removes_every_child_row(store, product_payload, async_db_session):
    product_id = await _create(store, product_payload())

    await store.delete(product_id)

    with pytest.raises(ResourceNotFoundError):
        await store.load(product_id)
    for model in (ProductVariant, ProductImage, Inventory):
        rows = (await async_db_session.execute(select(model))).scalars().all()
        assert rows == []


@pytest.mark.asyncio
async def test_delete_missing_product_raises_not_found(store):
    with pytest.raises(ResourceNotFoundError):
        await store.delete(424242)


@pytest.mark.asyncio
async def test_variant_owners_maps_ids_to_products(store, product_payload):
    product_id = await _create(store, product_payload())
    product = await store.load(product_id)
    ids = [v.id for v in product.variants]

    owners = await store.variant_owners(ids + [987654])

    assert owners == {variant_id: product_id for variant_id in ids}
    assert await store.variant_owners([]) == {}


@pytest.mark.asyncio
async def test_unreachable_store_raises_storage_unavailable(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'catalog.db'}"
    engine = create_async_engine(url, poolclass=NullPool)
    try:
        store = ProductAggregateStore(async_sessionmaker(bind=engine, expire_on_commit=False))
        with pytest.raises(StorageUnavailableError):
            await store.load(1)
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_list_page_filters_and_counts(store, product_payload):
    await _create(store, product_payload(name="Red Parka", base_price=Decimal("120.00")))
    await _create(store, product_payload(name="Blue Parka", variants=[]))
    await _create(store, product_payload(name="Sun Hat", variants=[]))

    items, total = await store.list_page(page=1, page_size=10, search="parka")
    assert total == 2
    assert {p.name for p in items} == {"Red Parka", "Blue Parka"}

    items, total = await store.list_page(page=2, page_size=2)
    assert total == 3
    assert len(items) == 1
