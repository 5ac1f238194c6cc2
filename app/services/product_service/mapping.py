# app/services/product_service/mapping.py
"""Explicit construction of entities from commands and of views from entities."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from app.models.inventory import Inventory
from app.models.product import Product, ProductImage, ProductVariant
from app.schemas.product import (
    ProductCreate,
    ProductDetail,
    ProductSummary,
    ProductUpdate,
    ProductVariantDetail,
)
from app.services.exceptions import InvalidOperationError
from .utils import clean_optional, slugify


def normalize_image_urls(urls: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for url in urls:
        url = (url or "").strip()
        if not url or url in seen:
            continue
        seen.add(url)
        result.append(url)
    return result


def build_images(urls: Iterable[str]) -> list[ProductImage]:
    # el orden de la lista define sort_order; ninguna se marca como primaria
    return [
        ProductImage(image_url=url, is_primary=False, sort_order=position)
        for position, url in enumerate(normalize_image_urls(urls))
    ]


def resolve_slug(name: str, requested: str | None) -> str:
    slug = clean_optional(requested) or slugify(name)
    if not slug:
        raise InvalidOperationError("Unable to derive a slug from the product name")
    return slug


def build_product(payload: ProductCreate, now: datetime) -> Product:
    product = Product(
        name=payload.name.strip(),
        slug=resolve_slug(payload.name, payload.slug),
        description=payload.description,
        category_id=payload.category_id,
        brand_id=payload.brand_id,
        base_price=payload.base_price,
        is_published=payload.is_published,
        created_at=now,
        updated_at=now,
        images=build_images(payload.images),
    )

    for item in payload.variants:
        variant = ProductVariant(
            sku=item.sku.strip(),
            color=clean_optional(item.color),
            size=clean_optional(item.size),
            additional_price=item.additional_price,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        # sin stock inicial la variante queda sin inventario registrado
        if item.initial_quantity > 0:
            variant.inventory = Inventory(quantity=item.initial_quantity, reserved=0, updated_at=now)
        product.variants.append(variant)

    return product


def product_changes(payload: ProductUpdate) -> dict[str, Any]:
    # slug, created_at y version_token no se tocan desde el payload
    return {
        "name": payload.name.strip(),
        "description": payload.description,
        "category_id": payload.category_id,
        "brand_id": payload.brand_id,
        "base_price": payload.base_price,
        "is_published": payload.is_published,
    }


def to_variant_detail(variant: ProductVariant, base_price) -> ProductVariantDetail:
    inventory = variant.inventory
    return ProductVariantDetail(
        id=variant.id,
        sku=variant.sku,
        color=variant.color,
        size=variant.size,
        additional_price=variant.additional_price,
        price=base_price + variant.additional_price,
        is_active=variant.is_active,
        quantity=inventory.quantity if inventory is not None else 0,
        reserved=inventory.reserved if inventory is not None else 0,
        version_token=variant.version_token,
        inventory_version_token=inventory.version_token if inventory is not None else None,
    )


def to_detail(product: Product) -> ProductDetail:
    return ProductDetail(
        id=product.id,
        name=product.name,
        slug=product.slug,
        description=product.description,
        base_price=product.base_price,
        is_published=product.is_published,
        category_id=product.category_id,
        category_name=product.category.name,
        brand_id=product.brand_id,
        brand_name=product.brand.name if product.brand is not None else None,
        image_urls=[image.image_url for image in product.images],
        variants=[to_variant_detail(v, product.base_price) for v in product.variants],
        version_token=product.version_token,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def to_summary(product: Product) -> ProductSummary:
    return ProductSummary(
        id=product.id,
        name=product.name,
        slug=product.slug,
        base_price=product.base_price,
        is_published=product.is_published,
        category_name=product.category.name,
        brand_name=product.brand.name if product.brand is not None else None,
    )
