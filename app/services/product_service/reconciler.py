# app/services/product_service/reconciler.py
"""Three-way diff between persisted variants and a requested variant list.

The result is a plan; nothing here touches the database. Rules:

* an entry whose id belongs to a persisted variant of this product is an update;
* an entry without id, or with an id unknown everywhere, is a new variant;
* an id that exists but belongs to another product is rejected;
* persisted variants missing from the request are deleted, but only when the
  request carries at least one entry. An empty list means "leave variants
  alone", never "delete everything".
"""
from __future__ import annotations

from collections.abc import Collection, Iterable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal

from app.models.product import ProductVariant
from app.schemas.product import ProductVariantUpdate
from app.services.exceptions import InvalidOperationError
from .utils import clean_optional


@dataclass(frozen=True, slots=True)
class VariantFields:
    sku: str
    color: str | None
    size: str | None
    additional_price: Decimal
    is_active: bool


@dataclass(frozen=True, slots=True)
class InventoryWrite:
    # inventory_id None => no row yet, one is created
    inventory_id: int | None
    expected_token: str | None
    quantity: int


@dataclass(frozen=True, slots=True)
class PlannedUpdate:
    variant_id: int
    expected_token: str
    fields: VariantFields
    inventory: InventoryWrite
    previous_sku: str | None = None

    @property
    def renames_sku(self) -> bool:
        return self.previous_sku is not None and self.previous_sku != self.fields.sku


@dataclass(frozen=True, slots=True)
class PlannedCreate:
    fields: VariantFields
    quantity: int


@dataclass(frozen=True, slots=True)
class PlannedDelete:
    variant_id: int
    expected_token: str


@dataclass(frozen=True, slots=True)
class ReconcilePlan:
    updates: list[PlannedUpdate] = field(default_factory=list)
    creates: list[PlannedCreate] = field(default_factory=list)
    deletes: list[PlannedDelete] = field(default_factory=list)

    @property
    def final_skus(self) -> list[str]:
        return [u.fields.sku for u in self.updates] + [c.fields.sku for c in self.creates]


def variant_fields(entry: ProductVariantUpdate) -> VariantFields:
    return VariantFields(
        sku=entry.sku.strip(),
        color=clean_optional(entry.color),
        size=clean_optional(entry.size),
        additional_price=entry.additional_price,
        is_active=entry.is_active,
    )


def reconcile_variants(
    persisted: Iterable[ProductVariant],
    requested: Sequence[ProductVariantUpdate],
    *,
    foreign_ids: Collection[int] = (),
) -> ReconcilePlan:
    persisted_by_id = {variant.id: variant for variant in persisted}

    # dict: un id repetido se queda con los campos de la última entrada
    matched: dict[int, ProductVariantUpdate] = {}
    new_entries: list[ProductVariantUpdate] = []

    for entry in requested:
        if entry.id is not None and entry.id in persisted_by_id:
            matched[entry.id] = entry
        elif entry.id is not None and entry.id in foreign_ids:
            raise InvalidOperationError(f"Variant {entry.id} belongs to another product")
        else:
            new_entries.append(entry)

    updates: list[PlannedUpdate] = []
    for variant_id, entry in matched.items():
        current = persisted_by_id[variant_id]
        inventory = current.inventory
        updates.append(
            PlannedUpdate(
                variant_id=variant_id,
                expected_token=entry.expected_token or current.version_token,
                fields=variant_fields(entry),
                inventory=InventoryWrite(
                    inventory_id=inventory.id if inventory is not None else None,
                    expected_token=inventory.version_token if inventory is not None else None,
                    quantity=entry.quantity,
                ),
                previous_sku=current.sku,
            )
        )

    creates = [PlannedCreate(fields=variant_fields(entry), quantity=entry.quantity) for entry in new_entries]

    deletes: list[PlannedDelete] = []
    if requested:
        deletes = [
            PlannedDelete(variant_id=variant.id, expected_token=variant.version_token)
            for variant in persisted_by_id.values()
            if variant.id not in matched
        ]

    return ReconcilePlan(updates=updates, creates=creates, deletes=deletes)
