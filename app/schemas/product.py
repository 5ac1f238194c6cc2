from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Variants (requests) ---
class ProductVariantCreate(BaseModel):
    sku: str = Field(min_length=1, max_length=64)
    color: str | None = Field(default=None, max_length=64)
    size: str | None = Field(default=None, max_length=64)
    additional_price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    initial_quantity: int = Field(default=0, ge=0)


class ProductVariantUpdate(BaseModel):
    # sin id => variante nueva
    id: int | None = None
    sku: str = Field(min_length=1, max_length=64)
    color: str | None = Field(default=None, max_length=64)
    size: str | None = Field(default=None, max_length=64)
    additional_price: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    is_active: bool = True
    quantity: int = Field(default=0, ge=0)
    expected_token: str | None = None


# --- Product (requests) ---
class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str | None = Field(default=None, max_length=255)
    description: str | None = None
    category_id: int = Field(gt=0)
    brand_id: int | None = Field(default=None, gt=0)
    base_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    is_published: bool = False
    images: List[str] = Field(default_factory=list)
    variants: List[ProductVariantCreate] = Field(default_factory=list)


class ProductUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category_id: int = Field(gt=0)
    brand_id: int | None = Field(default=None, gt=0)
    base_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    is_published: bool = False
    images: List[str] = Field(default_factory=list)
    variants: List[ProductVariantUpdate] = Field(default_factory=list)
    expected_token: str = Field(min_length=1)


class InventoryAdjust(BaseModel):
    delta: int
    expected_token: str = Field(min_length=1)

    @field_validator("delta")
    @classmethod
    def delta_not_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("delta must be non-zero")
        return value


# --- Read models ---
class ProductVariantDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    sku: str
    color: str | None = None
    size: str | None = None
    additional_price: Decimal
    price: Decimal
    is_active: bool
    quantity: int = 0
    reserved: int = 0
    version_token: str
    # None => la variante no tiene inventario registrado
    inventory_version_token: str | None = None


class ProductDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: str
    description: str | None = None
    base_price: Decimal
    is_published: bool
    category_id: int
    category_name: str
    brand_id: int | None = None
    brand_name: str | None = None
    image_urls: List[str] = []
    variants: List[ProductVariantDetail] = []
    version_token: str
    created_at: datetime
    updated_at: datetime


class ProductSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    slug: str
    base_price: Decimal
    is_published: bool
    category_name: str
    brand_name: str | None = None
