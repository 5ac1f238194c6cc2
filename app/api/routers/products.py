from fastapi import APIRouter, Depends, Path, Query, Request, Response, status

from app.api.deps import get_product_service
from app.schemas.pagination import PaginatedProducts
from app.schemas.product import InventoryAdjust, ProductCreate, ProductDetail, ProductUpdate
from app.services.product_service import ProductAggregateService

router = APIRouter(prefix="/products", tags=["products"])


# ---------- Lectura ----------
@router.get("", response_model=PaginatedProducts)
async def list_products(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    category_id: int | None = Query(None, ge=1),
    brand_id: int | None = Query(None, ge=1),
    search: str | None = Query(None, description="texto a buscar en nombre o slug"),
    service: ProductAggregateService = Depends(get_product_service),
):
    return await service.list_products(
        page=page,
        page_size=page_size,
        category_id=category_id,
        brand_id=brand_id,
        search=search,
    )


@router.get("/{product_id}", response_model=ProductDetail)
async def get_product(
    product_id: int = Path(..., ge=1),
    service: ProductAggregateService = Depends(get_product_service),
):
    return await service.get_product_detail(product_id)


# ---------- Escritura ----------
@router.post("", response_model=ProductDetail, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    request: Request,
    response: Response,
    service: ProductAggregateService = Depends(get_product_service),
):
    created = await service.create_product(payload)
    response.headers["Location"] = str(request.url_for("get_product", product_id=created.id))
    return created


@router.put("/{product_id}", response_model=ProductDetail)
async def update_product(
    payload: ProductUpdate,
    product_id: int = Path(..., ge=1),
    service: ProductAggregateService = Depends(get_product_service),
):
    return await service.update_product(product_id, payload)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int = Path(..., ge=1),
    service: ProductAggregateService = Depends(get_product_service),
):
    await service.delete_product(product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/variants/{variant_id}/adjust-inventory", status_code=status.HTTP_204_NO_CONTENT)
async def adjust_inventory(
    payload: InventoryAdjust,
    variant_id: int = Path(..., ge=1),
    service: ProductAggregateService = Depends(get_product_service),
):
    await service.adjust_inventory(variant_id, payload)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
