from pydantic import BaseModel
from typing import List
from app.schemas.product import ProductSummary

class PaginatedProducts(BaseModel):
    total: int
    page: int
    pages: int
    page_size: int
    items: List[ProductSummary]
