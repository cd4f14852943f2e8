from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from storefront.models.catalog import ProductStatus


class CategoryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slug: str
    name: str
    description: str | None = None


class ProductImageRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    url: str
    alt_text: str | None = None
    sort_order: int = 0


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    slug: str
    sku: str
    name: str
    short_description: str | None = None
    base_price: float
    currency: str
    is_active: bool
    stock_quantity: int
    status: ProductStatus
    created_at: datetime
    updated_at: datetime
    images: list[ProductImageRead] = []
    category: CategoryRead
