from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.db.session import get_session
from storefront.models.catalog import Category, Product
from storefront.schemas.catalog import CategoryRead, ProductRead
from storefront.schemas.intent import ProductRef
from storefront.services import catalog as catalog_service

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/categories", response_model=list[CategoryRead])
async def list_categories(session: AsyncSession = Depends(get_session)) -> list[Category]:
    result = await session.execute(select(Category).order_by(Category.name))
    return list(result.scalars())


@router.get("/products", response_model=list[ProductRead])
async def list_products(
    session: AsyncSession = Depends(get_session),
    category_slug: str | None = Query(default=None),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
) -> list[Product]:
    return await catalog_service.list_products(session, category_slug=category_slug, limit=limit, offset=offset)


@router.get("/products/{slug}", response_model=ProductRead)
async def get_product(slug: str, session: AsyncSession = Depends(get_session)) -> Product:
    product = await catalog_service.get_product_by_slug(session, slug)
    if not product or not catalog_service.is_purchasable(product):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


@router.get("/products/{slug}/ref", response_model=ProductRef)
async def get_product_ref(slug: str, session: AsyncSession = Depends(get_session)) -> ProductRef:
    """Snapshot used by gated buttons when deferring an action for a guest."""
    product = await catalog_service.get_product_by_slug(session, slug)
    if not product or not catalog_service.is_purchasable(product):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return ProductRef(id=product.id, name=product.name, image_url=catalog_service.first_image_url(product))
