import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.models.catalog import Category, Product, ProductStatus


def is_purchasable(product: Product | None) -> bool:
    return bool(
        product
        and not product.is_deleted
        and product.is_active
        and product.status == ProductStatus.published
    )


async def get_resolvable_product(session: AsyncSession, product_id: uuid.UUID) -> Product | None:
    """Return the product when it can still be shown and sold, else None."""
    product = await session.get(Product, product_id)
    return product if is_purchasable(product) else None


async def get_product_by_slug(session: AsyncSession, slug: str) -> Product | None:
    result = await session.execute(
        select(Product)
        .options(selectinload(Product.images))
        .where(Product.slug == slug, Product.is_deleted.is_(False))
    )
    return result.scalar_one_or_none()


async def list_products(session: AsyncSession, category_slug: str | None = None, limit: int = 20, offset: int = 0) -> list[Product]:
    query = (
        select(Product)
        .options(selectinload(Product.images))
        .where(
            Product.is_deleted.is_(False),
            Product.is_active.is_(True),
            Product.status == ProductStatus.published,
        )
    )
    if category_slug:
        query = query.join(Category).where(Category.slug == category_slug)
    query = query.order_by(Product.created_at.desc(), Product.name).limit(limit).offset(offset)
    result = await session.execute(query)
    return list(result.scalars().unique())


def first_image_url(product: Product | None) -> str | None:
    if not product or not product.images:
        return None
    ordered = sorted(product.images, key=lambda img: img.sort_order or 0)
    return ordered[0].url
