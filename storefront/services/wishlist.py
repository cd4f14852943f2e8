import uuid
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from fastapi import HTTPException, status

from storefront.core.config import settings
from storefront.models.wishlist import WishlistItem
from storefront.models.catalog import Product
from storefront.services import catalog as catalog_service


def ensure_enabled() -> None:
    if not settings.wishlist_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Wishlist is disabled")


async def list_wishlist(session: AsyncSession, user_id: uuid.UUID) -> list[Product]:
    result = await session.execute(
        select(WishlistItem)
        .options(selectinload(WishlistItem.product).selectinload(Product.images))
        .where(WishlistItem.user_id == user_id)
        .order_by(WishlistItem.created_at)
    )
    items = result.scalars().all()
    return [item.product for item in items if item.product and not item.product.is_deleted]


async def add_to_wishlist(session: AsyncSession, user_id: uuid.UUID, product_id: uuid.UUID) -> Product:
    ensure_enabled()
    product = await catalog_service.get_resolvable_product(session, product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    existing = await session.execute(
        select(WishlistItem).where(WishlistItem.user_id == user_id, WishlistItem.product_id == product_id)
    )
    if existing.scalar_one_or_none():
        return product
    item = WishlistItem(user_id=user_id, product_id=product_id)
    session.add(item)
    await session.commit()
    return product


async def remove_from_wishlist(session: AsyncSession, user_id: uuid.UUID, product_id: uuid.UUID) -> None:
    result = await session.execute(
        select(WishlistItem).where(WishlistItem.user_id == user_id, WishlistItem.product_id == product_id)
    )
    item = result.scalar_one_or_none()
    if not item:
        return
    await session.delete(item)
    await session.commit()
