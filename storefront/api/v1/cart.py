from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.dependencies import get_current_user
from storefront.db.session import get_session
from storefront.models.user import User
from storefront.schemas.cart import CartItemCreate, CartRead
from storefront.services import cart as cart_service

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("", response_model=CartRead)
async def get_cart(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> CartRead:
    cart = await cart_service.get_cart(session, current_user.id, None)
    return await cart_service.serialize_cart(session, cart)


@router.post("/items", response_model=CartRead, status_code=status.HTTP_201_CREATED)
async def add_item(
    payload: CartItemCreate,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> CartRead:
    cart = await cart_service.get_cart(session, current_user.id, None)
    await cart_service.add_item(session, cart, payload)
    return await cart_service.serialize_cart(session, cart)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item(
    item_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> None:
    cart = await cart_service.get_cart(session, current_user.id, None)
    await cart_service.delete_item(session, cart, item_id)
    return None
