from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from storefront.models.cart import Cart, CartItem
from storefront.models.catalog import Product
from storefront.schemas.cart import CartItemCreate, CartItemRead, CartRead
from storefront.services import catalog as catalog_service


def _cart_query():
    return select(Cart).options(
        selectinload(Cart.items).selectinload(CartItem.product).selectinload(Product.images)
    )


async def _get_or_create_cart(session: AsyncSession, user_id: UUID | None, session_id: str | None) -> Cart:
    if user_id:
        result = await session.execute(_cart_query().where(Cart.user_id == user_id))
        cart = result.scalar_one_or_none()
        if cart:
            return cart
    if session_id:
        result = await session.execute(_cart_query().where(Cart.session_id == session_id))
        cart = result.scalar_one_or_none()
        if cart:
            return cart
    cart = Cart(user_id=user_id, session_id=session_id if not user_id else None)
    session.add(cart)
    await session.commit()
    await session.refresh(cart)
    return cart


async def get_cart(session: AsyncSession, user_id: UUID | None, session_id: str | None) -> Cart:
    return await _get_or_create_cart(session, user_id, session_id)


def _to_decimal(value: float | Decimal | int) -> Decimal:
    dec = value if isinstance(value, Decimal) else Decimal(str(value))
    return dec.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def add_item(session: AsyncSession, cart: Cart, payload: CartItemCreate) -> CartItem:
    product = await session.get(Product, payload.product_id)
    if not catalog_service.is_purchasable(product):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    result = await session.execute(
        select(CartItem).where(CartItem.cart_id == cart.id, CartItem.product_id == payload.product_id)
    )
    item = result.scalar_one_or_none()
    quantity = payload.quantity + (item.quantity if item else 0)
    if quantity > product.stock_quantity:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Insufficient stock")

    if item:
        item.quantity = quantity
    else:
        item = CartItem(
            cart_id=cart.id,
            product_id=product.id,
            quantity=payload.quantity,
            unit_price_at_add=_to_decimal(product.base_price),
        )
    session.add(item)
    await session.commit()
    await session.refresh(item)
    return item


async def add_to_cart(session: AsyncSession, user_id: UUID, product_id: UUID, quantity: int = 1) -> CartItem:
    cart = await get_cart(session, user_id, None)
    return await add_item(session, cart, CartItemCreate(product_id=product_id, quantity=quantity))


async def delete_item(session: AsyncSession, cart: Cart, item_id: UUID) -> None:
    result = await session.execute(select(CartItem).where(CartItem.cart_id == cart.id, CartItem.id == item_id))
    item = result.scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Cart item not found")
    await session.delete(item)
    await session.commit()


async def serialize_cart(session: AsyncSession, cart: Cart) -> CartRead:
    result = await session.execute(_cart_query().where(Cart.id == cart.id).execution_options(populate_existing=True))
    hydrated = result.scalar_one()
    items = [
        CartItemRead(
            id=item.id,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price_at_add=_to_decimal(item.unit_price_at_add),
            name=item.product.name if item.product else None,
            slug=item.product.slug if item.product else None,
            image_url=catalog_service.first_image_url(item.product),
            currency=getattr(item.product, "currency", None),
        )
        for item in hydrated.items
    ]
    subtotal = _to_decimal(sum((line.unit_price_at_add * line.quantity for line in items), Decimal("0")))
    return CartRead(
        id=hydrated.id,
        user_id=hydrated.user_id,
        session_id=hydrated.session_id,
        items=items,
        subtotal=subtotal,
    )
