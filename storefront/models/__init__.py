from storefront.db.base import Base  # noqa: F401
from storefront.models.user import RefreshSession, User, UserRole  # noqa: F401
from storefront.models.catalog import Category, Product, ProductImage, ProductStatus  # noqa: F401
from storefront.models.cart import Cart, CartItem  # noqa: F401
from storefront.models.wishlist import WishlistItem  # noqa: F401

__all__ = [
    "Base",
    "User",
    "UserRole",
    "RefreshSession",
    "Category",
    "Product",
    "ProductImage",
    "ProductStatus",
    "Cart",
    "CartItem",
    "WishlistItem",
]
