from decimal import Decimal
from typing import TypedDict

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.models.catalog import Category, Product, ProductImage, ProductStatus


class SeedProduct(TypedDict):
    slug: str
    name: str
    category_slug: str
    short_description: str
    base_price: Decimal
    stock_quantity: int
    image_url: str


SEED_CATEGORIES: dict[str, str] = {
    "footwear": "Footwear",
    "bags": "Bags",
}

SEED_PRODUCTS: list[SeedProduct] = [
    {
        "slug": "red-shoe",
        "name": "Red Shoe",
        "category_slug": "footwear",
        "short_description": "Leather sneaker in cherry red.",
        "base_price": Decimal("2499.00"),
        "stock_quantity": 25,
        "image_url": "/media/products/red-shoe.jpg",
    },
    {
        "slug": "canvas-tote",
        "name": "Canvas Tote",
        "category_slug": "bags",
        "short_description": "Everyday tote in natural canvas.",
        "base_price": Decimal("799.00"),
        "stock_quantity": 40,
        "image_url": "/media/products/canvas-tote.jpg",
    },
]


async def seed_catalog(session: AsyncSession) -> int:
    """Insert the demo catalog; existing slugs are left alone. Returns the number of new products."""
    categories: dict[str, Category] = {}
    for slug, name in SEED_CATEGORIES.items():
        existing = (await session.execute(select(Category).where(Category.slug == slug))).scalar_one_or_none()
        categories[slug] = existing or Category(slug=slug, name=name)
        session.add(categories[slug])

    created = 0
    for item in SEED_PRODUCTS:
        existing = (await session.execute(select(Product).where(Product.slug == item["slug"]))).scalar_one_or_none()
        if existing:
            continue
        product = Product(
            category=categories[item["category_slug"]],
            slug=item["slug"],
            name=item["name"],
            short_description=item["short_description"],
            base_price=item["base_price"],
            currency="INR",
            stock_quantity=item["stock_quantity"],
            status=ProductStatus.published,
            images=[ProductImage(url=item["image_url"], alt_text=item["name"], sort_order=0)],
        )
        session.add(product)
        created += 1
    await session.commit()
    return created
