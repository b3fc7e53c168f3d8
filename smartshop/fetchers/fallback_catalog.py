# smartshop/fetchers/fallback_catalog.py

"""Embedded offline catalog served when every live source fails."""

from smartshop.filters.product_filter import ProductFilter
from smartshop.models.product import Product, Rating

_FALLBACK_SOURCE = "Fallback Data"

FALLBACK_PRODUCTS: list[Product] = [
    Product(
        id="fallback_1",
        title="Apple iPhone 14 Pro Max 128GB",
        price=999.99,
        original_price=1199.99,
        category="Electronics",
        description="Latest iPhone with A16 Bionic chip",
        rating=Rating(rate=4.8, count=2547),
        brand="Apple",
        image="https://via.placeholder.com/300x300?text=iPhone+14+Pro",
        source=_FALLBACK_SOURCE,
    ),
    Product(
        id="fallback_2",
        title="Samsung Galaxy S23 Ultra 256GB",
        price=849.99,
        original_price=1049.99,
        category="Electronics",
        description="Premium Android smartphone",
        rating=Rating(rate=4.7, count=1823),
        brand="Samsung",
        image="https://via.placeholder.com/300x300?text=Galaxy+S23",
        source=_FALLBACK_SOURCE,
    ),
    Product(
        id="fallback_3",
        title="Sony WH-1000XM5 Wireless Headphones",
        price=349.99,
        original_price=399.99,
        category="Electronics",
        description="Noise cancelling over-ear headphones",
        rating=Rating(rate=4.6, count=3120),
        brand="Sony",
        image="https://via.placeholder.com/300x300?text=WH-1000XM5",
        source=_FALLBACK_SOURCE,
    ),
    Product(
        id="fallback_4",
        title="Levi's 501 Original Fit Jeans",
        price=59.5,
        original_price=69.5,
        category="Men's Clothing",
        description="Straight leg button fly jeans",
        rating=Rating(rate=4.4, count=905),
        brand="Levi's",
        image="https://via.placeholder.com/300x300?text=501+Jeans",
        source=_FALLBACK_SOURCE,
    ),
    Product(
        id="fallback_5",
        title="Instant Pot Duo 7-in-1 Pressure Cooker",
        price=89.95,
        original_price=119.95,
        category="Home & Kitchen",
        description="Multi-use programmable pressure cooker, 6 quart",
        rating=Rating(rate=4.7, count=4410),
        brand="Instant Pot",
        image="https://via.placeholder.com/300x300?text=Instant+Pot",
        source=_FALLBACK_SOURCE,
    ),
]


def fallback_products(query: str = "", limit: int | None = None) -> list[Product]:
    """Return fallback listings whose title contains *query*."""
    matched = ProductFilter.filter_by_title(FALLBACK_PRODUCTS, query)
    return matched if limit is None else matched[:limit]


def fallback_by_category(category: str, limit: int | None = None) -> list[Product]:
    """Return fallback listings in *category*."""
    matched, _ = ProductFilter.filter_by_category(
        FALLBACK_PRODUCTS, category
    )
    return matched if limit is None else matched[:limit]
