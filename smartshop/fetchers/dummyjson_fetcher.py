# smartshop/fetchers/dummyjson_fetcher.py

"""Fetcher for dummyjson.com."""

from typing import Any

from smartshop.fetchers.base_fetcher import BaseFetcher
from smartshop.models.product import Product


class DummyJsonFetcher(BaseFetcher):
    """Fetcher for dummyjson.com.

    Ratings arrive as a bare number; the review list length stands in
    for the count. ``discountPercentage`` is folded back into an
    ``original_price``.
    """

    API_URL = "https://dummyjson.com/products"
    PAGE_SIZE = 30

    def __init__(self) -> None:
        super().__init__("dummyjson", "dj")

    def get_api_url(self) -> str:
        """Return the DummyJSON products endpoint."""
        return self.API_URL

    def _parse_item(self, item: dict[str, Any]) -> Product:
        """Parse a single DummyJSON record into a Product."""
        price = self.extract_price(item.get("price"))
        discount = self.extract_price(item.get("discountPercentage"))
        original = (
            round(price / (1 - discount / 100), 2)
            if 0 < discount < 100
            else price
        )
        reviews = item.get("reviews")
        images: list[Any] = item.get("images") or []
        return Product(
            id=self.make_id(item["id"]),
            title=str(item.get("title", "")).strip(),
            price=price,
            original_price=original,
            category=str(item.get("category", "")),
            description=str(item.get("description", "")),
            rating=self.normalize_rating(
                item.get("rating"),
                count=len(reviews) if isinstance(reviews, list) else 0,
            ),
            brand=item.get("brand") or None,
            image=str(
                item.get("thumbnail") or (images[0] if images else "")
            ),
            source="DummyJSON API",
        )

    def _fetch_catalog(self) -> list[Product]:
        """Fetch one page of the DummyJSON catalog."""
        data = self._get_json(
            self.API_URL,
            params={"limit": self.PAGE_SIZE, "skip": 0},
        )
        if data is None:
            raise ConnectionError("DummyJSON API unavailable")
        items = data.get("products") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ValueError("DummyJSON payload has no product list")
        return [
            self._parse_item(item)
            for item in items
            if isinstance(item, dict) and "id" in item
        ]
