# smartshop/fetchers/fakestore_fetcher.py

"""Fetcher for fakestoreapi.com."""

from typing import Any

from smartshop.fetchers.base_fetcher import BaseFetcher
from smartshop.models.product import Product


class FakeStoreFetcher(BaseFetcher):
    """Fetcher for fakestoreapi.com.

    The API has no search endpoint; one page of the catalog is pulled
    and matched locally. Ratings already arrive as ``{rate, count}``.
    """

    API_URL = "https://fakestoreapi.com/products"
    PAGE_SIZE = 20

    def __init__(self) -> None:
        super().__init__("fakestore", "fs")

    def get_api_url(self) -> str:
        """Return the FakeStore products endpoint."""
        return self.API_URL

    def _parse_item(self, item: dict[str, Any]) -> Product:
        """Parse a single FakeStore record into a Product."""
        price = self.extract_price(item.get("price"))
        return Product(
            id=self.make_id(item["id"]),
            title=str(item.get("title", "")).strip(),
            price=price,
            original_price=price,
            category=str(item.get("category", "")),
            description=str(item.get("description", "")),
            rating=self.normalize_rating(item.get("rating")),
            image=str(item.get("image", "")),
            source="FakeStore API",
        )

    def _fetch_catalog(self) -> list[Product]:
        """Fetch one page of the FakeStore catalog."""
        data = self._get_json(
            self.API_URL, params={"limit": self.PAGE_SIZE}
        )
        if data is None:
            raise ConnectionError("FakeStore API unavailable")
        if not isinstance(data, list):
            raise ValueError(
                f"Unexpected FakeStore payload: {type(data).__name__}"
            )
        return [
            self._parse_item(item)
            for item in data
            if isinstance(item, dict) and "id" in item
        ]
