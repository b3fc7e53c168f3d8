# smartshop/fetchers/platzi_fetcher.py

"""Fetcher for the Platzi fake store API (escuelajs.co)."""

from typing import Any

from smartshop.fetchers.base_fetcher import BaseFetcher
from smartshop.models.product import Product, Rating


class PlatziFetcher(BaseFetcher):
    """Fetcher for api.escuelajs.co.

    Categories are nested objects and the API carries no ratings,
    so every listing gets an empty ``Rating``.
    """

    API_URL = "https://api.escuelajs.co/api/v1/products"
    PAGE_SIZE = 30

    def __init__(self) -> None:
        super().__init__("platzi", "platzi")

    def get_api_url(self) -> str:
        """Return the Platzi products endpoint."""
        return self.API_URL

    def _parse_item(self, item: dict[str, Any]) -> Product:
        """Parse a single Platzi record into a Product."""
        category: Any = item.get("category") or {}
        category_name = (
            str(category.get("name", ""))
            if isinstance(category, dict)
            else str(category)
        )
        images: list[Any] = item.get("images") or []
        image = str(images[0]) if images else ""
        if not image and isinstance(category, dict):
            image = str(category.get("image", ""))
        price = self.extract_price(item.get("price"))
        return Product(
            id=self.make_id(item["id"]),
            title=str(item.get("title", "")).strip(),
            price=price,
            original_price=price,
            category=category_name,
            description=str(item.get("description", "")),
            rating=Rating(),
            image=image,
            source="Platzi API",
        )

    def _fetch_catalog(self) -> list[Product]:
        """Fetch one page of the Platzi catalog."""
        data = self._get_json(
            self.API_URL,
            params={"offset": 0, "limit": self.PAGE_SIZE},
        )
        if data is None:
            raise ConnectionError("Platzi API unavailable")
        if not isinstance(data, list):
            raise ValueError(
                f"Unexpected Platzi payload: {type(data).__name__}"
            )
        return [
            self._parse_item(item)
            for item in data
            if isinstance(item, dict) and "id" in item
        ]
