# tests/test_product_filter.py

"""Tests for ProductFilter query and category matching."""

import unittest

from smartshop.filters.product_filter import ProductFilter
from smartshop.models.product import Product


def _make(
    title: str,
    category: str = "",
    description: str = "",
    brand: str | None = None,
) -> Product:
    return Product(
        id=title, title=title, price=1.0, category=category,
        description=description, brand=brand,
    )


class TestMatchesQuery(unittest.TestCase):
    """matches_query field coverage."""

    def test_empty_query_matches_all(self) -> None:
        """Whitespace-only queries match everything."""
        self.assertTrue(ProductFilter.matches_query(_make("A"), "  "))

    def test_matches_each_field(self) -> None:
        """Title, category, description and brand are searched."""
        product = _make(
            "Backpack", category="bags", description="fits laptops",
            brand="Fjallraven",
        )
        for query in ("backpack", "BAGS", "laptop", "fjall"):
            with self.subTest(query=query):
                self.assertTrue(ProductFilter.matches_query(product, query))

    def test_no_match(self) -> None:
        """Unrelated queries do not match."""
        self.assertFalse(
            ProductFilter.matches_query(_make("Backpack"), "phone")
        )


class TestFilters(unittest.TestCase):
    """List-level filters."""

    def setUp(self) -> None:
        self.products = [
            _make("Gold Ring", category="jewelery"),
            _make("Rain Jacket", category="women's clothing",
                  description="gold zipper"),
            _make("SSD Drive", category="electronics"),
        ]

    def test_filter_by_query(self) -> None:
        """Query filter keeps description matches too."""
        kept = ProductFilter.filter_by_query(self.products, "gold")
        self.assertEqual(
            [p.title for p in kept], ["Gold Ring", "Rain Jacket"]
        )

    def test_filter_by_title_only(self) -> None:
        """Title filter ignores description matches."""
        kept = ProductFilter.filter_by_title(self.products, "gold")
        self.assertEqual([p.title for p in kept], ["Gold Ring"])

    def test_filter_by_category(self) -> None:
        """Category filter reports how many were excluded."""
        kept, excluded = ProductFilter.filter_by_category(
            self.products, "Electronics"
        )
        self.assertEqual([p.title for p in kept], ["SSD Drive"])
        self.assertEqual(excluded, 2)

    def test_empty_category_keeps_all(self) -> None:
        """An empty category is no filter."""
        kept, excluded = ProductFilter.filter_by_category(self.products, "")
        self.assertEqual(len(kept), 3)
        self.assertEqual(excluded, 0)


if __name__ == "__main__":
    unittest.main()
