# tests/test_product_model.py

"""Tests for the product dataclasses."""

import json
import unittest

from smartshop.models.product import (
    Availability,
    EnrichedProduct,
    Product,
    Rating,
    StoreOffer,
)


class TestRating(unittest.TestCase):
    """Rating clamps into its legal range."""

    def test_defaults(self) -> None:
        """An empty rating is {0, 0}."""
        self.assertEqual(Rating(), Rating(rate=0.0, count=0))

    def test_rate_clamped(self) -> None:
        """Rates outside [0, 5] are pinned to the bounds."""
        self.assertEqual(Rating(rate=7.2).rate, 5.0)
        self.assertEqual(Rating(rate=-1).rate, 0.0)

    def test_count_never_negative(self) -> None:
        """Negative counts become zero."""
        self.assertEqual(Rating(rate=4.0, count=-3).count, 0)


class TestProductModel(unittest.TestCase):
    """Product dataclass unit tests."""

    def test_defaults(self) -> None:
        """Optional fields default to expected values."""
        product = Product(id="fs_1", title="X", price=1.0)
        self.assertEqual(product.original_price, 0.0)
        self.assertEqual(product.category, "")
        self.assertIsNone(product.brand)
        self.assertEqual(product.rating, Rating())

    def test_to_dict_is_json_ready(self) -> None:
        """to_dict output serialises without a custom encoder."""
        product = Product(
            id="dj_3", title="Lamp", price=20.0,
            rating=Rating(rate=4.1, count=9),
        )
        data = json.loads(json.dumps(product.to_dict()))
        self.assertEqual(data["rating"], {"rate": 4.1, "count": 9})
        self.assertEqual(data["id"], "dj_3")


class TestEnrichedProduct(unittest.TestCase):
    """EnrichedProduct extras."""

    def _offer(self, store: str, price: float) -> StoreOffer:
        return StoreOffer(
            store=store, price=price,
            availability=Availability.LIMITED,
            shipping="Free Shipping", rating=4.5,
        )

    def test_total_stores(self) -> None:
        """total_stores counts the offers."""
        offers = [self._offer("Amazon", 9.0), self._offer("eBay", 10.0)]
        product = EnrichedProduct(
            id="fs_1", title="T", price=9.0, store_offers=offers,
            best_deal=offers[0],
        )
        self.assertEqual(product.total_stores, 2)

    def test_to_dict_uses_enum_values(self) -> None:
        """Availability serialises as its display string."""
        offer = self._offer("Target", 5.0)
        product = EnrichedProduct(
            id="fs_1", title="T", price=5.0,
            store_offers=[offer], best_deal=offer,
        )
        data = product.to_dict()
        self.assertEqual(
            data["store_offers"][0]["availability"], "Limited Stock"
        )
        self.assertEqual(data["best_deal"]["availability"], "Limited Stock")
        json.dumps(data)


if __name__ == "__main__":
    unittest.main()
