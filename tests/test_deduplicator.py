# tests/test_deduplicator.py

"""Tests for ProductDeduplicator cross-source deduplication."""

import unittest

from smartshop.filters.deduplicator import ProductDeduplicator
from smartshop.models.product import Product


def _make(title: str, pid: str = "x", source: str = "test") -> Product:
    """Create a minimal Product."""
    return Product(id=pid, title=title, price=10.0, source=source)


class TestDedupKey(unittest.TestCase):
    """dedup_key normalisation."""

    def test_case_insensitive(self) -> None:
        """Keys ignore case."""
        self.assertEqual(
            ProductDeduplicator.dedup_key("Blue MUG"),
            ProductDeduplicator.dedup_key("blue mug"),
        )

    def test_truncated_to_thirty_chars(self) -> None:
        """Only the first 30 characters count."""
        key = ProductDeduplicator.dedup_key("A" * 50)
        self.assertEqual(len(key), 30)


class TestDeduplicate(unittest.TestCase):
    """ProductDeduplicator.deduplicate behaviour."""

    def test_empty_list(self) -> None:
        """Empty input returns empty output."""
        kept, removed = ProductDeduplicator.deduplicate([])
        self.assertEqual(kept, [])
        self.assertEqual(removed, 0)

    def test_no_duplicates(self) -> None:
        """Unique titles are all kept."""
        kept, removed = ProductDeduplicator.deduplicate(
            [_make("Alpha"), _make("Beta")]
        )
        self.assertEqual(len(kept), 2)
        self.assertEqual(removed, 0)

    def test_first_occurrence_wins(self) -> None:
        """An earlier source beats a later one on collision."""
        kept, removed = ProductDeduplicator.deduplicate([
            _make("Wireless Mouse", "fs_1", "a"),
            _make("WIRELESS MOUSE", "dj_1", "b"),
        ])
        self.assertEqual([p.id for p in kept], ["fs_1"])
        self.assertEqual(removed, 1)

    def test_shared_long_prefix_collides(self) -> None:
        """Titles equal in the first 30 chars are duplicates."""
        prefix = "Mens Casual Premium Slim Fit T"
        kept, _ = ProductDeduplicator.deduplicate([
            _make(prefix + "-Shirts", "a"),
            _make(prefix + " Shirt Navy", "b"),
        ])
        self.assertEqual(len(kept), 1)

    def test_order_preserved(self) -> None:
        """Relative input order survives."""
        titles = ["Gamma", "Alpha", "gamma", "Beta", "alpha"]
        kept, removed = ProductDeduplicator.deduplicate(
            [_make(t, str(i)) for i, t in enumerate(titles)]
        )
        self.assertEqual([p.title for p in kept], ["Gamma", "Alpha", "Beta"])
        self.assertEqual(removed, 2)


if __name__ == "__main__":
    unittest.main()
