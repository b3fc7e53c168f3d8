# smartshop/filters/deduplicator.py

"""Product deduplication across multiple catalog sources."""

import logging

from smartshop.config.settings import Settings
from smartshop.models.product import Product

logger = logging.getLogger("smartshop.filters")


class ProductDeduplicator:
    """Remove duplicate listings by a case-insensitive title prefix."""

    @staticmethod
    def dedup_key(title: str) -> str:
        """Lowercased first ``DEDUP_KEY_LENGTH`` characters of the title."""
        return title.lower()[: Settings.DEDUP_KEY_LENGTH]

    @staticmethod
    def deduplicate(
        products: list[Product],
    ) -> tuple[list[Product], int]:
        """Keep the first product per dedup key, preserving input order.

        Sources are concatenated in registration order before this
        runs, so an earlier source wins a collision.

        Returns the deduplicated list and the count of removed dupes.
        """
        if not products:
            return [], 0

        seen: set[str] = set()
        kept: list[Product] = []
        removed = 0

        for product in products:
            key = ProductDeduplicator.dedup_key(product.title)
            if key in seen:
                removed += 1
                continue
            seen.add(key)
            kept.append(product)

        if removed:
            logger.info(
                "Deduplication removed %d duplicate products",
                removed,
            )

        return kept, removed
