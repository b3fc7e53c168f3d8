# smartshop/filters/product_filter.py

"""Local query and category matching for catalog listings."""

import logging

from smartshop.models.product import Product

logger = logging.getLogger("smartshop.filters")


class ProductFilter:
    """Match products against a free-text query or a category name."""

    @staticmethod
    def matches_query(product: Product, query: str) -> bool:
        """Case-insensitive substring match on the searchable fields.

        An empty query matches everything.
        """
        needle = query.strip().lower()
        if not needle:
            return True
        haystacks = (
            product.title,
            product.category,
            product.description,
            product.brand or "",
        )
        return any(needle in h.lower() for h in haystacks)

    @staticmethod
    def filter_by_query(
        products: list[Product],
        query: str,
    ) -> list[Product]:
        """Keep products matching *query* on any searchable field."""
        return [
            p for p in products
            if ProductFilter.matches_query(p, query)
        ]

    @staticmethod
    def filter_by_title(
        products: list[Product],
        query: str,
    ) -> list[Product]:
        """Keep products whose title contains *query*."""
        needle = query.strip().lower()
        if not needle:
            return list(products)
        return [p for p in products if needle in p.title.lower()]

    @staticmethod
    def filter_by_category(
        products: list[Product],
        category: str,
    ) -> tuple[list[Product], int]:
        """Keep products whose category contains *category*.

        Returns the kept list and the count of excluded products.
        """
        needle = category.strip().lower()
        if not needle:
            return list(products), 0

        kept = [p for p in products if needle in p.category.lower()]
        excluded = len(products) - len(kept)
        if excluded:
            logger.debug(
                "Category filter '%s' excluded %d products",
                category,
                excluded,
            )
        return kept, excluded
