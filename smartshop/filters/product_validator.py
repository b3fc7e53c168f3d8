# smartshop/filters/product_validator.py

"""Product validation: drop malformed listings before merging."""

import logging

from smartshop.models.product import Product

logger = logging.getLogger("smartshop.filters")


class ProductValidator:
    """Validate products and drop those with missing essential fields."""

    @staticmethod
    def validate(
        products: list[Product],
    ) -> tuple[list[Product], int]:
        """Drop products with no id, an empty title or a negative price.

        Zero is a legal price (free items); negative is not.
        Returns the valid products and the count of dropped items.
        """
        valid: list[Product] = []
        dropped = 0

        for product in products:
            if not product.id:
                logger.debug(
                    "Dropped product without id (source=%s, title=%s)",
                    product.source,
                    product.title,
                )
                dropped += 1
                continue
            if not product.title.strip():
                logger.debug(
                    "Dropped product with empty title (id=%s)",
                    product.id,
                )
                dropped += 1
                continue
            if product.price < 0:
                logger.debug(
                    "Dropped product with negative price "
                    "(id=%s, price=%s)",
                    product.id,
                    product.price,
                )
                dropped += 1
                continue
            valid.append(product)

        if dropped:
            logger.info(
                "Validation dropped %d invalid products",
                dropped,
            )

        return valid, dropped
