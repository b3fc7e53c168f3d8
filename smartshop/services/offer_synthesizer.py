# smartshop/services/offer_synthesizer.py

"""Simulated multi-store price comparison for aggregated products."""

import logging
import random
from dataclasses import asdict

from smartshop.config.settings import Settings
from smartshop.models.product import (
    Availability,
    EnrichedProduct,
    Product,
    StoreOffer,
)

logger = logging.getLogger("smartshop.offers")


class OfferSynthesizer:
    """Generate competing store offers and derive deal fields.

    Prices are randomised on purpose: the comparison simulates retailers
    rather than scraping them. Pass a seeded ``random.Random`` for
    reproducible output.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()
        self.roster = Settings.STORE_ROSTER

    def _pick_stores(self) -> list[tuple[str, float, float]]:
        """Pick between MIN_OFFERS and MAX_OFFERS distinct stores."""
        upper = min(Settings.MAX_OFFERS, len(self.roster))
        lower = min(Settings.MIN_OFFERS, upper)
        count = self._rng.randint(lower, upper)
        return self._rng.sample(self.roster, count)

    def _make_offer(
        self,
        base_price: float,
        store: tuple[str, float, float],
    ) -> StoreOffer:
        """Price one store's offer as base x multiplier x jitter."""
        name, multiplier, reliability = store
        low, high = Settings.PRICE_JITTER
        jitter = self._rng.uniform(low, high)
        availability = (
            Availability.IN_STOCK
            if self._rng.random() < reliability
            else Availability.LIMITED
        )
        return StoreOffer(
            store=name,
            price=round(base_price * multiplier * jitter, 2),
            availability=availability,
            shipping=self._rng.choice(Settings.SHIPPING_OPTIONS),
            rating=round(4 + self._rng.random(), 1),
        )

    def enrich(self, product: Product) -> EnrichedProduct:
        """Attach sorted store offers and best/worst price fields."""
        base_price = max(product.price, 0.0)
        offers = sorted(
            (self._make_offer(base_price, s) for s in self._pick_stores()),
            key=lambda o: o.price,
        )

        best = offers[0].price
        worst = offers[-1].price
        discount = (
            round((worst - best) / worst * 100) if worst > 0 else 0
        )

        fields = asdict(product)
        fields["rating"] = product.rating
        fields.update(
            price=best,
            original_price=worst,
            store_offers=offers,
            best_deal=offers[0],
            discount=discount,
            savings=round(worst - best, 2),
        )
        enriched = EnrichedProduct(**fields)
        logger.debug(
            "Enriched %s with %d offers (best %.2f at %s)",
            product.id,
            len(offers),
            best,
            offers[0].store,
        )
        return enriched

    def enrich_all(self, products: list[Product]) -> list[EnrichedProduct]:
        """Enrich every product, preserving order."""
        return [self.enrich(p) for p in products]
