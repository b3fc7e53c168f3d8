# smartshop/services/aggregator.py

"""Fans a query out to every catalog fetcher and merges the results."""

import asyncio
import importlib
import logging
import math
import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from smartshop.config.settings import Settings
from smartshop.fetchers.base_fetcher import BaseFetcher
from smartshop.fetchers.fallback_catalog import (
    fallback_by_category,
    fallback_products,
)
from smartshop.filters.deduplicator import ProductDeduplicator
from smartshop.filters.product_filter import ProductFilter
from smartshop.filters.product_validator import ProductValidator
from smartshop.models.product import EnrichedProduct, Product
from smartshop.services.offer_synthesizer import OfferSynthesizer

logger = logging.getLogger("smartshop.aggregator")


class SourceStatus(str, Enum):
    """Whether the last aggregation used live sources."""

    ONLINE = "online"      # every fetcher contributed
    LIMITED = "limited"    # some fetchers contributed
    OFFLINE = "offline"    # fallback catalog served


@dataclass
class SearchResult:
    """Container for one completed aggregation call."""

    query: str
    products: list[EnrichedProduct] = field(
        default_factory=lambda: list[EnrichedProduct]()
    )
    status: SourceStatus = SourceStatus.ONLINE
    sources_ok: list[str] = field(
        default_factory=lambda: list[str]()
    )
    sources_failed: list[str] = field(
        default_factory=lambda: list[str]()
    )
    deduplicated_count: int = 0
    invalid_count: int = 0
    total_before_dedup: int = 0
    used_fallback: bool = False
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )


def load_fetcher_class(dotted_path: str) -> type[Any]:
    """Dynamically import a fetcher class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def build_fetchers(
    sources: list[dict[str, str]] | None = None,
) -> list[BaseFetcher]:
    """Instantiate fetchers from the source registry, in order."""
    fetchers: list[BaseFetcher] = []
    for src in sources or Settings.AVAILABLE_SOURCES:
        fetcher_cls = load_fetcher_class(src["fetcher"])
        fetchers.append(fetcher_cls())
    return fetchers


class Aggregator:
    """Coordinates concurrent fetching, dedup and offer synthesis."""

    def __init__(
        self,
        fetchers: list[BaseFetcher] | None = None,
        synthesizer: OfferSynthesizer | None = None,
        rng: random.Random | None = None,
        fetch_timeout: float | None = None,
    ) -> None:
        self.fetchers = (
            fetchers if fetchers is not None else build_fetchers()
        )
        self._rng = rng or random.Random()
        self.synthesizer = synthesizer or OfferSynthesizer(self._rng)
        self.fetch_timeout = (
            fetch_timeout
            if fetch_timeout is not None
            else Settings.FETCH_TIMEOUT
        )
        self._last_status = SourceStatus.ONLINE

    @property
    def last_status(self) -> SourceStatus:
        """Status of the most recent aggregation call."""
        return self._last_status

    # ── Private helpers ──────────────────────────────────

    async def _run_fetchers(
        self,
        query: str,
        per_source_limit: int,
        result: SearchResult,
    ) -> list[Product]:
        """Run every fetcher concurrently and wait for all to settle.

        Batches are concatenated in registration order regardless of
        completion order.
        """
        async def run_one(fetcher: BaseFetcher) -> list[Product]:
            return await asyncio.wait_for(
                asyncio.to_thread(
                    fetcher.fetch, query, per_source_limit
                ),
                timeout=self.fetch_timeout,
            )

        batches = await asyncio.gather(
            *(run_one(f) for f in self.fetchers),
            return_exceptions=True,
        )

        products: list[Product] = []
        for fetcher, batch in zip(self.fetchers, batches):
            if isinstance(batch, list) and batch:
                products.extend(batch)
                result.sources_ok.append(fetcher.source_name)
                continue
            result.sources_failed.append(fetcher.source_name)
            if isinstance(batch, asyncio.TimeoutError):
                msg = (
                    f"{fetcher.source_name}: timed out after "
                    f"{self.fetch_timeout:.0f}s"
                )
                result.errors.append(msg)
                logger.warning("Fetcher %s", msg)
            elif isinstance(batch, BaseException):
                result.errors.append(f"{fetcher.source_name}: {batch}")
                logger.error(
                    "Fetcher %s raised for query '%s': %s",
                    fetcher.source_name,
                    query,
                    batch,
                    exc_info=batch,
                )
            else:
                logger.info(
                    "Fetcher %s returned no products for '%s'",
                    fetcher.source_name,
                    query,
                )
        return products

    def _finish(
        self,
        result: SearchResult,
        products: list[Product],
        limit: int,
    ) -> SearchResult:
        """Validate, dedup, cap and enrich; decide the status."""
        products, result.invalid_count = ProductValidator.validate(
            products
        )
        result.total_before_dedup = len(products)
        unique, result.deduplicated_count = (
            ProductDeduplicator.deduplicate(products)
        )
        result.products = self.synthesizer.enrich_all(unique[:limit])

        if result.used_fallback:
            result.status = SourceStatus.OFFLINE
        elif result.sources_failed:
            result.status = SourceStatus.LIMITED
        else:
            result.status = SourceStatus.ONLINE
        self._last_status = result.status
        logger.info(
            "Aggregation for '%s': %d products, status=%s, "
            "ok=%s, failed=%s",
            result.query,
            len(result.products),
            result.status.value,
            result.sources_ok,
            result.sources_failed,
        )
        return result

    def _per_source_limit(self, limit: int) -> int:
        """Fair share of *limit* per fetcher, rounded up."""
        return max(math.ceil(limit / max(len(self.fetchers), 1)), 1)

    # ── Public contract ──────────────────────────────────

    async def search(
        self,
        query: str,
        limit: int = Settings.DEFAULT_SEARCH_LIMIT,
    ) -> SearchResult:
        """Search every source and return merged, enriched products.

        Succeeds when at least one fetcher returns data; otherwise the
        embedded fallback catalog (filtered by *query*) is served.
        """
        result = SearchResult(query=query)
        if limit <= 0:
            return result

        products = await self._run_fetchers(
            query, self._per_source_limit(limit), result
        )
        if not products:
            logger.warning(
                "No live results for '%s', serving fallback catalog",
                query,
            )
            result.used_fallback = True
            products = fallback_products(query)
        return self._finish(result, products, limit)

    async def trending(self, limit: int = 10) -> SearchResult:
        """Highly rated products in a deliberately shuffled order.

        Ordering is not stable across calls.
        """
        pool = await self.search("", Settings.TRENDING_POOL_SIZE)
        ranked = sorted(
            pool.products,
            key=lambda p: p.rating.rate,
            reverse=True,
        )
        # Shuffle within the top band so rating still matters
        candidates = ranked[: limit * 2]
        self._rng.shuffle(candidates)
        pool.products = candidates[:limit]
        pool.query = ""
        return pool

    async def by_category(
        self,
        category: str,
        limit: int = Settings.DEFAULT_SEARCH_LIMIT,
    ) -> SearchResult:
        """Products whose category contains *category*."""
        result = SearchResult(query=category)
        if limit <= 0:
            return result

        products = await self._run_fetchers("", limit, result)
        products, _ = ProductFilter.filter_by_category(
            products, category
        )
        if not products:
            logger.warning(
                "No live results for category '%s', "
                "serving fallback catalog",
                category,
            )
            result.used_fallback = True
            products = fallback_by_category(category)
        return self._finish(result, products, limit)

    async def get_product_details(
        self, product_id: str,
    ) -> EnrichedProduct | None:
        """Look up one product by id via the fetcher that issued it."""
        for fetcher in self.fetchers:
            if fetcher.owns(product_id):
                try:
                    product = await asyncio.wait_for(
                        asyncio.to_thread(
                            fetcher.fetch_details, product_id
                        ),
                        timeout=self.fetch_timeout,
                    )
                except asyncio.TimeoutError:
                    logger.warning(
                        "Detail lookup for %s timed out", product_id
                    )
                    return None
                return (
                    self.synthesizer.enrich(product)
                    if product is not None
                    else None
                )
        logger.warning("Unknown product source for id %s", product_id)
        return None
