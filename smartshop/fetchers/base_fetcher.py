# smartshop/fetchers/base_fetcher.py

"""Abstract base class for all catalog fetchers."""

import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from smartshop.config.settings import Settings
from smartshop.filters.product_filter import ProductFilter
from smartshop.models.product import Product, Rating


class BaseFetcher(ABC):
    """Abstract base class for all catalog fetchers.

    Subclasses implement :meth:`_fetch_catalog`, which may raise freely;
    :meth:`fetch` is the public contract and never raises.
    """

    def __init__(self, source_name: str, id_prefix: str) -> None:
        self.source_name = source_name
        self.id_prefix = id_prefix
        self.logger = logging.getLogger(
            f"smartshop.{source_name}"
        )
        self.settings = Settings()
        self.session = curl_requests.Session(
            impersonate=self.settings.IMPERSONATE_BROWSER
        )
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0
        self._request_timeout: int = (
            self.settings.REQUEST_TIMEOUT
        )

    # ── Resilience ───────────────────────────────────────

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this request.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker enters
        a half-open state, allowing a single probe request through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "[%s] Circuit breaker half-open after %.0fs",
                self.source_name,
                elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        """Reset failure counters after a successful fetch."""
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0

    def _record_failure(self) -> None:
        """Track failure and open circuit breaker if needed."""
        self._consecutive_failures += 1
        threshold = self.settings.CIRCUIT_BREAKER_THRESHOLD
        if self._consecutive_failures >= threshold:
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            self.logger.error(
                "[%s] Circuit breaker opened after %d "
                "consecutive failures",
                self.source_name,
                self._consecutive_failures,
            )

    # ── Transport ────────────────────────────────────────

    def _fetch_get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> curl_requests.Response | None:
        """GET with retries and circuit breaker."""
        if self._check_circuit():
            return None
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    params=params,
                    headers=self.settings.DEFAULT_HEADERS,
                    timeout=self._request_timeout,
                )
                if resp.status_code == 200:
                    self._record_success()
                    return resp
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d",
                    self.source_name,
                    resp.status_code,
                    attempt + 1,
                )
            except Exception as exc:
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.source_name,
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
            time.sleep(
                self.settings.REQUEST_DELAY * (attempt + 1)
            )
        self._record_failure()
        return None

    def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Fetch and decode a JSON document.

        Falls back to cloudscraper when curl_cffi is exhausted.
        Returns ``None`` when both transports fail.
        """
        if self._check_circuit():
            return None

        resp = self._fetch_get(url, params)
        if resp is not None:
            return json.loads(resp.text)

        self.logger.info(
            "[%s] curl_cffi exhausted, falling back to cloudscraper",
            self.source_name,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            fallback_resp: Any = scraper.get(
                url,
                params=params,
                headers=self.settings.DEFAULT_HEADERS,
                timeout=self._request_timeout,
            )
            if fallback_resp.status_code == 200:
                return json.loads(str(fallback_resp.text))
        except Exception as e:
            self.logger.error(
                "[%s] cloudscraper fallback also failed: %s",
                self.source_name,
                e,
                exc_info=True,
            )

        return None

    # ── Normalisation helpers ────────────────────────────

    @staticmethod
    def extract_price(value: Any) -> float:
        """Coerce a price like ``109.95``, ``"$1,299.00"`` or ``None``."""
        if value is None or isinstance(value, bool):
            return 0.0
        if isinstance(value, (int, float)):
            return max(float(value), 0.0)
        cleaned = str(value).replace(",", "")
        numbers = re.findall(r"\d+\.?\d*", cleaned)
        return float(numbers[0]) if numbers else 0.0

    @staticmethod
    def normalize_rating(raw: Any, count: Any = 0) -> Rating:
        """Unify ``{"rate", "count"}`` dicts and bare numbers to a Rating."""
        try:
            if isinstance(raw, dict):
                return Rating(
                    rate=float(raw.get("rate", 0) or 0),
                    count=int(raw.get("count", 0) or 0),
                )
            if raw is None:
                return Rating()
            return Rating(rate=float(raw), count=int(count or 0))
        except (TypeError, ValueError):
            return Rating()

    def make_id(self, raw_id: Any) -> str:
        """Prefix a source-local id with this fetcher's tag."""
        return f"{self.id_prefix}_{raw_id}"

    def owns(self, product_id: str) -> bool:
        """True when *product_id* was issued by this fetcher."""
        return str(product_id).startswith(f"{self.id_prefix}_")

    # ── Public contract ──────────────────────────────────

    def fetch(self, query: str, limit: int) -> list[Product]:
        """Return up to *limit* products matching *query*.

        Never raises: any transport or parse failure yields ``[]``.
        """
        try:
            catalog = self._fetch_catalog()
            matched = ProductFilter.filter_by_query(catalog, query)
            self.logger.info(
                "[%s] %d/%d catalog items match '%s'",
                self.source_name,
                len(matched),
                len(catalog),
                query,
            )
            return matched[: max(limit, 0)]
        except Exception as e:
            self.logger.error(
                "[%s] Fetch failed: %s", self.source_name, e,
                exc_info=True,
            )
            return []

    def fetch_details(self, product_id: str) -> Product | None:
        """Look up a single product by its prefixed id."""
        if not self.owns(product_id):
            return None
        raw_id = str(product_id)[len(self.id_prefix) + 1:]
        try:
            data = self._get_json(f"{self.get_api_url()}/{raw_id}")
            if not isinstance(data, dict):
                return None
            return self._parse_item(data)
        except Exception as e:
            self.logger.error(
                "[%s] Detail lookup for %s failed: %s",
                self.source_name,
                product_id,
                e,
                exc_info=True,
            )
            return None

    @abstractmethod
    def get_api_url(self) -> str:
        """Return the catalog endpoint URL."""
        ...

    @abstractmethod
    def _parse_item(self, item: dict[str, Any]) -> Product:
        """Normalise one upstream record into a canonical Product."""
        ...

    @abstractmethod
    def _fetch_catalog(self) -> list[Product]:
        """Fetch one catalog page as canonical Products (may raise)."""
        ...
