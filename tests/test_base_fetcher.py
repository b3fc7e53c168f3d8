# tests/test_base_fetcher.py

"""Tests for BaseFetcher resilience and normalisation helpers."""

import time
import unittest
from typing import Any
from unittest.mock import MagicMock, patch

from curl_cffi import requests as curl_requests

from smartshop.fetchers.base_fetcher import BaseFetcher
from smartshop.models.product import Product, Rating


class _StubFetcher(BaseFetcher):
    """Concrete fetcher exposing protected members for testing."""

    def __init__(self) -> None:
        super().__init__("stub", "st")
        self.catalog: list[Product] = []

    def get_api_url(self) -> str:
        return "https://example.com/products"

    def _parse_item(self, item: dict[str, Any]) -> Product:
        return Product(
            id=self.make_id(item["id"]),
            title=item["title"],
            price=self.extract_price(item.get("price")),
        )

    def _fetch_catalog(self) -> list[Product]:
        return self.catalog

    # --- Public accessors for protected state ---

    @property
    def circuit_open(self) -> bool:
        return self._circuit_open

    @circuit_open.setter
    def circuit_open(self, value: bool) -> None:
        self._circuit_open = value

    @property
    def circuit_opened_at(self) -> float:
        return self._circuit_opened_at

    @circuit_opened_at.setter
    def circuit_opened_at(self, value: float) -> None:
        self._circuit_opened_at = value

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    def fetch_get(self, url: str) -> curl_requests.Response | None:
        """Public wrapper for _fetch_get."""
        return self._fetch_get(url)


@patch("smartshop.fetchers.base_fetcher.curl_requests.Session")
class TestCircuitBreaker(unittest.TestCase):
    """Circuit breaker opens after consecutive failures."""

    def test_circuit_opens_after_threshold(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """After CIRCUIT_BREAKER_THRESHOLD failures, requests stop."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        fail_resp = MagicMock()
        fail_resp.status_code = 500
        mock_session.get.return_value = fail_resp

        fetcher = _StubFetcher()
        for _ in range(fetcher.settings.CIRCUIT_BREAKER_THRESHOLD):
            self.assertIsNone(fetcher.fetch_get("https://example.com"))
        self.assertTrue(fetcher.circuit_open)

        # Subsequent calls short-circuit immediately
        mock_session.get.reset_mock()
        self.assertIsNone(fetcher.fetch_get("https://example.com"))
        mock_session.get.assert_not_called()

    def test_retries_then_succeeds(self, mock_session_cls: MagicMock) -> None:
        """A 200 on a retry counts as success."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        fail_resp = MagicMock()
        fail_resp.status_code = 502
        ok_resp = MagicMock()
        ok_resp.status_code = 200
        mock_session.get.side_effect = [fail_resp, ok_resp]

        fetcher = _StubFetcher()
        self.assertIs(fetcher.fetch_get("https://example.com"), ok_resp)
        self.assertEqual(fetcher.consecutive_failures, 0)

    def test_exception_is_retried(self, mock_session_cls: MagicMock) -> None:
        """Transport exceptions count as a failed attempt."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        mock_session.get.side_effect = ConnectionError("reset")

        fetcher = _StubFetcher()
        self.assertIsNone(fetcher.fetch_get("https://example.com"))
        self.assertEqual(
            mock_session.get.call_count, fetcher.settings.MAX_RETRIES
        )
        self.assertEqual(fetcher.consecutive_failures, 1)

    def test_circuit_resets_after_cooldown(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """After the cooldown a probe goes through and resets on success."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        ok_resp = MagicMock()
        ok_resp.status_code = 200
        mock_session.get.return_value = ok_resp

        fetcher = _StubFetcher()
        fetcher.circuit_open = True
        cooldown = fetcher.settings.CIRCUIT_BREAKER_COOLDOWN
        fetcher.circuit_opened_at = time.time() - cooldown - 1

        self.assertIsNotNone(fetcher.fetch_get("https://example.com"))
        self.assertFalse(fetcher.circuit_open)

    def test_circuit_blocks_before_cooldown(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Before the cooldown elapses, no request is made."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session

        fetcher = _StubFetcher()
        fetcher.circuit_open = True
        fetcher.circuit_opened_at = time.time()

        self.assertIsNone(fetcher.fetch_get("https://example.com"))
        mock_session.get.assert_not_called()


class TestExtractPrice(unittest.TestCase):
    """extract_price coercion."""

    def test_values(self) -> None:
        """Numbers, currency strings and junk all coerce."""
        cases = [
            (109.95, 109.95),
            (64, 64.0),
            ("$1,299.00", 1299.0),
            ("64.00", 64.0),
            (None, 0.0),
            (True, 0.0),
            ("free", 0.0),
            (-5, 0.0),
        ]
        for raw, expected in cases:
            with self.subTest(raw=raw):
                self.assertEqual(BaseFetcher.extract_price(raw), expected)


class TestNormalizeRating(unittest.TestCase):
    """normalize_rating unifies rating shapes."""

    def test_dict_shape(self) -> None:
        """{rate, count} dicts pass through."""
        self.assertEqual(
            BaseFetcher.normalize_rating({"rate": 3.9, "count": 120}),
            Rating(3.9, 120),
        )

    def test_bare_number_with_count(self) -> None:
        """A bare number takes the separate count."""
        self.assertEqual(
            BaseFetcher.normalize_rating(4.5, count=7), Rating(4.5, 7)
        )

    def test_missing_or_garbage(self) -> None:
        """None and unparseable values become an empty rating."""
        self.assertEqual(BaseFetcher.normalize_rating(None), Rating())
        self.assertEqual(BaseFetcher.normalize_rating("n/a"), Rating())

    def test_out_of_range_clamped(self) -> None:
        """Rates above 5 are clamped."""
        self.assertEqual(BaseFetcher.normalize_rating(9).rate, 5.0)


@patch("smartshop.fetchers.base_fetcher.curl_requests.Session")
class TestFetchContract(unittest.TestCase):
    """fetch / fetch_details public contract."""

    def test_ids_and_ownership(self, mock_session_cls: MagicMock) -> None:
        """make_id prefixes; owns recognises only its own prefix."""
        fetcher = _StubFetcher()
        self.assertEqual(fetcher.make_id(7), "st_7")
        self.assertTrue(fetcher.owns("st_7"))
        self.assertFalse(fetcher.owns("fs_7"))
        self.assertFalse(fetcher.owns("stx_7"))

    def test_fetch_swallows_exceptions(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """A raising catalog call yields []."""
        fetcher = _StubFetcher()
        with patch.object(
            fetcher, "_fetch_catalog", side_effect=RuntimeError("boom"),
        ):
            self.assertEqual(fetcher.fetch("x", 5), [])

    def test_negative_limit_returns_nothing(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """A non-positive limit returns an empty list."""
        fetcher = _StubFetcher()
        fetcher.catalog = [Product(id="st_1", title="A", price=1.0)]
        self.assertEqual(fetcher.fetch("", -1), [])

    def test_fetch_details(self, mock_session_cls: MagicMock) -> None:
        """Details are looked up by raw id on the products endpoint."""
        mock_session = MagicMock()
        mock_session_cls.return_value = mock_session
        resp = MagicMock()
        resp.status_code = 200
        resp.text = '{"id": 42, "title": "Desk", "price": "120"}'
        mock_session.get.return_value = resp

        product = _StubFetcher().fetch_details("st_42")

        self.assertEqual(product, Product(id="st_42", title="Desk", price=120.0))
        self.assertEqual(
            mock_session.get.call_args.args[0],
            "https://example.com/products/42",
        )

    def test_fetch_details_foreign_id(
        self, mock_session_cls: MagicMock,
    ) -> None:
        """Ids issued by another fetcher are not looked up."""
        fetcher = _StubFetcher()
        self.assertIsNone(fetcher.fetch_details("fs_1"))
        fetcher.session.get.assert_not_called()


if __name__ == "__main__":
    unittest.main()
