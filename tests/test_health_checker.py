# tests/test_health_checker.py

"""Tests for the catalog source health checker."""

import unittest
from unittest.mock import MagicMock, patch

from smartshop.services.health_checker import (
    HealthChecker,
    HealthResult,
    probe_source,
)

_SOURCE = {
    "id": "fakestore",
    "label": "FakeStore",
    "fetcher": "smartshop.fetchers.fakestore_fetcher.FakeStoreFetcher",
}


def _mock_fetcher(status_code: int = 200) -> MagicMock:
    fetcher = MagicMock()
    fetcher.get_api_url.return_value = "https://fakestoreapi.com/products"
    fetcher.settings.DEFAULT_HEADERS = {}
    fetcher.session.get.return_value = MagicMock(status_code=status_code)
    return fetcher


@patch("smartshop.services.health_checker.load_fetcher_class")
class TestProbeSource(unittest.TestCase):
    """Tests for the per-source health probe function."""

    def test_ok_status(self, mock_load: MagicMock) -> None:
        """A fast 200 response is 'ok' and hits the API endpoint."""
        fetcher = _mock_fetcher()
        mock_load.return_value = MagicMock(return_value=fetcher)

        result = probe_source(_SOURCE)

        self.assertEqual(result.status, "ok")
        self.assertEqual(result.source_id, "fakestore")
        self.assertEqual(
            fetcher.session.get.call_args.args[0],
            "https://fakestoreapi.com/products",
        )

    def test_down_on_http_error(self, mock_load: MagicMock) -> None:
        """A non-200 response is 'down'."""
        mock_load.return_value = MagicMock(return_value=_mock_fetcher(503))
        result = probe_source(_SOURCE)
        self.assertEqual(result.status, "down")
        self.assertIn("503", result.message)

    def test_down_on_exception(self, mock_load: MagicMock) -> None:
        """A network error is 'down' with the message kept."""
        fetcher = _mock_fetcher()
        fetcher.session.get.side_effect = ConnectionError("Connection refused")
        mock_load.return_value = MagicMock(return_value=fetcher)
        result = probe_source(_SOURCE)
        self.assertEqual(result.status, "down")
        self.assertIn("Connection refused", result.message)

    def test_slow_on_high_latency(self, mock_load: MagicMock) -> None:
        """Responses over 5 s are 'slow'."""
        mock_load.return_value = MagicMock(return_value=_mock_fetcher())
        with patch(
            "smartshop.services.health_checker.time.monotonic",
            side_effect=[100.0, 106.0],
        ):
            result = probe_source(_SOURCE)
        self.assertEqual(result.status, "slow")
        self.assertAlmostEqual(result.latency_ms, 6000.0)

    def test_load_failure(self, mock_load: MagicMock) -> None:
        """An unloadable fetcher is 'down' with zero latency."""
        mock_load.side_effect = ImportError("no module")
        result = probe_source(_SOURCE)
        self.assertEqual(result.status, "down")
        self.assertEqual(result.latency_ms, 0.0)
        self.assertIn("no module", result.message)


class TestHealthChecker(unittest.IsolatedAsyncioTestCase):
    """check_all probes every source."""

    async def test_check_all_preserves_order(self) -> None:
        """One result per source, in registry order."""
        sources = [
            {"id": "one", "fetcher": "x.One"},
            {"id": "two", "fetcher": "x.Two"},
        ]
        with patch(
            "smartshop.services.health_checker.probe_source",
            side_effect=lambda src: HealthResult(src["id"], "ok", 1.0, ""),
        ):
            results = await HealthChecker(sources).check_all()
        self.assertEqual([r.source_id for r in results], ["one", "two"])


if __name__ == "__main__":
    unittest.main()
