# smartshop/services/health_checker.py

"""Catalog source connectivity health checker."""

import asyncio
import logging
import time
from dataclasses import dataclass

from smartshop.config.settings import Settings
from smartshop.services.aggregator import load_fetcher_class

logger = logging.getLogger("smartshop.health")

_HEALTH_TIMEOUT = 10  # seconds per source
_SLOW_MS = 5000


@dataclass
class HealthResult:
    """Result of a single source health check."""

    source_id: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


def probe_source(source: dict[str, str]) -> HealthResult:
    """Probe one catalog API endpoint for connectivity."""
    source_id = source["id"]
    try:
        fetcher = load_fetcher_class(source["fetcher"])()
    except Exception as exc:
        return HealthResult(
            source_id=source_id,
            status="down",
            latency_ms=0.0,
            message=f"Failed to load fetcher: {exc}",
        )

    start = time.monotonic()
    try:
        resp = fetcher.session.get(
            fetcher.get_api_url(),
            params={"limit": 1},
            headers=fetcher.settings.DEFAULT_HEADERS,
            timeout=_HEALTH_TIMEOUT,
        )
        elapsed_ms = (time.monotonic() - start) * 1000
    except Exception as exc:
        return HealthResult(
            source_id=source_id,
            status="down",
            latency_ms=(time.monotonic() - start) * 1000,
            message=str(exc)[:80],
        )

    if resp.status_code != 200:
        return HealthResult(source_id, "down", elapsed_ms, f"HTTP {resp.status_code}")
    if elapsed_ms > _SLOW_MS:
        return HealthResult(source_id, "slow", elapsed_ms, "High latency")
    return HealthResult(source_id, "ok", elapsed_ms, "")


class HealthChecker:
    """Runs concurrent health probes against all sources."""

    def __init__(self, sources: list[dict[str, str]] | None = None) -> None:
        self.sources = sources or Settings.AVAILABLE_SOURCES

    async def check_all(self) -> list[HealthResult]:
        """Probe every registered source concurrently."""
        results: list[HealthResult] = list(
            await asyncio.gather(
                *(asyncio.to_thread(probe_source, src) for src in self.sources)
            )
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.source_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
