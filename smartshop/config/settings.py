# smartshop/config/settings.py

"""Central configuration for the smartshop engine."""

import os
from pathlib import Path
from typing import Any

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the smartshop engine."""

    # --- Fetching ---
    REQUEST_DELAY: float = 0.5          # Base backoff between retries
    REQUEST_TIMEOUT: int = 10           # Seconds before a request times out
    FETCH_TIMEOUT: float = 12.0         # Per-fetcher budget in the aggregator
    MAX_RETRIES: int = 2                # Retry count on transient failures

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 60.0

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
    }

    # --- Aggregation ---
    DEFAULT_SEARCH_LIMIT: int = 20
    TRENDING_POOL_SIZE: int = 50
    DEDUP_KEY_LENGTH: int = 30

    # --- Offer synthesis ---
    # (name, price multiplier, reliability)
    STORE_ROSTER: list[tuple[str, float, float]] = [
        ("Amazon", 1.00, 0.95),
        ("eBay", 0.85, 0.90),
        ("Walmart", 0.92, 0.98),
        ("Target", 0.88, 0.96),
        ("Best Buy", 1.05, 0.94),
        ("Costco", 0.90, 0.97),
        ("Home Depot", 0.95, 0.93),
        ("Newegg", 1.02, 0.91),
    ]
    SHIPPING_OPTIONS: list[str] = [
        "Free Shipping",
        "Free 2-Day Shipping",
        "$4.99 Shipping",
        "$7.99 Shipping",
        "Free Pickup",
        "Same Day Delivery",
    ]
    MIN_OFFERS: int = 3
    MAX_OFFERS: int = 5
    PRICE_JITTER: tuple[float, float] = (0.9, 1.1)

    # --- Local state store ---
    MAX_COMPARE_ITEMS: int = 4
    MAX_RECENT_ITEMS: int = 50
    RECENT_MAX_AGE_DAYS: int = 30
    SEARCH_HISTORY_LIMIT: int = 20
    MIN_QUERY_LENGTH: int = 2
    EXPORT_VERSION: str = "1.0"
    AUTOSAVE_INTERVAL: float = 30.0     # Safety-net flush period
    SYNC_POLL_INTERVAL: float = 1.0     # External change polling period
    STORAGE_QUOTA_BYTES: int = int(
        os.getenv("SMARTSHOP_STORAGE_QUOTA", str(5 * 1024 * 1024))
    )
    DEFAULT_PREFERENCES: dict[str, Any] = {
        "theme": "light",
        "currency": "USD",
        "min_rating": 0.0,
        "sort_by": "relevance",
        "page_size": 20,
        "notifications": True,
        "price_alert_notifications": True,
        "auto_save": True,
        "max_recent_items": 50,
    }

    # --- Logging ---
    CONSOLE_LOG_LEVEL: str = os.getenv("SMARTSHOP_LOG_LEVEL", "WARNING")
    QUIET_LOGGERS: tuple[str, ...] = ("urllib3", "cloudscraper", "asyncio")

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    LOGS_DIR: Path = BASE_DIR / "logs"
    EXPORTS_DIR: Path = BASE_DIR / "exports"
    STATE_DB_PATH: Path = Path(
        os.getenv(
            "SMARTSHOP_STATE_DB",
            str(BASE_DIR / "data" / "state.db"),
        )
    )

    # --- Sources (registration order is result order) ---
    AVAILABLE_SOURCES: list[dict[str, str]] = [
        {
            "id": "fakestore",
            "label": "FakeStore",
            "fetcher": "smartshop.fetchers.fakestore_fetcher.FakeStoreFetcher",
        },
        {
            "id": "dummyjson",
            "label": "DummyJSON",
            "fetcher": "smartshop.fetchers.dummyjson_fetcher.DummyJsonFetcher",
        },
        {
            "id": "platzi",
            "label": "Platzi",
            "fetcher": "smartshop.fetchers.platzi_fetcher.PlatziFetcher",
        },
    ]
