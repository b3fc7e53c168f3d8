# smartshop/storage/validation.py

"""Shape rules for persisted collections.

The same rules run on startup load, on import, on backup restore and on
reload after an external change, so a collection that passes through any
of those paths ends up array-shaped with only id-bearing entries.
"""

import logging
from typing import Any

from smartshop.config.settings import Settings

logger = logging.getLogger("smartshop.validation")

FAVORITES = "favorites"
COMPARE = "compare_items"
RECENTLY_VIEWED = "recently_viewed"
PRICE_ALERTS = "price_alerts"
SEARCH_HISTORY = "search_history"
PREFERENCES = "user_preferences"

LIST_COLLECTIONS: tuple[str, ...] = (
    FAVORITES,
    COMPARE,
    RECENTLY_VIEWED,
    PRICE_ALERTS,
    SEARCH_HISTORY,
)
ALL_COLLECTIONS: tuple[str, ...] = (*LIST_COLLECTIONS, PREFERENCES)

_DAY_SECONDS = 24 * 60 * 60


def normalize_query(query: str) -> str:
    """Trim and lowercase a search query."""
    return query.strip().lower()


def normalize_id(value: Any) -> str:
    """Loose id form: ``1``, ``"1"`` and ``" 1 "`` all compare equal."""
    return str(value).strip()


def _has_id(item: Any) -> bool:
    return (
        isinstance(item, dict)
        and item.get("id") not in (None, "")
    )


def clean_records(raw: Any) -> list[dict[str, Any]]:
    """Coerce to a list of dicts that carry an id (ids become str)."""
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning(
                "Expected a list, got %s; resetting",
                type(raw).__name__,
            )
        return []
    kept: list[dict[str, Any]] = []
    for item in raw:
        if not _has_id(item):
            continue
        record = dict(item)
        record["id"] = normalize_id(record["id"])
        kept.append(record)
    dropped = len(raw) - len(kept)
    if dropped:
        logger.info("Dropped %d entries without an id", dropped)
    return kept


def evict_expired(
    records: list[dict[str, Any]],
    now: float,
    max_age_days: int = Settings.RECENT_MAX_AGE_DAYS,
) -> tuple[list[dict[str, Any]], int]:
    """Drop recently-viewed entries older than *max_age_days*.

    Entries without a usable ``viewed_at`` are kept; ``repair``
    backfills them.
    """
    cutoff = now - max_age_days * _DAY_SECONDS
    kept: list[dict[str, Any]] = []
    for record in records:
        stamp = record.get("viewed_at")
        if isinstance(stamp, (int, float)) and stamp < cutoff:
            continue
        kept.append(record)
    return kept, len(records) - len(kept)


def clean_recently_viewed(
    raw: Any,
    now: float,
    max_items: int = Settings.MAX_RECENT_ITEMS,
) -> list[dict[str, Any]]:
    """Records, age-evicted, capped to *max_items* (newest first)."""
    records, evicted = evict_expired(clean_records(raw), now)
    if evicted:
        logger.info("Evicted %d expired recently-viewed entries", evicted)
    return records[:max_items]


def clean_compare(raw: Any) -> list[dict[str, Any]]:
    """Records capped to the compare-set capacity."""
    records = clean_records(raw)
    if len(records) > Settings.MAX_COMPARE_ITEMS:
        logger.warning(
            "Compare set held %d items; truncating to %d",
            len(records),
            Settings.MAX_COMPARE_ITEMS,
        )
    return records[: Settings.MAX_COMPARE_ITEMS]


def clean_alerts(raw: Any) -> list[dict[str, Any]]:
    """Alerts that name a product; ids coerced to str.

    An alert's own ``id`` may be missing here; ``repair`` backfills it.
    """
    if not isinstance(raw, list):
        return []
    alerts: list[dict[str, Any]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        if item.get("product_id") in (None, ""):
            continue
        alert = dict(item)
        alert["product_id"] = normalize_id(alert["product_id"])
        if alert.get("id") not in (None, ""):
            alert["id"] = normalize_id(alert["id"])
        alerts.append(alert)
    dropped = len(raw) - len(alerts)
    if dropped:
        logger.info("Dropped %d alerts without a product id", dropped)
    alerts, superseded = drop_superseded_alerts(alerts)
    if superseded:
        logger.info("Dropped %d superseded active alerts", superseded)
    return alerts


def _is_pending(alert: dict[str, Any]) -> bool:
    return bool(alert.get("active")) and not alert.get("triggered")


def drop_superseded_alerts(
    alerts: list[dict[str, Any]],
) -> tuple[list[dict[str, Any]], int]:
    """Keep only the newest active, untriggered alert per product.

    Newest is the highest ``created_at``; on a tie the later entry
    wins. Triggered and deactivated alerts are history and all kept.
    """
    newest: dict[str, tuple[float, int]] = {}
    for idx, alert in enumerate(alerts):
        if not _is_pending(alert):
            continue
        stamp = alert.get("created_at")
        rank = (
            float(stamp)
            if isinstance(stamp, (int, float)) and not isinstance(stamp, bool)
            else 0.0,
            idx,
        )
        current = newest.get(alert["product_id"])
        if current is None or rank >= current:
            newest[alert["product_id"]] = rank
    keep = {idx for _, idx in newest.values()}
    kept = [
        alert for idx, alert in enumerate(alerts)
        if not _is_pending(alert) or idx in keep
    ]
    return kept, len(alerts) - len(kept)


def is_complete_alert(alert: dict[str, Any]) -> bool:
    """An alert is usable when it has id, product and positive target."""
    target = alert.get("target_price")
    return (
        bool(alert.get("id"))
        and bool(alert.get("product_id"))
        and isinstance(target, (int, float))
        and not isinstance(target, bool)
        and target > 0
    )


def clean_search_history(raw: Any) -> list[dict[str, Any]]:
    """Normalised, unique, most-recent-first, capped query entries.

    Bare strings (the legacy shape) are accepted and upgraded.
    """
    if not isinstance(raw, list):
        return []
    seen: set[str] = set()
    kept: list[dict[str, Any]] = []
    for item in raw:
        if isinstance(item, str):
            query, stamp = item, 0.0
        elif isinstance(item, dict) and isinstance(item.get("query"), str):
            query = item["query"]
            stamp = item.get("timestamp", 0.0)
            if not isinstance(stamp, (int, float)):
                stamp = 0.0
        else:
            continue
        normalized = normalize_query(query)
        if len(normalized) < Settings.MIN_QUERY_LENGTH:
            continue
        if normalized in seen:
            continue
        seen.add(normalized)
        kept.append({"query": normalized, "timestamp": stamp})
    return kept[: Settings.SEARCH_HISTORY_LIMIT]


def is_valid_preference(key: str, value: Any) -> bool:
    """Known key and a value of the default's type."""
    if key not in Settings.DEFAULT_PREFERENCES:
        return False
    default = Settings.DEFAULT_PREFERENCES[key]
    if isinstance(default, bool):
        return isinstance(value, bool)
    if isinstance(value, bool):
        return False
    if isinstance(default, float):
        return isinstance(value, (int, float))
    if isinstance(default, int):
        return isinstance(value, int) and value > 0
    return isinstance(value, type(default))


def clean_preferences(raw: Any) -> dict[str, Any]:
    """Defaults overlaid with every valid stored preference."""
    prefs = dict(Settings.DEFAULT_PREFERENCES)
    if not isinstance(raw, dict):
        return prefs
    for key, value in raw.items():
        if is_valid_preference(key, value):
            prefs[key] = value
        else:
            logger.debug("Ignoring stored preference %r=%r", key, value)
    return prefs


def validate_collection(
    name: str,
    raw: Any,
    now: float,
    max_recent: int = Settings.MAX_RECENT_ITEMS,
) -> Any:
    """Apply the shape rules for collection *name* to *raw*."""
    if name == FAVORITES:
        return clean_records(raw)
    if name == COMPARE:
        return clean_compare(raw)
    if name == RECENTLY_VIEWED:
        return clean_recently_viewed(raw, now, max_recent)
    if name == PRICE_ALERTS:
        return clean_alerts(raw)
    if name == SEARCH_HISTORY:
        return clean_search_history(raw)
    if name == PREFERENCES:
        return clean_preferences(raw)
    raise KeyError(f"Unknown collection: {name}")


def default_value(name: str) -> Any:
    """Empty value for collection *name*."""
    if name == PREFERENCES:
        return dict(Settings.DEFAULT_PREFERENCES)
    return []
