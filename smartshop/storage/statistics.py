# smartshop/storage/statistics.py

"""Usage statistics derived from local state collections."""

import json
import random
from collections import Counter
from datetime import date, timedelta
from typing import Any

_DAY = 24 * 60 * 60
_WEEK = 7 * _DAY


def _within(records: list[dict[str, Any]], field: str, now: float, window: float) -> int:
    return sum(
        1 for r in records
        if isinstance(r.get(field), (int, float))
        and now - r[field] < window
    )


def collection_statistics(
    data: dict[str, Any],
    now: float,
    max_compare: int,
) -> dict[str, dict[str, int]]:
    """Counts per collection, with today / this-week breakdowns."""
    favorites = data["favorites"]
    recent = data["recently_viewed"]
    alerts = data["price_alerts"]
    history = data["search_history"]
    return {
        "favorites": {
            "total": len(favorites),
            "added_today": _within(favorites, "added_at", now, _DAY),
            "added_this_week": _within(favorites, "added_at", now, _WEEK),
        },
        "recently_viewed": {
            "total": len(recent),
            "viewed_today": _within(recent, "viewed_at", now, _DAY),
            "viewed_this_week": _within(recent, "viewed_at", now, _WEEK),
        },
        "price_alerts": {
            "total": len(alerts),
            "active": sum(
                1 for a in alerts
                if a.get("active") and not a.get("triggered")
            ),
            "triggered": sum(1 for a in alerts if a.get("triggered")),
        },
        "search_history": {
            "total": len(history),
            "unique_queries": len({h["query"] for h in history}),
        },
        "compare_items": {
            "current": len(data["compare_items"]),
            "max_allowed": max_compare,
        },
    }


def most_viewed_categories(
    recent: list[dict[str, Any]], limit: int = 5,
) -> list[tuple[str, int]]:
    """Most frequent categories in the recently-viewed trail."""
    counts = Counter(
        r["category"] for r in recent if r.get("category")
    )
    return counts.most_common(limit)


def top_brands(
    records: list[dict[str, Any]], limit: int = 5,
) -> list[tuple[str, int]]:
    """Most frequent brands across the given records."""
    counts = Counter(r["brand"] for r in records if r.get("brand"))
    return counts.most_common(limit)


def storage_usage(data: dict[str, Any]) -> dict[str, Any]:
    """Serialised size and item count per collection."""
    individual: dict[str, dict[str, Any]] = {}
    total = 0
    for name, value in data.items():
        size = len(json.dumps(value))
        individual[name] = {
            "size": size,
            "size_formatted": format_bytes(size),
            "items": len(value) if isinstance(value, list) else None,
        }
        total += size
    return {
        "individual": individual,
        "total": {"size": total, "size_formatted": format_bytes(total)},
    }


def format_bytes(size: int) -> str:
    """Human-readable byte count (``1536`` -> ``"1.5 KB"``)."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    idx = 0
    while value >= 1024 and idx < len(units) - 1:
        value /= 1024
        idx += 1
    return f"{round(value, 2):g} {units[idx]}"


def related_records(
    anchor: dict[str, Any],
    pool: list[dict[str, Any]],
    limit: int,
) -> list[dict[str, Any]]:
    """Records sharing *anchor*'s category or brand, first seen wins."""
    category = anchor.get("category")
    brand = anchor.get("brand")
    seen = {anchor.get("id")}
    related: list[dict[str, Any]] = []
    for record in pool:
        if record.get("id") in seen:
            continue
        if (category and record.get("category") == category) or (
            brand and record.get("brand") == brand
        ):
            seen.add(record.get("id"))
            related.append(record)
        if len(related) >= limit:
            break
    return related


def simulated_price_history(
    current_price: float | None,
    days: int,
    today: date,
    rng: random.Random,
) -> list[dict[str, Any]]:
    """Daily prices for the last *days* days, oldest first.

    Each day varies up to 10% around the base. With a known
    *current_price* that is the base and today's point; otherwise a
    base between 50 and 550 is drawn.
    """
    base = current_price if current_price else rng.uniform(50, 550)
    history: list[dict[str, Any]] = []
    for offset in range(max(days, 0), -1, -1):
        if offset == 0 and current_price:
            price = current_price
        else:
            price = base * (1 + (rng.random() - 0.5) * 0.2)
        history.append({
            "date": (today - timedelta(days=offset)).isoformat(),
            "price": round(price, 2),
        })
    return history
