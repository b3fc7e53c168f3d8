# smartshop/storage/state_store.py

"""Durable, validated, capacity-bounded store for user curation state.

Six collections live here: favorites, the compare set, the
recently-viewed trail, price alerts, search history and preferences.
Every mutation writes its one collection straight back to storage and
then announces a :class:`ChangeEvent`; no-ops neither write nor publish.
"""

import copy
import json
import logging
import math
import random
import time
import uuid
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any

from smartshop.config.settings import Settings
from smartshop.models.product import Product
from smartshop.services.notifier import (
    DATA_CHANGED,
    STORE_READY,
    ChangeEvent,
    ChangeNotifier,
)
from smartshop.storage import statistics
from smartshop.storage.kv_storage import KeyValueStorage, StorageWriteError
from smartshop.storage.validation import (
    ALL_COLLECTIONS,
    COMPARE,
    FAVORITES,
    LIST_COLLECTIONS,
    PREFERENCES,
    PRICE_ALERTS,
    RECENTLY_VIEWED,
    SEARCH_HISTORY,
    default_value,
    drop_superseded_alerts,
    evict_expired,
    is_complete_alert,
    is_valid_preference,
    normalize_id,
    normalize_query,
    validate_collection,
)

logger = logging.getLogger("smartshop.state")

BACKUP_KEY = "state_backup"
ALL = "all"

_ALERT_FIELDS: frozenset[str] = frozenset(
    {"product_title", "target_price", "active"}
)
_FAVORITE_SORTS: dict[str, tuple[str, bool]] = {
    "newest": ("added_at", True),
    "oldest": ("added_at", False),
    "price_low": ("price", False),
    "price_high": ("price", True),
}


@dataclass
class ImportResult:
    """Outcome of :meth:`LocalStateStore.import_data`."""

    success: bool
    imported: dict[str, int] = field(
        default_factory=lambda: dict[str, int]()
    )
    rejected: list[str] = field(default_factory=lambda: list[str]())
    error: str = ""


@dataclass
class RestoreResult:
    """Outcome of :meth:`LocalStateStore.restore_from_backup`."""

    success: bool
    backup_date: datetime | None = None
    restored: list[str] = field(default_factory=lambda: list[str]())
    error: str = ""


@dataclass
class RepairReport:
    """What :meth:`LocalStateStore.repair` changed."""

    duplicates_removed: int = 0
    alerts_dropped: int = 0
    timestamps_backfilled: int = 0
    ids_backfilled: int = 0


@dataclass
class IntegrityReport:
    """Result of :meth:`LocalStateStore.validate_integrity`."""

    is_valid: bool
    issues: list[str] = field(default_factory=lambda: list[str]())


def _finite_price(value: Any) -> float | None:
    """Non-negative finite float, or None."""
    if isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


def _valid_price(value: Any) -> float | None:
    """Positive finite float (alert targets), or None."""
    price = _finite_price(value)
    return price if price else None


class LocalStateStore:
    """Client-side curation state with cross-context reconciliation.

    Args:
        storage: Durable key/value area the collections persist to.
        notifier: Channel that receives one ``data_changed`` event per
            successful mutation. A private one is created when omitted.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        notifier: ChangeNotifier | None = None,
    ) -> None:
        self.storage = storage
        self.notifier = notifier or ChangeNotifier()
        self._data: dict[str, Any] = {
            name: default_value(name) for name in ALL_COLLECTIONS
        }
        self.load_errors: list[str] = []
        self.is_ready = False

    # ── Load / persist ───────────────────────────────────

    def _max_recent(self) -> int:
        value = self._data[PREFERENCES].get("max_recent_items")
        return value if isinstance(value, int) and value > 0 else (
            Settings.MAX_RECENT_ITEMS
        )

    def _read_collection(self, name: str) -> Any:
        """Validated value of *name* as currently persisted.

        Raises ValueError when the stored bytes cannot be parsed.
        """
        text = self.storage.get(name)
        if text is None:
            return default_value(name)
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(
                f"{name}: unparseable persisted data ({exc})"
            ) from exc
        return validate_collection(
            name, raw, time.time(), self._max_recent()
        )

    def load(self) -> bool:
        """Read and validate every collection from storage.

        Unparseable collections fall back to their empty default and are
        listed in :attr:`load_errors`. Returns True when none failed.
        """
        self.load_errors = []
        # Preferences first: the recently-viewed cap depends on them
        for name in (PREFERENCES, *LIST_COLLECTIONS):
            try:
                self._data[name] = self._read_collection(name)
            except ValueError as exc:
                logger.error("Load failed for %s", exc)
                self.load_errors.append(str(exc))
                self._data[name] = default_value(name)
        self.is_ready = True
        logger.info(
            "State loaded: %s",
            {n: len(self._data[n]) for n in LIST_COLLECTIONS},
        )
        self.notifier.publish(
            STORE_READY, {"load_errors": list(self.load_errors)}
        )
        return not self.load_errors

    def _write(self, name: str) -> None:
        self.storage.set(name, json.dumps(self._data[name]))

    def _persist(self, name: str) -> bool:
        """Write one collection; on failure free space and retry once."""
        try:
            self._write(name)
            return True
        except StorageWriteError as exc:
            logger.warning(
                "Write of %s failed (%s); cleaning up and retrying",
                name,
                exc,
            )
        self._free_space()
        try:
            self._write(name)
            return True
        except StorageWriteError as exc:
            logger.error(
                "Write of %s failed after cleanup: %s", name, exc
            )
            return False

    def _replace(self, name: str, value: Any) -> bool:
        """Swap in *value* and persist it; roll back on write failure."""
        previous = self._data[name]
        self._data[name] = value
        if not self._persist(name):
            self._data[name] = previous
            return False
        return True

    def _publish(self, collection: str, action: str, payload: Any = None) -> None:
        self.notifier.publish(
            DATA_CHANGED,
            ChangeEvent(collection, action, copy.deepcopy(payload)),
        )

    def _commit(
        self, name: str, value: Any, action: str, payload: Any = None,
    ) -> bool:
        """Replace, persist and announce one collection."""
        if not self._replace(name, value):
            return False
        self._publish(name, action, payload)
        return True

    @staticmethod
    def _slim(record: dict[str, Any]) -> dict[str, Any]:
        """Snapshot without its description and with at most 3 offers."""
        slim = {k: v for k, v in record.items() if k != "description"}
        offers = slim.get("store_offers")
        if isinstance(offers, list) and len(offers) > 3:
            slim["store_offers"] = offers[:3]
        return slim

    def _free_space(self) -> None:
        """Shrink the cheapest-to-lose state after a rejected write."""
        now = time.time()
        recent, _ = evict_expired(self._data[RECENTLY_VIEWED], now)
        recent = [self._slim(r) for r in recent[: max(len(recent) // 2, 1)]]
        shrunk: dict[str, Any] = {
            RECENTLY_VIEWED: recent,
            SEARCH_HISTORY: self._data[SEARCH_HISTORY][
                : Settings.SEARCH_HISTORY_LIMIT // 2
            ],
            PRICE_ALERTS: [
                a for a in self._data[PRICE_ALERTS]
                if not a.get("triggered")
            ],
        }
        try:
            self.storage.remove(BACKUP_KEY)
        except StorageWriteError as exc:
            logger.warning("Could not drop backup: %s", exc)

        for name, value in shrunk.items():
            if value == self._data[name]:
                continue
            self._data[name] = value
            try:
                self._write(name)
            except StorageWriteError as exc:
                logger.warning("Cleanup write of %s failed: %s", name, exc)
                continue
            self._publish(name, "update", {"cleanup": True})
        logger.info("Storage cleanup pass finished")

    def save_all(self) -> bool:
        """Write every collection (safety-net flush). True if all landed."""
        ok = True
        for name in ALL_COLLECTIONS:
            try:
                self._write(name)
            except StorageWriteError as exc:
                logger.error("Flush of %s failed: %s", name, exc)
                ok = False
        return ok

    # ── Shared record helpers ────────────────────────────

    @staticmethod
    def _snapshot(product: Product | dict[str, Any]) -> dict[str, Any] | None:
        """Detached dict copy of *product*, or None if it has no id."""
        if isinstance(product, Product):
            data = product.to_dict()
        elif isinstance(product, dict):
            data = copy.deepcopy(product)
        else:
            return None
        if data.get("id") in (None, ""):
            return None
        data["id"] = normalize_id(data["id"])
        return data

    def _find(self, name: str, product_id: Any) -> dict[str, Any] | None:
        if product_id in (None, ""):
            return None
        key = normalize_id(product_id)
        for record in self._data[name]:
            if record.get("id") == key:
                return record
        return None

    def _remove_by_id(self, name: str, product_id: Any) -> bool:
        if product_id in (None, ""):
            return False
        key = normalize_id(product_id)
        items = self._data[name]
        kept = [r for r in items if r.get("id") != key]
        if len(kept) == len(items):
            return False
        return self._commit(name, kept, "remove", {"id": key})

    def _clear(self, name: str) -> bool:
        if not self._data[name]:
            return False
        return self._commit(name, [], "clear")

    def _copy(self, name: str) -> list[dict[str, Any]]:
        return copy.deepcopy(self._data[name])

    # ── Favorites ────────────────────────────────────────

    def add_favorite(self, product: Product | dict[str, Any]) -> bool:
        """Prepend a favorite; False when invalid or already present."""
        entry = self._snapshot(product)
        if entry is None or self.is_favorite(entry["id"]):
            return False
        entry["added_at"] = time.time()
        return self._commit(
            FAVORITES, [entry, *self._data[FAVORITES]], "add", entry
        )

    def remove_favorite(self, product_id: Any) -> bool:
        """Remove a favorite; False when absent."""
        return self._remove_by_id(FAVORITES, product_id)

    def is_favorite(self, product_id: Any) -> bool:
        return self._find(FAVORITES, product_id) is not None

    def get_favorites(self) -> list[dict[str, Any]]:
        return self._copy(FAVORITES)

    def get_favorite(self, product_id: Any) -> dict[str, Any] | None:
        record = self._find(FAVORITES, product_id)
        return copy.deepcopy(record) if record is not None else None

    def search_favorites(self, query: str) -> list[dict[str, Any]]:
        """Favorites whose title, category or brand contain *query*."""
        needle = query.strip().lower()
        if not needle:
            return self.get_favorites()
        return [
            f for f in self.get_favorites()
            if any(
                needle in str(f.get(k) or "").lower()
                for k in ("title", "category", "brand")
            )
        ]

    def filter_favorites_by_category(self, category: str) -> list[dict[str, Any]]:
        if not category or category.lower() == "all":
            return self.get_favorites()
        wanted = category.lower()
        return [
            f for f in self.get_favorites()
            if str(f.get("category") or "").lower() == wanted
        ]

    def sort_favorites(self, sort_by: str = "newest") -> list[dict[str, Any]]:
        """Favorites ordered by ``newest``, ``oldest``, ``name``,
        ``price_low``, ``price_high`` or ``rating``."""
        favorites = self.get_favorites()
        if sort_by == "name":
            return sorted(favorites, key=lambda f: str(f.get("title") or ""))
        if sort_by == "rating":
            return sorted(
                favorites,
                key=lambda f: float((f.get("rating") or {}).get("rate") or 0),
                reverse=True,
            )
        field_name, reverse = _FAVORITE_SORTS.get(
            sort_by, _FAVORITE_SORTS["newest"]
        )
        return sorted(
            favorites,
            key=lambda f: float(f.get(field_name) or 0),
            reverse=reverse,
        )

    # ── Compare set ──────────────────────────────────────

    def can_add_to_compare(self) -> bool:
        """True while the compare set is below capacity."""
        return len(self._data[COMPARE]) < Settings.MAX_COMPARE_ITEMS

    def add_to_compare(self, product: Product | dict[str, Any]) -> bool:
        """Append to the compare set; False when present or full."""
        entry = self._snapshot(product)
        if entry is None or self.is_in_compare(entry["id"]):
            return False
        if not self.can_add_to_compare():
            logger.info(
                "Compare set full (%d); rejected %s",
                Settings.MAX_COMPARE_ITEMS,
                entry["id"],
            )
            return False
        entry["added_at"] = time.time()
        return self._commit(
            COMPARE, [*self._data[COMPARE], entry], "add", entry
        )

    def remove_from_compare(self, product_id: Any) -> bool:
        return self._remove_by_id(COMPARE, product_id)

    def is_in_compare(self, product_id: Any) -> bool:
        return self._find(COMPARE, product_id) is not None

    def get_compare_items(self) -> list[dict[str, Any]]:
        return self._copy(COMPARE)

    def clear_compare(self) -> bool:
        return self._clear(COMPARE)

    # ── Recently viewed ──────────────────────────────────

    def add_recently_viewed(self, product: Product | dict[str, Any]) -> bool:
        """Move *product* to the front of the trail, capped to the max."""
        entry = self._snapshot(product)
        if entry is None:
            return False
        entry["viewed_at"] = time.time()
        others = [
            r for r in self._data[RECENTLY_VIEWED]
            if r.get("id") != entry["id"]
        ]
        trail = [entry, *others][: self._max_recent()]
        return self._commit(RECENTLY_VIEWED, trail, "add", entry)

    def _enforce_recent_cap(self) -> bool:
        """Trim the trail after the ``max_recent_items`` cap changed."""
        trail = self._data[RECENTLY_VIEWED]
        cap = self._max_recent()
        if len(trail) <= cap:
            return False
        trimmed = len(trail) - cap
        logger.info("Trimming %d recently-viewed entries to cap %d", trimmed, cap)
        return self._commit(
            RECENTLY_VIEWED, trail[:cap], "update", {"trimmed": trimmed}
        )

    def get_recently_viewed(self, limit: int | None = None) -> list[dict[str, Any]]:
        items = self._copy(RECENTLY_VIEWED)
        return items[:limit] if limit else items

    def clear_recently_viewed(self) -> bool:
        return self._clear(RECENTLY_VIEWED)

    def cleanup_old_entries(self, now: float | None = None) -> int:
        """Evict expired and over-cap trail entries; returns how many."""
        current = self._data[RECENTLY_VIEWED]
        kept, _ = evict_expired(
            current, now if now is not None else time.time()
        )
        kept = kept[: self._max_recent()]
        removed = len(current) - len(kept)
        if not removed:
            return 0
        if not self._commit(
            RECENTLY_VIEWED, kept, "update", {"evicted": removed}
        ):
            return 0
        logger.info("Evicted %d recently-viewed entries", removed)
        return removed

    # ── Price alerts ─────────────────────────────────────

    def add_price_alert(
        self,
        product_id: Any,
        target_price: Any,
        product_title: str | None = None,
    ) -> dict[str, Any] | None:
        """Create an alert, or retarget the product's active one.

        Returns the stored alert, or None for invalid input or a
        failed write.
        """
        target = _valid_price(target_price)
        if product_id in (None, "") or target is None:
            return None
        key = normalize_id(product_id)
        alerts = self._data[PRICE_ALERTS]
        existing = next(
            (
                a for a in alerts
                if a.get("product_id") == key
                and a.get("active") and not a.get("triggered")
            ),
            None,
        )
        alert = {
            "id": (
                existing["id"]
                if existing is not None and existing.get("id")
                else uuid.uuid4().hex
            ),
            "product_id": key,
            "product_title": (
                product_title
                or (existing or {}).get("product_title")
                or f"Product #{key}"
            ),
            "target_price": target,
            "created_at": time.time(),
            "active": True,
            "triggered": False,
            "triggered_at": None,
            "triggered_price": None,
        }
        if existing is not None:
            updated = [alert if a is existing else a for a in alerts]
            action = "update"
        else:
            updated = [*alerts, alert]
            action = "add"
        if not self._commit(PRICE_ALERTS, updated, action, alert):
            return None
        return copy.deepcopy(alert)

    def remove_price_alert(self, alert_or_product_id: Any) -> bool:
        """Remove alerts matching an alert id or a product id."""
        if alert_or_product_id in (None, ""):
            return False
        key = normalize_id(alert_or_product_id)
        alerts = self._data[PRICE_ALERTS]
        kept = [
            a for a in alerts
            if a.get("id") != key and a.get("product_id") != key
        ]
        if len(kept) == len(alerts):
            return False
        return self._commit(PRICE_ALERTS, kept, "remove", {"id": key})

    def update_price_alert(self, alert_id: Any, changes: dict[str, Any]) -> bool:
        """Patch ``product_title``, ``target_price`` or ``active``."""
        key = normalize_id(alert_id)
        patch: dict[str, Any] = {}
        for name, value in changes.items():
            if name not in _ALERT_FIELDS:
                continue
            if name == "target_price":
                value = _valid_price(value)
                if value is None:
                    return False
            elif name == "active" and not isinstance(value, bool):
                return False
            patch[name] = value
        if not patch:
            return False

        alerts = self._data[PRICE_ALERTS]
        target = next((a for a in alerts if a.get("id") == key), None)
        if target is None:
            return False
        updated_alert = {**target, **patch}
        if updated_alert == target:
            return False
        updated = [updated_alert if a is target else a for a in alerts]
        return self._commit(PRICE_ALERTS, updated, "update", updated_alert)

    def evaluate_price_alert(
        self, product_id: Any, current_price: Any,
    ) -> list[dict[str, Any]]:
        """Trigger active alerts for *product_id* whose target is reached.

        Returns the alerts that fired on this call.
        """
        price = _finite_price(current_price)
        if product_id in (None, "") or price is None:
            return []
        key = normalize_id(product_id)
        now = time.time()
        fired: list[dict[str, Any]] = []
        updated: list[dict[str, Any]] = []
        for alert in self._data[PRICE_ALERTS]:
            target = alert.get("target_price")
            if (
                alert.get("product_id") == key
                and alert.get("active")
                and not alert.get("triggered")
                and isinstance(target, (int, float))
                and price <= target
            ):
                alert = {
                    **alert,
                    "triggered": True,
                    "triggered_at": now,
                    "triggered_price": price,
                }
                fired.append(alert)
            updated.append(alert)
        if not fired:
            return []
        if not self._commit(PRICE_ALERTS, updated, "update", fired):
            return []
        logger.info(
            "Price alert triggered for %s at %.2f", key, price
        )
        return copy.deepcopy(fired)

    def check_price_alerts(self, products: Iterable[Product]) -> list[dict[str, Any]]:
        """Evaluate alerts against a batch of current listings."""
        fired: list[dict[str, Any]] = []
        for product in products:
            fired.extend(self.evaluate_price_alert(product.id, product.price))
        return fired

    def get_price_alerts(self) -> list[dict[str, Any]]:
        return self._copy(PRICE_ALERTS)

    def get_active_price_alerts(self) -> list[dict[str, Any]]:
        return [
            a for a in self.get_price_alerts()
            if a.get("active") and not a.get("triggered")
        ]

    def get_triggered_price_alerts(self) -> list[dict[str, Any]]:
        return [a for a in self.get_price_alerts() if a.get("triggered")]

    # ── Search history ───────────────────────────────────

    def add_search_query(self, query: Any) -> bool:
        """Record a normalised query at the front of the history."""
        if not isinstance(query, str):
            return False
        normalized = normalize_query(query)
        if len(normalized) < Settings.MIN_QUERY_LENGTH:
            return False
        entry = {"query": normalized, "timestamp": time.time()}
        history = [
            entry,
            *(
                h for h in self._data[SEARCH_HISTORY]
                if h["query"] != normalized
            ),
        ][: Settings.SEARCH_HISTORY_LIMIT]
        return self._commit(SEARCH_HISTORY, history, "add", entry)

    def get_search_history(self) -> list[str]:
        """Recorded queries, most recent first."""
        return [h["query"] for h in self._data[SEARCH_HISTORY]]

    def get_search_history_entries(self) -> list[dict[str, Any]]:
        return self._copy(SEARCH_HISTORY)

    def clear_search_history(self) -> bool:
        return self._clear(SEARCH_HISTORY)

    # ── Preferences ──────────────────────────────────────

    def get_preferences(self) -> dict[str, Any]:
        return dict(self._data[PREFERENCES])

    def get_preference(self, key: str, default: Any = None) -> Any:
        return self._data[PREFERENCES].get(key, default)

    def set_preference(self, key: str, value: Any) -> bool:
        """Set one known preference. Unknown keys or mistyped values
        are ignored and return False."""
        return bool(self.update_preferences({key: value}))

    def update_preferences(self, preferences: dict[str, Any]) -> list[str]:
        """Merge known keys into the preferences; returns keys accepted."""
        current = self._data[PREFERENCES]
        accepted: list[str] = []
        changed: dict[str, Any] = {}
        for key, value in preferences.items():
            if not is_valid_preference(key, value):
                logger.warning("Rejected preference %r=%r", key, value)
                continue
            accepted.append(key)
            if current.get(key) != value:
                changed[key] = value
        if not changed:
            return accepted
        if not self._commit(
            PREFERENCES, {**current, **changed}, "update", changed
        ):
            return []
        if "max_recent_items" in changed:
            self._enforce_recent_cap()
        return accepted

    # ── External changes ─────────────────────────────────

    def reload_collection(self, name: str) -> bool:
        """Re-read *name* from storage after another context wrote it.

        Storage wins unless its bytes are unparseable, in which case the
        in-memory copy is kept. Returns True when the collection changed.
        """
        try:
            value = self._read_collection(name)
        except ValueError as exc:
            logger.error("Ignoring external change: %s", exc)
            return False
        if value == self._data[name]:
            return False
        self._data[name] = value
        logger.info("Reloaded %s after external change", name)
        self._publish(name, "update", {"external": True})
        if name == PREFERENCES:
            self._enforce_recent_cap()
        return True

    def handle_external_change(self, storage_key: str) -> bool:
        """Entry point for change observers; ignores foreign keys."""
        if storage_key not in ALL_COLLECTIONS:
            return False
        return self.reload_collection(storage_key)

    # ── Import / export ──────────────────────────────────

    def export_data(self) -> str:
        """Serialise every collection with a version tag."""
        payload = {
            "version": Settings.EXPORT_VERSION,
            "export_date": datetime.now().isoformat(),
            "data": copy.deepcopy(self._data),
        }
        return json.dumps(payload, indent=2)

    def import_data(self, payload: str | bytes | dict[str, Any]) -> ImportResult:
        """Validate and replace collections from an export payload.

        An unparseable payload or one without a ``data`` object changes
        nothing. Otherwise each collection is accepted or rejected on
        its own; collections absent from the payload are left alone.
        """
        try:
            parsed = (
                json.loads(payload)
                if isinstance(payload, (str, bytes))
                else payload
            )
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.error("Import payload unparseable: %s", exc)
            return ImportResult(success=False, error=f"Unparseable payload: {exc}")

        data = parsed.get("data") if isinstance(parsed, dict) else None
        if not isinstance(data, dict):
            logger.error("Import payload has no data object")
            return ImportResult(success=False, error="Invalid import data format")
        version = parsed.get("version")
        if version != Settings.EXPORT_VERSION:
            logger.warning(
                "Importing payload version %r (current %s)",
                version,
                Settings.EXPORT_VERSION,
            )

        now = time.time()
        staged: dict[str, Any] = {}
        rejected: list[str] = []
        prefs = self._data[PREFERENCES]
        if PREFERENCES in data:
            if isinstance(data[PREFERENCES], dict):
                prefs = {
                    **prefs,
                    **{
                        k: v for k, v in data[PREFERENCES].items()
                        if is_valid_preference(k, v)
                    },
                }
                staged[PREFERENCES] = prefs
            else:
                rejected.append(PREFERENCES)
        max_recent = prefs.get("max_recent_items", Settings.MAX_RECENT_ITEMS)
        for name in LIST_COLLECTIONS:
            if name not in data:
                continue
            if not isinstance(data[name], list):
                rejected.append(name)
                continue
            staged[name] = validate_collection(name, data[name], now, max_recent)

        imported: dict[str, int] = {}
        for name, value in staged.items():
            if self._replace(name, value):
                imported[name] = len(value)
            else:
                rejected.append(name)

        if rejected:
            logger.warning("Import rejected collections: %s", rejected)
        if imported:
            self._publish(ALL, "import", {"collections": sorted(imported)})
        if PREFERENCES in imported:
            self._enforce_recent_cap()
        return ImportResult(
            success=not rejected, imported=imported, rejected=rejected,
        )

    # ── Backup / restore / repair ────────────────────────

    def create_backup(self) -> dict[str, Any] | None:
        """Snapshot every collection under a separate storage key."""
        backup = {
            "timestamp": time.time(),
            "version": Settings.EXPORT_VERSION,
            "data": copy.deepcopy(self._data),
        }
        try:
            self.storage.set(BACKUP_KEY, json.dumps(backup))
        except StorageWriteError as exc:
            logger.error("Backup write failed: %s", exc)
            return None
        logger.info("Backup created")
        return backup

    def restore_from_backup(self) -> RestoreResult:
        """Replace collections with those in the stored backup."""
        raw = self.storage.get(BACKUP_KEY)
        if raw is None:
            return RestoreResult(success=False, error="No backup found")
        try:
            backup = json.loads(raw)
        except json.JSONDecodeError as exc:
            logger.error("Backup unparseable: %s", exc)
            return RestoreResult(success=False, error=f"Unparseable backup: {exc}")
        data = backup.get("data") if isinstance(backup, dict) else None
        if not isinstance(data, dict):
            return RestoreResult(success=False, error="Invalid backup format")

        now = time.time()
        restored: list[str] = []
        failed: list[str] = []
        for name in (PREFERENCES, *LIST_COLLECTIONS):
            if name not in data:
                continue
            value = validate_collection(name, data[name], now, self._max_recent())
            if self._replace(name, value):
                restored.append(name)
            else:
                failed.append(name)

        stamp = backup.get("timestamp")
        backup_date = (
            datetime.fromtimestamp(stamp)
            if isinstance(stamp, (int, float))
            else None
        )
        if restored:
            self._publish(ALL, "restore", {"collections": restored})
        if PREFERENCES in restored:
            self._enforce_recent_cap()
        if failed:
            return RestoreResult(
                success=False,
                backup_date=backup_date,
                restored=restored,
                error=f"Write failed for: {', '.join(failed)}",
            )
        return RestoreResult(
            success=True, backup_date=backup_date, restored=restored,
        )

    def repair(self) -> RepairReport:
        """Deduplicate, drop incomplete alerts and backfill missing fields.

        Idempotent: a second run changes nothing.
        """
        report = RepairReport()
        now = time.time()
        repaired: dict[str, Any] = {}

        for name, stamp_field in (
            (FAVORITES, "added_at"),
            (COMPARE, "added_at"),
            (RECENTLY_VIEWED, "viewed_at"),
        ):
            seen: set[str] = set()
            records: list[dict[str, Any]] = []
            for record in self._data[name]:
                if record["id"] in seen:
                    report.duplicates_removed += 1
                    continue
                seen.add(record["id"])
                if not isinstance(record.get(stamp_field), (int, float)):
                    record = {**record, stamp_field: now}
                    report.timestamps_backfilled += 1
                records.append(record)
            repaired[name] = records

        alerts: list[dict[str, Any]] = []
        for alert in self._data[PRICE_ALERTS]:
            # A missing id is backfilled below, so only product and target decide
            if not is_complete_alert({**alert, "id": alert.get("id") or "-"}):
                report.alerts_dropped += 1
                continue
            if not alert.get("id"):
                alert = {**alert, "id": uuid.uuid4().hex}
                report.ids_backfilled += 1
            if not isinstance(alert.get("created_at"), (int, float)):
                alert = {**alert, "created_at": now}
                report.timestamps_backfilled += 1
            alerts.append(alert)
        alerts, superseded = drop_superseded_alerts(alerts)
        report.duplicates_removed += superseded
        repaired[PRICE_ALERTS] = alerts

        replaced: list[str] = []
        for name, value in repaired.items():
            if value != self._data[name] and self._replace(name, value):
                replaced.append(name)
        if replaced:
            self._publish(ALL, "repair", {"report": asdict(report)})
        logger.info("Repair finished: %s", report)
        return report

    def validate_integrity(self) -> IntegrityReport:
        """List problems ``repair`` would fix, without changing anything."""
        issues: list[str] = []
        fav_ids = [f["id"] for f in self._data[FAVORITES]]
        dupes = sorted({i for i in fav_ids if fav_ids.count(i) > 1})
        if dupes:
            issues.append(f"Duplicate favorites: {', '.join(dupes)}")
        for idx, alert in enumerate(self._data[PRICE_ALERTS]):
            if not is_complete_alert(alert):
                issues.append(f"Price alert {idx} is missing required fields")
        missing = sum(
            1 for r in self._data[RECENTLY_VIEWED]
            if not isinstance(r.get("viewed_at"), (int, float))
        )
        if missing:
            issues.append(f"{missing} recently viewed entries lack timestamps")
        return IntegrityReport(is_valid=not issues, issues=issues)

    def reset(self) -> bool:
        """Return every collection to its default; True if all persisted."""
        ok = True
        cleared = False
        for name in ALL_COLLECTIONS:
            default = default_value(name)
            if self._data[name] == default:
                continue
            if self._replace(name, default):
                cleared = True
            else:
                ok = False
        if cleared:
            logger.warning("State reset to defaults")
            self._publish(ALL, "clear")
        return ok

    def optimize_storage(self) -> dict[str, Any]:
        """Evict expired views and slim stored snapshots."""
        old_size = len(json.dumps(self._data))
        self.cleanup_old_entries()
        recent = self._data[RECENTLY_VIEWED]
        slimmed = [self._slim(r) for r in recent]
        if slimmed != recent:
            self._commit(RECENTLY_VIEWED, slimmed, "update", {"optimized": True})
        new_size = len(json.dumps(self._data))
        saved = old_size - new_size
        return {
            "old_size": old_size,
            "new_size": new_size,
            "saved": saved,
            "percent_saved": round(saved / old_size * 100, 1) if old_size else 0.0,
        }

    # ── Statistics ───────────────────────────────────────

    def get_statistics(self) -> dict[str, dict[str, int]]:
        return statistics.collection_statistics(
            self._data, time.time(), Settings.MAX_COMPARE_ITEMS
        )

    def most_viewed_categories(self, limit: int = 5) -> list[tuple[str, int]]:
        return statistics.most_viewed_categories(
            self._data[RECENTLY_VIEWED], limit
        )

    def top_brands(self, limit: int = 5) -> list[tuple[str, int]]:
        return statistics.top_brands(
            [*self._data[FAVORITES], *self._data[RECENTLY_VIEWED]], limit
        )

    def get_storage_usage(self) -> dict[str, Any]:
        return statistics.storage_usage(self._data)

    # ── Discovery ────────────────────────────────────────

    def _known_product(self, product_id: Any) -> dict[str, Any] | None:
        return self._find(FAVORITES, product_id) or self._find(
            RECENTLY_VIEWED, product_id
        )

    def similar_products(
        self, product_id: Any, limit: int = 5,
    ) -> list[dict[str, Any]]:
        """Favorites and recent views sharing the product's category or brand."""
        anchor = self._known_product(product_id)
        if anchor is None:
            return []
        pool = [*self._data[FAVORITES], *self._data[RECENTLY_VIEWED]]
        return copy.deepcopy(statistics.related_records(anchor, pool, limit))

    def recommendations(self, limit: int = 10) -> list[dict[str, Any]]:
        """Recently viewed products not yet saved as favorites."""
        picks = [
            r for r in self._data[RECENTLY_VIEWED]
            if not self.is_favorite(r["id"])
        ]
        return copy.deepcopy(picks[:limit])

    def price_history(
        self,
        product_id: Any,
        days: int = 30,
        rng: random.Random | None = None,
    ) -> list[dict[str, Any]]:
        """Simulated daily price series ending today.

        Anchored on the stored price when the product is a favorite or
        was recently viewed.
        """
        known = self._known_product(product_id)
        current = _finite_price(known.get("price")) if known else None
        return statistics.simulated_price_history(
            current,
            days,
            date.fromtimestamp(time.time()),
            rng or random.Random(),
        )
