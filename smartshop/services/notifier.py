# smartshop/services/notifier.py

"""Publish/subscribe channel announcing local state changes."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger("smartshop.notifier")

DATA_CHANGED = "data_changed"
STORE_READY = "store_ready"

CHANGE_ACTIONS: frozenset[str] = frozenset({
    "add", "remove", "update", "clear",
    "import", "repair", "restore",
})


@dataclass(frozen=True)
class ChangeEvent:
    """Detail carried by every ``data_changed`` publication."""

    collection: str
    action: str
    payload: Any = None

    def __post_init__(self) -> None:
        if self.action not in CHANGE_ACTIONS:
            raise ValueError(f"Unknown change action: {self.action!r}")


Handler = Callable[[Any], None]


class ChangeNotifier:
    """A single in-process broadcast channel keyed by event name."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}

    def subscribe(
        self, event_name: str, handler: Handler,
    ) -> Callable[[], None]:
        """Register *handler* for *event_name*.

        Returns a callable that removes the subscription.
        """
        self._handlers.setdefault(event_name, []).append(handler)

        def _unsubscribe() -> None:
            handlers = self._handlers.get(event_name, [])
            if handler in handlers:
                handlers.remove(handler)

        return _unsubscribe

    def publish(self, event_name: str, detail: Any = None) -> int:
        """Deliver *detail* to every handler of *event_name*.

        A failing handler is logged and skipped so the rest still run.
        Returns the number of handlers that completed.
        """
        delivered = 0
        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(detail)
                delivered += 1
            except Exception as exc:
                logger.error(
                    "Handler %r failed for '%s': %s",
                    handler,
                    event_name,
                    exc,
                    exc_info=True,
                )
        logger.debug(
            "Published '%s' to %d handlers", event_name, delivered
        )
        return delivered
