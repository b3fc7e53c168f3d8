# tests/test_notifier.py

"""Tests for the ChangeNotifier publish/subscribe channel."""

import unittest
from typing import Any

from smartshop.services.notifier import (
    DATA_CHANGED,
    ChangeEvent,
    ChangeNotifier,
)


class TestChangeNotifier(unittest.TestCase):
    """Subscription and delivery."""

    def setUp(self) -> None:
        self.notifier = ChangeNotifier()
        self.received: list[Any] = []

    def test_publish_delivers_detail(self) -> None:
        """Subscribers receive the published detail."""
        self.notifier.subscribe(DATA_CHANGED, self.received.append)
        event = ChangeEvent("favorites", "add", {"id": "1"})
        delivered = self.notifier.publish(DATA_CHANGED, event)
        self.assertEqual(delivered, 1)
        self.assertEqual(self.received, [event])

    def test_events_are_keyed_by_name(self) -> None:
        """Handlers only see their own event name."""
        self.notifier.subscribe("other", self.received.append)
        self.notifier.publish(DATA_CHANGED, "x")
        self.assertEqual(self.received, [])

    def test_unsubscribe(self) -> None:
        """The returned callable removes the handler."""
        unsubscribe = self.notifier.subscribe(
            DATA_CHANGED, self.received.append
        )
        unsubscribe()
        unsubscribe()
        self.assertEqual(self.notifier.publish(DATA_CHANGED, "x"), 0)

    def test_failing_handler_does_not_stop_others(self) -> None:
        """A raising handler is skipped; later handlers still run."""
        def broken(_: Any) -> None:
            raise RuntimeError("handler bug")

        self.notifier.subscribe(DATA_CHANGED, broken)
        self.notifier.subscribe(DATA_CHANGED, self.received.append)
        with self.assertLogs("smartshop.notifier", level="ERROR"):
            delivered = self.notifier.publish(DATA_CHANGED, "x")
        self.assertEqual(delivered, 1)
        self.assertEqual(self.received, ["x"])

    def test_change_event_is_frozen(self) -> None:
        """Events cannot be mutated by a subscriber."""
        event = ChangeEvent("compare_items", "clear")
        with self.assertRaises(AttributeError):
            event.action = "add"  # type: ignore[misc]

    def test_change_event_rejects_unknown_action(self) -> None:
        with self.assertRaises(ValueError):
            ChangeEvent("favorites", "upsert")


if __name__ == "__main__":
    unittest.main()
