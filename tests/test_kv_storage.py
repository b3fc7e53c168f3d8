# tests/test_kv_storage.py

"""Tests for the durable key/value backends."""

import tempfile
import unittest
from pathlib import Path

from smartshop.storage.kv_storage import (
    KeyValueStorage,
    MemoryStorage,
    SQLiteStorage,
    StorageQuotaExceeded,
    StorageWriteError,
)


class _StorageContract:
    """Behaviour shared by every backend."""

    storage: KeyValueStorage

    def second_view(self) -> KeyValueStorage:
        raise NotImplementedError

    def test_get_missing_is_none(self) -> None:
        self.assertIsNone(self.storage.get("nope"))

    def test_set_get_remove(self) -> None:
        """Values round-trip and removal hides the key."""
        self.storage.set("favorites", "[]")
        self.assertEqual(self.storage.get("favorites"), "[]")
        self.assertEqual(self.storage.keys(), ["favorites"])
        self.storage.remove("favorites")
        self.assertIsNone(self.storage.get("favorites"))
        self.assertEqual(self.storage.keys(), [])

    def test_remove_missing_is_noop(self) -> None:
        """Removing an absent key does not bump the revision."""
        before = self.storage.latest_revision()
        self.storage.remove("ghost")
        self.assertEqual(self.storage.latest_revision(), before)

    def test_revisions_increase(self) -> None:
        self.storage.set("a", "1")
        first = self.storage.latest_revision()
        self.storage.set("a", "2")
        self.assertGreater(self.storage.latest_revision(), first)

    def test_own_writes_not_reported(self) -> None:
        """changes_since skips this writer's keys but advances."""
        self.storage.set("a", "1")
        changed, high = self.storage.changes_since(0)
        self.assertEqual(changed, [])
        self.assertEqual(high, self.storage.latest_revision())

    def test_other_writer_changes_reported(self) -> None:
        """A second view's writes and removals are visible."""
        self.storage.set("favorites", "[]")
        mark = self.storage.latest_revision()
        other = self.second_view()
        other.set("compare_items", "[]")
        other.remove("favorites")

        changed, high = self.storage.changes_since(mark)
        self.assertEqual(changed, ["compare_items", "favorites"])
        self.assertEqual(self.storage.get("compare_items"), "[]")
        self.assertIsNone(self.storage.get("favorites"))
        self.assertEqual(self.storage.changes_since(high), ([], high))

    def test_quota_exceeded(self) -> None:
        """Writes beyond the quota raise and leave state unchanged."""
        self.storage.quota_bytes = 20
        self.storage.set("k", "x" * 10)
        with self.assertRaises(StorageQuotaExceeded):
            self.storage.set("big", "y" * 30)
        self.assertIsNone(self.storage.get("big"))
        self.assertTrue(issubclass(StorageQuotaExceeded, StorageWriteError))

    def test_overwrite_counts_only_delta(self) -> None:
        """Replacing a value is sized against the old one."""
        self.storage.quota_bytes = 12
        self.storage.set("k", "x" * 10)
        self.storage.set("k", "z" * 11)
        self.assertEqual(self.storage.size_bytes(), 12)


class TestMemoryStorage(_StorageContract, unittest.TestCase):
    """In-process backend."""

    def setUp(self) -> None:
        self.storage = MemoryStorage()

    def second_view(self) -> KeyValueStorage:
        return MemoryStorage(shared=self.storage)  # type: ignore[arg-type]

    def test_views_have_distinct_writer_ids(self) -> None:
        self.assertNotEqual(self.storage.writer_id, self.second_view().writer_id)


class TestSQLiteStorage(_StorageContract, unittest.TestCase):
    """SQLite backend."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.db_path = Path(self._tmp.name) / "nested" / "state.db"
        self.storage = SQLiteStorage(self.db_path)
        self._views: list[SQLiteStorage] = []

    def tearDown(self) -> None:
        for view in self._views:
            view.close()
        self.storage.close()
        self._tmp.cleanup()

    def second_view(self) -> KeyValueStorage:
        view = SQLiteStorage(self.db_path)
        self._views.append(view)
        return view

    def test_default_quota_from_settings(self) -> None:
        """The quota defaults to the configured byte budget."""
        self.assertGreater(self.storage.quota_bytes or 0, 0)

    def test_persists_across_connections(self) -> None:
        """A new connection sees previously written values."""
        self.storage.set("user_preferences", '{"theme": "dark"}')
        self.storage.close()
        self.storage = SQLiteStorage(self.db_path)
        self.assertEqual(
            self.storage.get("user_preferences"), '{"theme": "dark"}'
        )


if __name__ == "__main__":
    unittest.main()
