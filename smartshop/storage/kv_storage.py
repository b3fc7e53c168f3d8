# smartshop/storage/kv_storage.py

"""Durable key/value backends for the local state store.

Every write is stamped with a monotonically increasing revision and the
id of the writer that made it. Two storage objects opened on the same
area (two "tabs") can therefore ask which keys *the other* changed since
a given revision; that is how external mutations are detected.
"""

import itertools
import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from smartshop.config.settings import Settings

logger = logging.getLogger("smartshop.storage")


class StorageError(Exception):
    """Base class for durable-storage failures."""


class StorageWriteError(StorageError):
    """A write was rejected by the backend."""


class StorageQuotaExceeded(StorageWriteError):
    """A write would push the area past its byte quota."""


class KeyValueStorage(ABC):
    """String-keyed, string-valued durable storage area."""

    def __init__(self, quota_bytes: int | None = None) -> None:
        self.quota_bytes = quota_bytes
        self.writer_id = uuid.uuid4().hex

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or ``None`` when absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*; raises StorageWriteError."""
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key* (no-op when absent)."""
        ...

    @abstractmethod
    def keys(self) -> list[str]:
        """All live keys, sorted."""
        ...

    @abstractmethod
    def latest_revision(self) -> int:
        """Highest revision written by anyone."""
        ...

    @abstractmethod
    def changes_since(self, revision: int) -> tuple[list[str], int]:
        """Keys written by *other* writers after *revision*.

        Returns the changed keys (oldest first) and the new high-water
        revision to pass on the next call.
        """
        ...

    def close(self) -> None:
        """Release backend resources."""

    def size_bytes(self) -> int:
        """Approximate footprint: key + value lengths of live entries."""
        total = 0
        for key in self.keys():
            value = self.get(key) or ""
            total += len(key) + len(value)
        return total

    def _check_quota(self, key: str, value: str) -> None:
        """Raise StorageQuotaExceeded if the write would overflow."""
        if self.quota_bytes is None:
            return
        current = self.get(key)
        projected = self.size_bytes() + len(value)
        if current is not None:
            projected -= len(current)
        else:
            projected += len(key)
        if projected > self.quota_bytes:
            raise StorageQuotaExceeded(
                f"Writing '{key}' needs {projected} bytes, "
                f"quota is {self.quota_bytes}"
            )


@dataclass
class _Entry:
    value: str | None
    revision: int
    writer: str


class MemoryStorage(KeyValueStorage):
    """In-process storage area.

    Pass ``shared=`` another MemoryStorage to open a second view of the
    same area with its own writer id, the way two browser tabs share
    one origin's storage.
    """

    def __init__(
        self,
        quota_bytes: int | None = None,
        shared: "MemoryStorage | None" = None,
    ) -> None:
        super().__init__(quota_bytes)
        if shared is not None:
            self._entries = shared._entries
            self._counter = shared._counter
        else:
            self._entries: dict[str, _Entry] = {}
            self._counter = itertools.count(1)

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def set(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        self._entries[key] = _Entry(
            value, next(self._counter), self.writer_id
        )

    def remove(self, key: str) -> None:
        if self.get(key) is None:
            return
        self._entries[key] = _Entry(
            None, next(self._counter), self.writer_id
        )

    def keys(self) -> list[str]:
        return sorted(
            k for k, e in self._entries.items() if e.value is not None
        )

    def latest_revision(self) -> int:
        return max(
            (e.revision for e in self._entries.values()), default=0
        )

    def changes_since(self, revision: int) -> tuple[list[str], int]:
        newer = sorted(
            (
                (e.revision, k)
                for k, e in self._entries.items()
                if e.revision > revision
            ),
        )
        changed = [
            k for _, k in newer
            if self._entries[k].writer != self.writer_id
        ]
        high = newer[-1][0] if newer else revision
        return changed, high


_SCHEMA = """\
CREATE TABLE IF NOT EXISTS kv_store (
    key        TEXT    PRIMARY KEY,
    value      TEXT,
    revision   INTEGER NOT NULL,
    writer     TEXT    NOT NULL,
    updated_at TEXT    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_kv_revision
    ON kv_store(revision);
"""


class SQLiteStorage(KeyValueStorage):
    """SQLite-backed storage area shared by every process on one file.

    Deleted keys are kept as tombstones (``value IS NULL``) so other
    writers can observe the removal through :meth:`changes_since`.
    """

    def __init__(
        self,
        db_path: Path | None = None,
        quota_bytes: int | None = None,
    ) -> None:
        super().__init__(
            quota_bytes
            if quota_bytes is not None
            else Settings.STORAGE_QUOTA_BYTES
        )
        path = db_path or Settings.STATE_DB_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(path), check_same_thread=False,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)
        logger.debug("SQLiteStorage opened at %s", path)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def _write(self, key: str, value: str | None) -> None:
        """Upsert *key* with the next global revision."""
        ts = datetime.now().isoformat()
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO kv_store "
                    "(key, value, revision, writer, updated_at) "
                    "VALUES (?, ?, "
                    "  (SELECT COALESCE(MAX(revision), 0) + 1 "
                    "   FROM kv_store), ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET "
                    "  value=excluded.value, "
                    "  revision=excluded.revision, "
                    "  writer=excluded.writer, "
                    "  updated_at=excluded.updated_at",
                    (key, value, self.writer_id, ts),
                )
        except sqlite3.Error as exc:
            raise StorageWriteError(
                f"SQLite write for '{key}' failed: {exc}"
            ) from exc

    def get(self, key: str) -> str | None:
        row = self._conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,),
        ).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self._check_quota(key, value)
        self._write(key, value)

    def remove(self, key: str) -> None:
        if self.get(key) is None:
            return
        self._write(key, None)

    def keys(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT key FROM kv_store WHERE value IS NOT NULL "
            "ORDER BY key",
        ).fetchall()
        return [r[0] for r in rows]

    def size_bytes(self) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) "
            "FROM kv_store WHERE value IS NOT NULL",
        ).fetchone()
        return int(row[0])

    def latest_revision(self) -> int:
        row = self._conn.execute(
            "SELECT COALESCE(MAX(revision), 0) FROM kv_store",
        ).fetchone()
        return int(row[0])

    def changes_since(self, revision: int) -> tuple[list[str], int]:
        rows = self._conn.execute(
            "SELECT key, revision, writer FROM kv_store "
            "WHERE revision > ? ORDER BY revision",
            (revision,),
        ).fetchall()
        changed = [r[0] for r in rows if r[2] != self.writer_id]
        high = rows[-1][1] if rows else revision
        return changed, high
