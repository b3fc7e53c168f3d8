# smartshop/storage/sync.py

"""Background tasks that keep a LocalStateStore durable and current.

Both are plain asyncio tasks owned by whoever starts them; nothing here
is global. :class:`ExternalChangeWatcher` polls the storage revision log
for keys written by another context, :class:`AutoSaver` periodically
flushes every collection as a safety net.
"""

import asyncio
import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from smartshop.config.settings import Settings
from smartshop.storage.kv_storage import KeyValueStorage

logger = logging.getLogger("smartshop.sync")


class _PeriodicTask(ABC):
    """Runs :meth:`tick` every *interval* seconds until stopped."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @abstractmethod
    def tick(self) -> None:
        """One unit of periodic work."""
        ...

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.tick()
            except Exception as exc:
                logger.error(
                    "%s tick failed: %s",
                    type(self).__name__,
                    exc,
                    exc_info=True,
                )

    def start(self) -> None:
        """Schedule the loop on the running event loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.debug(
            "%s started (every %.1fs)", type(self).__name__, self.interval
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.debug("%s stopped", type(self).__name__)


class ExternalChangeWatcher(_PeriodicTask):
    """Reports storage keys changed by other writers.

    Args:
        storage: The area to watch; its own writes are never reported.
        on_change: Called once per changed key, oldest first.
        interval: Poll period in seconds.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        on_change: Callable[[str], object],
        interval: float | None = None,
    ) -> None:
        super().__init__(
            interval if interval is not None else Settings.SYNC_POLL_INTERVAL
        )
        self.storage = storage
        self.on_change = on_change
        self._revision = storage.latest_revision()

    def poll(self) -> list[str]:
        """Check once; returns the distinct keys delivered."""
        changed, self._revision = self.storage.changes_since(self._revision)
        delivered: list[str] = []
        for key in changed:
            if key in delivered:
                continue
            delivered.append(key)
            self.on_change(key)
        if delivered:
            logger.info("External changes detected: %s", delivered)
        return delivered

    def tick(self) -> None:
        self.poll()


class AutoSaver(_PeriodicTask):
    """Calls *flush* every *interval* seconds."""

    def __init__(
        self,
        flush: Callable[[], bool],
        interval: float | None = None,
    ) -> None:
        super().__init__(
            interval if interval is not None else Settings.AUTOSAVE_INTERVAL
        )
        self.flush = flush

    def tick(self) -> None:
        if not self.flush():
            logger.warning("Autosave flush reported failures")
