"""Catch-up synchronizer: mirrors ledger entries into the local store.

Each attempt reads the entry right after the cursor. A hit is persisted as a
cache record and the cursor is advanced by one, record first. A miss means the
ledger tip has been reached: the first miss since start sets ``caught_up`` and
every miss schedules the next attempt after the backoff delay. Attempts are
driven by ``loop.call_soon`` / ``loop.call_later`` handles so ``stop()`` can
cancel the pending one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from . import metrics
from .backoff import BackoffPolicy
from .errors import EntryNotFound
from .interfaces import LedgerClient
from .storage import SubmissionStore

logger = logging.getLogger(__name__)


class CatchUpSynchronizer:
    def __init__(
        self,
        store: SubmissionStore,
        ledger: LedgerClient,
        *,
        backoff: BackoffPolicy | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._backoff = backoff or BackoffPolicy()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.Handle] = None
        self._task: Optional[asyncio.Task] = None
        self._misses = 0
        self._stopped = False
        self.caught_up = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._loop is not None and not self._stopped

    async def step(self) -> bool:
        """Mirror the entry after the cursor; return False at the ledger tip."""

        index = self._store.cursor() + 1
        loop = asyncio.get_running_loop()
        try:
            tokens = await loop.run_in_executor(None, self._ledger.read_entry, index)
        except EntryNotFound:
            return False

        self._store.put_record(index, tokens)
        self._store.set_cursor(index)
        metrics.record_mirrored(index)
        logger.info("Downloaded submission %d", index, extra={"index": index, "tokens": len(tokens)})
        return True

    def start(self) -> None:
        """Schedule the first attempt on the running event loop."""

        if self._loop is not None:
            raise RuntimeError("synchronizer already started")
        self._loop = asyncio.get_running_loop()
        metrics.record_cursor(self._store.cursor())
        self._schedule(0.0)

    def stop(self) -> None:
        self._stopped = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait_caught_up(self) -> None:
        await self.caught_up.wait()

    # ------------------------------------------------------------------
    def _schedule(self, delay: float) -> None:
        if self._stopped or self._loop is None:
            return
        if delay <= 0:
            self._handle = self._loop.call_soon(self._fire)
        else:
            self._handle = self._loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        self._handle = None
        if self._stopped or self._loop is None:
            return
        self._task = self._loop.create_task(self._attempt())

    def _next_delay(self) -> float:
        delay = self._backoff.delay(self._misses)
        self._misses += 1
        return delay

    async def _attempt(self) -> None:
        # Whatever happens below, the next attempt is always scheduled.
        delay = self._backoff.max_seconds
        try:
            if await self.step():
                self._misses = 0
                delay = 0.0
                return
            if not self.caught_up.is_set():
                logger.info("Synced all submissions", extra={"cursor": self._store.cursor()})
                self.caught_up.set()
            delay = self._next_delay()
        except Exception:
            metrics.record_sync_error()
            logger.exception("Ledger sync attempt failed")
            delay = self._next_delay()
        finally:
            self._schedule(delay)


__all__ = ["CatchUpSynchronizer"]
