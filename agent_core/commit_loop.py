"""Generation-and-commit loop with an optimistic cursor check."""

from __future__ import annotations

import asyncio
import enum
import logging
from time import perf_counter
from typing import Optional

from . import metrics
from .backoff import BackoffPolicy
from .errors import SubmissionFailed
from .interfaces import GenerationEngine, LedgerClient
from .logging_utils import log_operation
from .storage import SubmissionStore
from .window import DEFAULT_TURN_TEMPLATE, DEFAULT_WINDOW_SIZE, ConversationWindow, build_window

logger = logging.getLogger(__name__)

DEFAULT_SEED_OFFSET = 41


class CycleOutcome(str, enum.Enum):
    COMMITTED = "committed"
    STALE = "stale"
    FAILED = "failed"


class GenerationCommitLoop:
    """Proposes one new entry per cycle against the current cursor.

    The cursor is read before the window is built and again after the
    candidate is generated. The candidate is submitted only when both reads
    agree. This is a check-then-act, not a compare-and-swap: the synchronizer
    may still advance the cursor between the second read and the submission,
    in which case the ledger appends the candidate at its next free index.
    """

    def __init__(
        self,
        store: SubmissionStore,
        ledger: LedgerClient,
        engine: GenerationEngine,
        *,
        system_prompt: str,
        turn_template: str = DEFAULT_TURN_TEMPLATE,
        window_size: int = DEFAULT_WINDOW_SIZE,
        seed_offset: int = DEFAULT_SEED_OFFSET,
        legacy_label: bool = False,
        backoff: BackoffPolicy | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._engine = engine
        self._system_prompt = system_prompt
        self._turn_template = turn_template
        self._window_size = window_size
        self._seed_offset = seed_offset
        self._legacy_label = legacy_label
        self._backoff = backoff or BackoffPolicy()

    def build_window(self, cursor: int) -> ConversationWindow:
        return build_window(
            self._store,
            self._engine.detokenize,
            cursor,
            system_prompt=self._system_prompt,
            turn_template=self._turn_template,
            size=self._window_size,
            legacy_label=self._legacy_label,
        )

    def seed_for(self, cursor: int) -> int:
        return cursor + self._seed_offset

    async def cycle(self) -> CycleOutcome:
        loop = asyncio.get_running_loop()
        cursor = self._store.cursor()
        window = self.build_window(cursor)

        started = perf_counter()
        text = await loop.run_in_executor(None, self._engine.generate, window, self.seed_for(cursor))
        metrics.record_generation(perf_counter() - started)

        latest = self._store.cursor()
        if latest != cursor:
            logger.debug(
                "Discarding candidate generated at cursor %d; cursor is now %d",
                cursor,
                latest,
                extra={"cursor": cursor, "latest": latest},
            )
            metrics.record_cycle(CycleOutcome.STALE.value)
            return CycleOutcome.STALE

        logger.info("Submitting new thought:\n%s", text)
        tokens = self._engine.tokenize(text)
        try:
            with log_operation(logger, "submit_entry", cursor=cursor, tokens=len(tokens)) as ctx:
                receipt = await loop.run_in_executor(None, self._ledger.submit_entry, tokens)
                ctx["tx_hash"] = getattr(receipt, "tx_hash", None)
        except SubmissionFailed:
            # Already logged by log_operation; the candidate is dropped.
            metrics.record_cycle(CycleOutcome.FAILED.value)
            return CycleOutcome.FAILED

        metrics.record_cycle(CycleOutcome.COMMITTED.value)
        return CycleOutcome.COMMITTED

    async def run_forever(self, *, max_cycles: Optional[int] = None) -> None:
        """Run cycles back to back; ``max_cycles`` bounds the loop for callers that need it."""

        completed = 0
        failures = 0
        while max_cycles is None or completed < max_cycles:
            try:
                await self.cycle()
            except Exception:
                metrics.record_cycle("error")
                logger.exception("Generation cycle failed")
                await asyncio.sleep(self._backoff.delay(failures))
                failures += 1
            else:
                failures = 0
            completed += 1


__all__ = ["DEFAULT_SEED_OFFSET", "CycleOutcome", "GenerationCommitLoop"]
