"""Prometheus metrics for the synchronizer and the commit loop."""
from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

CYCLE_OUTCOMES = ("committed", "stale", "failed", "error")

ENTRIES_MIRRORED = Counter(
    "agent_entries_mirrored_total",
    "Ledger entries copied into the local store.",
)

CURSOR = Gauge(
    "agent_cursor",
    "Highest ledger index mirrored locally.",
)

SYNC_ERRORS = Counter(
    "agent_sync_errors_total",
    "Ledger reads that failed for a reason other than reaching the tip.",
)

CYCLES = Counter(
    "agent_cycles_total",
    "Generation cycles by outcome.",
    ("outcome",),
)

GENERATION_DURATION = Histogram(
    "agent_generation_seconds",
    "Time spent producing one candidate entry.",
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0),
)


def record_mirrored(index: int) -> None:
    """Record one entry mirrored at ``index``."""
    ENTRIES_MIRRORED.inc()
    CURSOR.set(index)


def record_cursor(index: int) -> None:
    CURSOR.set(index)


def record_sync_error() -> None:
    SYNC_ERRORS.inc()


def record_cycle(outcome: str) -> None:
    """Count a finished generation cycle."""
    if outcome not in CYCLE_OUTCOMES:
        raise ValueError(f"Unknown cycle outcome: {outcome}")
    CYCLES.labels(outcome=outcome).inc()


def record_generation(duration_seconds: float) -> None:
    GENERATION_DURATION.observe(duration_seconds)


__all__ = [
    "CYCLE_OUTCOMES",
    "record_cursor",
    "record_cycle",
    "record_generation",
    "record_mirrored",
    "record_sync_error",
]
