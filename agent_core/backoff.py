"""Retry delay policies for the polling loops."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

BackoffKind = Literal["fixed", "exponential"]

# Exponent ceiling: every delay past it is capped, and 2 ** 1024 overflows a float.
_MAX_EXPONENT = 62


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay (in seconds) before retry number ``attempt``.

    ``fixed`` always waits ``base_seconds``; ``exponential`` doubles from
    ``base_seconds`` up to ``max_seconds``.
    """

    kind: BackoffKind = "fixed"
    base_seconds: float = 1.0
    max_seconds: float = 30.0

    def __post_init__(self) -> None:
        if self.kind not in ("fixed", "exponential"):
            raise ValueError(f"Unsupported backoff kind: {self.kind}")
        if self.base_seconds < 0:
            raise ValueError("base_seconds must be non-negative")
        if self.max_seconds < self.base_seconds:
            raise ValueError("max_seconds must be >= base_seconds")

    def delay(self, attempt: int) -> float:
        if self.kind == "fixed" or attempt <= 0:
            return self.base_seconds
        return min(self.max_seconds, self.base_seconds * (2 ** min(attempt, _MAX_EXPONENT)))


__all__ = ["BackoffKind", "BackoffPolicy"]
