"""Core logic for the ledger-following agent."""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING, Any

__all__ = [
    "backoff",
    "bonding",
    "commit_loop",
    "errors",
    "metrics",
    "storage",
    "synchronizer",
    "window",
]

if TYPE_CHECKING:  # pragma: no cover - for static analyzers only
    from . import backoff, bonding, commit_loop, errors, metrics, storage, synchronizer, window


def __getattr__(name: str) -> Any:
    """Dynamically import submodules on first access."""

    if name in __all__:
        module = import_module(f".{name}", __name__)
        globals()[name] = module
        return module
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
