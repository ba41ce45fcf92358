"""Storage subsystem for the locally mirrored submission log."""

from __future__ import annotations

from .rocksdb import (
    CURSOR_KEY,
    SUBMISSION_PREFIX,
    SubmissionStore,
    open_store,
    submission_key,
)

__all__ = [
    "CURSOR_KEY",
    "SUBMISSION_PREFIX",
    "SubmissionStore",
    "open_store",
    "submission_key",
]
