"""RocksDB-backed local mirror of the ledger submission log."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from rocksdict import Rdict, WriteOptions

from ..errors import StoreError

CURSOR_KEY = "latestSubmission"
SUBMISSION_PREFIX = "submission-"


def submission_key(index: int) -> str:
    """Return the logical key of the cache record for ``index``."""

    if index < 0:
        raise ValueError("submission index must be non-negative")
    return f"{SUBMISSION_PREFIX}{index}"


def _encode(value: Any) -> bytes:
    return json.dumps(value, separators=(",", ":")).encode("utf-8")


def _decode(raw: Any) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        payload = raw.decode("utf-8")
    elif isinstance(raw, str):
        payload = raw
    else:
        return raw
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise StoreError("Corrupt value in local store", detail=str(exc)) from exc


class SubmissionStore:
    """Key/value view over the raw database handle.

    The store owns two kinds of keys: the cursor (``latestSubmission``) and one
    record per mirrored ledger entry (``submission-<index>``). It does not order
    writes itself; callers that need record-before-cursor ordering must issue
    the two puts in that order.
    """

    def __init__(self, db: Any) -> None:
        self._db = db

    @property
    def db(self) -> Any:
        return self._db

    # ---------- generic get/put ----------
    def get(self, key: str) -> Any | None:
        raw = self._db.get(key.encode("utf-8"))
        if raw is None:
            return None
        return _decode(raw)

    def put(self, key: str, value: Any) -> None:
        self._db.put(key.encode("utf-8"), _encode(value))

    # ---------- schema helpers ----------
    def initialise(self) -> bool:
        """Seed an empty store with cursor 0 and an empty record at index 0.

        Returns True when the store was freshly seeded.
        """

        if self.get(CURSOR_KEY) is not None:
            return False
        self.put_record(0, [])
        self.set_cursor(0)
        return True

    def cursor(self) -> int:
        value = self.get(CURSOR_KEY)
        if value is None:
            raise StoreError("Local store has not been initialised")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise StoreError("Cursor value is not an integer", detail=repr(value)) from exc

    def set_cursor(self, index: int) -> None:
        self.put(CURSOR_KEY, int(index))

    def record(self, index: int) -> Optional[List[int]]:
        if index < 0:
            return None
        value = self.get(submission_key(index))
        if value is None:
            return None
        return [int(token) for token in value]

    def put_record(self, index: int, tokens: Sequence[int]) -> None:
        self.put(submission_key(index), [int(token) for token in tokens])

    def records(self, start: int, stop: int) -> Iterator[Tuple[int, List[int]]]:
        """Yield ``(index, tokens)`` for existing records in ``[start, stop]``."""

        for index in range(max(0, start), stop + 1):
            tokens = self.record(index)
            if tokens is not None:
                yield index, tokens

    def close(self) -> None:
        self._db.close()


def open_store(
    path: os.PathLike[str] | str = "./data/agent.db",
    *,
    sync_writes: bool = True,
) -> SubmissionStore:
    """Open (creating if needed) the RocksDB store and seed it when empty."""

    db_path = Path(path)
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = Rdict(str(db_path))
    except Exception as exc:
        # rocksdict reports lock and IO failures as plain ``Exception``.
        raise StoreError(f"Cannot open local store at {db_path}", detail=str(exc)) from exc
    if sync_writes:
        # Each put must be on disk before the next one is issued.
        write_opt = WriteOptions()
        write_opt.sync = True
        db.set_write_options(write_opt)
    store = SubmissionStore(db)
    store.initialise()
    return store


__all__ = [
    "CURSOR_KEY",
    "SUBMISSION_PREFIX",
    "SubmissionStore",
    "open_store",
    "submission_key",
]
