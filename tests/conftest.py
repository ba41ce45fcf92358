import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from agent_core.errors import EntryNotFound  # noqa: E402  (import after sys.path tweak)
from agent_core.interfaces import TxReceipt  # noqa: E402
from agent_core.storage import SubmissionStore  # noqa: E402


class MemoryDB:
    """Dict-backed stand-in for the RocksDB handle that records write order."""

    def __init__(self):
        self._store: Dict[bytes, bytes] = {}
        self.writes: List[bytes] = []
        self.closed = False

    def get(self, key: bytes):
        return self._store.get(key)

    def put(self, key: bytes, value: bytes) -> None:
        self.writes.append(key)
        self._store[key] = value

    def close(self) -> None:
        self.closed = True


class FakeLedger:
    address = "0x000000000000000000000000000000000000dEaD"

    def __init__(self, entries=None, *, balance: int = 0, threshold: int = 0):
        self.entries: Dict[int, List[int]] = {int(k): list(v) for k, v in (entries or {}).items()}
        self.balance = balance
        self.threshold = threshold
        self.reads: List[int] = []
        self.submitted: List[List[int]] = []
        self.bonded: List[int] = []
        self.submit_error: Optional[Exception] = None

    def read_entry(self, index: int) -> List[int]:
        self.reads.append(index)
        if index not in self.entries:
            raise EntryNotFound(index)
        return list(self.entries[index])

    def submit_entry(self, tokens) -> TxReceipt:
        if self.submit_error is not None:
            raise self.submit_error
        tokens = [int(t) for t in tokens]
        self.submitted.append(tokens)
        self.entries[max(self.entries, default=0) + 1] = tokens
        return TxReceipt(tx_hash=f"0x{len(self.submitted):064x}", block_number=len(self.submitted))

    def read_balance(self, account=None) -> int:
        return self.balance

    def read_threshold(self) -> int:
        return self.threshold

    def bond(self, amount: int) -> TxReceipt:
        self.bonded.append(amount)
        self.balance += amount
        return TxReceipt(tx_hash="0x01")

    def format_amount(self, amount: int) -> str:
        return f"{amount / 10**18:g}"


class FakeEngine:
    """Character-code tokenizer with a scripted reply."""

    def __init__(self, reply: str = "a new thought", on_generate: Optional[Callable] = None):
        self.reply = reply
        self.on_generate = on_generate
        self.calls = []

    def generate(self, window, seed: int) -> str:
        self.calls.append((window, seed))
        if self.on_generate is not None:
            self.on_generate(window, seed)
        return self.reply

    def tokenize(self, text: str) -> List[int]:
        return [ord(ch) for ch in text]

    def detokenize(self, tokens) -> str:
        return "".join(chr(int(t)) for t in tokens)


@pytest.fixture
def memory_db():
    return MemoryDB()


@pytest.fixture
def store(memory_db):
    """Freshly initialised store (cursor 0, empty record at 0)."""
    store = SubmissionStore(memory_db)
    store.initialise()
    return store


@pytest.fixture
def fill_store(store):
    def _fill(cursor: int, *, skip=()):
        for index in range(1, cursor + 1):
            if index in skip:
                continue
            store.put_record(index, [ord(ch) for ch in f"entry {index}"])
        store.set_cursor(cursor)
        return store

    return _fill
