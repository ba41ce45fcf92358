"""Collaborator protocols consumed by the agent loops."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from .window import ConversationWindow


@dataclass(frozen=True)
class TxReceipt:
    """Mined ledger transaction."""

    tx_hash: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None


class LedgerClient(Protocol):
    @property
    def address(self) -> str: ...

    def read_entry(self, index: int) -> List[int]:
        """Return the tokens at ``index`` or raise ``EntryNotFound``."""

    def submit_entry(self, tokens: Sequence[int]) -> TxReceipt: ...

    def read_balance(self, account: Optional[str] = None) -> int: ...

    def read_threshold(self) -> int: ...

    def bond(self, amount: int) -> TxReceipt:
        """Bond ``amount`` and block until the transaction is mined."""

    def format_amount(self, amount: int) -> str: ...


class GenerationEngine(Protocol):
    def generate(self, window: ConversationWindow, seed: int) -> str: ...

    def tokenize(self, text: str) -> List[int]: ...

    def detokenize(self, tokens: Sequence[int]) -> str: ...


__all__ = ["GenerationEngine", "LedgerClient", "TxReceipt"]
