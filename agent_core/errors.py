"""Exception types shared by the agent loops and their collaborators."""

from __future__ import annotations


class AgentError(Exception):
    """Base exception for agent failures."""

    def __init__(self, message: str, *, detail: str | None = None):
        super().__init__(message)
        self.detail = detail


class EntryNotFound(AgentError):
    """Raised when the ledger has no entry at the requested index yet."""

    def __init__(self, index: int, *, detail: str | None = None):
        super().__init__(f"No ledger entry at index {index}", detail=detail)
        self.index = index


class SubmissionFailed(AgentError):
    """Raised when the ledger rejects or fails to mine a transaction."""

    def __init__(self, message: str, *, tx_hash: str | None = None, detail: str | None = None):
        super().__init__(message, detail=detail)
        self.tx_hash = tx_hash


class BondingDeclined(AgentError):
    """Raised when the operator refuses to bond the submission threshold."""


class LedgerConnectionError(AgentError):
    """Raised when the ledger RPC endpoint cannot be reached."""


class StoreError(AgentError):
    """Raised when the local store is uninitialised or holds an unreadable value."""


class ConfigError(AgentError):
    """Raised for missing or invalid configuration."""


class ModelLoadError(AgentError):
    """Raised when a generation engine cannot be instantiated."""


__all__ = [
    "AgentError",
    "BondingDeclined",
    "ConfigError",
    "EntryNotFound",
    "LedgerConnectionError",
    "ModelLoadError",
    "StoreError",
    "SubmissionFailed",
]
