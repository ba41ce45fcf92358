"""web3 client for the agent submission contract."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from eth_account import Account
from eth_utils.exceptions import ValidationError
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

from agent_core.errors import ConfigError, EntryNotFound, LedgerConnectionError, SubmissionFailed
from agent_core.interfaces import TxReceipt

from .config import AgentConfig

logger = logging.getLogger(__name__)

AGENT_CONTRACT_ABI: List[Dict[str, Any]] = [
    {
        "type": "function",
        "name": "getSubmittedTokens",
        "stateMutability": "view",
        "inputs": [{"name": "index", "type": "uint256"}],
        "outputs": [{"name": "", "type": "uint256[]"}],
    },
    {
        "type": "function",
        "name": "propose",
        "stateMutability": "nonpayable",
        "inputs": [{"name": "tokens", "type": "uint256[]"}],
        "outputs": [],
    },
    {
        "type": "function",
        "name": "bondedBalances",
        "stateMutability": "view",
        "inputs": [{"name": "account", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "submissionThreshold",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "name": "bond",
        "stateMutability": "payable",
        "inputs": [],
        "outputs": [],
    },
]


def load_abi(path: os.PathLike[str] | str | None) -> List[Dict[str, Any]]:
    """Return the ABI stored at ``path`` (bare list or Hardhat artifact)."""

    if path is None:
        return AGENT_CONTRACT_ABI
    try:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read contract ABI at {path}", detail=str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in contract ABI {path}", detail=str(exc)) from exc
    if isinstance(payload, dict) and "abi" in payload:
        payload = payload["abi"]
    if not isinstance(payload, list):
        raise ConfigError(f"{path} does not contain a contract ABI")
    return payload


def account_from_config(config: AgentConfig):
    try:
        if config.private_key:
            return Account.from_key(config.private_key)
        Account.enable_unaudited_hdwallet_features()
        return Account.from_mnemonic(config.mnemonic)
    except (ValueError, ValidationError) as exc:
        # Never echo the secret itself.
        raise ConfigError("Invalid wallet credentials", detail=type(exc).__name__) from exc


class Web3LedgerClient:
    """Reads and writes the submission log held by the agent contract.

    Writes are signed locally and sent as raw transactions; every write waits
    for its receipt so callers observe a mined transaction or an exception.
    """

    def __init__(
        self,
        web3: Web3,
        contract: Any,
        account: Any,
        *,
        receipt_timeout: float = 120.0,
    ) -> None:
        self._web3 = web3
        self._contract = contract
        self._account = account
        self._receipt_timeout = receipt_timeout

    @classmethod
    def from_config(cls, config: AgentConfig) -> "Web3LedgerClient":
        web3 = Web3(Web3.HTTPProvider(config.rpc_url))
        if not web3.is_connected():
            raise LedgerConnectionError(f"Cannot reach ledger RPC at {config.rpc_url}")
        try:
            address = Web3.to_checksum_address(config.contract_address)
        except ValueError as exc:
            raise ConfigError(f"Invalid contract address {config.contract_address!r}") from exc
        contract = web3.eth.contract(address=address, abi=load_abi(config.contract_abi_path))
        return cls(
            web3,
            contract,
            account_from_config(config),
            receipt_timeout=config.receipt_timeout,
        )

    @property
    def address(self) -> str:
        return self._account.address

    # ---------- reads ----------
    def read_entry(self, index: int) -> List[int]:
        try:
            tokens = self._contract.functions.getSubmittedTokens(index).call()
        except ContractLogicError as exc:
            raise EntryNotFound(index, detail=str(exc)) from exc
        except (Web3Exception, OSError) as exc:
            raise LedgerConnectionError(f"Reading submission {index} failed", detail=str(exc)) from exc
        return [int(token) for token in tokens]

    def read_balance(self, account: Optional[str] = None) -> int:
        return self._read_uint(self._contract.functions.bondedBalances(account or self.address), "bondedBalances")

    def read_threshold(self) -> int:
        return self._read_uint(self._contract.functions.submissionThreshold(), "submissionThreshold")

    def _read_uint(self, call: Any, label: str) -> int:
        try:
            return int(call.call())
        except (Web3Exception, OSError) as exc:
            raise LedgerConnectionError(f"Reading {label} failed", detail=str(exc)) from exc

    def format_amount(self, amount: int) -> str:
        return str(Web3.from_wei(amount, "ether"))

    # ---------- writes ----------
    def submit_entry(self, tokens: Sequence[int]) -> TxReceipt:
        return self._transact(self._contract.functions.propose([int(t) for t in tokens]), "propose")

    def bond(self, amount: int) -> TxReceipt:
        return self._transact(self._contract.functions.bond(), "bond", value=amount)

    def _transact(self, call: Any, label: str, *, value: int = 0) -> TxReceipt:
        tx_hash: Optional[str] = None
        try:
            tx = call.build_transaction(
                {
                    "from": self.address,
                    "nonce": self._web3.eth.get_transaction_count(self.address, "pending"),
                    "value": value,
                }
            )
            signed = self._account.sign_transaction(tx)
            tx_hash = Web3.to_hex(self._web3.eth.send_raw_transaction(signed.raw_transaction))
            logger.debug("Sent %s transaction %s", label, tx_hash)
            receipt = self._web3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except (Web3Exception, ValueError) as exc:
            raise SubmissionFailed(f"{label} transaction failed", tx_hash=tx_hash, detail=str(exc)) from exc

        if receipt["status"] != 1:
            raise SubmissionFailed(f"{label} transaction reverted", tx_hash=tx_hash)
        return TxReceipt(
            tx_hash=tx_hash,
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
        )


__all__ = ["AGENT_CONTRACT_ABI", "Web3LedgerClient", "account_from_config", "load_abi"]
