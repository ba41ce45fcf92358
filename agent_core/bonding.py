"""One-shot bonding precondition checked before the loops start."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from .errors import BondingDeclined
from .interfaces import LedgerClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BondingResult:
    balance: int
    threshold: int
    bonded: bool = False
    receipt: Any = None


def ensure_bonded(ledger: LedgerClient, confirm: Callable[[str], bool]) -> BondingResult:
    """Top up the bonded balance to the submission threshold if needed.

    Asks ``confirm`` only when the balance is short; raises ``BondingDeclined``
    when the operator says no.
    """

    balance = ledger.read_balance()
    threshold = ledger.read_threshold()
    logger.info("My bonding: %s", balance, extra={"balance": balance, "threshold": threshold})
    if balance >= threshold:
        return BondingResult(balance=balance, threshold=threshold)

    logger.info("Bonding coins to be able to submit (threshold %s)", threshold)
    if not confirm(f"Do you want to bond {ledger.format_amount(threshold)} coins?"):
        raise BondingDeclined("Cannot continue without bonded balance")

    receipt = ledger.bond(threshold)
    logger.info("Bonded successfully!")
    return BondingResult(balance=balance, threshold=threshold, bonded=True, receipt=receipt)


__all__ = ["BondingResult", "ensure_bonded"]
