"""
Data types for wallet ledger operations.

Types:
    WalletDrift: Comparison of a wallet's stored balance with its ledger sum

Usage:
    from settlement.ledger.types import WalletDrift

    drift = ledger.verify_wallet(wallet)
    if not drift.is_consistent:
        logger.error("Wallet drift", extra=drift.as_log_context())
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class WalletDrift:
    """
    Stored balance versus the balance rebuilt from transactions.

    Attributes:
        wallet_id: Wallet that was checked
        owner_id: Wallet owner
        role: Wallet role
        stored_balance: Wallet.balance as persisted
        computed_balance: Sum of CREDIT minus sum of DEBIT transactions
    """

    wallet_id: uuid.UUID
    owner_id: str
    role: str
    stored_balance: int
    computed_balance: int

    @property
    def drift(self) -> int:
        return self.stored_balance - self.computed_balance

    @property
    def is_consistent(self) -> bool:
        return self.drift == 0

    def as_log_context(self) -> dict[str, Any]:
        return {
            "wallet_id": str(self.wallet_id),
            "owner_id": self.owner_id,
            "role": self.role,
            "stored_balance": self.stored_balance,
            "computed_balance": self.computed_balance,
            "drift": self.drift,
        }
