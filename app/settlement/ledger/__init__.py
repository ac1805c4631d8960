"""
Wallet ledger for the settlement app.

Per-(owner, role) wallets with atomic credit, debit and refund operations
and an append-only transaction log.

Components:
    - models: Wallet, Transaction and their choice enums
    - services: WalletLedger and the shared `ledger` instance
    - types: WalletDrift
    - exceptions: LedgerError hierarchy

Usage:
    from settlement.ledger import ledger, TransactionSource
"""

from .exceptions import InsufficientBalance, LedgerError, LedgerWriteError, WalletNotFound
from .models import (
    Transaction,
    TransactionSource,
    TransactionStatus,
    TransactionType,
    Wallet,
)
from .services import WalletLedger, ledger
from .types import WalletDrift

__all__ = [
    # Models
    "Transaction",
    "TransactionSource",
    "TransactionStatus",
    "TransactionType",
    "Wallet",
    # Service
    "ledger",
    "WalletLedger",
    # Types
    "WalletDrift",
    # Exceptions
    "InsufficientBalance",
    "LedgerError",
    "LedgerWriteError",
    "WalletNotFound",
]
