"""
Ledger-specific exceptions.

All exceptions inherit from BaseApplicationError so they can be reported
by views and tasks with a stable error code.
"""

from core.exceptions import BaseApplicationError


class LedgerError(BaseApplicationError):
    """Base exception for wallet ledger operations."""

    default_error_code = "LEDGER_ERROR"


class WalletNotFound(LedgerError):
    """Raised when a wallet cannot be found."""

    default_error_code = "WALLET_NOT_FOUND"


class InsufficientBalance(LedgerError):
    """
    Raised when a debit would take a wallet below zero.

    Attributes:
        wallet_id: The wallet that could not be debited
        required: The amount requested
        available: The balance at the time of the atomic check
    """

    default_error_code = "INSUFFICIENT_BALANCE"

    def __init__(self, wallet_id, required: int, available: int):
        self.wallet_id = wallet_id
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient balance: required {required}, available {available}",
            details={
                "wallet_id": str(wallet_id),
                "required": required,
                "available": available,
            },
        )


class LedgerWriteError(LedgerError):
    """
    Raised when a ledger write still fails after all retry attempts.

    The balance update and its transaction row are committed together, so
    nothing was applied; the operation must be re-driven by an operator or
    a reconciliation task.
    """

    default_error_code = "LEDGER_WRITE_FAILED"
