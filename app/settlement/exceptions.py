"""
Settlement domain exceptions.

Exception Hierarchy:
    BaseApplicationError (from core.exceptions)
    └── SettlementError
        ├── InvalidSignature
        ├── MalformedPayload
        ├── OrderNotFound
        ├── PaymentNotConfirmed
        ├── PaymentNotSuccessful
        ├── PaymentAlreadyConfirmed
        ├── PaymentAmountMismatch
        ├── MissingVendorGroups
        ├── WithdrawalNotFound
        ├── InvalidWithdrawalAmount
        ├── NotApproved
        ├── TransferAlreadyInitiated
        ├── GatewayTransferFailed
        └── PaystackError
            ├── PaystackAPIError
            ├── PaystackTimeoutError
            └── PaystackConnectionError

Ledger errors (InsufficientBalance, WalletNotFound, LedgerWriteError) live
in settlement.ledger.exceptions and are re-exported here.

Usage:
    from settlement.exceptions import OrderNotFound

    raise OrderNotFound(
        "No order for payment reference",
        details={"reference": reference},
    )
"""

from __future__ import annotations

from typing import Any

from core.exceptions import BaseApplicationError
from settlement.ledger.exceptions import (
    InsufficientBalance,
    LedgerError,
    LedgerWriteError,
    WalletNotFound,
)

__all__ = [
    "GatewayTransferFailed",
    "InsufficientBalance",
    "InvalidSignature",
    "InvalidWithdrawalAmount",
    "LedgerError",
    "LedgerWriteError",
    "MalformedPayload",
    "MissingVendorGroups",
    "NotApproved",
    "OrderNotFound",
    "PaymentAlreadyConfirmed",
    "PaymentAmountMismatch",
    "PaymentNotConfirmed",
    "PaymentNotSuccessful",
    "PaystackAPIError",
    "PaystackConnectionError",
    "PaystackError",
    "PaystackTimeoutError",
    "SettlementError",
    "TransferAlreadyInitiated",
    "WalletNotFound",
    "WithdrawalNotFound",
]


class SettlementError(BaseApplicationError):
    """Base exception for all settlement errors."""

    default_error_code: str = "SETTLEMENT_ERROR"


# =============================================================================
# Inbound Webhook Errors
# =============================================================================


class InvalidSignature(SettlementError):
    """Webhook signature did not match the raw body. Nothing is processed."""

    default_error_code: str = "INVALID_SIGNATURE"


class MalformedPayload(SettlementError):
    """
    Inbound payload is unusable.

    Covers a webhook body that is not JSON or lacks the event name, and
    vendor groups in payment metadata that fail validation.
    """

    default_error_code: str = "MALFORMED_PAYLOAD"


# =============================================================================
# Distribution Errors
# =============================================================================


class OrderNotFound(SettlementError):
    """No order matches the payment reference or order id."""

    default_error_code: str = "ORDER_NOT_FOUND"


class PaymentNotConfirmed(SettlementError):
    """Distribution was requested for an order whose payment is not PAID."""

    default_error_code: str = "PAYMENT_NOT_CONFIRMED"


class PaymentNotSuccessful(SettlementError):
    """Paystack reports the transaction as anything other than success."""

    default_error_code: str = "PAYMENT_NOT_SUCCESSFUL"


class PaymentAlreadyConfirmed(SettlementError):
    """A payment cannot be started for an order that is already paid."""

    default_error_code: str = "PAYMENT_ALREADY_CONFIRMED"


class PaymentAmountMismatch(SettlementError):
    """
    The charged amount or currency differs from the order total.

    The order is left awaiting payment and nothing is credited.
    """

    default_error_code: str = "PAYMENT_AMOUNT_MISMATCH"


class MissingVendorGroups(SettlementError):
    """
    The order has no vendor groups to distribute.

    Fatal for the order: nothing is credited and the order stays
    undistributed until it is reconciled manually.
    """

    default_error_code: str = "ORDER_VENDOR_GROUPS_MISSING"


# =============================================================================
# Withdrawal Errors
# =============================================================================


class WithdrawalNotFound(SettlementError):
    """Withdrawal does not exist."""

    default_error_code: str = "WITHDRAWAL_NOT_FOUND"


class InvalidWithdrawalAmount(SettlementError):
    """Requested amount is below the minimum or does not cover the fee."""

    default_error_code: str = "INVALID_WITHDRAWAL_AMOUNT"


class NotApproved(SettlementError):
    """Transfer initiation attempted on a withdrawal that is not APPROVED."""

    default_error_code: str = "WITHDRAWAL_NOT_APPROVED"


class TransferAlreadyInitiated(SettlementError):
    """A gateway transfer already exists for this withdrawal."""

    default_error_code: str = "TRANSFER_ALREADY_INITIATED"


class GatewayTransferFailed(SettlementError):
    """
    The gateway rejected or did not answer the transfer.

    Returned by WithdrawalService.initiate_transfer after the compensating
    refund has been applied, so the wallet is already back at its pre-debit
    balance.
    """

    default_error_code: str = "GATEWAY_TRANSFER_FAILED"


# =============================================================================
# Paystack Errors
# =============================================================================


class PaystackError(SettlementError):
    """
    Base exception for Paystack API failures.

    Attributes:
        status_code: HTTP status returned by Paystack (None for network errors)
        is_retryable: Whether the same request may succeed if repeated
    """

    default_error_code: str = "PAYSTACK_ERROR"
    is_retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, error_code=error_code, details=details)
        self.status_code = status_code


class PaystackAPIError(PaystackError):
    """Paystack answered with an error status or `status: false`."""

    default_error_code: str = "PAYSTACK_API_ERROR"

    def __init__(self, message: str, status_code: int | None = None, **kwargs):
        super().__init__(message, status_code=status_code, **kwargs)
        self.is_retryable = status_code is not None and (
            status_code == 429 or status_code >= 500
        )


class PaystackTimeoutError(PaystackError):
    """Request to Paystack timed out. The outcome at Paystack is unknown."""

    default_error_code: str = "PAYSTACK_TIMEOUT"
    is_retryable: bool = True


class PaystackConnectionError(PaystackError):
    """Could not reach Paystack."""

    default_error_code: str = "PAYSTACK_CONNECTION_ERROR"
    is_retryable: bool = True
