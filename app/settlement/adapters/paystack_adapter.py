"""
Paystack API adapter for settlement operations.

This module provides the PaystackAdapter class which encapsulates every
Paystack interaction the settlement app needs. All Paystack calls go
through this adapter to get consistent timeouts, error translation and
structured logging.

Features:
- Webhook signature verification (HMAC-SHA512 over the raw body)
- Transfer recipient creation (NUBAN bank accounts)
- Transfer initiation from the Paystack balance
- Transaction initialization and verification for customer payments
- Conversion between major units (naira) and kobo at this boundary only
- Automatic error translation to PaystackError subclasses

Configuration (via settings):
- PAYSTACK_SECRET_KEY: Secret key, also the webhook signing secret
- PAYSTACK_BASE_URL: API base URL (default: https://api.paystack.co)
- PAYSTACK_TIMEOUT_SECONDS: HTTP timeout (default: 15)
- PAYSTACK_CURRENCY: Currency for payments and recipients (default: NGN)

Usage:
    from settlement.adapters import PaystackAdapter, CreateRecipientParams

    recipient = PaystackAdapter.create_transfer_recipient(
        CreateRecipientParams(
            name="Ada Obi",
            account_number="0123456789",
            bank_code="058",
        )
    )
    transfer = PaystackAdapter.initiate_transfer(
        InitiateTransferParams(
            recipient_code=recipient.recipient_code,
            amount=4950,
            reference="PAYOUT_5f0c..._1a2b3c4d",
            reason="Payout for Ada Obi",
        )
    )
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests
from django.conf import settings

from settlement.exceptions import (
    PaystackAPIError,
    PaystackConnectionError,
    PaystackError,
    PaystackTimeoutError,
)

KOBO_PER_NAIRA = 100


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class CreateRecipientParams:
    """
    Parameters for creating a Paystack transfer recipient.

    Attributes:
        name: Account holder name
        account_number: NUBAN account number
        bank_code: Paystack bank code
        currency: ISO 4217 currency code (default: NGN)
    """

    name: str
    account_number: str
    bank_code: str
    currency: str = "NGN"

    def __post_init__(self) -> None:
        if not self.account_number:
            raise ValueError("account_number is required")
        if not self.bank_code:
            raise ValueError("bank_code is required")
        if not self.name:
            raise ValueError("name is required")


@dataclass
class InitiateTransferParams:
    """
    Parameters for a transfer from the Paystack balance.

    Attributes:
        recipient_code: Recipient handle from create_transfer_recipient
        amount: Amount in major units (naira); converted to kobo on send
        reference: Unique per attempt, prevents duplicate transfers
        reason: Narration shown to the recipient
    """

    recipient_code: str
    amount: int
    reference: str
    reason: str = ""

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.reference:
            raise ValueError("reference is required")
        if not self.recipient_code:
            raise ValueError("recipient_code is required")


@dataclass
class RecipientResult:
    """Result of creating a transfer recipient."""

    recipient_code: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransferResult:
    """
    Result of initiating a transfer.

    Attributes:
        transfer_code: Paystack transfer handle (TRF_xxx)
        reference: Reference sent with the transfer
        status: Paystack status (pending, success, otp, ...)
        amount_minor_units: Amount in kobo as accepted by Paystack
        raw_response: Full response data (for debugging)
    """

    transfer_code: str
    reference: str
    status: str
    amount_minor_units: int
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class InitializeTransactionParams:
    """
    Parameters for starting a customer payment.

    Attributes:
        email: Customer email Paystack sends the receipt to
        amount: Amount in major units (naira); converted to kobo on send
        reference: Payment reference the webhook reports back
        callback_url: Where Paystack redirects after checkout
        metadata: Echoed back on charge.success (orderId, vendorGroups)
    """

    email: str
    amount: int
    reference: str
    callback_url: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.email:
            raise ValueError("email is required")
        if not self.reference:
            raise ValueError("reference is required")


@dataclass
class InitializeResult:
    """Checkout session returned by transaction/initialize."""

    authorization_url: str
    access_code: str
    reference: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TransactionVerification:
    """
    A transaction as reported by transaction/verify.

    Attributes:
        reference: Payment reference
        status: Paystack status (success, failed, abandoned, ...)
        amount_minor_units: Charged amount in kobo
        currency: ISO 4217 currency code
        metadata: Metadata sent at initialization
    """

    reference: str
    status: str
    amount_minor_units: int | None
    currency: str
    metadata: Any = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


def to_minor_units(amount: int) -> int:
    """Convert a naira amount to kobo."""
    return int(amount) * KOBO_PER_NAIRA


def charge_matches(
    amount: int, amount_minor_units: Any, currency: str | None = None
) -> bool:
    """
    Check a charge reported by Paystack against an expected naira amount.

    A missing or non-integer kobo amount never matches. Currency is only
    compared when Paystack reports one.
    """
    if isinstance(amount_minor_units, bool) or not isinstance(amount_minor_units, int):
        return False
    expected_currency = getattr(settings, "PAYSTACK_CURRENCY", "NGN")
    if currency and currency.upper() != expected_currency:
        return False
    return amount_minor_units == to_minor_units(amount)


# =============================================================================
# Paystack Adapter
# =============================================================================


class PaystackAdapter:
    """
    Adapter for Paystack API operations.

    All methods are class methods - no instance state is maintained.

    Usage:
        PaystackAdapter.verify_webhook_signature(raw_body, signature)
        PaystackAdapter.create_transfer_recipient(params)
        PaystackAdapter.initiate_transfer(params)
        PaystackAdapter.initialize_transaction(params)
        PaystackAdapter.verify_transaction(reference)
    """

    # =========================================================================
    # Configuration
    # =========================================================================

    @staticmethod
    def _base_url() -> str:
        return getattr(settings, "PAYSTACK_BASE_URL", "https://api.paystack.co").rstrip("/")

    @staticmethod
    def _timeout() -> float:
        return getattr(settings, "PAYSTACK_TIMEOUT_SECONDS", 15)

    @staticmethod
    def _headers() -> dict[str, str]:
        return {
            "Authorization": f"Bearer {settings.PAYSTACK_SECRET_KEY}",
            "Content-Type": "application/json",
        }

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Get logger for this adapter."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    # =========================================================================
    # Webhooks
    # =========================================================================

    @staticmethod
    def verify_webhook_signature(payload: bytes, signature: str | None) -> bool:
        """
        Check the x-paystack-signature header against the raw request body.

        Paystack signs the body with HMAC-SHA512 using the secret key and
        sends the hex digest.
        """
        secret = getattr(settings, "PAYSTACK_SECRET_KEY", "")
        if not signature or not secret:
            return False
        expected = hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()
        return hmac.compare_digest(expected, signature.strip().lower())

    # =========================================================================
    # Transfers
    # =========================================================================

    @classmethod
    def create_transfer_recipient(cls, params: CreateRecipientParams) -> RecipientResult:
        """
        Register a bank account as a transfer recipient.

        Raises:
            PaystackAPIError: Paystack rejected the account
            PaystackTimeoutError: Request timed out
            PaystackConnectionError: Paystack unreachable
        """
        data = cls._request(
            "POST",
            "/transferrecipient",
            operation="create_transfer_recipient",
            payload={
                "type": "nuban",
                "name": params.name,
                "account_number": params.account_number,
                "bank_code": params.bank_code,
                "currency": params.currency,
            },
            log_context={"bank_code": params.bank_code},
        )
        recipient_code = data.get("recipient_code")
        if not recipient_code:
            raise PaystackAPIError("Paystack response did not include a recipient code")
        return RecipientResult(recipient_code=recipient_code, raw_response=data)

    @classmethod
    def initiate_transfer(cls, params: InitiateTransferParams) -> TransferResult:
        """
        Send money from the Paystack balance to a recipient.

        The amount is converted to kobo here; callers always work in naira.

        Raises:
            PaystackAPIError: Paystack rejected the transfer
            PaystackTimeoutError: Request timed out (outcome unknown)
            PaystackConnectionError: Paystack unreachable
        """
        amount_minor_units = to_minor_units(params.amount)
        data = cls._request(
            "POST",
            "/transfer",
            operation="initiate_transfer",
            payload={
                "source": "balance",
                "amount": amount_minor_units,
                "recipient": params.recipient_code,
                "reason": params.reason,
                "reference": params.reference,
            },
            log_context={
                "reference": params.reference,
                "amount_minor_units": amount_minor_units,
            },
        )
        transfer_code = data.get("transfer_code")
        if not transfer_code:
            raise PaystackAPIError("Paystack response did not include a transfer code")
        return TransferResult(
            transfer_code=transfer_code,
            reference=data.get("reference", params.reference),
            status=data.get("status", "pending"),
            amount_minor_units=data.get("amount", amount_minor_units),
            raw_response=data,
        )

    # =========================================================================
    # Transactions
    # =========================================================================

    @classmethod
    def initialize_transaction(
        cls, params: InitializeTransactionParams
    ) -> InitializeResult:
        """
        Start a checkout for a customer payment.

        Raises:
            PaystackAPIError: Paystack rejected the request (e.g. a reused reference)
            PaystackTimeoutError: Request timed out
            PaystackConnectionError: Paystack unreachable
        """
        amount_minor_units = to_minor_units(params.amount)
        payload: dict[str, Any] = {
            "email": params.email,
            "amount": amount_minor_units,
            "reference": params.reference,
            "currency": getattr(settings, "PAYSTACK_CURRENCY", "NGN"),
            "metadata": params.metadata,
        }
        if params.callback_url:
            payload["callback_url"] = params.callback_url

        data = cls._request(
            "POST",
            "/transaction/initialize",
            operation="initialize_transaction",
            payload=payload,
            log_context={
                "reference": params.reference,
                "amount_minor_units": amount_minor_units,
            },
        )
        authorization_url = data.get("authorization_url")
        if not authorization_url:
            raise PaystackAPIError("Paystack response did not include an authorization URL")
        return InitializeResult(
            authorization_url=authorization_url,
            access_code=data.get("access_code", ""),
            reference=data.get("reference", params.reference),
            raw_response=data,
        )

    @classmethod
    def verify_transaction(cls, reference: str) -> TransactionVerification:
        """
        Look up a transaction's outcome by reference.

        Raises:
            PaystackAPIError: Unknown reference or Paystack error
            PaystackTimeoutError: Request timed out
            PaystackConnectionError: Paystack unreachable
        """
        data = cls._request(
            "GET",
            f"/transaction/verify/{quote(reference, safe='')}",
            operation="verify_transaction",
            log_context={"reference": reference},
        )
        return TransactionVerification(
            reference=data.get("reference", reference),
            status=data.get("status", ""),
            amount_minor_units=data.get("amount"),
            currency=data.get("currency", ""),
            metadata=data.get("metadata"),
            raw_response=data,
        )

    # =========================================================================
    # HTTP
    # =========================================================================

    @classmethod
    def _request(
        cls,
        method: str,
        endpoint: str,
        operation: str,
        payload: dict[str, Any] | None = None,
        log_context: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Perform an API call and return the `data` object of the response.

        Paystack wraps every response as {"status": bool, "message": str,
        "data": {...}}; `status: false` is an error even with HTTP 200.
        """
        logger = cls.get_logger()
        log_context = {"operation": operation, **(log_context or {})}

        start_time = time.time()
        logger.info("Starting Paystack operation", extra=log_context)

        try:
            response = requests.request(
                method,
                f"{cls._base_url()}{endpoint}",
                headers=cls._headers(),
                json=payload,
                timeout=cls._timeout(),
            )
        except requests.exceptions.Timeout as e:
            cls._log_failure(log_context, start_time, e)
            raise PaystackTimeoutError(
                f"Paystack {operation} timed out",
                details={"operation": operation},
            ) from e
        except requests.exceptions.RequestException as e:
            cls._log_failure(log_context, start_time, e)
            raise PaystackConnectionError(
                f"Could not reach Paystack: {e}",
                details={"operation": operation},
            ) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400 or not body.get("status"):
            message = body.get("message") or f"HTTP {response.status_code}"
            error = PaystackAPIError(
                f"Paystack {operation} failed: {message}",
                status_code=response.status_code,
                details={"operation": operation},
            )
            cls._log_failure(log_context, start_time, error)
            raise error

        duration_ms = (time.time() - start_time) * 1000
        logger.info(
            "Paystack operation completed",
            extra={**log_context, "duration_ms": duration_ms},
        )
        return body.get("data") or {}

    @classmethod
    def _log_failure(
        cls, log_context: dict[str, Any], start_time: float, error: Exception
    ) -> None:
        duration_ms = (time.time() - start_time) * 1000
        retryable = isinstance(error, PaystackError) and error.is_retryable
        cls.get_logger().warning(
            "Paystack operation failed",
            extra={
                **log_context,
                "error": str(error),
                "error_type": type(error).__name__,
                "retryable": retryable,
                "duration_ms": duration_ms,
            },
        )
