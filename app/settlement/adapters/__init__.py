"""
External service adapters for the settlement app.

Adapters:
    - PaystackAdapter: Webhook verification, payments, transfer recipients, transfers
"""

from settlement.adapters.paystack_adapter import (
    CreateRecipientParams,
    InitializeResult,
    InitializeTransactionParams,
    InitiateTransferParams,
    PaystackAdapter,
    RecipientResult,
    TransactionVerification,
    TransferResult,
    charge_matches,
    to_minor_units,
)

__all__ = [
    "CreateRecipientParams",
    "InitializeResult",
    "InitializeTransactionParams",
    "InitiateTransferParams",
    "PaystackAdapter",
    "RecipientResult",
    "TransactionVerification",
    "TransferResult",
    "charge_matches",
    "to_minor_units",
]
