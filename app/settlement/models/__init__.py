"""
Settlement domain models.

This module exposes all settlement models:
- Wallet, Transaction: Wallet ledger (defined in settlement.ledger.models)
- Withdrawal: Payout requests moving wallet funds to a bank account
- WebhookEvent: Verified inbound gateway events and their processing status
"""

from settlement.ledger.models import Transaction, Wallet
from settlement.models.webhook_event import WebhookEvent
from settlement.models.withdrawal import Withdrawal

__all__ = [
    "Transaction",
    "Wallet",
    "WebhookEvent",
    "Withdrawal",
]
