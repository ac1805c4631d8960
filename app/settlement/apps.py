"""
Settlement app configuration.

This app provides the money side of the marketplace:
- Wallet ledger with append-only transactions
- Order payment distribution
- Withdrawals paid out through Paystack transfers
- Paystack webhook handling
"""

from django.apps import AppConfig


class SettlementConfig(AppConfig):
    """Configuration for the settlement application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "settlement"
    verbose_name = "Settlement"
