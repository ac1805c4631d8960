"""
Wallet ledger models.

This module defines the models behind the wallet ledger:
- Wallet: Running balance per (owner, role) pair, plus the platform wallet
- Transaction: Append-only record of every balance change

Balances are denormalized onto Wallet for fast reads and are only ever
changed with F() increments by WalletLedger. The transaction log is the
audit trail: for every wallet, balance equals the sum of its CREDIT
amounts minus the sum of its DEBIT amounts.

Usage:
    from settlement.ledger.models import Wallet, Transaction

    wallet = Wallet.objects.get(owner_id="vendor-42", role=Role.CHEF)
    wallet.computed_balance()  # sum of credits minus debits
"""

from __future__ import annotations

from django.db import models
from django.db.models import Case, Q, Sum, Value, When
from django.db.models.functions import Coalesce

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from settlement.commission import Role


class TransactionType(models.TextChoices):
    """Direction of a balance change."""

    CREDIT = "credit", "Credit"
    DEBIT = "debit", "Debit"


class TransactionSource(models.TextChoices):
    """
    Business reason for a balance change.

    Values:
        ORDER_PAYMENT: Seller payout from a distributed order
        COMMISSION: Platform commission from a distributed order
        DELIVERY_FEE: Rider (or unassigned) delivery fee
        REFUND: Funds returned after a failed withdrawal transfer
        WITHDRAWAL: Funds moved out of balance for a payout
    """

    ORDER_PAYMENT = "order_payment", "Order Payment"
    COMMISSION = "commission", "Commission"
    DELIVERY_FEE = "delivery_fee", "Delivery Fee"
    REFUND = "refund", "Refund"
    WITHDRAWAL = "withdrawal", "Withdrawal"


class TransactionStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class Wallet(UUIDPrimaryKeyMixin, BaseModel):
    """
    A running balance owned by one (owner, role) pair.

    A user with several roles (e.g. chef and rider) has one wallet per
    role. The platform wallet uses settings.PLATFORM_WALLET_OWNER_ID.

    Wallets are created lazily by the first credit. Never assign to the
    balance fields directly; go through WalletLedger.

    Fields:
        owner_id: External identifier of the owning user
        role: Role the wallet earns under
        balance: Funds available for withdrawal
        pending_balance: Funds debited for a withdrawal still in flight
        total_earned: Lifetime earnings (refunds excluded)
        total_withdrawn: Lifetime completed withdrawals
        currency: ISO 4217 currency code
        bank_details: Last bank account used for a withdrawal
    """

    owner_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Identifier of the user owning this wallet",
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        help_text="Role this wallet earns under",
    )
    balance = models.BigIntegerField(
        default=0,
        help_text="Available balance in major currency units",
    )
    pending_balance = models.BigIntegerField(
        default=0,
        help_text="Balance earmarked for in-flight withdrawals",
    )
    total_earned = models.BigIntegerField(default=0)
    total_withdrawn = models.BigIntegerField(default=0)
    currency = models.CharField(
        max_length=3,
        default="NGN",
        help_text="ISO 4217 currency code",
    )
    bank_details = models.JSONField(
        default=dict,
        blank=True,
        help_text="Bank account used for the most recent withdrawal",
    )

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["owner_id", "role"],
                name="unique_wallet_per_owner_role",
            ),
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="wallet_balance_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(pending_balance__gte=0),
                name="wallet_pending_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Wallet({self.owner_id}, {self.role}, {self.balance} {self.currency})"

    def computed_balance(self) -> int:
        """
        Balance reconstructed from the transaction log.

        Returns:
            Sum of CREDIT amounts minus sum of DEBIT amounts
        """
        result = self.transactions.aggregate(
            credits=Coalesce(
                Sum(
                    Case(
                        When(type=TransactionType.CREDIT, then="amount"),
                        default=Value(0),
                        output_field=models.BigIntegerField(),
                    )
                ),
                Value(0),
                output_field=models.BigIntegerField(),
            ),
            debits=Coalesce(
                Sum(
                    Case(
                        When(type=TransactionType.DEBIT, then="amount"),
                        default=Value(0),
                        output_field=models.BigIntegerField(),
                    )
                ),
                Value(0),
                output_field=models.BigIntegerField(),
            ),
        )
        return result["credits"] - result["debits"]


class Transaction(UUIDPrimaryKeyMixin, models.Model):
    """
    Immutable record of a single balance change.

    Rows are never updated or deleted; corrections are new rows (a failed
    withdrawal produces a REFUND credit, not an edit of the debit).

    The reference doubles as the idempotency key: WalletLedger returns the
    existing row instead of applying the same change twice.
    """

    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="Wallet whose balance this transaction changed",
    )
    type = models.CharField(
        max_length=10,
        choices=TransactionType.choices,
        db_index=True,
    )
    amount = models.PositiveBigIntegerField(
        help_text="Amount in major currency units (always positive)",
    )
    owner_id = models.CharField(max_length=64, db_index=True)
    role = models.CharField(max_length=20, choices=Role.choices)
    source = models.CharField(
        max_length=20,
        choices=TransactionSource.choices,
        db_index=True,
    )
    status = models.CharField(
        max_length=20,
        choices=TransactionStatus.choices,
        default=TransactionStatus.COMPLETED,
    )
    order_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Order that produced this transaction, if any",
    )
    reference = models.CharField(
        max_length=255,
        unique=True,
        help_text="Unique reference; repeated writes with it are no-ops",
    )
    description = models.CharField(max_length=255, blank=True, default="")
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["wallet", "type"]),
            models.Index(fields=["owner_id", "role"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="transaction_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()} {self.amount} ({self.source}) {self.reference}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Ledger transactions are append-only and cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Ledger transactions are append-only and cannot be deleted")
