"""
Withdrawal model for payouts from a wallet to a bank account.

A Withdrawal moves a seller's or rider's earnings out through a Paystack
transfer. The wallet is only debited when the transfer is initiated
(APPROVED → PROCESSING); a transfer that cannot be completed is
compensated with a refund credit.

Usage:
    from settlement.models import Withdrawal

    withdrawal = Withdrawal.objects.create(
        wallet=wallet,
        owner_id=wallet.owner_id,
        role=wallet.role,
        amount=5000,
        fee=50,
        net_amount=4950,
        bank_details={"bank_code": "058", "account_number": "0123456789",
                      "account_name": "Ada Obi"},
    )

    # State transitions using django-fsm
    withdrawal.approve(approved_by="admin-1")  # pending -> approved
    withdrawal.save()
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django_fsm import FSMField, transition

from core.model_mixins import MetadataMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from settlement.commission import Role
from settlement.state_machines import WithdrawalState


class Withdrawal(UUIDPrimaryKeyMixin, MetadataMixin, BaseModel):
    """
    A request to pay out wallet funds to a bank account.

    State Flow:
        PENDING -> APPROVED -> PROCESSING -> COMPLETED
        PROCESSING -> REJECTED (transfer initiation failed, refunded)
        PROCESSING -> FAILED (gateway reported failure, refunded)
        PENDING/APPROVED -> REJECTED (declined by admin)

    Metadata keys:
        gateway_recipient_handle: Paystack recipient code, reused on retry
        gateway_transfer_handle: Paystack transfer code once initiated
        gateway_reference: Reference sent with the transfer
        transfer_initiated_at: ISO timestamp of the transfer call

    Fields:
        wallet: Wallet the funds come from
        amount: Amount debited from the wallet
        fee: Flat withdrawal fee kept by the platform
        net_amount: amount - fee, the sum sent to the bank
        status: Current FSM state
        version: Optimistic locking version
    """

    # ==========================================================================
    # Ownership
    # ==========================================================================

    wallet = models.ForeignKey(
        "settlement.Wallet",
        on_delete=models.PROTECT,
        related_name="withdrawals",
    )
    owner_id = models.CharField(max_length=64, db_index=True)
    role = models.CharField(max_length=20, choices=Role.choices)

    # ==========================================================================
    # Amounts
    # ==========================================================================

    amount = models.PositiveBigIntegerField(
        help_text="Amount taken from the wallet balance",
    )
    fee = models.PositiveBigIntegerField(default=0)
    net_amount = models.PositiveBigIntegerField(
        help_text="Amount transferred to the bank (amount - fee)",
    )
    bank_details = models.JSONField(
        default=dict,
        help_text="bank_code, account_number and account_name",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=WithdrawalState.PENDING,
        choices=WithdrawalState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the withdrawal (managed by FSM)",
    )
    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    # ==========================================================================
    # Audit
    # ==========================================================================

    approved_by = models.CharField(max_length=64, null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    processing_started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["owner_id", "status"]),
            models.Index(fields=["status", "processing_started_at"]),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="withdrawal_amount_positive",
            ),
            models.CheckConstraint(
                condition=Q(net_amount=F("amount") - F("fee")),
                name="withdrawal_net_amount_matches",
            ),
        ]

    def __str__(self) -> str:
        return f"Withdrawal({self.id}, {self.status}, {self.amount})"

    def save(self, *args, **kwargs):
        """
        Save with version auto-increment for optimistic locking.
        """
        is_update = self.pk and not self._state.adding
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = {*update_fields, "version", "updated_at"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    @property
    def transfer_handle(self) -> str | None:
        return self.get_meta("gateway_transfer_handle")

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=WithdrawalState.PENDING,
        target=WithdrawalState.APPROVED,
    )
    def approve(self, approved_by: str | None = None):
        """
        Approve the withdrawal for payout.

        Transition: PENDING -> APPROVED
        """
        self.approved_by = approved_by
        self.approved_at = timezone.now()

    @transition(
        field=status,
        source=[WithdrawalState.PENDING, WithdrawalState.APPROVED],
        target=WithdrawalState.REJECTED,
    )
    def reject(self, reason: str):
        """
        Decline the withdrawal before any funds moved.

        Transition: PENDING/APPROVED -> REJECTED
        """
        self.rejected_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=WithdrawalState.APPROVED,
        target=WithdrawalState.PROCESSING,
    )
    def start_processing(self):
        """
        Begin the gateway transfer.

        Transition: APPROVED -> PROCESSING
        Performed in the same database transaction as the wallet debit.
        """
        self.processing_started_at = timezone.now()

    @transition(
        field=status,
        source=WithdrawalState.PROCESSING,
        target=WithdrawalState.COMPLETED,
    )
    def complete(self):
        """
        Mark the transfer as delivered.

        Transition: PROCESSING -> COMPLETED
        """
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=WithdrawalState.PROCESSING,
        target=WithdrawalState.REJECTED,
    )
    def fail_transfer(self, reason: str):
        """
        Record that the transfer could not be initiated.

        Transition: PROCESSING -> REJECTED
        The caller must refund the debited amount in the same transaction.
        """
        self.rejected_at = timezone.now()
        self.failure_reason = reason

    @transition(
        field=status,
        source=WithdrawalState.PROCESSING,
        target=WithdrawalState.FAILED,
    )
    def mark_failed(self, reason: str):
        """
        Record a failure or reversal reported by the gateway.

        Transition: PROCESSING -> FAILED
        The caller must refund the debited amount in the same transaction.
        """
        self.rejected_at = timezone.now()
        self.failure_reason = reason
