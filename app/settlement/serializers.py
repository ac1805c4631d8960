"""
DRF serializers for the settlement app.

Related files:
    - models/: Withdrawal, WebhookEvent (Wallet, Transaction in ledger/)
    - services/: PaymentService, WithdrawalService, EarningsService
    - views.py: Settlement API views
"""

from __future__ import annotations

from rest_framework import serializers

from settlement.commission import Role
from settlement.ledger import Transaction, Wallet
from settlement.models import Withdrawal


class WalletSerializer(serializers.ModelSerializer):
    """Wallet balances for the owner's dashboard."""

    class Meta:
        model = Wallet
        fields = [
            "id",
            "role",
            "balance",
            "pending_balance",
            "total_earned",
            "total_withdrawn",
            "currency",
            "updated_at",
        ]
        read_only_fields = fields


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = [
            "id",
            "type",
            "amount",
            "source",
            "status",
            "order_id",
            "reference",
            "description",
            "created_at",
        ]
        read_only_fields = fields


class BankDetailsSerializer(serializers.Serializer):
    bank_code = serializers.CharField(max_length=10)
    account_number = serializers.RegexField(r"^\d{10}$", max_length=10)
    account_name = serializers.CharField(max_length=255)


class WithdrawalRequestSerializer(serializers.Serializer):
    """
    Request body for a withdrawal.

    Example:
        {
            "role": "chef",
            "amount": 5000,
            "bank_details": {
                "bank_code": "058",
                "account_number": "0123456789",
                "account_name": "Ada Obi"
            }
        }

    bank_details may be omitted when the wallet has bank details on file.
    """

    role = serializers.ChoiceField(
        choices=[(r.value, r.label) for r in Role if r != Role.PLATFORM],
    )
    amount = serializers.IntegerField(min_value=1)
    bank_details = BankDetailsSerializer(required=False)


class WithdrawalSerializer(serializers.ModelSerializer):
    transfer_reference = serializers.SerializerMethodField()

    class Meta:
        model = Withdrawal
        fields = [
            "id",
            "role",
            "amount",
            "fee",
            "net_amount",
            "status",
            "bank_details",
            "transfer_reference",
            "approved_at",
            "completed_at",
            "failure_reason",
            "created_at",
        ]
        read_only_fields = fields

    def get_transfer_reference(self, obj: Withdrawal) -> str | None:
        return obj.get_meta("gateway_reference")


class RejectWithdrawalSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class EarningsQuerySerializer(serializers.Serializer):
    role = serializers.ChoiceField(
        choices=[Role.CHEF, Role.PHARMACY, Role.VENDOR, Role.TOPVENDOR, Role.RIDER],
    )
    range = serializers.ChoiceField(
        choices=["today", "7d", "30d", "90d"],
        default="30d",
    )


class PaymentInitializeSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()
    email = serializers.EmailField()
    callback_url = serializers.URLField(required=False, allow_blank=True, default="")


class PaymentVerifyQuerySerializer(serializers.Serializer):
    reference = serializers.CharField(max_length=100)
