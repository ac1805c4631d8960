"""
Settlement admin configuration.

This file imports admin configurations from the ledger submodule and
registers the withdrawal and webhook models with the Django admin.
"""

from django.contrib import admin

from settlement.ledger.admin import TransactionAdmin, WalletAdmin
from settlement.models import WebhookEvent, Withdrawal

__all__ = [
    "TransactionAdmin",
    "WalletAdmin",
    "WebhookEventAdmin",
    "WithdrawalAdmin",
]


@admin.register(Withdrawal)
class WithdrawalAdmin(admin.ModelAdmin):
    """
    Admin configuration for Withdrawal.

    Status is FSM-protected; review actions go through the API so the
    wallet debit and refund stay consistent.
    """

    list_display = [
        "id",
        "owner_id",
        "role",
        "amount",
        "net_amount",
        "status",
        "created_at",
    ]
    list_filter = ["status", "role"]
    search_fields = ["id", "owner_id"]
    readonly_fields = [
        "id",
        "wallet",
        "owner_id",
        "role",
        "amount",
        "fee",
        "net_amount",
        "status",
        "bank_details",
        "metadata",
        "version",
        "approved_by",
        "approved_at",
        "processing_started_at",
        "completed_at",
        "rejected_at",
        "failure_reason",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    list_display = ["event_key", "event_type", "status", "retry_count", "created_at"]
    list_filter = ["event_type", "status"]
    search_fields = ["event_key", "reference"]
    readonly_fields = [
        "id",
        "event_key",
        "event_type",
        "reference",
        "payload",
        "status",
        "processed_at",
        "error_message",
        "retry_count",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
