"""
Django admin configuration for ledger models.

Wallet balances and transactions are read-only here. Balances change only
through WalletLedger, and transactions are append-only.
"""

from django.contrib import admin

from .models import Transaction, Wallet


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    """
    Admin configuration for Wallet.

    Shows the stored balance next to the balance rebuilt from the ledger
    so drift is visible at a glance.
    """

    list_display = [
        "owner_id",
        "role",
        "balance",
        "pending_balance",
        "total_earned",
        "total_withdrawn",
        "currency",
        "updated_at",
    ]
    list_filter = ["role", "currency"]
    search_fields = ["id", "owner_id"]
    readonly_fields = [
        "id",
        "owner_id",
        "role",
        "balance",
        "pending_balance",
        "total_earned",
        "total_withdrawn",
        "currency",
        "computed_balance_display",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "owner_id", "role", "currency")}),
        (
            "Balances",
            {
                "fields": (
                    "balance",
                    "computed_balance_display",
                    "pending_balance",
                    "total_earned",
                    "total_withdrawn",
                ),
            },
        ),
        ("Payout", {"fields": ("bank_details",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def computed_balance_display(self, obj: Wallet) -> int:
        """Balance rebuilt from the transaction log (one query)."""
        return obj.computed_balance()

    computed_balance_display.short_description = "Ledger balance"

    def has_add_permission(self, request) -> bool:
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    """
    Admin configuration for Transaction.

    Transactions are immutable - they cannot be added, edited or deleted
    through the admin interface.
    """

    list_display = [
        "created_at",
        "type",
        "amount",
        "source",
        "owner_id",
        "role",
        "reference",
        "status",
    ]
    list_filter = ["type", "source", "role", "status", "created_at"]
    search_fields = ["id", "reference", "owner_id", "order_id", "description"]
    readonly_fields = [
        "id",
        "wallet",
        "type",
        "amount",
        "owner_id",
        "role",
        "source",
        "status",
        "order_id",
        "reference",
        "description",
        "metadata",
        "created_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    def has_delete_permission(self, request, obj=None) -> bool:
        return False

    def has_change_permission(self, request, obj=None) -> bool:
        return False

    def has_add_permission(self, request) -> bool:
        return False
