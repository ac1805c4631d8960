"""
Django admin configuration for order models.

Payment and distribution fields are read-only: they change only through
the settlement services so the exactly-once guarantees hold.
"""

from django.contrib import admin

from .models import ChildOrder, Order, VendorGroup


class VendorGroupInline(admin.TabularInline):
    model = VendorGroup
    extra = 0
    can_delete = False
    readonly_fields = [
        "vendor_id",
        "vendor_name",
        "vendor_role",
        "subtotal",
        "commission_rate",
        "commission_amount",
        "payout_amount",
        "paid",
        "paid_at",
    ]
    fields = readonly_fields


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        "order_number",
        "customer_id",
        "total_amount",
        "payment_status",
        "distribution_status",
        "status",
        "created_at",
    ]
    list_filter = ["payment_status", "distribution_status", "status", "delivery_method"]
    search_fields = ["order_number", "payment_reference", "customer_id"]
    readonly_fields = [
        "id",
        "payment_status",
        "payment_reference",
        "paid_at",
        "distribution_status",
        "vendor_distributions",
        "platform_amount",
        "rider_amount",
        "distributed_at",
        "created_at",
        "updated_at",
    ]
    inlines = [VendorGroupInline]
    ordering = ["-created_at"]


@admin.register(ChildOrder)
class ChildOrderAdmin(admin.ModelAdmin):
    list_display = [
        "parent_order",
        "vendor_id",
        "vendor_role",
        "subtotal",
        "vendor_amount",
        "status",
        "created_at",
    ]
    list_filter = ["status", "vendor_role"]
    search_fields = ["vendor_id", "parent_order__order_number"]
    readonly_fields = [
        "commission_rate",
        "commission_amount",
        "vendor_amount",
        "paid_at",
    ]
