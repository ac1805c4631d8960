"""
Order models.

An Order is one customer purchase that may span several sellers:
- Order: Parent order with payment and distribution state
- VendorGroup: One seller's share of the order (ordered, owned by Order)
- ChildOrder: Per-seller decomposition used for fulfilment and earnings

Payment and distribution status are changed only through compare-and-set
updates in the settlement app, never by assigning and saving.

Usage:
    from orders.models import Order

    order = Order.objects.get(payment_reference=reference)
    for group in order.vendor_groups.all():
        print(group.vendor_id, group.subtotal)
"""

from __future__ import annotations

from django.db import models

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from orders.choices import ChildOrderStatus, DeliveryMethod, OrderStatus, PaymentProvider
from settlement.commission import Role
from settlement.state_machines import DistributionStatus, PaymentStatus


class Order(UUIDPrimaryKeyMixin, BaseModel):
    """
    A customer purchase spanning one or more sellers.

    Amount fields are integers in major currency units.

    Fields:
        order_number: Human-readable unique order code
        customer_id: Identifier of the buying customer
        subtotal: Sum of vendor group subtotals
        delivery_fee: Fee paid for delivery (owed to the rider if any)
        total_amount: subtotal + delivery_fee
        payment_*: Gateway payment state for this order
        distribution_*: Outcome of splitting the payment across wallets
    """

    # ==========================================================================
    # Identity
    # ==========================================================================

    order_number = models.CharField(
        max_length=32,
        unique=True,
        help_text="Human-readable order code",
    )
    customer_id = models.CharField(
        max_length=64,
        db_index=True,
        help_text="Identifier of the customer who placed the order",
    )
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING_PAYMENT,
        db_index=True,
    )

    # ==========================================================================
    # Amounts & Delivery
    # ==========================================================================

    subtotal = models.PositiveBigIntegerField(default=0)
    delivery_fee = models.PositiveBigIntegerField(default=0)
    total_amount = models.PositiveBigIntegerField(default=0)
    delivery_method = models.CharField(
        max_length=20,
        choices=DeliveryMethod.choices,
        default=DeliveryMethod.SITE_COMPANY,
    )
    delivery_address = models.JSONField(default=dict, blank=True)
    rider_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Rider delivering the order; receives the delivery fee",
    )

    # ==========================================================================
    # Payment
    # ==========================================================================

    payment_provider = models.CharField(
        max_length=20,
        choices=PaymentProvider.choices,
        default=PaymentProvider.PAYSTACK,
    )
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
        db_index=True,
    )
    payment_reference = models.CharField(
        max_length=100,
        unique=True,
        help_text="Gateway transaction reference for this order's payment",
    )
    paid_at = models.DateTimeField(null=True, blank=True)

    # ==========================================================================
    # Distribution
    # ==========================================================================

    distribution_status = models.CharField(
        max_length=20,
        choices=DistributionStatus.choices,
        default=DistributionStatus.PENDING,
        db_index=True,
    )
    vendor_distributions = models.JSONField(
        default=list,
        blank=True,
        help_text="Per-seller amount, commission and payout from distribution",
    )
    platform_amount = models.BigIntegerField(default=0)
    rider_amount = models.BigIntegerField(default=0)
    distributed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["payment_status", "distribution_status"]),
        ]

    def __str__(self) -> str:
        return f"Order({self.order_number}, {self.payment_status}, {self.distribution_status})"

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    @property
    def is_distributed(self) -> bool:
        return self.distribution_status == DistributionStatus.DISTRIBUTED


class VendorGroup(models.Model):
    """
    One seller's share of an order.

    Financial fields stay empty until distribution records the applied
    commission rate, commission and payout on the group.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="vendor_groups",
    )
    position = models.PositiveIntegerField(default=0)
    vendor_id = models.CharField(max_length=64, db_index=True)
    vendor_name = models.CharField(max_length=255, blank=True, default="")
    vendor_role = models.CharField(max_length=20, choices=Role.choices)
    subtotal = models.PositiveBigIntegerField()
    items = models.JSONField(default=list, blank=True)
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
    )
    commission_amount = models.BigIntegerField(null=True, blank=True)
    payout_amount = models.BigIntegerField(null=True, blank=True)
    paid = models.BooleanField(default=False)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["position", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["order", "vendor_id", "vendor_role"],
                name="unique_vendor_group_per_order",
            ),
        ]

    def __str__(self) -> str:
        return f"VendorGroup({self.vendor_id}, {self.vendor_role}, {self.subtotal})"


class ChildOrder(UUIDPrimaryKeyMixin, BaseModel):
    """
    Per-seller view of an order used for fulfilment and earnings queries.

    Created with the parent order; commission_* and vendor_amount are
    filled in by distribution.
    """

    parent_order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="child_orders",
    )
    vendor_id = models.CharField(max_length=64, db_index=True)
    vendor_name = models.CharField(max_length=255, blank=True, default="")
    vendor_role = models.CharField(max_length=20, choices=Role.choices)
    items = models.JSONField(default=list, blank=True)
    subtotal = models.PositiveBigIntegerField()
    status = models.CharField(
        max_length=20,
        choices=ChildOrderStatus.choices,
        default=ChildOrderStatus.PENDING,
        db_index=True,
    )
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
    )
    commission_amount = models.BigIntegerField(null=True, blank=True)
    vendor_amount = models.BigIntegerField(null=True, blank=True)
    delivery_method = models.CharField(
        max_length=20,
        choices=DeliveryMethod.choices,
        default=DeliveryMethod.SITE_COMPANY,
    )
    pickup_code = models.CharField(max_length=6, blank=True, default="")
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["parent_order", "vendor_id", "vendor_role"],
                name="unique_child_order_per_vendor",
            ),
        ]
        indexes = [
            models.Index(fields=["vendor_id", "vendor_role", "status"]),
        ]

    def __str__(self) -> str:
        return f"ChildOrder({self.vendor_id}, {self.status}, {self.subtotal})"
