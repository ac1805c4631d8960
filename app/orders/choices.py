"""
Choice enums for order models.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    """
    Customer-facing status of a parent order.

    PENDING_PAYMENT → PAID once the payment is confirmed and distributed.
    """

    PENDING_PAYMENT = "pending_payment", "Pending Payment"
    PAID = "paid", "Paid"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class ChildOrderStatus(models.TextChoices):
    """Fulfilment status of one seller's part of an order."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready"
    DELIVERED = "delivered", "Delivered"
    CANCELLED = "cancelled", "Cancelled"


class DeliveryMethod(models.TextChoices):
    SITE_COMPANY = "site_company", "Site Delivery Company"
    SELF_PICKUP = "self_pickup", "Self Pickup"
    OWN_RIDER = "own_rider", "Own Rider"
    VENDOR_RIDER = "vendor_rider", "Vendor Rider"


class PaymentProvider(models.TextChoices):
    PAYSTACK = "paystack", "Paystack"
    MANUAL = "manual", "Manual"
