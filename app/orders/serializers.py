"""
DRF serializers for the orders app.

Related files:
    - models.py: Order, VendorGroup, ChildOrder
    - services.py: OrderService
    - views.py: Order API views
"""

from __future__ import annotations

from rest_framework import serializers

from orders.choices import DeliveryMethod
from orders.models import ChildOrder, Order, VendorGroup
from settlement.commission import SELLER_ROLES


class VendorGroupInputSerializer(serializers.Serializer):
    """One seller's share of a new order."""

    vendor_id = serializers.CharField(max_length=64)
    vendor_name = serializers.CharField(max_length=255, required=False, default="")
    vendor_role = serializers.ChoiceField(
        choices=[(role.value, role.label) for role in SELLER_ROLES],
    )
    subtotal = serializers.IntegerField(min_value=1)
    items = serializers.ListField(
        child=serializers.DictField(),
        required=False,
        default=list,
    )
    selected = serializers.BooleanField(required=False, default=True)


class CreateOrderSerializer(serializers.Serializer):
    """
    Request body for order creation.

    Example:
        {
            "vendor_groups": [
                {"vendor_id": "chef-1", "vendor_role": "chef", "subtotal": 10000}
            ],
            "delivery_method": "site_company",
            "delivery_fee": 1500
        }
    """

    vendor_groups = VendorGroupInputSerializer(many=True, allow_empty=False)
    delivery_method = serializers.ChoiceField(
        choices=DeliveryMethod.choices,
        default=DeliveryMethod.SITE_COMPANY,
    )
    delivery_fee = serializers.IntegerField(min_value=0, default=0)
    rider_id = serializers.CharField(
        max_length=64,
        required=False,
        allow_null=True,
        allow_blank=True,
        default=None,
    )
    delivery_address = serializers.DictField(required=False, default=dict)
    payment_reference = serializers.CharField(
        max_length=100,
        required=False,
        allow_null=True,
        default=None,
    )


class VendorGroupSerializer(serializers.ModelSerializer):
    class Meta:
        model = VendorGroup
        fields = [
            "vendor_id",
            "vendor_name",
            "vendor_role",
            "subtotal",
            "items",
            "commission_rate",
            "commission_amount",
            "payout_amount",
            "paid",
            "paid_at",
        ]
        read_only_fields = fields


class ChildOrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = ChildOrder
        fields = [
            "id",
            "vendor_id",
            "vendor_name",
            "vendor_role",
            "items",
            "subtotal",
            "status",
            "commission_rate",
            "commission_amount",
            "vendor_amount",
            "delivery_method",
            "pickup_code",
            "paid_at",
            "created_at",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    """Order with its vendor groups, payment and distribution summary."""

    vendor_groups = VendorGroupSerializer(many=True, read_only=True)
    child_orders = ChildOrderSerializer(many=True, read_only=True)

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "status",
            "subtotal",
            "delivery_fee",
            "total_amount",
            "delivery_method",
            "rider_id",
            "payment_provider",
            "payment_status",
            "payment_reference",
            "paid_at",
            "distribution_status",
            "vendor_distributions",
            "platform_amount",
            "rider_amount",
            "distributed_at",
            "vendor_groups",
            "child_orders",
            "created_at",
        ]
        read_only_fields = fields
