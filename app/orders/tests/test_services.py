"""
Tests for OrderService.

Tests cover:
- Order creation with vendor groups and child orders
- Validation of vendor groups and delivery fee
- Duplicate payment references
- Compare-and-set payment confirmation
"""

import pytest

from orders.choices import ChildOrderStatus, DeliveryMethod, OrderStatus, PaymentProvider
from orders.models import ChildOrder, Order, VendorGroup
from orders.services import OrderService
from settlement.state_machines import DistributionStatus, PaymentStatus
from settlement.tests.factories import OrderFactory

GROUPS = [
    {"vendor_id": "chef-1", "vendor_name": "Mama Put", "vendor_role": "chef", "subtotal": 10000},
    {"vendor_id": "pharmacy-1", "vendor_role": "pharmacy", "subtotal": 4000},
]


# =============================================================================
# create_order
# =============================================================================


@pytest.mark.django_db
class TestCreateOrder:
    def test_creates_order_groups_and_child_orders(self):
        result = OrderService.create_order(
            customer_id="customer-1",
            vendor_groups=GROUPS,
            delivery_fee=1500,
            rider_id="rider-1",
        )

        assert result.success
        order = result.data
        assert order.subtotal == 14000
        assert order.total_amount == 15500
        assert order.status == OrderStatus.PENDING_PAYMENT
        assert order.payment_status == PaymentStatus.PENDING
        assert order.distribution_status == DistributionStatus.PENDING
        assert order.payment_reference.startswith("ORD_")
        assert order.order_number.startswith("ORD-")
        assert list(
            VendorGroup.objects.filter(order=order).values_list("vendor_id", "position")
        ) == [("chef-1", 0), ("pharmacy-1", 1)]
        assert ChildOrder.objects.filter(
            parent_order=order, status=ChildOrderStatus.PENDING
        ).count() == 2

    def test_skips_unselected_groups(self):
        groups = [*GROUPS, {"vendor_id": "v-9", "vendor_role": "vendor", "subtotal": 999, "selected": False}]

        result = OrderService.create_order(customer_id="customer-1", vendor_groups=groups)

        assert result.data.subtotal == 14000
        assert not VendorGroup.objects.filter(vendor_id="v-9").exists()

    def test_self_pickup_generates_pickup_codes(self):
        result = OrderService.create_order(
            customer_id="customer-1",
            vendor_groups=GROUPS[:1],
            delivery_method=DeliveryMethod.SELF_PICKUP,
        )

        child = ChildOrder.objects.get(parent_order=result.data)
        assert len(child.pickup_code) == 6
        assert child.pickup_code.isdigit()

    def test_uses_supplied_payment_reference(self):
        result = OrderService.create_order(
            customer_id="customer-1", vendor_groups=GROUPS, payment_reference="ref-123"
        )

        assert result.data.payment_reference == "ref-123"

    def test_duplicate_payment_reference(self):
        OrderService.create_order(
            customer_id="customer-1", vendor_groups=GROUPS, payment_reference="ref-dup"
        )

        result = OrderService.create_order(
            customer_id="customer-2", vendor_groups=GROUPS, payment_reference="ref-dup"
        )

        assert not result.success
        assert result.error_code == "DUPLICATE_PAYMENT_REFERENCE"
        assert Order.objects.filter(payment_reference="ref-dup").count() == 1

    def test_requires_a_selected_group(self):
        result = OrderService.create_order(
            customer_id="customer-1",
            vendor_groups=[{**GROUPS[0], "selected": False}],
        )

        assert not result.success
        assert result.error_code == "ORDER_VENDOR_GROUPS_MISSING"
        assert not Order.objects.exists()

    @pytest.mark.parametrize(
        "group",
        [
            {"vendor_role": "chef", "subtotal": 100},
            {"vendor_id": "x", "vendor_role": "rider", "subtotal": 100},
            {"vendor_id": "x", "vendor_role": "platform", "subtotal": 100},
            {"vendor_id": "x", "vendor_role": "chef", "subtotal": 0},
            {"vendor_id": "x", "vendor_role": "chef", "subtotal": "100"},
        ],
    )
    def test_rejects_invalid_group(self, group):
        result = OrderService.create_order(customer_id="customer-1", vendor_groups=[group])

        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"
        assert "vendor_groups[0]" in result.errors

    def test_rejects_duplicate_vendor_group(self):
        result = OrderService.create_order(
            customer_id="customer-1", vendor_groups=[GROUPS[0], GROUPS[0]]
        )

        assert result.errors == {"vendor_groups[1]": ["Duplicate vendor group."]}

    def test_rejects_negative_delivery_fee(self):
        result = OrderService.create_order(
            customer_id="customer-1", vendor_groups=GROUPS, delivery_fee=-1
        )

        assert result.error_code == "VALIDATION_ERROR"
        assert "delivery_fee" in result.errors


# =============================================================================
# mark_paid
# =============================================================================


@pytest.mark.django_db
class TestMarkPaid:
    def test_confirms_pending_order(self):
        order = OrderFactory()

        assert OrderService.mark_paid(order.id) is True

        order = Order.objects.get(id=order.id)
        assert order.payment_status == PaymentStatus.PAID
        assert order.paid_at is not None

    def test_second_confirmation_is_refused(self):
        order = OrderFactory()
        OrderService.mark_paid(order.id)

        assert OrderService.mark_paid(order.id) is False

    def test_records_manual_reference(self):
        order = OrderFactory()

        OrderService.mark_paid(
            order.id, payment_reference="MANUAL_abc", payment_provider=PaymentProvider.MANUAL
        )

        order = Order.objects.get(id=order.id)
        assert order.payment_reference == "MANUAL_abc"
        assert order.payment_provider == PaymentProvider.MANUAL

    def test_get_order(self):
        order = OrderFactory()

        assert OrderService.get_order(order.id) == order
