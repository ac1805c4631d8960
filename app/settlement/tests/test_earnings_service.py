"""
Tests for EarningsService.

Tests cover:
- Wallet figures with and without a wallet
- Aggregation over paid and delivered child orders in the range
- Rider delivery fee totals over distributed orders
- Role and range validation
"""

from datetime import timedelta

from django.utils import timezone
from freezegun import freeze_time

from orders.choices import ChildOrderStatus
from settlement.commission import Role
from settlement.services import EarningsService
from settlement.state_machines import DistributionStatus, PaymentStatus
from settlement.tests.factories import ChildOrderFactory, OrderFactory, WalletFactory


def paid_child(vendor_id="chef-1", role=Role.CHEF, subtotal=10000, days_ago=1, **kwargs):
    commission = kwargs.pop("commission_amount", subtotal * 15 // 100)
    return ChildOrderFactory(
        vendor_id=vendor_id,
        vendor_role=role,
        subtotal=subtotal,
        status=kwargs.pop("status", ChildOrderStatus.PAID),
        commission_amount=commission,
        vendor_amount=subtotal - commission,
        paid_at=timezone.now() - timedelta(days=days_ago),
        **kwargs,
    )


def delivered_order(rider_id="rider-1", delivery_fee=1500, days_ago=1, **kwargs):
    return OrderFactory(
        rider_id=rider_id,
        subtotal=10000,
        delivery_fee=delivery_fee,
        payment_status=PaymentStatus.PAID,
        distribution_status=kwargs.pop("distribution_status", DistributionStatus.DISTRIBUTED),
        rider_amount=delivery_fee,
        distributed_at=timezone.now() - timedelta(days=days_ago),
        **kwargs,
    )


class TestSummarize:
    """Tests for EarningsService.summarize."""

    def test_no_wallet_returns_zeros(self, db):
        result = EarningsService.summarize("chef-1", Role.CHEF)

        assert result.success
        summary = result.data.as_dict()
        assert summary["balance"] == 0
        assert summary["order_count"] == 0
        assert summary["average_order_value"] == 0
        assert summary["range"] == "30d"

    def test_reads_wallet_figures(self, db):
        WalletFactory(
            owner_id="chef-1",
            role=Role.CHEF,
            balance=7000,
            pending_balance=1000,
            total_earned=12000,
            total_withdrawn=4000,
        )

        summary = EarningsService.summarize("chef-1", Role.CHEF).data

        assert summary.balance == 7000
        assert summary.pending_balance == 1000
        assert summary.total_earned == 12000
        assert summary.total_withdrawn == 4000

    def test_aggregates_child_orders(self, db):
        paid_child(subtotal=10000)
        paid_child(subtotal=4000, status=ChildOrderStatus.DELIVERED)

        summary = EarningsService.summarize("chef-1", Role.CHEF).data

        assert summary.gross == 14000
        assert summary.commission == 1500 + 600
        assert summary.net == 8500 + 3400
        assert summary.order_count == 2
        assert summary.average_order_value == 7000

    def test_excludes_unpaid_other_roles_and_out_of_range(self, db):
        paid_child(subtotal=10000)
        paid_child(subtotal=5000, status=ChildOrderStatus.CANCELLED)
        paid_child(subtotal=5000, role=Role.VENDOR)
        paid_child(subtotal=5000, vendor_id="chef-2")
        paid_child(subtotal=5000, days_ago=10)

        summary = EarningsService.summarize("chef-1", Role.CHEF, range_key="7d").data

        assert summary.gross == 10000
        assert summary.order_count == 1

    @freeze_time("2024-03-10 00:30:00")
    def test_today_range(self, db):
        paid_child(subtotal=3000, days_ago=0)
        paid_child(subtotal=4000, days_ago=0.05)
        paid_child(subtotal=5000, days_ago=2)

        summary = EarningsService.summarize("chef-1", Role.CHEF, range_key="today").data

        assert summary.gross == 3000

    def test_rejects_platform_role(self, db):
        result = EarningsService.summarize("platform", Role.PLATFORM)

        assert not result.success
        assert result.error_code == "VALIDATION_ERROR"

    def test_rejects_unknown_range(self, db):
        result = EarningsService.summarize("chef-1", Role.CHEF, range_key="1y")

        assert not result.success
        assert "range" in result.errors


class TestRiderSummary:
    """Tests for EarningsService.summarize with the rider role."""

    def test_sums_delivery_fees(self, db):
        WalletFactory(owner_id="rider-1", role=Role.RIDER, balance=3500)
        delivered_order(delivery_fee=1500)
        delivered_order(delivery_fee=2000)

        summary = EarningsService.summarize("rider-1", Role.RIDER).data

        assert summary.balance == 3500
        assert summary.gross == 3500
        assert summary.net == 3500
        assert summary.commission == 0
        assert summary.order_count == 2
        assert summary.average_order_value == 1750

    def test_excludes_undistributed_other_riders_and_out_of_range(self, db):
        delivered_order(delivery_fee=1500)
        delivered_order(delivery_fee=900, distribution_status=DistributionStatus.PENDING)
        delivered_order(delivery_fee=900, rider_id="rider-2")
        delivered_order(delivery_fee=900, days_ago=40)

        summary = EarningsService.summarize("rider-1", Role.RIDER).data

        assert summary.gross == 1500
        assert summary.order_count == 1

    def test_no_deliveries(self, db):
        result = EarningsService.summarize("rider-1", Role.RIDER, range_key="today")

        assert result.success
        assert result.data.gross == 0
        assert result.data.average_order_value == 0
