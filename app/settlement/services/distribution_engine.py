"""
Order distribution engine.

Splits a paid order's money across wallets exactly once:
- Each vendor group's payout (subtotal minus role commission) to the seller
- The summed commission to the platform wallet
- The delivery fee to the rider, or to the platform when no rider is set

The whole operation runs in one database transaction holding a row lock
on the order. Every credit carries a reference derived from the order, so
re-running distribution after a crash never credits anyone twice.

Usage:
    from settlement.services import OrderDistributionEngine

    result = OrderDistributionEngine().distribute(order.id)
    if result.success and not result.data.already_distributed:
        print(result.data.platform_amount)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from django.db import transaction
from django.utils import timezone

from core.services import BaseService, ServiceResult
from orders.choices import ChildOrderStatus, OrderStatus
from orders.models import ChildOrder, Order, VendorGroup
from orders.services import OrderService
from settlement.commission import CommissionTable, Role
from settlement.exceptions import (
    MalformedPayload,
    MissingVendorGroups,
    OrderNotFound,
    PaymentNotConfirmed,
    SettlementError,
)
from settlement.ledger import TransactionSource
from settlement.ledger.services import ledger as default_ledger
from settlement.state_machines import DistributionStatus, PaymentStatus

if TYPE_CHECKING:
    from settlement.ledger.services import WalletLedger


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class VendorPayout:
    """One vendor group's share after commission."""

    vendor_id: str
    vendor_name: str
    vendor_role: str
    amount: int
    commission_rate: Decimal
    commission: int
    payout: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "vendor_id": self.vendor_id,
            "vendor_name": self.vendor_name,
            "vendor_role": self.vendor_role,
            "amount": self.amount,
            "commission_rate": str(self.commission_rate),
            "commission": self.commission,
            "payout": self.payout,
        }


@dataclass
class DistributionResult:
    """
    Outcome of distributing an order.

    Attributes:
        order_id: Distributed order
        already_distributed: True when the call was a no-op replay
        vendor_payouts: Per-group split (empty for a replay)
        platform_amount: Commission plus any unassigned delivery fee
        rider_amount: Delivery fee credited to the rider
    """

    order_id: uuid.UUID
    already_distributed: bool = False
    vendor_payouts: list[VendorPayout] = field(default_factory=list)
    platform_amount: int = 0
    rider_amount: int = 0

    @property
    def total_payout(self) -> int:
        return sum(p.payout for p in self.vendor_payouts)


# =============================================================================
# Distribution Engine
# =============================================================================


class OrderDistributionEngine(BaseService):
    """
    Turns a confirmed payment into wallet credits.

    Collaborators are injected so tests can swap the ledger or use a fixed
    commission table:

        engine = OrderDistributionEngine(
            ledger=WalletLedger(max_attempts=1),
            commission_table=CommissionTable({"chef": "0.2"}),
        )
    """

    def __init__(
        self,
        ledger: WalletLedger | None = None,
        commission_table: CommissionTable | None = None,
    ):
        self.ledger = ledger or default_ledger
        self.commission_table = commission_table or CommissionTable.from_settings()

    # =========================================================================
    # References
    # =========================================================================

    @staticmethod
    def vendor_reference(order_id: uuid.UUID, vendor_id: str, role: str) -> str:
        return f"distribution:{order_id}:{vendor_id}:{role}"

    @staticmethod
    def platform_reference(order_id: uuid.UUID) -> str:
        return f"distribution:{order_id}:platform"

    @staticmethod
    def rider_reference(order_id: uuid.UUID) -> str:
        return f"distribution:{order_id}:rider"

    @staticmethod
    def platform_delivery_reference(order_id: uuid.UUID) -> str:
        return f"distribution:{order_id}:platform-delivery"

    # =========================================================================
    # Public API
    # =========================================================================

    def distribute(
        self,
        order_id: uuid.UUID,
        vendor_groups: list[dict[str, Any]] | None = None,
    ) -> ServiceResult[DistributionResult]:
        """
        Distribute a paid order's money to seller, platform and rider wallets.

        Args:
            order_id: Order to distribute
            vendor_groups: Fallback groups (e.g. from webhook metadata), only
                used and persisted when the order has none stored

        Returns:
            ServiceResult with DistributionResult. A second call for the
            same order succeeds with already_distributed=True.

        Raises:
            LedgerWriteError: A wallet write failed after retries. The whole
                distribution was rolled back and may be re-run.
        """
        log_context = {"order_id": str(order_id)}
        self.get_logger().info("Starting order distribution", extra=log_context)

        try:
            with transaction.atomic():
                result = self._distribute_locked(order_id, vendor_groups)
        except SettlementError as e:
            self.get_logger().warning(
                f"Order distribution rejected: {e.message}",
                extra={**log_context, "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        if result.already_distributed:
            self.get_logger().info(
                "Order already distributed, nothing to do", extra=log_context
            )
        else:
            self.get_logger().info(
                "Order distributed",
                extra={
                    **log_context,
                    "vendor_count": len(result.vendor_payouts),
                    "total_payout": result.total_payout,
                    "platform_amount": result.platform_amount,
                    "rider_amount": result.rider_amount,
                },
            )
        return ServiceResult.success(result)

    # =========================================================================
    # Internals
    # =========================================================================

    def _distribute_locked(
        self,
        order_id: uuid.UUID,
        vendor_groups: list[dict[str, Any]] | None,
    ) -> DistributionResult:
        try:
            order = Order.objects.select_for_update().get(id=order_id)
        except Order.DoesNotExist:
            raise OrderNotFound(
                f"Order {order_id} not found",
                details={"order_id": str(order_id)},
            )

        if order.payment_status != PaymentStatus.PAID:
            raise PaymentNotConfirmed(
                "Order payment has not been confirmed",
                details={
                    "order_id": str(order.id),
                    "payment_status": order.payment_status,
                },
            )

        if order.distribution_status == DistributionStatus.DISTRIBUTED:
            return DistributionResult(
                order_id=order.id,
                already_distributed=True,
                platform_amount=order.platform_amount,
                rider_amount=order.rider_amount,
            )

        groups = list(order.vendor_groups.all())
        if not groups and vendor_groups:
            groups = self._persist_vendor_groups(order, vendor_groups)
        if not groups:
            raise MissingVendorGroups(
                f"Order {order.order_number} has no vendor groups to distribute",
                details={"order_id": str(order.id)},
            )

        now = timezone.now()
        payouts = [self._credit_vendor_group(order, group, now) for group in groups]

        total_commission = sum(p.commission for p in payouts)
        platform_amount = total_commission
        rider_amount = 0

        if total_commission > 0:
            self.ledger.credit(
                owner_id=self.ledger.platform_owner_id(),
                role=Role.PLATFORM,
                amount=total_commission,
                source=TransactionSource.COMMISSION,
                order_id=order.id,
                reference=self.platform_reference(order.id),
                description=f"Commission from order #{order.order_number}",
                metadata={
                    "vendor_count": len(payouts),
                    "subtotal": sum(p.amount for p in payouts),
                },
            )

        if order.delivery_fee > 0:
            if order.rider_id:
                self.ledger.credit(
                    owner_id=order.rider_id,
                    role=Role.RIDER,
                    amount=order.delivery_fee,
                    source=TransactionSource.DELIVERY_FEE,
                    order_id=order.id,
                    reference=self.rider_reference(order.id),
                    description=f"Delivery fee for order #{order.order_number}",
                )
                rider_amount = order.delivery_fee
            else:
                self.ledger.credit(
                    owner_id=self.ledger.platform_owner_id(),
                    role=Role.PLATFORM,
                    amount=order.delivery_fee,
                    source=TransactionSource.DELIVERY_FEE,
                    order_id=order.id,
                    reference=self.platform_delivery_reference(order.id),
                    description=f"Delivery fee for order #{order.order_number}",
                )
                platform_amount += order.delivery_fee

        updated = Order.objects.filter(
            pk=order.pk, distribution_status=DistributionStatus.PENDING
        ).update(
            distribution_status=DistributionStatus.DISTRIBUTED,
            status=OrderStatus.PAID,
            vendor_distributions=[p.as_dict() for p in payouts],
            platform_amount=platform_amount,
            rider_amount=rider_amount,
            distributed_at=now,
            updated_at=now,
        )
        if not updated:
            # Unreachable while the row lock is held
            raise SettlementError(
                "Order distribution status changed during distribution",
                error_code="DISTRIBUTION_CONFLICT",
                details={"order_id": str(order.id)},
            )

        return DistributionResult(
            order_id=order.id,
            vendor_payouts=payouts,
            platform_amount=platform_amount,
            rider_amount=rider_amount,
        )

    def _credit_vendor_group(self, order: Order, group: VendorGroup, now) -> VendorPayout:
        split = self.commission_table.split(group.subtotal, group.vendor_role)

        if split.payout > 0:
            self.ledger.credit(
                owner_id=group.vendor_id,
                role=group.vendor_role,
                amount=split.payout,
                source=TransactionSource.ORDER_PAYMENT,
                order_id=order.id,
                reference=self.vendor_reference(order.id, group.vendor_id, group.vendor_role),
                description=f"Payment for order #{order.order_number}",
                metadata={
                    "subtotal": group.subtotal,
                    "commission_rate": str(split.rate),
                    "commission_amount": split.commission,
                },
            )

        group.commission_rate = split.rate
        group.commission_amount = split.commission
        group.payout_amount = split.payout
        group.paid = True
        group.paid_at = now
        group.save(
            update_fields=[
                "commission_rate",
                "commission_amount",
                "payout_amount",
                "paid",
                "paid_at",
            ]
        )

        ChildOrder.objects.filter(
            parent_order=order,
            vendor_id=group.vendor_id,
            vendor_role=group.vendor_role,
        ).update(
            status=ChildOrderStatus.PAID,
            commission_rate=split.rate,
            commission_amount=split.commission,
            vendor_amount=split.payout,
            paid_at=now,
            updated_at=now,
        )

        return VendorPayout(
            vendor_id=group.vendor_id,
            vendor_name=group.vendor_name,
            vendor_role=group.vendor_role,
            amount=group.subtotal,
            commission_rate=split.rate,
            commission=split.commission,
            payout=split.payout,
        )

    @staticmethod
    def _persist_vendor_groups(
        order: Order, vendor_groups: list[dict[str, Any]]
    ) -> list[VendorGroup]:
        """
        Store vendor groups supplied by the caller on an order that has none.

        Accepts both the gateway metadata shape (vendorId, vendorRole) and
        the snake_case API shape. Groups go through the same validation as
        order creation and get their ChildOrders.

        Raises:
            MalformedPayload: A group is not a mapping, or fails validation
        """
        if not isinstance(vendor_groups, list) or not all(
            isinstance(raw, dict) for raw in vendor_groups
        ):
            raise MalformedPayload(
                "Vendor groups must be a list of objects",
                details={"order_id": str(order.id)},
            )

        groups = [
            {
                "vendor_id": raw.get("vendorId") or raw.get("vendor_id"),
                "vendor_name": raw.get("vendorName") or raw.get("vendor_name") or "",
                "vendor_role": raw.get("vendorRole") or raw.get("vendor_role"),
                "subtotal": raw.get("subtotal"),
                "items": raw.get("items") or [],
            }
            for raw in vendor_groups
        ]
        errors = OrderService._validate_groups(groups)
        if errors:
            raise MalformedPayload(
                "Supplied vendor groups are invalid",
                details={"order_id": str(order.id), "errors": errors},
            )

        for group in groups:
            group["vendor_id"] = str(group["vendor_id"])
        OrderService._create_groups(order, groups, order.delivery_method)
        return list(order.vendor_groups.all())
