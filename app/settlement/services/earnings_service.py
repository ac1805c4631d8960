"""
Seller and rider earnings summaries.

Reads the owner's wallet for the role and aggregates what they earned over
a date range: paid child orders for sellers, distributed delivery fees for
riders. Read-only; nothing here touches balances.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import timedelta
from typing import Any

from django.db.models import Count, Sum
from django.utils import timezone

from core.services import BaseService, ServiceResult
from orders.choices import ChildOrderStatus
from orders.models import ChildOrder, Order
from settlement.commission import SELLER_ROLES, Role
from settlement.ledger import Wallet
from settlement.state_machines import DistributionStatus

RANGE_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
}
EARNING_STATUSES = (ChildOrderStatus.PAID, ChildOrderStatus.DELIVERED)


@dataclass
class EarningsSummary:
    role: str
    range: str
    balance: int = 0
    pending_balance: int = 0
    total_earned: int = 0
    total_withdrawn: int = 0
    gross: int = 0
    commission: int = 0
    net: int = 0
    order_count: int = 0
    average_order_value: int = 0

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class EarningsService(BaseService):
    """Earnings dashboard figures for one (owner, role)."""

    @staticmethod
    def range_start(range_key: str):
        now = timezone.now()
        if range_key == "today":
            return now.replace(hour=0, minute=0, second=0, microsecond=0)
        return now - timedelta(days=RANGE_DAYS[range_key])

    @classmethod
    def summarize(
        cls, owner_id: str, role: str, range_key: str = "30d"
    ) -> ServiceResult[EarningsSummary]:
        if role not in SELLER_ROLES and role != Role.RIDER:
            return ServiceResult.failure(
                f"Earnings are only available for seller and rider roles, got {role!r}",
                error_code="VALIDATION_ERROR",
                errors={"role": ["Not a seller or rider role."]},
            )
        if range_key != "today" and range_key not in RANGE_DAYS:
            return ServiceResult.failure(
                f"Unknown range {range_key!r}",
                error_code="VALIDATION_ERROR",
                errors={"range": ["Expected one of today, 7d, 30d, 90d."]},
            )

        summary = EarningsSummary(role=role, range=range_key)

        wallet = Wallet.objects.filter(owner_id=str(owner_id), role=role).first()
        if wallet is not None:
            summary.balance = wallet.balance
            summary.pending_balance = wallet.pending_balance
            summary.total_earned = wallet.total_earned
            summary.total_withdrawn = wallet.total_withdrawn

        if role == Role.RIDER:
            totals = cls._rider_totals(str(owner_id), cls.range_start(range_key))
        else:
            totals = ChildOrder.objects.filter(
                vendor_id=str(owner_id),
                vendor_role=role,
                status__in=EARNING_STATUSES,
                paid_at__gte=cls.range_start(range_key),
            ).aggregate(
                gross=Sum("subtotal"),
                commission=Sum("commission_amount"),
                net=Sum("vendor_amount"),
                order_count=Count("id"),
            )
        summary.gross = totals["gross"] or 0
        summary.commission = totals["commission"] or 0
        summary.net = totals["net"] or 0
        summary.order_count = totals["order_count"] or 0
        if summary.order_count:
            summary.average_order_value = summary.gross // summary.order_count

        return ServiceResult.success(summary)

    @staticmethod
    def _rider_totals(rider_id: str, start) -> dict[str, Any]:
        # Riders are paid the whole delivery fee, so gross equals net
        totals = Order.objects.filter(
            rider_id=rider_id,
            distribution_status=DistributionStatus.DISTRIBUTED,
            distributed_at__gte=start,
        ).aggregate(
            gross=Sum("rider_amount"),
            net=Sum("rider_amount"),
            order_count=Count("id"),
        )
        totals["commission"] = 0
        return totals
