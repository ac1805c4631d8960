"""
Order creation service.

Creates a parent Order with its vendor groups and one ChildOrder per
participating seller. Financial fields (commission, payout) are left empty
for the distribution step to fill in once payment is confirmed.

Usage:
    from orders.services import OrderService

    result = OrderService.create_order(
        customer_id="cust-1",
        vendor_groups=[
            {"vendor_id": "chef-1", "vendor_role": "chef", "subtotal": 10000},
            {"vendor_id": "pharm-1", "vendor_role": "pharmacy", "subtotal": 4000},
        ],
        delivery_fee=1500,
    )
    if result.success:
        order = result.data
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

from django.db import IntegrityError
from django.utils import timezone

from core.helpers import generate_numeric_code, generate_token
from core.services import BaseService, ServiceResult
from orders.choices import DeliveryMethod
from orders.models import ChildOrder, Order, VendorGroup
from settlement.commission import SELLER_ROLES
from settlement.state_machines import PaymentStatus

if TYPE_CHECKING:
    from typing import Any

ORDER_NUMBER_ATTEMPTS = 5


class OrderService(BaseService):
    """
    Service for creating and reading customer orders.

    Methods:
        create_order: Validate input and create Order, VendorGroups, ChildOrders
        build_payment_reference: Reference the customer pays against
    """

    @staticmethod
    def build_order_number() -> str:
        return f"ORD-{timezone.now():%Y%m%d}-{generate_token(4).upper()}"

    @staticmethod
    def build_payment_reference() -> str:
        return f"ORD_{uuid.uuid4().hex}"

    @classmethod
    def create_order(
        cls,
        customer_id: str,
        vendor_groups: list[dict[str, Any]],
        delivery_method: str = DeliveryMethod.SITE_COMPANY,
        delivery_fee: int = 0,
        rider_id: str | None = None,
        delivery_address: dict[str, Any] | None = None,
        payment_reference: str | None = None,
    ) -> ServiceResult[Order]:
        """
        Create an order awaiting payment.

        Vendor groups flagged with selected=False are skipped. At least one
        selected group with a positive subtotal and a seller role is required.

        Returns:
            ServiceResult with the created Order, or a VALIDATION_ERROR /
            ORDER_VENDOR_GROUPS_MISSING failure
        """
        logger = cls.get_logger()

        selected = [group for group in vendor_groups or [] if group.get("selected", True)]
        if not selected:
            return ServiceResult.failure(
                "Order must contain at least one vendor group",
                error_code="ORDER_VENDOR_GROUPS_MISSING",
            )

        errors = cls._validate_groups(selected)
        if delivery_fee < 0:
            errors["delivery_fee"] = ["Delivery fee cannot be negative."]
        if errors:
            return ServiceResult.failure(
                "Invalid order",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )

        subtotal = sum(int(group["subtotal"]) for group in selected)
        reference = payment_reference or cls.build_payment_reference()

        for attempt in range(ORDER_NUMBER_ATTEMPTS):
            try:
                with cls.atomic():
                    order = Order.objects.create(
                        order_number=cls.build_order_number(),
                        customer_id=str(customer_id),
                        subtotal=subtotal,
                        delivery_fee=delivery_fee,
                        total_amount=subtotal + delivery_fee,
                        delivery_method=delivery_method,
                        delivery_address=delivery_address or {},
                        rider_id=rider_id or None,
                        payment_reference=reference,
                    )
                    cls._create_groups(order, selected, delivery_method)
                break
            except IntegrityError:
                if Order.objects.filter(payment_reference=reference).exists():
                    return ServiceResult.failure(
                        "An order already exists for this payment reference",
                        error_code="DUPLICATE_PAYMENT_REFERENCE",
                    )
                if attempt + 1 >= ORDER_NUMBER_ATTEMPTS:
                    raise
                logger.warning(
                    "Order number collision, regenerating",
                    extra={"attempt": attempt + 1},
                )

        logger.info(
            f"Created order {order.order_number}",
            extra={
                "order_id": str(order.id),
                "customer_id": order.customer_id,
                "vendor_group_count": len(selected),
                "total_amount": order.total_amount,
            },
        )
        return ServiceResult.success(order)

    @staticmethod
    def _validate_groups(groups: list[dict[str, Any]]) -> dict[str, list[str]]:
        errors: dict[str, list[str]] = {}
        seen = set()
        for index, group in enumerate(groups):
            problems = []
            if not group.get("vendor_id"):
                problems.append("vendor_id is required.")
            if group.get("vendor_role") not in SELLER_ROLES:
                problems.append(f"vendor_role must be one of {', '.join(SELLER_ROLES)}.")
            subtotal = group.get("subtotal")
            if not isinstance(subtotal, int) or isinstance(subtotal, bool) or subtotal <= 0:
                problems.append("subtotal must be a positive integer.")
            key = (group.get("vendor_id"), group.get("vendor_role"))
            if key in seen:
                problems.append("Duplicate vendor group.")
            seen.add(key)
            if problems:
                errors[f"vendor_groups[{index}]"] = problems
        return errors

    @staticmethod
    def _create_groups(
        order: Order, groups: list[dict[str, Any]], delivery_method: str
    ) -> None:
        for position, group in enumerate(groups):
            VendorGroup.objects.create(
                order=order,
                position=position,
                vendor_id=str(group["vendor_id"]),
                vendor_name=group.get("vendor_name", ""),
                vendor_role=group["vendor_role"],
                subtotal=group["subtotal"],
                items=group.get("items", []),
            )
            ChildOrder.objects.create(
                parent_order=order,
                vendor_id=str(group["vendor_id"]),
                vendor_name=group.get("vendor_name", ""),
                vendor_role=group["vendor_role"],
                items=group.get("items", []),
                subtotal=group["subtotal"],
                delivery_method=delivery_method,
                pickup_code=(
                    generate_numeric_code(6)
                    if delivery_method == DeliveryMethod.SELF_PICKUP
                    else ""
                ),
            )

    @staticmethod
    def get_order(order_id: uuid.UUID) -> Order | None:
        return (
            Order.objects.prefetch_related("vendor_groups", "child_orders")
            .filter(id=order_id)
            .first()
        )

    @classmethod
    def mark_paid(
        cls,
        order_id: uuid.UUID,
        payment_reference: str | None = None,
        payment_provider: str | None = None,
    ) -> bool:
        """
        Compare-and-set payment_status PENDING -> PAID.

        Returns True if this call confirmed the payment, False if the order
        was already paid (or does not exist).
        """
        now = timezone.now()
        changes: dict[str, Any] = {
            "payment_status": PaymentStatus.PAID,
            "paid_at": now,
            "updated_at": now,
        }
        if payment_reference:
            changes["payment_reference"] = payment_reference
        if payment_provider:
            changes["payment_provider"] = payment_provider

        marked = bool(
            Order.objects.filter(
                pk=order_id, payment_status=PaymentStatus.PENDING
            ).update(**changes)
        )
        cls.get_logger().info(
            "Order payment confirmed" if marked else "Order payment already confirmed",
            extra={"order_id": str(order_id), "payment_reference": payment_reference},
        )
        return marked
