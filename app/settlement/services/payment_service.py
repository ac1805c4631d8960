"""
Customer payment service.

Starts Paystack checkouts for orders and confirms charges, whether they
arrive through the charge.success webhook or a callback-time verify.
Both confirmation paths share confirm_charge:

1. The charged kobo amount and currency must match the order total
2. Payment moves PENDING -> PAID (compare-and-set, committed on its own)
3. Only the caller that won step 2 runs the distribution engine

Usage:
    from settlement.services import PaymentService

    result = PaymentService.initialize_payment(order.id, email="ada@example.com")
    redirect(result.data.authorization_url)

    # On the callback page
    result = PaymentService.verify_payment(reference)
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from django.core.exceptions import ValidationError as DjangoValidationError

from core.services import BaseService, ServiceResult
from orders.choices import PaymentProvider
from orders.models import Order
from orders.services import OrderService
from settlement.adapters import (
    InitializeTransactionParams,
    PaystackAdapter,
    charge_matches,
    to_minor_units,
)
from settlement.exceptions import (
    MissingVendorGroups,
    OrderNotFound,
    PaymentAlreadyConfirmed,
    PaymentAmountMismatch,
    PaymentNotSuccessful,
    PaystackError,
)
from settlement.services.distribution_engine import OrderDistributionEngine
from settlement.state_machines import PaymentStatus

if TYPE_CHECKING:
    from settlement.services.distribution_engine import DistributionResult


@dataclass
class PaymentInitialization:
    order_id: uuid.UUID
    reference: str
    authorization_url: str
    access_code: str


@dataclass
class PaymentVerification:
    """
    Order state after a verified charge.

    Attributes:
        order_id: Order the charge paid for
        reference: Payment reference that was verified
        payment_status: PAID once confirmed
        distribution_status: DISTRIBUTED unless distribution failed
        status: Order status
    """

    order_id: uuid.UUID
    reference: str
    payment_status: str
    distribution_status: str
    status: str

    @property
    def paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID


def parse_metadata(metadata: Any) -> dict[str, Any]:
    """Paystack echoes metadata back as sent, which may be a JSON string."""
    if isinstance(metadata, str):
        try:
            metadata = json.loads(metadata)
        except ValueError:
            return {}
    return metadata if isinstance(metadata, dict) else {}


class PaymentService(BaseService):
    """
    Paystack checkouts and charge confirmation.

    The gateway adapter can be injected for testing:

        PaymentService.set_gateway_adapter(mock_adapter)
    """

    _gateway_adapter: Any = None

    @classmethod
    def get_gateway_adapter(cls) -> Any:
        return cls._gateway_adapter or PaystackAdapter

    @classmethod
    def set_gateway_adapter(cls, adapter: Any) -> None:
        cls._gateway_adapter = adapter

    # =========================================================================
    # Lookups
    # =========================================================================

    @staticmethod
    def find_order(reference: str | None, order_id: Any = None) -> Order | None:
        """Match by payment reference first, then by the orderId in metadata."""
        if reference:
            order = Order.objects.filter(payment_reference=reference).first()
            if order is not None:
                return order
        if order_id:
            try:
                return Order.objects.filter(id=order_id).first()
            except (DjangoValidationError, ValueError):
                return None
        return None

    @staticmethod
    def build_metadata(order: Order) -> dict[str, Any]:
        """Metadata sent with the checkout and echoed back on charge.success."""
        return {
            "orderId": str(order.id),
            "vendorGroups": [
                {
                    "vendorId": group.vendor_id,
                    "vendorName": group.vendor_name,
                    "vendorRole": group.vendor_role,
                    "subtotal": group.subtotal,
                }
                for group in order.vendor_groups.all()
            ],
            "totalAmount": order.total_amount,
        }

    # =========================================================================
    # Checkout
    # =========================================================================

    @classmethod
    def initialize_payment(
        cls,
        order_id: uuid.UUID,
        email: str,
        callback_url: str = "",
    ) -> ServiceResult[PaymentInitialization]:
        """
        Start a Paystack checkout for an order awaiting payment.

        Every attempt gets a fresh payment reference, since Paystack refuses
        to initialize a reference twice. A charge against an older reference
        still finds the order through the orderId in its metadata.

        Returns:
            ServiceResult with PaymentInitialization. Failure codes:
            ORDER_NOT_FOUND, PAYMENT_ALREADY_CONFIRMED,
            ORDER_VENDOR_GROUPS_MISSING and PAYSTACK_* gateway errors.
        """
        log_context = {"order_id": str(order_id)}

        order = Order.objects.filter(id=order_id).first()
        if order is None:
            return ServiceResult.from_exception(
                OrderNotFound(f"Order {order_id} not found", details=log_context)
            )
        if order.payment_status != PaymentStatus.PENDING:
            return ServiceResult.from_exception(
                PaymentAlreadyConfirmed(
                    f"Order {order.order_number} is already paid", details=log_context
                )
            )
        metadata = cls.build_metadata(order)
        if not metadata["vendorGroups"]:
            return ServiceResult.from_exception(
                MissingVendorGroups(
                    f"Order {order.order_number} has no vendor groups to pay for",
                    details=log_context,
                )
            )

        reference = OrderService.build_payment_reference()
        updated = Order.objects.filter(
            pk=order.pk, payment_status=PaymentStatus.PENDING
        ).update(payment_reference=reference, payment_provider=PaymentProvider.PAYSTACK)
        if not updated:
            return ServiceResult.from_exception(
                PaymentAlreadyConfirmed(
                    f"Order {order.order_number} is already paid", details=log_context
                )
            )

        try:
            checkout = cls.get_gateway_adapter().initialize_transaction(
                InitializeTransactionParams(
                    email=email,
                    amount=order.total_amount,
                    reference=reference,
                    callback_url=callback_url,
                    metadata=metadata,
                )
            )
        except (PaystackError, ValueError) as e:
            cls.get_logger().warning(
                f"Payment initialization failed: {type(e).__name__}",
                extra={**log_context, "reference": reference, "error": str(e)},
            )
            return ServiceResult.from_exception(e)

        cls.get_logger().info(
            "Payment initialized",
            extra={**log_context, "reference": reference, "amount": order.total_amount},
        )
        return ServiceResult.success(
            PaymentInitialization(
                order_id=order.id,
                reference=checkout.reference,
                authorization_url=checkout.authorization_url,
                access_code=checkout.access_code,
            )
        )

    # =========================================================================
    # Confirmation
    # =========================================================================

    @classmethod
    def confirm_charge(
        cls,
        order: Order,
        amount_minor_units: Any,
        currency: str | None = None,
        vendor_groups: Any = None,
        engine: OrderDistributionEngine | None = None,
    ) -> ServiceResult[DistributionResult | None]:
        """
        Confirm a successful Paystack charge against an order.

        Returns:
            The distribution result when this call confirmed the payment,
            success with None when the payment was already confirmed, or
            a PAYMENT_AMOUNT_MISMATCH failure with the order untouched.
        """
        log_context = {"order_id": str(order.id), "reference": order.payment_reference}

        if not charge_matches(order.total_amount, amount_minor_units, currency):
            cls.get_logger().warning(
                "Charge does not match order total, refusing to confirm",
                extra={
                    **log_context,
                    "expected_minor_units": to_minor_units(order.total_amount),
                    "amount_minor_units": amount_minor_units,
                    "currency": currency,
                },
            )
            return ServiceResult.from_exception(
                PaymentAmountMismatch(
                    "Charged amount does not match the order total",
                    details={
                        **log_context,
                        "expected_minor_units": to_minor_units(order.total_amount),
                        "amount_minor_units": amount_minor_units,
                        "currency": currency,
                    },
                )
            )

        if order.payment_status == PaymentStatus.PAID or not OrderService.mark_paid(
            order.id
        ):
            cls.get_logger().info(
                "Payment already confirmed, skipping distribution", extra=log_context
            )
            return ServiceResult.success(None)

        engine = engine or OrderDistributionEngine()
        return engine.distribute(order.id, vendor_groups=vendor_groups)

    @classmethod
    def verify_payment(cls, reference: str) -> ServiceResult[PaymentVerification]:
        """
        Ask Paystack for a transaction's outcome and confirm it if it succeeded.

        Safe to call any number of times and alongside the webhook: the
        compare-and-set in confirm_charge lets one caller distribute.

        Returns:
            ServiceResult with PaymentVerification. Failure codes:
            PAYMENT_NOT_SUCCESSFUL, ORDER_NOT_FOUND, PAYMENT_AMOUNT_MISMATCH,
            distribution failures and PAYSTACK_* gateway errors.
        """
        try:
            verification = cls.get_gateway_adapter().verify_transaction(reference)
        except PaystackError as e:
            cls.get_logger().warning(
                f"Payment verification failed: {type(e).__name__}",
                extra={"reference": reference, "error": str(e)},
            )
            return ServiceResult.from_exception(e)

        if not verification.succeeded:
            return ServiceResult.from_exception(
                PaymentNotSuccessful(
                    f"Payment {reference} is {verification.status or 'unknown'}",
                    details={"reference": reference, "status": verification.status},
                )
            )

        metadata = parse_metadata(verification.metadata)
        order = cls.find_order(verification.reference, metadata.get("orderId"))
        if order is None:
            return ServiceResult.from_exception(
                OrderNotFound(
                    "No order matches the payment reference",
                    details={"reference": reference, "order_id": metadata.get("orderId")},
                )
            )

        result = cls.confirm_charge(
            order,
            verification.amount_minor_units,
            verification.currency,
            vendor_groups=metadata.get("vendorGroups"),
        )
        if not result.success:
            return result

        order.refresh_from_db()
        return ServiceResult.success(
            PaymentVerification(
                order_id=order.id,
                reference=reference,
                payment_status=order.payment_status,
                distribution_status=order.distribution_status,
                status=order.status,
            )
        )
