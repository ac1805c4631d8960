"""
Paystack webhook processing.

This module provides the PaymentWebhookGateway, which verifies and records
inbound events, and a handler registry that routes each event type to the
service that owns it.

Event routing:
    charge.success     -> PaymentService.confirm_charge (amount check, mark
                          paid, OrderDistributionEngine; already-paid orders
                          are acknowledged as replays)
    transfer.success   -> WithdrawalService.complete_by_reference
    transfer.failed    -> WithdrawalService.mark_failed_by_reference
    transfer.reversed  -> WithdrawalService.mark_failed_by_reference
    anything else      -> acknowledged, no-op

Usage:
    from settlement.webhooks.handlers import PaymentWebhookGateway, register_handler

    result = PaymentWebhookGateway().handle(request.body, signature)

    @register_handler("refund.processed")
    def handle_refund_processed(webhook_event: WebhookEvent) -> ServiceResult:
        ...
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from core.services import BaseService, ServiceResult
from settlement.adapters import PaystackAdapter
from settlement.exceptions import InvalidSignature, MalformedPayload, OrderNotFound
from settlement.models import WebhookEvent
from settlement.services import OrderDistributionEngine, PaymentService, WithdrawalService
from settlement.services.payment_service import parse_metadata

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a webhook event handler for one or more events.

    Usage:
        @register_handler("transfer.failed", "transfer.reversed")
        def handle_transfer_failed(webhook_event: WebhookEvent) -> ServiceResult:
            ...
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Events without a handler are acknowledged with a success result.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"event_key": webhook_event.event_key},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"event_key": webhook_event.event_key},
    )
    return handler(webhook_event)


def get_distribution_engine() -> OrderDistributionEngine:
    return OrderDistributionEngine()


def _event_data(webhook_event: WebhookEvent) -> dict[str, Any]:
    data = webhook_event.payload.get("data")
    return data if isinstance(data, dict) else {}


# =============================================================================
# Charge Handlers
# =============================================================================


@register_handler("charge.success")
def handle_charge_success(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Confirm an order's payment and distribute it.

    The charged kobo amount must match the order total. Only the delivery
    that moves the payment from PENDING to PAID runs the distribution; an
    order already PAID is acknowledged as a replay. The payment flag is
    committed on its own, so a distribution failure leaves a PAID order
    for resume_pending_distributions to pick up.
    """
    data = _event_data(webhook_event)
    metadata = parse_metadata(data.get("metadata"))
    reference = data.get("reference")

    order = PaymentService.find_order(reference, metadata.get("orderId"))
    if order is None:
        return ServiceResult.from_exception(
            OrderNotFound(
                "No order matches the payment reference",
                details={"reference": reference, "order_id": metadata.get("orderId")},
            )
        )

    return PaymentService.confirm_charge(
        order,
        data.get("amount"),
        data.get("currency"),
        vendor_groups=metadata.get("vendorGroups"),
        engine=get_distribution_engine(),
    )


# =============================================================================
# Transfer Handlers
# =============================================================================


@register_handler("transfer.success")
def handle_transfer_success(webhook_event: WebhookEvent) -> ServiceResult:
    data = _event_data(webhook_event)
    return WithdrawalService.complete_by_reference(
        data.get("reference"), transfer_code=data.get("transfer_code")
    )


@register_handler("transfer.failed", "transfer.reversed")
def handle_transfer_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Gateway reported the transfer did not land; refund the wallet."""
    data = _event_data(webhook_event)
    detail = data.get("reason") or data.get("status") or "no reason given"
    return WithdrawalService.mark_failed_by_reference(
        data.get("reference"),
        reason=f"Paystack {webhook_event.event_type}: {detail}",
        transfer_code=data.get("transfer_code"),
    )


# =============================================================================
# Gateway
# =============================================================================


@dataclass
class WebhookOutcome:
    """
    Result of handling one webhook delivery.

    Attributes:
        event_type: Paystack event name
        event_key: WebhookEvent key the delivery was recorded under
        duplicate: True when the event had already been processed
        result: Data returned by the event handler
    """

    event_type: str
    event_key: str
    duplicate: bool = False
    result: Any = None


class PaymentWebhookGateway(BaseService):
    """
    Entry point for Paystack webhooks.

    Verifies the signature, records the event, and dispatches it. Expected
    failures come back as failed ServiceResults; anything unexpected is
    recorded on the WebhookEvent and re-raised.
    """

    def __init__(self, adapter: Any = None):
        self.adapter = adapter or PaystackAdapter

    def handle(self, raw_body: bytes, signature: str | None) -> ServiceResult[WebhookOutcome]:
        if not self.adapter.verify_webhook_signature(raw_body, signature):
            self.get_logger().warning("Webhook signature verification failed")
            return ServiceResult.from_exception(
                InvalidSignature("Webhook signature does not match payload")
            )

        try:
            payload = self.parse_payload(raw_body)
        except MalformedPayload as e:
            self.get_logger().warning(f"Malformed webhook payload: {e.message}")
            return ServiceResult.from_exception(e)

        event_type = payload["event"]
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        reference = str(
            data.get("reference")
            or parse_metadata(data.get("metadata")).get("orderId")
            or data.get("id")
            or ""
        )

        webhook_event, created = WebhookEvent.objects.get_or_create(
            event_key=WebhookEvent.build_key(event_type, reference),
            defaults={
                "event_type": event_type,
                "reference": reference,
                "payload": payload,
            },
        )
        log_context = {"event_key": webhook_event.event_key, "event_type": event_type}

        if webhook_event.is_processed:
            self.get_logger().info(
                "Webhook already processed, acknowledging", extra=log_context
            )
            return ServiceResult.success(
                WebhookOutcome(event_type, webhook_event.event_key, duplicate=True)
            )

        if not created:
            webhook_event.payload = payload
        webhook_event.mark_processing()
        webhook_event.save()

        try:
            result = dispatch_webhook(webhook_event)
        except Exception as e:
            webhook_event.mark_failed(f"{type(e).__name__}: {e}")
            webhook_event.save()
            raise

        if result.success:
            webhook_event.mark_processed()
        else:
            webhook_event.mark_failed(result.error or "Handler failed")
        webhook_event.save()

        self.get_logger().info(
            "Webhook handled",
            extra={**log_context, "success": result.success, "error_code": result.error_code},
        )
        if not result.success:
            return result
        return ServiceResult.success(
            WebhookOutcome(event_type, webhook_event.event_key, result=result.data)
        )

    @staticmethod
    def parse_payload(raw_body: bytes) -> dict[str, Any]:
        try:
            payload = json.loads(raw_body)
        except (TypeError, ValueError):
            raise MalformedPayload("Webhook body is not valid JSON")
        if not isinstance(payload, dict) or not payload.get("event"):
            raise MalformedPayload("Webhook body has no event name")
        return payload
