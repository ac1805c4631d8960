"""
Tests for Paystack webhook handlers and the PaymentWebhookGateway.

Tests cover:
- charge.success: payment confirmation and distribution
- transfer.success / transfer.failed / transfer.reversed routing
- Gateway: signature check, payload parsing, duplicate suppression,
  failure recording
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from orders.models import Order
from settlement.commission import Role
from settlement.ledger import Wallet
from settlement.models import WebhookEvent, Withdrawal
from settlement.state_machines import (
    DistributionStatus,
    PaymentStatus,
    WebhookEventStatus,
    WithdrawalState,
)
from settlement.tests.factories import OrderFactory, VendorGroupFactory, WebhookEventFactory
from settlement.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    PaymentWebhookGateway,
    dispatch_webhook,
    register_handler,
)


def charge_event(reference, metadata=None, event_type="charge.success", amount=1550000):
    data = {"reference": reference, "amount": amount, "currency": "NGN", "status": "success"}
    if metadata is not None:
        data["metadata"] = metadata
    return WebhookEventFactory(
        event_type=event_type,
        reference=reference,
        payload={"event": event_type, "data": data},
    )


def charge_body(reference, amount=1550000):
    return json.dumps(
        {"event": "charge.success", "data": {"reference": reference, "amount": amount}}
    ).encode()


def transfer_event(event_type, reference, transfer_code="TRF_test_123", **data):
    return WebhookEventFactory(
        event_type=event_type,
        reference=reference,
        payload={
            "event": event_type,
            "data": {"reference": reference, "transfer_code": transfer_code, **data},
        },
    )


def balance(owner_id, role):
    return Wallet.objects.get(owner_id=owner_id, role=role).balance


def gateway_reference(withdrawal):
    return Withdrawal.objects.get(id=withdrawal.id).metadata["gateway_reference"]


@pytest.fixture
def trusting_gateway():
    adapter = MagicMock()
    adapter.verify_webhook_signature.return_value = True
    return PaymentWebhookGateway(adapter=adapter)


# =============================================================================
# Registry Tests
# =============================================================================


class TestDispatch:
    def test_known_events_are_registered(self):
        for event_type in (
            "charge.success",
            "transfer.success",
            "transfer.failed",
            "transfer.reversed",
        ):
            assert event_type in WEBHOOK_HANDLERS

    def test_unknown_event_is_acknowledged(self, db):
        event = WebhookEventFactory(event_type="subscription.create")

        result = dispatch_webhook(event)

        assert result.success
        assert result.data is None

    def test_register_handler(self, db):
        handler = MagicMock()
        with patch.dict(WEBHOOK_HANDLERS, clear=False):
            register_handler("refund.processed")(handler)
            event = WebhookEventFactory(event_type="refund.processed")

            dispatch_webhook(event)

        handler.assert_called_once_with(event)
        assert "refund.processed" not in WEBHOOK_HANDLERS


# =============================================================================
# charge.success
# =============================================================================


class TestChargeSuccess:
    """Tests for the charge.success handler."""

    def test_marks_pending_order_paid_and_distributes(self, unpaid_order):
        result = dispatch_webhook(charge_event(unpaid_order.payment_reference))

        assert result.success
        assert result.data.already_distributed is False
        order = Order.objects.get(id=unpaid_order.id)
        assert order.payment_status == PaymentStatus.PAID
        assert order.paid_at is not None
        assert order.distribution_status == DistributionStatus.DISTRIBUTED
        assert balance("chef-1", Role.CHEF) == 8500
        assert balance("pharmacy-1", Role.PHARMACY) == 3520

    def test_already_paid_order_is_a_replay(self, paid_order):
        result = dispatch_webhook(charge_event(paid_order.payment_reference))

        assert result.success
        assert result.data is None
        assert not Wallet.objects.exists()
        assert Order.objects.get(id=paid_order.id).distribution_status == (
            DistributionStatus.PENDING
        )

    def test_redelivered_charge_does_not_pay_twice(self, unpaid_order):
        event = charge_event(unpaid_order.payment_reference)
        dispatch_webhook(event)

        result = dispatch_webhook(event)

        assert result.success
        assert result.data is None
        assert balance("chef-1", Role.CHEF) == 8500

    def test_vendor_groups_from_metadata(self, db):
        order = OrderFactory(subtotal=4000)
        metadata = {
            "orderId": str(order.id),
            "vendorGroups": [
                {"vendorId": "v-7", "vendorRole": "vendor", "vendorName": "Corner Shop", "subtotal": 4000}
            ],
        }

        result = dispatch_webhook(charge_event(order.payment_reference, metadata, amount=400000))

        assert result.success
        assert balance("v-7", Role.VENDOR) == 3600

    def test_metadata_sent_as_json_string(self, db):
        order = OrderFactory(subtotal=2000)
        metadata = json.dumps(
            {"vendorGroups": [{"vendorId": "chef-3", "vendorRole": "chef", "subtotal": 2000}]}
        )

        result = dispatch_webhook(charge_event(order.payment_reference, metadata, amount=200000))

        assert result.success
        assert balance("chef-3", Role.CHEF) == 1700

    def test_falls_back_to_order_id_in_metadata(self, unpaid_order):
        result = dispatch_webhook(
            charge_event("unknown-ref", {"orderId": str(unpaid_order.id)})
        )

        assert result.success
        assert balance("chef-1", Role.CHEF) == 8500

    def test_unknown_order(self, db):
        result = dispatch_webhook(charge_event("unknown-ref", {"orderId": "not-a-uuid"}))

        assert not result.success
        assert result.error_code == "ORDER_NOT_FOUND"

    def test_order_without_vendor_groups_fails(self, db):
        order = OrderFactory(subtotal=3000)

        result = dispatch_webhook(charge_event(order.payment_reference, amount=300000))

        assert not result.success
        assert result.error_code == "ORDER_VENDOR_GROUPS_MISSING"
        # Payment stays confirmed so the order can be distributed later
        order = Order.objects.get(id=order.id)
        assert order.payment_status == PaymentStatus.PAID
        assert order.distribution_status == DistributionStatus.PENDING

    @pytest.mark.parametrize(
        "amount",
        [100, 1549900, 1550001, None, "1550000", 15500.0],
        ids=["one-naira", "short-by-one-naira", "over-by-one-kobo", "missing", "string", "float"],
    )
    def test_charge_not_matching_order_total_is_refused(self, unpaid_order, amount):
        result = dispatch_webhook(charge_event(unpaid_order.payment_reference, amount=amount))

        assert not result.success
        assert result.error_code == "PAYMENT_AMOUNT_MISMATCH"
        order = Order.objects.get(id=unpaid_order.id)
        assert order.payment_status == PaymentStatus.PENDING
        assert order.distribution_status == DistributionStatus.PENDING
        assert not Wallet.objects.exists()

    def test_charge_in_another_currency_is_refused(self, unpaid_order):
        event = charge_event(unpaid_order.payment_reference)
        event.payload["data"]["currency"] = "USD"
        event.save()

        result = dispatch_webhook(event)

        assert not result.success
        assert result.error_code == "PAYMENT_AMOUNT_MISMATCH"
        assert Order.objects.get(id=unpaid_order.id).payment_status == PaymentStatus.PENDING

    def test_correct_charge_after_a_refused_one_still_pays(self, unpaid_order):
        event = charge_event(unpaid_order.payment_reference, amount=100)
        dispatch_webhook(event)
        event.payload["data"]["amount"] = 1550000
        event.save()

        result = dispatch_webhook(event)

        assert result.success
        assert balance("chef-1", Role.CHEF) == 8500

    @pytest.mark.parametrize(
        "groups",
        [
            [{"vendorId": "chef-3", "vendorRole": "chef", "subtotal": "abc"}],
            [{"vendorId": "mallory", "vendorRole": "platform", "subtotal": 2000}],
            [{"vendorId": "rob", "vendorRole": "rider", "subtotal": 2000}],
            [
                {"vendorId": "chef-3", "vendorRole": "chef", "subtotal": 1000},
                {"vendorId": "chef-3", "vendorRole": "chef", "subtotal": 1000},
            ],
            "not-a-list",
        ],
        ids=["non-numeric-subtotal", "platform-role", "rider-role", "duplicate-group", "not-a-list"],
    )
    def test_invalid_metadata_groups_are_refused(self, db, groups):
        order = OrderFactory(subtotal=2000)

        result = dispatch_webhook(
            charge_event(order.payment_reference, {"vendorGroups": groups}, amount=200000)
        )

        assert not result.success
        assert result.error_code == "MALFORMED_PAYLOAD"
        assert not Wallet.objects.exists()
        assert not order.vendor_groups.exists()
        order = Order.objects.get(id=order.id)
        assert order.payment_status == PaymentStatus.PAID
        assert order.distribution_status == DistributionStatus.PENDING

    def test_metadata_groups_get_child_orders(self, db):
        order = OrderFactory(subtotal=4000)
        metadata = {
            "vendorGroups": [
                {"vendorId": "v-7", "vendorRole": "vendor", "vendorName": "Corner Shop", "subtotal": 4000}
            ],
        }

        dispatch_webhook(charge_event(order.payment_reference, metadata, amount=400000))

        child = order.child_orders.get()
        assert child.vendor_id == "v-7"
        assert child.vendor_amount == 3600
        assert child.commission_amount == 400


# =============================================================================
# transfer.*
# =============================================================================


class TestTransferEvents:
    """Transfer outcomes reported by Paystack."""

    def test_transfer_success_completes_withdrawal(self, processing_withdrawal):
        reference = gateway_reference(processing_withdrawal)

        result = dispatch_webhook(transfer_event("transfer.success", reference))

        assert result.success
        withdrawal = Withdrawal.objects.get(id=processing_withdrawal.id)
        assert withdrawal.status == WithdrawalState.COMPLETED
        wallet = Wallet.objects.get(id=withdrawal.wallet_id)
        assert wallet.balance == 15000
        assert wallet.pending_balance == 0
        assert wallet.total_withdrawn == 5000

    def test_transfer_success_matched_by_transfer_code(self, processing_withdrawal):
        result = dispatch_webhook(
            transfer_event("transfer.success", "some-other-ref", transfer_code="TRF_test_123")
        )

        assert result.success
        assert Withdrawal.objects.get(id=processing_withdrawal.id).status == (
            WithdrawalState.COMPLETED
        )

    @pytest.mark.parametrize("event_type", ["transfer.failed", "transfer.reversed"])
    def test_failed_transfer_refunds_wallet(self, processing_withdrawal, event_type):
        reference = gateway_reference(processing_withdrawal)

        result = dispatch_webhook(
            transfer_event(event_type, reference, reason="Account closed")
        )

        assert result.success
        withdrawal = Withdrawal.objects.get(id=processing_withdrawal.id)
        assert withdrawal.status == WithdrawalState.FAILED
        assert withdrawal.failure_reason == f"Paystack {event_type}: Account closed"
        wallet = Wallet.objects.get(id=withdrawal.wallet_id)
        assert wallet.balance == 20000
        assert wallet.pending_balance == 0

    def test_unknown_transfer(self, db):
        result = dispatch_webhook(
            transfer_event("transfer.success", "nope", transfer_code=None)
        )

        assert not result.success
        assert result.error_code == "WITHDRAWAL_NOT_FOUND"

    def test_failure_after_completion_is_refused(self, processing_withdrawal):
        reference = gateway_reference(processing_withdrawal)
        dispatch_webhook(transfer_event("transfer.success", reference))

        result = dispatch_webhook(transfer_event("transfer.reversed", reference))

        assert not result.success
        assert result.error_code == "INVALID_WITHDRAWAL_STATE"
        assert Wallet.objects.get(id=processing_withdrawal.wallet_id).balance == 15000


# =============================================================================
# Gateway
# =============================================================================


class TestPaymentWebhookGateway:
    """Tests for PaymentWebhookGateway.handle."""

    def test_rejects_bad_signature(self, db):
        adapter = MagicMock()
        adapter.verify_webhook_signature.return_value = False

        result = PaymentWebhookGateway(adapter=adapter).handle(b"{}", "bad")

        assert not result.success
        assert result.error_code == "INVALID_SIGNATURE"
        assert not WebhookEvent.objects.exists()

    @pytest.mark.parametrize("body", [b"not json", b"[]", b'{"data": {}}'])
    def test_rejects_malformed_payload(self, trusting_gateway, db, body):
        result = trusting_gateway.handle(body, "sig")

        assert not result.success
        assert result.error_code == "MALFORMED_PAYLOAD"
        assert not WebhookEvent.objects.exists()

    def test_records_processed_event(self, trusting_gateway, unpaid_order):
        body = charge_body(unpaid_order.payment_reference)

        result = trusting_gateway.handle(body, "sig")

        assert result.success
        assert result.data.duplicate is False
        event = WebhookEvent.objects.get()
        assert event.event_key == f"charge.success:{unpaid_order.payment_reference}"
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processed_at is not None
        assert event.retry_count == 1

    def test_duplicate_is_acknowledged_without_reprocessing(self, trusting_gateway, unpaid_order):
        body = charge_body(unpaid_order.payment_reference)
        trusting_gateway.handle(body, "sig")

        with patch("settlement.webhooks.handlers.dispatch_webhook") as mock_dispatch:
            result = trusting_gateway.handle(body, "sig")

        assert result.success
        assert result.data.duplicate is True
        mock_dispatch.assert_not_called()
        assert WebhookEvent.objects.count() == 1

    def test_failed_result_is_recorded_and_retried(self, trusting_gateway, db):
        body = json.dumps(
            {"event": "charge.success", "data": {"reference": "missing"}}
        ).encode()

        first = trusting_gateway.handle(body, "sig")
        second = trusting_gateway.handle(body, "sig")

        assert first.error_code == "ORDER_NOT_FOUND"
        assert second.error_code == "ORDER_NOT_FOUND"
        event = WebhookEvent.objects.get()
        assert event.status == WebhookEventStatus.FAILED
        assert event.retry_count == 2

    def test_unexpected_error_is_recorded_and_raised(self, trusting_gateway, unpaid_order):
        body = charge_body(unpaid_order.payment_reference)
        engine = MagicMock()
        engine.distribute.side_effect = RuntimeError("boom")

        with patch(
            "settlement.webhooks.handlers.get_distribution_engine", return_value=engine
        ):
            with pytest.raises(RuntimeError):
                trusting_gateway.handle(body, "sig")

        event = WebhookEvent.objects.get()
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "RuntimeError: boom"

    def test_unhandled_event_type_is_processed(self, trusting_gateway, db):
        body = json.dumps({"event": "customeridentification.success", "data": {"id": 42}}).encode()

        result = trusting_gateway.handle(body, "sig")

        assert result.success
        event = WebhookEvent.objects.get()
        assert event.event_key == "customeridentification.success:42"
        assert event.status == WebhookEventStatus.PROCESSED
