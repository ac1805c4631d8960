"""
Tests for PaymentService.

The Paystack adapter is replaced with a MagicMock; no network access.

Tests cover:
1. Checkout initialization (fresh reference, metadata, refusals)
2. Charge confirmation (amount check, replay, distribution)
3. Callback-time verification
"""

import uuid
from unittest.mock import MagicMock

import pytest
from django.conf import settings

from settlement.adapters import InitializeResult, TransactionVerification
from settlement.commission import Role
from settlement.exceptions import PaystackAPIError, PaystackTimeoutError
from settlement.ledger import Transaction, Wallet
from settlement.services import PaymentService
from settlement.state_machines import DistributionStatus, PaymentStatus
from settlement.tests.factories import OrderFactory


@pytest.fixture
def payment_gateway():
    adapter = MagicMock()

    def _initialize(params):
        return InitializeResult(
            authorization_url=f"https://checkout.paystack.test/{params.reference}",
            access_code="acc_test",
            reference=params.reference,
        )

    adapter.initialize_transaction.side_effect = _initialize
    PaymentService.set_gateway_adapter(adapter)
    yield adapter
    PaymentService.set_gateway_adapter(None)


def verified(order, status="success", amount=None, currency="NGN", metadata=None):
    return TransactionVerification(
        reference=order.payment_reference,
        status=status,
        amount_minor_units=order.total_amount * 100 if amount is None else amount,
        currency=currency,
        metadata=metadata if metadata is not None else {"orderId": str(order.id)},
    )


def balance(owner_id, role):
    return Wallet.objects.get(owner_id=owner_id, role=role).balance


# =============================================================================
# Initialization
# =============================================================================


class TestInitializePayment:
    """Tests for PaymentService.initialize_payment."""

    def test_starts_checkout_with_fresh_reference(self, payment_gateway, unpaid_order):
        old_reference = unpaid_order.payment_reference

        result = PaymentService.initialize_payment(
            unpaid_order.id, email="ada@example.com", callback_url="https://shop.test/cb"
        )

        assert result.success, result.error
        unpaid_order.refresh_from_db()
        assert unpaid_order.payment_reference != old_reference
        assert unpaid_order.payment_provider == "paystack"
        assert result.data.reference == unpaid_order.payment_reference
        assert result.data.authorization_url.endswith(unpaid_order.payment_reference)
        assert result.data.access_code == "acc_test"

    def test_sends_order_total_and_vendor_groups(self, payment_gateway, unpaid_order):
        PaymentService.initialize_payment(unpaid_order.id, email="ada@example.com")

        params = payment_gateway.initialize_transaction.call_args.args[0]
        assert params.email == "ada@example.com"
        assert params.amount == 15500
        assert params.metadata["orderId"] == str(unpaid_order.id)
        assert params.metadata["totalAmount"] == 15500
        assert [g["vendorId"] for g in params.metadata["vendorGroups"]] == [
            "chef-1",
            "pharmacy-1",
        ]
        assert params.metadata["vendorGroups"][0]["vendorRole"] == Role.CHEF

    def test_unknown_order(self, payment_gateway, db):
        result = PaymentService.initialize_payment(uuid.uuid4(), email="ada@example.com")

        assert not result.success
        assert result.error_code == "ORDER_NOT_FOUND"
        payment_gateway.initialize_transaction.assert_not_called()

    def test_paid_order_is_refused(self, payment_gateway, paid_order):
        reference = paid_order.payment_reference

        result = PaymentService.initialize_payment(paid_order.id, email="ada@example.com")

        assert not result.success
        assert result.error_code == "PAYMENT_ALREADY_CONFIRMED"
        paid_order.refresh_from_db()
        assert paid_order.payment_reference == reference
        payment_gateway.initialize_transaction.assert_not_called()

    def test_order_without_groups_is_refused(self, payment_gateway, db):
        order = OrderFactory(subtotal=3000)

        result = PaymentService.initialize_payment(order.id, email="ada@example.com")

        assert not result.success
        assert result.error_code == "ORDER_VENDOR_GROUPS_MISSING"
        payment_gateway.initialize_transaction.assert_not_called()

    @pytest.mark.parametrize(
        "error,code",
        [
            (PaystackAPIError("Duplicate Transaction Reference"), "PAYSTACK_API_ERROR"),
            (PaystackTimeoutError("Paystack timed out"), "PAYSTACK_TIMEOUT"),
        ],
    )
    def test_gateway_error_is_returned(self, payment_gateway, unpaid_order, error, code):
        payment_gateway.initialize_transaction.side_effect = error

        result = PaymentService.initialize_payment(unpaid_order.id, email="ada@example.com")

        assert not result.success
        assert result.error_code == code
        unpaid_order.refresh_from_db()
        assert unpaid_order.payment_status == PaymentStatus.PENDING

    def test_invalid_email_is_returned_as_failure(self, payment_gateway, unpaid_order):
        result = PaymentService.initialize_payment(unpaid_order.id, email="")

        assert not result.success
        assert "email" in result.error
        payment_gateway.initialize_transaction.assert_not_called()


# =============================================================================
# Confirmation
# =============================================================================


class TestConfirmCharge:
    """Tests for PaymentService.confirm_charge."""

    def test_matching_charge_pays_and_distributes(self, engine, unpaid_order):
        result = PaymentService.confirm_charge(unpaid_order, 1550000, "NGN", engine=engine)

        assert result.success, result.error
        assert result.data.already_distributed is False
        unpaid_order.refresh_from_db()
        assert unpaid_order.payment_status == PaymentStatus.PAID
        assert unpaid_order.distribution_status == DistributionStatus.DISTRIBUTED
        assert balance("chef-1", Role.CHEF) == 8500
        assert balance(settings.PLATFORM_WALLET_OWNER_ID, Role.PLATFORM) == 3480

    @pytest.mark.parametrize(
        "amount,currency",
        [
            (1549999, "NGN"),
            (15500, "NGN"),
            (None, "NGN"),
            (1550000, "GHS"),
        ],
    )
    def test_mismatched_charge_leaves_order_unpaid(
        self, engine, unpaid_order, amount, currency
    ):
        result = PaymentService.confirm_charge(unpaid_order, amount, currency, engine=engine)

        assert not result.success
        assert result.error_code == "PAYMENT_AMOUNT_MISMATCH"
        unpaid_order.refresh_from_db()
        assert unpaid_order.payment_status == PaymentStatus.PENDING
        assert not Transaction.objects.filter(order_id=unpaid_order.id).exists()

    def test_already_paid_order_is_not_distributed_again(self, engine, unpaid_order):
        PaymentService.confirm_charge(unpaid_order, 1550000, "NGN", engine=engine)
        unpaid_order.refresh_from_db()

        result = PaymentService.confirm_charge(unpaid_order, 1550000, "NGN", engine=engine)

        assert result.success
        assert result.data is None
        assert Transaction.objects.filter(order_id=unpaid_order.id).count() == 4


# =============================================================================
# Verification
# =============================================================================


class TestVerifyPayment:
    """Tests for PaymentService.verify_payment."""

    def test_successful_charge_is_confirmed(self, payment_gateway, unpaid_order):
        payment_gateway.verify_transaction.return_value = verified(unpaid_order)

        result = PaymentService.verify_payment(unpaid_order.payment_reference)

        assert result.success, result.error
        assert result.data.paid is True
        assert result.data.order_id == unpaid_order.id
        assert result.data.distribution_status == DistributionStatus.DISTRIBUTED
        assert balance("pharmacy-1", Role.PHARMACY) == 3520
        payment_gateway.verify_transaction.assert_called_once_with(
            unpaid_order.payment_reference
        )

    def test_repeated_verification_pays_once(self, payment_gateway, unpaid_order):
        payment_gateway.verify_transaction.return_value = verified(unpaid_order)

        first = PaymentService.verify_payment(unpaid_order.payment_reference)
        second = PaymentService.verify_payment(unpaid_order.payment_reference)

        assert first.success and second.success
        assert second.data.paid is True
        assert Transaction.objects.filter(order_id=unpaid_order.id).count() == 4

    def test_older_reference_finds_order_through_metadata(
        self, payment_gateway, unpaid_order
    ):
        verification = verified(unpaid_order, metadata=f'{{"orderId": "{unpaid_order.id}"}}')
        verification.reference = "ORD_superseded"
        payment_gateway.verify_transaction.return_value = verification

        result = PaymentService.verify_payment("ORD_superseded")

        assert result.success, result.error
        assert result.data.order_id == unpaid_order.id
        assert result.data.paid is True

    @pytest.mark.parametrize("status", ["failed", "abandoned", ""])
    def test_unsuccessful_charge(self, payment_gateway, unpaid_order, status):
        payment_gateway.verify_transaction.return_value = verified(unpaid_order, status=status)

        result = PaymentService.verify_payment(unpaid_order.payment_reference)

        assert not result.success
        assert result.error_code == "PAYMENT_NOT_SUCCESSFUL"
        unpaid_order.refresh_from_db()
        assert unpaid_order.payment_status == PaymentStatus.PENDING

    def test_unknown_reference(self, payment_gateway, db):
        payment_gateway.verify_transaction.return_value = TransactionVerification(
            reference="ORD_nobody",
            status="success",
            amount_minor_units=100,
            currency="NGN",
            metadata={},
        )

        result = PaymentService.verify_payment("ORD_nobody")

        assert not result.success
        assert result.error_code == "ORDER_NOT_FOUND"

    def test_underpaid_charge_is_refused(self, payment_gateway, unpaid_order):
        payment_gateway.verify_transaction.return_value = verified(unpaid_order, amount=100)

        result = PaymentService.verify_payment(unpaid_order.payment_reference)

        assert not result.success
        assert result.error_code == "PAYMENT_AMOUNT_MISMATCH"
        assert not Wallet.objects.filter(owner_id="chef-1").exists()

    def test_gateway_error_is_returned(self, payment_gateway, db):
        payment_gateway.verify_transaction.side_effect = PaystackAPIError(
            "Transaction reference not found"
        )

        result = PaymentService.verify_payment("ORD_missing")

        assert not result.success
        assert result.error_code == "PAYSTACK_API_ERROR"
