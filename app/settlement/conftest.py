"""
Pytest fixtures for settlement tests.

This module provides fixtures for orders, wallets and withdrawals in the
states the distribution engine and the withdrawal saga start from.

Usage:
    def test_distribute(paid_order, engine):
        result = engine.distribute(paid_order.id)
        assert result.success
"""

from unittest.mock import MagicMock

import pytest

from settlement.adapters import RecipientResult, TransferResult
from settlement.commission import CommissionTable, Role
from settlement.ledger import TransactionSource, WalletLedger
from settlement.services import OrderDistributionEngine, WithdrawalService
from settlement.state_machines import PaymentStatus
from settlement.tests.factories import (
    OrderFactory,
    VendorGroupFactory,
    WithdrawalFactory,
)

TEST_COMMISSION_RATES = {
    "chef": "0.15",
    "pharmacy": "0.12",
    "vendor": "0.10",
    "topvendor": "0.08",
}


# =============================================================================
# Service Fixtures
# =============================================================================


@pytest.fixture
def commission_table():
    return CommissionTable(TEST_COMMISSION_RATES, default_rate="0.10")


@pytest.fixture
def wallet_ledger():
    """A ledger that does not sleep between attempts."""
    return WalletLedger(max_attempts=3, retry_base_delay=0)


@pytest.fixture
def engine(wallet_ledger, commission_table):
    return OrderDistributionEngine(ledger=wallet_ledger, commission_table=commission_table)


@pytest.fixture
def mock_gateway():
    """Paystack adapter double that accepts every recipient and transfer."""
    adapter = MagicMock()
    adapter.create_transfer_recipient.return_value = RecipientResult(
        recipient_code="RCP_test_123",
        raw_response={},
    )

    def _transfer(params):
        return TransferResult(
            transfer_code="TRF_test_123",
            reference=params.reference,
            status="pending",
            amount_minor_units=params.amount * 100,
            raw_response={},
        )

    adapter.initiate_transfer.side_effect = _transfer
    return adapter


@pytest.fixture
def withdrawal_service(mock_gateway, wallet_ledger):
    """WithdrawalService wired to the mock gateway; restored after the test."""
    WithdrawalService.set_gateway_adapter(mock_gateway)
    WithdrawalService.set_ledger(wallet_ledger)
    yield WithdrawalService
    WithdrawalService.set_gateway_adapter(None)
    WithdrawalService.set_ledger(None)


# =============================================================================
# Order Fixtures
# =============================================================================


def build_two_vendor_order(payment_status):
    """Chef 10,000 + pharmacy 4,000, delivery fee 1,500, no rider."""
    order = OrderFactory(
        payment_status=payment_status,
        subtotal=14000,
        delivery_fee=1500,
    )
    VendorGroupFactory(
        order=order,
        position=0,
        vendor_id="chef-1",
        vendor_role=Role.CHEF,
        subtotal=10000,
        with_child_order=True,
    )
    VendorGroupFactory(
        order=order,
        position=1,
        vendor_id="pharmacy-1",
        vendor_role=Role.PHARMACY,
        subtotal=4000,
        with_child_order=True,
    )
    return order


@pytest.fixture
def paid_order(db):
    return build_two_vendor_order(PaymentStatus.PAID)


@pytest.fixture
def unpaid_order(db):
    """Same order awaiting its Paystack charge."""
    return build_two_vendor_order(PaymentStatus.PENDING)


@pytest.fixture
def paid_order_with_rider(paid_order):
    paid_order.rider_id = "rider-1"
    paid_order.save(update_fields=["rider_id"])
    return paid_order


# =============================================================================
# Wallet & Withdrawal Fixtures
# =============================================================================


@pytest.fixture
def funded_wallet(db, wallet_ledger):
    """Chef wallet holding 20,000, credited through the ledger."""
    wallet_ledger.credit(
        owner_id="chef-1",
        role=Role.CHEF,
        amount=20000,
        source=TransactionSource.ORDER_PAYMENT,
        reference="test:funding:chef-1",
    )
    wallet = wallet_ledger.find_wallet("chef-1", Role.CHEF)
    wallet.bank_details = {
        "bank_code": "058",
        "account_number": "0123456789",
        "account_name": "Ada Obi",
    }
    wallet.save(update_fields=["bank_details"])
    return wallet


@pytest.fixture
def pending_withdrawal(funded_wallet):
    return WithdrawalFactory(wallet=funded_wallet, amount=5000, fee=50)


@pytest.fixture
def approved_withdrawal(pending_withdrawal):
    pending_withdrawal.approve(approved_by="admin-1")
    pending_withdrawal.save()
    return pending_withdrawal


@pytest.fixture
def processing_withdrawal(withdrawal_service, approved_withdrawal):
    """Withdrawal after a successful transfer initiation (wallet debited)."""
    result = withdrawal_service.initiate_transfer(approved_withdrawal.id)
    assert result.success, result.error
    return result.data.withdrawal
