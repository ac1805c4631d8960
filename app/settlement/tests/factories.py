"""
Factory Boy factories for settlement test data.

This module provides factories for creating test instances of order and
settlement models. Factories generate realistic test data while allowing
easy customization.

Usage:
    from settlement.tests.factories import (
        OrderFactory,
        VendorGroupFactory,
        WalletFactory,
        WithdrawalFactory,
    )

    # A paid order with one chef group
    order = OrderFactory(payment_status=PaymentStatus.PAID)
    VendorGroupFactory(order=order, vendor_role=Role.CHEF, subtotal=10000)

    # A wallet with funds
    wallet = WalletFactory(balance=20000)
"""

import uuid

import factory
from django.utils import timezone

from orders.models import ChildOrder, Order, VendorGroup
from settlement.commission import Role
from settlement.ledger.models import Wallet
from settlement.models import WebhookEvent, Withdrawal
from settlement.state_machines import PaymentStatus, WebhookEventStatus


class WalletFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Wallet instances.

    Balances are set directly here, bypassing the ledger, so tests that
    check ledger consistency should credit through WalletLedger instead.

    Example:
        wallet = WalletFactory(owner_id="chef-1", role=Role.CHEF, balance=5000)
    """

    class Meta:
        model = Wallet

    owner_id = factory.Sequence(lambda n: f"seller-{n}")
    role = Role.CHEF
    balance = 0
    pending_balance = 0
    total_earned = factory.LazyAttribute(lambda o: o.balance)
    total_withdrawn = 0
    currency = "NGN"
    bank_details = factory.LazyFunction(
        lambda: {
            "bank_code": "058",
            "account_number": "0123456789",
            "account_name": "Ada Obi",
        }
    )


class OrderFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Order instances.

    Default creates an order awaiting payment with no vendor groups and no
    delivery fee. Add groups with VendorGroupFactory.

    Example:
        order = OrderFactory(delivery_fee=1500, rider_id="rider-1")
    """

    class Meta:
        model = Order

    order_number = factory.Sequence(lambda n: f"ORD-TEST-{n:05d}")
    customer_id = factory.Sequence(lambda n: f"customer-{n}")
    subtotal = 0
    delivery_fee = 0
    total_amount = factory.LazyAttribute(lambda o: o.subtotal + o.delivery_fee)
    payment_reference = factory.LazyFunction(lambda: f"ORD_{uuid.uuid4().hex}")
    payment_status = PaymentStatus.PENDING
    paid_at = factory.LazyAttribute(
        lambda o: timezone.now() if o.payment_status == PaymentStatus.PAID else None
    )


class VendorGroupFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating VendorGroup instances.

    Set with_child_order=True to also create the matching ChildOrder.
    """

    class Meta:
        model = VendorGroup
        skip_postgeneration_save = True

    order = factory.SubFactory(OrderFactory)
    position = factory.Sequence(lambda n: n)
    vendor_id = factory.Sequence(lambda n: f"vendor-{n}")
    vendor_name = factory.Sequence(lambda n: f"Kitchen {n}")
    vendor_role = Role.CHEF
    subtotal = 10000
    items = factory.LazyFunction(list)

    @factory.post_generation
    def with_child_order(self, create, extracted, **kwargs):
        if not create or not extracted:
            return
        ChildOrderFactory(
            parent_order=self.order,
            vendor_id=self.vendor_id,
            vendor_name=self.vendor_name,
            vendor_role=self.vendor_role,
            subtotal=self.subtotal,
        )


class ChildOrderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ChildOrder

    parent_order = factory.SubFactory(OrderFactory)
    vendor_id = factory.Sequence(lambda n: f"vendor-{n}")
    vendor_name = factory.Sequence(lambda n: f"Kitchen {n}")
    vendor_role = Role.CHEF
    subtotal = 10000
    items = factory.LazyFunction(list)


class WithdrawalFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Withdrawal instances.

    Default creates a PENDING withdrawal of 5,000 with the standard 50 fee.
    The FSM field is protected, so other states are reached through
    transitions (see the fixtures in conftest.py).
    """

    class Meta:
        model = Withdrawal

    wallet = factory.SubFactory(WalletFactory, balance=20000)
    owner_id = factory.LazyAttribute(lambda o: o.wallet.owner_id)
    role = factory.LazyAttribute(lambda o: o.wallet.role)
    amount = 5000
    fee = 50
    net_amount = factory.LazyAttribute(lambda o: o.amount - o.fee)
    bank_details = factory.LazyAttribute(lambda o: dict(o.wallet.bank_details))
    metadata = factory.LazyFunction(dict)


class WebhookEventFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = WebhookEvent

    event_type = "charge.success"
    reference = factory.LazyFunction(lambda: f"ORD_{uuid.uuid4().hex}")
    event_key = factory.LazyAttribute(
        lambda o: WebhookEvent.build_key(o.event_type, o.reference)
    )
    payload = factory.LazyAttribute(
        lambda o: {"event": o.event_type, "data": {"reference": o.reference}}
    )
    status = WebhookEventStatus.PENDING
