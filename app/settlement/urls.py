"""
URL configuration for the settlement app.

All routes are prefixed with /api/v1/settlement/ when included in the main URLconf.
"""

from django.urls import path

from settlement.views import (
    EarningsView,
    ManualDistributeView,
    PaymentInitializeView,
    PaymentVerifyView,
    WalletListView,
    WalletTransactionsView,
    WithdrawalApproveView,
    WithdrawalListCreateView,
    WithdrawalRejectView,
    WithdrawalTransferView,
)
from settlement.webhooks.views import paystack_webhook

app_name = "settlement"

urlpatterns = [
    # Distribution
    path(
        "orders/<uuid:order_id>/distribute/",
        ManualDistributeView.as_view(),
        name="order_distribute",
    ),
    # Payments
    path(
        "payments/initialize/",
        PaymentInitializeView.as_view(),
        name="payment_initialize",
    ),
    path("payments/verify/", PaymentVerifyView.as_view(), name="payment_verify"),
    # Wallets
    path("wallets/", WalletListView.as_view(), name="wallet_list"),
    path(
        "wallets/<str:role>/transactions/",
        WalletTransactionsView.as_view(),
        name="wallet_transactions",
    ),
    path("earnings/", EarningsView.as_view(), name="earnings"),
    # Withdrawals
    path("withdrawals/", WithdrawalListCreateView.as_view(), name="withdrawal_list"),
    path(
        "withdrawals/<uuid:withdrawal_id>/approve/",
        WithdrawalApproveView.as_view(),
        name="withdrawal_approve",
    ),
    path(
        "withdrawals/<uuid:withdrawal_id>/reject/",
        WithdrawalRejectView.as_view(),
        name="withdrawal_reject",
    ),
    path(
        "withdrawals/<uuid:withdrawal_id>/transfer/",
        WithdrawalTransferView.as_view(),
        name="withdrawal_transfer",
    ),
    # Webhooks
    path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
]
