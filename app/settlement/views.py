"""
DRF views for the settlement app.

Endpoints:
    POST /api/v1/settlement/orders/{id}/distribute/ - Manual split (admin)
    POST /api/v1/settlement/payments/initialize/ - Start a Paystack checkout
    GET /api/v1/settlement/payments/verify/ - Verify a payment by reference
    GET /api/v1/settlement/wallets/ - Current user's wallets
    GET /api/v1/settlement/wallets/{role}/transactions/ - Wallet history
    GET /api/v1/settlement/earnings/ - Seller or rider earnings summary
    GET/POST /api/v1/settlement/withdrawals/ - List or request withdrawals
    POST /api/v1/settlement/withdrawals/{id}/approve/ - Approve (admin)
    POST /api/v1/settlement/withdrawals/{id}/reject/ - Reject (admin)
    POST /api/v1/settlement/withdrawals/{id}/transfer/ - Initiate transfer (admin)
    POST /api/v1/settlement/webhooks/paystack/ - Paystack webhook (see webhooks/)

Security:
    - Wallet, earnings, payment and withdrawal endpoints are scoped to request.user
    - Distribution and withdrawal review endpoints require staff
"""

from __future__ import annotations

import logging

from django.utils import timezone
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.choices import PaymentProvider
from orders.models import Order
from orders.services import OrderService
from settlement.ledger import Transaction, Wallet
from settlement.models import Withdrawal
from settlement.serializers import (
    EarningsQuerySerializer,
    PaymentInitializeSerializer,
    PaymentVerifyQuerySerializer,
    RejectWithdrawalSerializer,
    TransactionSerializer,
    WalletSerializer,
    WithdrawalRequestSerializer,
    WithdrawalSerializer,
)
from settlement.services import (
    EarningsService,
    OrderDistributionEngine,
    PaymentService,
    WithdrawalService,
)
from settlement.state_machines import PaymentStatus

logger = logging.getLogger(__name__)

# Error codes from a failed ServiceResult mapped to response status
ERROR_STATUS_CODES = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "INVALID_WITHDRAWAL_AMOUNT": status.HTTP_400_BAD_REQUEST,
    "INSUFFICIENT_BALANCE": status.HTTP_400_BAD_REQUEST,
    "ORDER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "WALLET_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "WITHDRAWAL_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_WITHDRAWAL_STATE": status.HTTP_409_CONFLICT,
    "WITHDRAWAL_NOT_APPROVED": status.HTTP_409_CONFLICT,
    "TRANSFER_ALREADY_INITIATED": status.HTTP_409_CONFLICT,
    "ORDER_VENDOR_GROUPS_MISSING": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "PAYMENT_NOT_CONFIRMED": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "PAYMENT_AMOUNT_MISMATCH": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "PAYMENT_ALREADY_CONFIRMED": status.HTTP_409_CONFLICT,
    "PAYMENT_NOT_SUCCESSFUL": status.HTTP_402_PAYMENT_REQUIRED,
    "GATEWAY_TRANSFER_FAILED": status.HTTP_502_BAD_GATEWAY,
    "PAYSTACK_API_ERROR": status.HTTP_502_BAD_GATEWAY,
    "PAYSTACK_TIMEOUT": status.HTTP_502_BAD_GATEWAY,
    "PAYSTACK_CONNECTION_ERROR": status.HTTP_502_BAD_GATEWAY,
}


def failure_response(result) -> Response:
    return Response(
        result.to_response(),
        status=ERROR_STATUS_CODES.get(result.error_code, status.HTTP_400_BAD_REQUEST),
    )


class TransactionPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 100


# =============================================================================
# Distribution
# =============================================================================


class ManualDistributeView(APIView):
    """
    Confirm payment manually and split the order.

    POST /api/v1/settlement/orders/{id}/distribute/

    An order still awaiting payment is marked paid with a MANUAL_ reference
    first. Distribution goes through the same engine as the webhook, so
    calling this on a distributed order is a no-op.
    """

    permission_classes = [IsAdminUser]

    def post(self, request, order_id):
        order = Order.objects.filter(id=order_id).first()
        if order is None:
            return Response(
                {"success": False, "error": "Order not found", "error_code": "ORDER_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )

        if order.payment_status == PaymentStatus.PENDING:
            reference = f"MANUAL_{int(timezone.now().timestamp() * 1000)}"
            OrderService.mark_paid(
                order.id,
                payment_reference=reference,
                payment_provider=PaymentProvider.MANUAL,
            )
            logger.info(
                "Order marked paid manually",
                extra={
                    "order_id": str(order.id),
                    "reference": reference,
                    "staff_user": str(request.user.pk),
                },
            )

        result = OrderDistributionEngine().distribute(order.id)
        if not result.success:
            return failure_response(result)

        summary = result.data
        return Response(
            {
                "order_id": str(summary.order_id),
                "already_distributed": summary.already_distributed,
                "vendor_distributions": [p.as_dict() for p in summary.vendor_payouts],
                "platform_amount": summary.platform_amount,
                "rider_amount": summary.rider_amount,
            }
        )


# =============================================================================
# Payments
# =============================================================================


class PaymentInitializeView(APIView):
    """
    Start a Paystack checkout for one of the customer's orders.

    POST /api/v1/settlement/payments/initialize/

    Request body:
        {"order_id": "...", "email": "ada@example.com", "callback_url": "..."}

    Returns the authorization URL to redirect the customer to and the
    payment reference the charge will carry.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="initialize_payment",
        summary="Start a Paystack checkout",
        request=PaymentInitializeSerializer,
    )
    def post(self, request):
        serializer = PaymentInitializeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        orders = Order.objects.filter(id=serializer.validated_data["order_id"])
        if not request.user.is_staff:
            orders = orders.filter(customer_id=str(request.user.pk))
        order = orders.first()
        if order is None:
            return Response(
                {"success": False, "error": "Order not found", "error_code": "ORDER_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )

        result = PaymentService.initialize_payment(
            order.id,
            email=serializer.validated_data["email"],
            callback_url=serializer.validated_data["callback_url"],
        )
        if not result.success:
            return failure_response(result)

        checkout = result.data
        return Response(
            {
                "order_id": str(checkout.order_id),
                "reference": checkout.reference,
                "authorization_url": checkout.authorization_url,
                "access_code": checkout.access_code,
            }
        )


class PaymentVerifyView(APIView):
    """
    Verify a payment with Paystack after checkout.

    GET /api/v1/settlement/payments/verify/?reference=ORD_...

    Confirms and distributes the order if the webhook has not done so yet.
    Customers only see their own orders.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="verify_payment",
        summary="Verify a payment by reference",
        parameters=[
            OpenApiParameter(
                name="reference",
                type=str,
                location=OpenApiParameter.QUERY,
                description="Payment reference returned by initialize",
                required=True,
            ),
        ],
    )
    def get(self, request):
        query = PaymentVerifyQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = PaymentService.verify_payment(query.validated_data["reference"])
        if not result.success:
            return failure_response(result)

        verification = result.data
        if not request.user.is_staff and not Order.objects.filter(
            id=verification.order_id, customer_id=str(request.user.pk)
        ).exists():
            return Response(
                {"success": False, "error": "Order not found", "error_code": "ORDER_NOT_FOUND"},
                status=status.HTTP_404_NOT_FOUND,
            )

        return Response(
            {
                "order_id": str(verification.order_id),
                "reference": verification.reference,
                "paid": verification.paid,
                "payment_status": verification.payment_status,
                "distribution_status": verification.distribution_status,
                "status": verification.status,
            }
        )


# =============================================================================
# Wallets & Earnings
# =============================================================================


class WalletListView(APIView):
    """
    List the current user's wallets, one per role.

    GET /api/v1/settlement/wallets/
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        wallets = Wallet.objects.filter(owner_id=str(request.user.pk)).order_by("role")
        return Response(WalletSerializer(wallets, many=True).data)


class WalletTransactionsView(APIView):
    """
    Transaction history of one of the user's wallets, newest first.

    GET /api/v1/settlement/wallets/{role}/transactions/
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, role):
        wallet = Wallet.objects.filter(owner_id=str(request.user.pk), role=role).first()
        if wallet is None:
            return Response(
                {"detail": "Wallet not found"},
                status=status.HTTP_404_NOT_FOUND,
            )

        paginator = TransactionPagination()
        page = paginator.paginate_queryset(
            Transaction.objects.filter(wallet=wallet).order_by("-created_at"),
            request,
            view=self,
        )
        return paginator.get_paginated_response(TransactionSerializer(page, many=True).data)


class EarningsView(APIView):
    """
    Seller or rider earnings summary.

    GET /api/v1/settlement/earnings/?role=chef&range=7d

    Returns wallet balances (zeros before the first earning) and gross,
    commission, net, order count and average order value over paid and
    delivered child orders in the range.
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="get_earnings",
        summary="Earnings summary",
        parameters=[EarningsQuerySerializer],
    )
    def get(self, request):
        query = EarningsQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        result = EarningsService.summarize(
            owner_id=str(request.user.pk),
            role=query.validated_data["role"],
            range_key=query.validated_data["range"],
        )
        if not result.success:
            return failure_response(result)
        return Response(result.data.as_dict())


# =============================================================================
# Withdrawals
# =============================================================================


class WithdrawalListCreateView(APIView):
    """
    List or request withdrawals.

    GET /api/v1/settlement/withdrawals/
    POST /api/v1/settlement/withdrawals/

    Request body:
        {"role": "chef", "amount": 5000, "bank_details": {...}}
    """

    permission_classes = [IsAuthenticated]

    def get(self, request):
        withdrawals = Withdrawal.objects.filter(owner_id=str(request.user.pk))
        return Response(WithdrawalSerializer(withdrawals, many=True).data)

    def post(self, request):
        serializer = WithdrawalRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = WithdrawalService.request_withdrawal(
            owner_id=str(request.user.pk),
            role=serializer.validated_data["role"],
            amount=serializer.validated_data["amount"],
            bank_details=serializer.validated_data.get("bank_details"),
        )
        if not result.success:
            return failure_response(result)
        return Response(
            WithdrawalSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


class WithdrawalApproveView(APIView):
    """POST /api/v1/settlement/withdrawals/{id}/approve/"""

    permission_classes = [IsAdminUser]

    def post(self, request, withdrawal_id):
        result = WithdrawalService.approve(withdrawal_id, approved_by=str(request.user.pk))
        if not result.success:
            return failure_response(result)
        return Response(WithdrawalSerializer(result.data).data)


class WithdrawalRejectView(APIView):
    """
    POST /api/v1/settlement/withdrawals/{id}/reject/

    Request body:
        {"reason": "Bank account name does not match"}
    """

    permission_classes = [IsAdminUser]

    def post(self, request, withdrawal_id):
        serializer = RejectWithdrawalSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = WithdrawalService.reject(withdrawal_id, serializer.validated_data["reason"])
        if not result.success:
            return failure_response(result)
        return Response(WithdrawalSerializer(result.data).data)


class WithdrawalTransferView(APIView):
    """
    Debit the wallet and send the payout through Paystack.

    POST /api/v1/settlement/withdrawals/{id}/transfer/

    On a gateway failure the response is 502 and the wallet has already
    been refunded.
    """

    permission_classes = [IsAdminUser]

    def post(self, request, withdrawal_id):
        result = WithdrawalService.initiate_transfer(withdrawal_id)
        if not result.success:
            return failure_response(result)

        data = WithdrawalSerializer(result.data.withdrawal).data
        data["transfer_code"] = result.data.transfer_code
        return Response(data)
