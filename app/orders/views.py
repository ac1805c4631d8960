"""
DRF views for the orders app.

Endpoints:
    POST /api/v1/orders/ - Create an order awaiting payment
    GET /api/v1/orders/{id}/ - Order detail (owner or staff)

Security:
    - All endpoints require authentication
    - The customer is always the authenticated user
"""

from __future__ import annotations

import logging

from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.serializers import CreateOrderSerializer, OrderSerializer
from orders.services import OrderService

logger = logging.getLogger(__name__)


class OrderCreateView(APIView):
    """
    Create an order.

    POST /api/v1/orders/

    Returns:
        201 with the order, 400 on invalid input
    """

    permission_classes = [IsAuthenticated]

    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = OrderService.create_order(
            customer_id=str(request.user.pk),
            **serializer.validated_data,
        )
        if not result.success:
            return Response(result.to_response(), status=status.HTTP_400_BAD_REQUEST)

        order = OrderService.get_order(result.data.id)
        return Response(OrderSerializer(order).data, status=status.HTTP_201_CREATED)


class OrderDetailView(APIView):
    """
    Retrieve an order.

    GET /api/v1/orders/{id}/

    Customers only see their own orders; staff see all.
    """

    permission_classes = [IsAuthenticated]

    def get(self, request, order_id):
        order = OrderService.get_order(order_id)
        if order is None or (
            not request.user.is_staff and order.customer_id != str(request.user.pk)
        ):
            return Response(
                {"detail": "Order not found"},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(OrderSerializer(order).data)
