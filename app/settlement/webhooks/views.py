"""
Webhook endpoint view for Paystack.

The view hands the raw body and signature to PaymentWebhookGateway and maps
the outcome to an HTTP status. Paystack redelivers on non-2xx responses, so
only outcomes worth retrying (unexpected errors) answer 500.

Usage:
    # In urls.py
    from settlement.webhooks.views import paystack_webhook

    urlpatterns = [
        path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, HttpResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from settlement.webhooks.handlers import PaymentWebhookGateway

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "x-paystack-signature"

# Error codes from a failed ServiceResult mapped to response status
ERROR_STATUS_CODES = {
    "INVALID_SIGNATURE": 400,
    "MALFORMED_PAYLOAD": 400,
    "ORDER_NOT_FOUND": 404,
    "WITHDRAWAL_NOT_FOUND": 404,
    "INVALID_WITHDRAWAL_STATE": 409,
    "ORDER_VENDOR_GROUPS_MISSING": 422,
    "PAYMENT_NOT_CONFIRMED": 422,
    "PAYMENT_AMOUNT_MISMATCH": 422,
}


@csrf_exempt
@require_POST
def paystack_webhook(request: HttpRequest) -> HttpResponse:
    """
    Receive and process Paystack webhook events.

    Returns:
        HttpResponse with status:
        - 200: Event processed, duplicate, or ignored
        - 400: Invalid signature or malformed payload
        - 404: Unknown order or withdrawal
        - 422: Charge does not match the order, or order cannot be distributed
        - 500: Unexpected error (Paystack will retry)
    """
    signature = request.headers.get(SIGNATURE_HEADER)

    try:
        result = PaymentWebhookGateway().handle(request.body, signature)
    except Exception:
        logger.exception("Unexpected error handling Paystack webhook")
        return HttpResponse("Processing error", status=500)

    if result.success:
        if result.data is not None and result.data.duplicate:
            return HttpResponse("Already processed", status=200)
        return HttpResponse("Processed", status=200)

    status = ERROR_STATUS_CODES.get(result.error_code, 400)
    return HttpResponse(result.error or "Rejected", status=status)
