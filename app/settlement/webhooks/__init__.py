"""
Webhook handling for Paystack events.

Events are verified, recorded as WebhookEvents and processed in the
request, so the response tells Paystack whether to redeliver.

Usage:
    # In urls.py
    from settlement.webhooks.views import paystack_webhook

    urlpatterns = [
        path("webhooks/paystack/", paystack_webhook, name="paystack_webhook"),
    ]
"""

from settlement.webhooks.handlers import (
    PaymentWebhookGateway,
    WebhookOutcome,
    dispatch_webhook,
    register_handler,
)
from settlement.webhooks.views import paystack_webhook

__all__ = [
    "PaymentWebhookGateway",
    "WebhookOutcome",
    "dispatch_webhook",
    "paystack_webhook",
    "register_handler",
]
