"""
State enums for settlement models.

These are Django TextChoices for database storage and admin integration.
WithdrawalState drives the django-fsm field on Withdrawal; the order
payment and distribution statuses are guarded by compare-and-set updates
rather than FSM transitions.

State Machines Overview:

Withdrawal States:
    pending → approved → processing → completed
    processing → rejected (transfer could not be initiated, funds refunded)
    processing → failed (gateway reported failure or reversal, funds refunded)
    pending/approved → rejected (admin declined, wallet never touched)

Order Payment Status:
    pending → paid (exactly once per payment reference)

Order Distribution Status:
    pending → distributed (exactly once per order)

WebhookEvent Status:
    pending → processing → processed
    pending → processing → failed → processing (redelivery)
"""

from django.db import models


class WithdrawalState(models.TextChoices):
    """
    States for the Withdrawal lifecycle.

    Terminal states: COMPLETED, REJECTED, FAILED

    The wallet is debited on the APPROVED → PROCESSING transition only.
    Both REJECTED-from-PROCESSING and FAILED carry a compensating refund.
    """

    PENDING = "pending", "Pending"
    APPROVED = "approved", "Approved"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    REJECTED = "rejected", "Rejected"
    FAILED = "failed", "Failed"


class PaymentStatus(models.TextChoices):
    """Customer payment status of an order."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"


class DistributionStatus(models.TextChoices):
    """Whether an order's money has been split across wallets."""

    PENDING = "pending", "Pending"
    DISTRIBUTED = "distributed", "Distributed"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status of an inbound gateway event.

    PROCESSED events are acknowledged immediately on redelivery.
    FAILED events are processed again when the gateway redelivers them.
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
