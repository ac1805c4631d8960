"""
WebhookEvent model for inbound gateway events.

Every event that passes signature verification is recorded here before it
is handled. Paystack events carry no event id, so events are keyed by
"<event>:<reference>", which is stable across redeliveries of the same
event.

Usage:
    event, created = WebhookEvent.objects.get_or_create(
        event_key=WebhookEvent.build_key("charge.success", "ORD_abc"),
        defaults={"event_type": "charge.success", "reference": "ORD_abc", "payload": body},
    )
    if event.is_processed:
        return  # Redelivery of an event already handled
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from settlement.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Record of a verified Paystack event and its processing outcome.

    Fields:
        event_key: Unique "<event>:<reference>" key
        event_type: Paystack event name (e.g. "charge.success")
        reference: Payment or transfer reference from the event data
        payload: Full JSON body as received
        status: Processing status
        processed_at: When processing finished successfully
        error_message: Last processing error, if any
        retry_count: Number of processing attempts
    """

    event_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Event name and reference, unique per logical event",
    )
    event_type = models.CharField(max_length=100, db_index=True)
    reference = models.CharField(max_length=255, blank=True, default="", db_index=True)
    payload = models.JSONField(default=dict)
    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )
    processed_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(null=True, blank=True)
    retry_count = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_key}, {self.status})"

    @staticmethod
    def build_key(event_type: str, reference: str) -> str:
        return f"{event_type}:{reference}"[:255]

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    def mark_processing(self) -> None:
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message
