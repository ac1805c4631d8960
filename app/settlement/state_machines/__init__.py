"""
State machine enums for settlement models.
"""

from settlement.state_machines.states import (
    DistributionStatus,
    PaymentStatus,
    WebhookEventStatus,
    WithdrawalState,
)

__all__ = [
    "DistributionStatus",
    "PaymentStatus",
    "WebhookEventStatus",
    "WithdrawalState",
]
