"""
Celery tasks for settlement maintenance.

None of these are needed for correctness of a single request; they clean
up after crashes and watch for ledger drift.

Tasks:
- expire_stuck_withdrawals: Refund withdrawals stuck before the gateway call
- resume_pending_distributions: Re-run distribution for paid orders left pending
- verify_wallet_balances: Log wallets whose balance disagrees with the ledger

Usage:
    # Typically called via celery-beat schedule
    from settlement.tasks import resume_pending_distributions

    resume_pending_distributions.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings
from django.utils import timezone

from orders.models import Order
from settlement.ledger import LedgerWriteError, ledger
from settlement.services import OrderDistributionEngine, WithdrawalService
from settlement.state_machines import DistributionStatus, PaymentStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Maximum orders to redistribute per run
BATCH_SIZE = 100

DEFAULT_WITHDRAWAL_TIMEOUT_MINUTES = 30
DEFAULT_DISTRIBUTION_RETRY_MINUTES = 10


# =============================================================================
# Withdrawals
# =============================================================================


@shared_task(bind=True)
def expire_stuck_withdrawals(self) -> dict:
    """
    Reject and refund PROCESSING withdrawals that never got a transfer handle.

    Returns:
        Dict with the number of withdrawals expired
    """
    timeout = getattr(
        settings,
        "WITHDRAWAL_PROCESSING_TIMEOUT_MINUTES",
        DEFAULT_WITHDRAWAL_TIMEOUT_MINUTES,
    )
    expired = WithdrawalService.expire_stuck_withdrawals(timeout)

    if expired:
        logger.warning(
            "Expired stuck withdrawals",
            extra={"expired": expired, "timeout_minutes": timeout},
        )
    return {"status": "completed", "expired": expired}


# =============================================================================
# Distribution
# =============================================================================


@shared_task(bind=True)
def resume_pending_distributions(self) -> dict:
    """
    Re-run distribution for PAID orders still PENDING distribution.

    Credits are keyed per order and wallet, so groups credited before an
    interruption are not credited again.

    Returns:
        Dict with counts of distributed and failed orders
    """
    retry_after = getattr(
        settings,
        "DISTRIBUTION_RETRY_AFTER_MINUTES",
        DEFAULT_DISTRIBUTION_RETRY_MINUTES,
    )
    cutoff = timezone.now() - timedelta(minutes=retry_after)

    order_ids = list(
        Order.objects.filter(
            payment_status=PaymentStatus.PAID,
            distribution_status=DistributionStatus.PENDING,
            paid_at__lt=cutoff,
        )
        .order_by("paid_at")
        .values_list("id", flat=True)[:BATCH_SIZE]
    )

    engine = OrderDistributionEngine()
    distributed = 0
    failed = 0

    for order_id in order_ids:
        try:
            result = engine.distribute(order_id)
        except LedgerWriteError:
            # Already logged at CRITICAL by the ledger; try again next run
            failed += 1
            continue

        if result.success:
            distributed += 1
        else:
            failed += 1
            logger.error(
                "Pending distribution could not be resumed",
                extra={
                    "order_id": str(order_id),
                    "error": result.error,
                    "error_code": result.error_code,
                },
            )

    logger.info(
        "Resumed pending distributions",
        extra={"found": len(order_ids), "distributed": distributed, "failed": failed},
    )
    return {
        "status": "completed",
        "found": len(order_ids),
        "distributed": distributed,
        "failed": failed,
    }


# =============================================================================
# Ledger Consistency
# =============================================================================


@shared_task(bind=True)
def verify_wallet_balances(self) -> dict:
    """
    Compare every wallet's balance with the sum of its transactions.

    Drift is only logged; correcting it needs a person.
    """
    drifted = 0
    for drift in ledger.iter_drifts():
        drifted += 1
        logger.error("Wallet balance drift detected", extra=drift.as_log_context())

    return {"status": "completed", "drifted": drifted}
