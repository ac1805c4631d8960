"""
Wallet ledger service.

WalletLedger is the only code allowed to change wallet balances. Every
balance change is applied with F() expressions (never load-modify-save) and
is committed in the same database transaction as the Transaction row that
records it.

Usage:
    from settlement.ledger.services import ledger

    # Credit a seller; creates the wallet on first earning
    ledger.credit(
        owner_id="vendor-42",
        role=Role.CHEF,
        amount=8500,
        source=TransactionSource.ORDER_PAYMENT,
        order_id=order.id,
        reference=f"distribution:{order.id}:vendor-42:chef",
    )

    # Earmark funds for a withdrawal
    ledger.debit(
        wallet_id=wallet.id,
        amount=5000,
        source=TransactionSource.WITHDRAWAL,
        reference=f"withdrawal:{withdrawal.id}:debit",
    )
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import IntegrityError, OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from core.helpers import backoff_delay
from settlement.commission import Role

from .exceptions import InsufficientBalance, LedgerError, LedgerWriteError, WalletNotFound
from .models import Transaction, TransactionSource, TransactionType, Wallet
from .types import WalletDrift

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 0.05


class WalletLedger:
    """
    Atomic wallet operations with an append-only transaction log.

    Key features:
    - Wallets created lazily by the first credit
    - Conditional decrement for debits, so balances never go negative
    - References are idempotency keys; repeating an operation with the
      same reference returns the original Transaction and changes nothing
    - Database errors are retried at the operation level and escalated
      as LedgerWriteError when they persist
    """

    def __init__(
        self,
        max_attempts: int | None = None,
        retry_base_delay: float | None = None,
    ):
        self.max_attempts = max_attempts or getattr(
            settings, "LEDGER_WRITE_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS
        )
        self.retry_base_delay = (
            retry_base_delay
            if retry_base_delay is not None
            else DEFAULT_RETRY_BASE_DELAY
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    @staticmethod
    def platform_owner_id() -> str:
        return str(settings.PLATFORM_WALLET_OWNER_ID)

    @staticmethod
    def get_wallet(wallet_id: uuid.UUID) -> Wallet:
        """
        Get a wallet by ID.

        Raises:
            WalletNotFound: If wallet doesn't exist
        """
        try:
            return Wallet.objects.get(id=wallet_id)
        except Wallet.DoesNotExist:
            raise WalletNotFound(
                f"Wallet {wallet_id} not found",
                details={"wallet_id": str(wallet_id)},
            )

    @staticmethod
    def find_wallet(owner_id: str, role: str) -> Wallet | None:
        """Return the (owner, role) wallet, or None if nothing was earned yet."""
        return Wallet.objects.filter(owner_id=str(owner_id), role=role).first()

    def get_platform_wallet(self) -> Wallet | None:
        return self.find_wallet(self.platform_owner_id(), Role.PLATFORM)

    def get_or_create_platform_wallet(self) -> tuple[Wallet, bool]:
        return Wallet.objects.get_or_create(
            owner_id=self.platform_owner_id(), role=Role.PLATFORM
        )

    # =========================================================================
    # Balance Operations
    # =========================================================================

    def credit(
        self,
        owner_id: str,
        role: str,
        amount: int,
        source: str,
        order_id: uuid.UUID | None = None,
        reference: str | None = None,
        description: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """
        Add amount to the (owner, role) wallet and log a CREDIT.

        The wallet is created with zero balances if it does not exist.
        REFUND credits restore balance without counting as earnings.

        Returns:
            The created Transaction, or the existing one for a repeated
            reference
        """
        self._validate_amount(amount)
        reference = reference or f"credit:{uuid.uuid4()}"
        owner_id = str(owner_id)

        def operation() -> Transaction:
            with transaction.atomic():
                existing = Transaction.objects.filter(reference=reference).first()
                if existing is not None:
                    return existing

                wallet, _ = Wallet.objects.get_or_create(owner_id=owner_id, role=role)

                increments = {"balance": F("balance") + amount}
                if source != TransactionSource.REFUND:
                    increments["total_earned"] = F("total_earned") + amount

                try:
                    with transaction.atomic():
                        entry = Transaction.objects.create(
                            wallet=wallet,
                            type=TransactionType.CREDIT,
                            amount=amount,
                            owner_id=owner_id,
                            role=role,
                            source=source,
                            order_id=order_id,
                            reference=reference,
                            description=description,
                            metadata=metadata or {},
                        )
                        Wallet.objects.filter(pk=wallet.pk).update(
                            updated_at=timezone.now(), **increments
                        )
                except IntegrityError:
                    # Concurrent writer committed the same reference first
                    return Transaction.objects.get(reference=reference)
                return entry

        return self._run_with_retry(
            operation,
            "credit",
            owner_id=owner_id,
            role=str(role),
            amount=amount,
            reference=reference,
        )

    def debit(
        self,
        wallet_id: uuid.UUID,
        amount: int,
        source: str,
        reference: str,
        description: str = "",
        order_id: uuid.UUID | None = None,
        metadata: dict[str, Any] | None = None,
        earmark: bool = True,
    ) -> Transaction:
        """
        Remove amount from a wallet's balance and log a DEBIT.

        The decrement only applies while balance >= amount, checked by the
        UPDATE itself. With earmark=True the funds move to pending_balance
        until the withdrawal settles; otherwise they count as withdrawn.

        Raises:
            WalletNotFound: If wallet doesn't exist
            InsufficientBalance: If balance < amount at the time of the update
        """
        self._validate_amount(amount)

        def operation() -> Transaction:
            with transaction.atomic():
                existing = Transaction.objects.filter(reference=reference).first()
                if existing is not None:
                    return existing

                wallet = self.get_wallet(wallet_id)

                increments = {"balance": F("balance") - amount}
                if earmark:
                    increments["pending_balance"] = F("pending_balance") + amount
                else:
                    increments["total_withdrawn"] = F("total_withdrawn") + amount

                try:
                    with transaction.atomic():
                        updated = Wallet.objects.filter(
                            pk=wallet.pk, balance__gte=amount
                        ).update(updated_at=timezone.now(), **increments)
                        if not updated:
                            available = (
                                Wallet.objects.filter(pk=wallet.pk)
                                .values_list("balance", flat=True)
                                .first()
                            )
                            raise InsufficientBalance(wallet.pk, amount, available or 0)

                        entry = Transaction.objects.create(
                            wallet=wallet,
                            type=TransactionType.DEBIT,
                            amount=amount,
                            owner_id=wallet.owner_id,
                            role=wallet.role,
                            source=source,
                            order_id=order_id,
                            reference=reference,
                            description=description,
                            metadata=metadata or {},
                        )
                except IntegrityError:
                    return Transaction.objects.get(reference=reference)
                return entry

        return self._run_with_retry(
            operation,
            "debit",
            wallet_id=str(wallet_id),
            amount=amount,
            reference=reference,
        )

    def refund(
        self,
        wallet_id: uuid.UUID,
        amount: int,
        order_id: uuid.UUID | None = None,
        reference: str | None = None,
        description: str = "Transfer failed, funds returned",
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """
        Return earmarked funds to a wallet's balance and log a REFUND credit.

        Compensating step of the withdrawal saga: undoes an earmarking debit
        after the gateway transfer failed.

        Raises:
            WalletNotFound: If wallet doesn't exist
            LedgerError: If pending_balance does not cover the refund
        """
        self._validate_amount(amount)
        reference = reference or f"refund:{uuid.uuid4()}"

        def operation() -> Transaction:
            with transaction.atomic():
                existing = Transaction.objects.filter(reference=reference).first()
                if existing is not None:
                    return existing

                wallet = self.get_wallet(wallet_id)

                try:
                    with transaction.atomic():
                        updated = Wallet.objects.filter(
                            pk=wallet.pk, pending_balance__gte=amount
                        ).update(
                            balance=F("balance") + amount,
                            pending_balance=F("pending_balance") - amount,
                            updated_at=timezone.now(),
                        )
                        if not updated:
                            raise LedgerError(
                                "Pending balance does not cover the refund",
                                error_code="PENDING_BALANCE_TOO_LOW",
                                details={"wallet_id": str(wallet.pk), "amount": amount},
                            )

                        entry = Transaction.objects.create(
                            wallet=wallet,
                            type=TransactionType.CREDIT,
                            amount=amount,
                            owner_id=wallet.owner_id,
                            role=wallet.role,
                            source=TransactionSource.REFUND,
                            order_id=order_id,
                            reference=reference,
                            description=description,
                            metadata=metadata or {},
                        )
                except IntegrityError:
                    return Transaction.objects.get(reference=reference)
                return entry

        return self._run_with_retry(
            operation,
            "refund",
            wallet_id=str(wallet_id),
            amount=amount,
            reference=reference,
        )

    def settle_withdrawal(self, wallet_id: uuid.UUID, amount: int) -> None:
        """
        Move a completed withdrawal from pending_balance to total_withdrawn.

        Balance is untouched (it was reduced by the debit), so no
        transaction row is written.
        """
        self._validate_amount(amount)

        def operation() -> None:
            with transaction.atomic():
                wallet = self.get_wallet(wallet_id)
                updated = Wallet.objects.filter(
                    pk=wallet.pk, pending_balance__gte=amount
                ).update(
                    pending_balance=F("pending_balance") - amount,
                    total_withdrawn=F("total_withdrawn") + amount,
                    updated_at=timezone.now(),
                )
                if not updated:
                    raise LedgerError(
                        "Pending balance does not cover the settled withdrawal",
                        error_code="PENDING_BALANCE_TOO_LOW",
                        details={"wallet_id": str(wallet.pk), "amount": amount},
                    )

        self._run_with_retry(
            operation,
            "settle_withdrawal",
            wallet_id=str(wallet_id),
            amount=amount,
        )

    # =========================================================================
    # Consistency Checks
    # =========================================================================

    @staticmethod
    def verify_wallet(wallet: Wallet) -> WalletDrift:
        """Compare a wallet's stored balance with its transaction log."""
        wallet.refresh_from_db(fields=["balance"])
        return WalletDrift(
            wallet_id=wallet.pk,
            owner_id=wallet.owner_id,
            role=wallet.role,
            stored_balance=wallet.balance,
            computed_balance=wallet.computed_balance(),
        )

    def iter_drifts(self) -> Iterator[WalletDrift]:
        """Yield a WalletDrift for every wallet whose balance disagrees with its log."""
        for wallet in Wallet.objects.order_by("created_at").iterator():
            drift = self.verify_wallet(wallet)
            if not drift.is_consistent:
                yield drift

    # =========================================================================
    # Internals
    # =========================================================================

    @staticmethod
    def _validate_amount(amount: int) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise LedgerError(
                "Ledger amounts must be positive integers",
                error_code="INVALID_AMOUNT",
                details={"amount": repr(amount)},
            )

    def _run_with_retry(
        self, operation: Callable[[], Any], action: str, **log_context: Any
    ) -> Any:
        # After a database error an enclosing atomic block can only roll
        # back, so retries happen only when this call owns the transaction.
        in_outer_transaction = transaction.get_connection().in_atomic_block
        attempts = 1 if in_outer_transaction else self.max_attempts

        for attempt in range(attempts):
            try:
                return operation()
            except OperationalError as exc:
                if attempt + 1 >= attempts:
                    logger.critical(
                        f"Ledger {action} failed, balance change not applied",
                        extra={
                            **log_context,
                            "attempts": attempt + 1,
                            "in_outer_transaction": in_outer_transaction,
                            "error": str(exc),
                        },
                    )
                    raise LedgerWriteError(
                        f"Ledger {action} failed after {attempt + 1} attempt(s)",
                        details={**log_context, "attempts": attempt + 1},
                    ) from exc

                delay = backoff_delay(attempt, base=self.retry_base_delay, max_delay=1.0)
                logger.warning(
                    f"Ledger {action} hit a database error, retrying",
                    extra={
                        **log_context,
                        "attempt": attempt + 1,
                        "delay_seconds": round(delay, 3),
                        "error": str(exc),
                    },
                )
                time.sleep(delay)


# Singleton instance for convenience
# Usage: from settlement.ledger.services import ledger
ledger = WalletLedger()
