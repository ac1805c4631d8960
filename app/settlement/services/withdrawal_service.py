"""
Withdrawal service for paying wallet funds out to bank accounts.

Transfer initiation is a saga with a compensating step:
1. Phase 1: Debit the wallet and move the withdrawal to PROCESSING in one
   database transaction
2. Phase 2: Create the recipient and the transfer at Paystack (outside any
   transaction, with an HTTP timeout)
3. Phase 3: Store the transfer handle on the withdrawal

If Phase 2 fails for any reason, including a timeout, the withdrawal moves
to REJECTED and the debit is refunded, so the wallet is back at its
pre-debit balance before the caller sees the failure.

Usage:
    from settlement.services import WithdrawalService

    result = WithdrawalService.request_withdrawal(
        owner_id="vendor-42",
        role=Role.CHEF,
        amount=5000,
        bank_details={"bank_code": "058", "account_number": "0123456789",
                      "account_name": "Ada Obi"},
    )
    WithdrawalService.approve(result.data.id, approved_by="admin-1")
    outcome = WithdrawalService.initiate_transfer(result.data.id)
    if not outcome.success:
        print(outcome.error_code)  # GATEWAY_TRANSFER_FAILED, funds returned
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django_fsm import can_proceed

from core.services import BaseService, ServiceResult
from settlement.adapters import CreateRecipientParams, InitiateTransferParams, PaystackAdapter
from settlement.exceptions import (
    GatewayTransferFailed,
    InsufficientBalance,
    InvalidWithdrawalAmount,
    NotApproved,
    PaystackError,
    SettlementError,
    TransferAlreadyInitiated,
    WalletNotFound,
    WithdrawalNotFound,
)
from settlement.ledger import TransactionSource
from settlement.ledger.services import ledger as default_ledger
from settlement.models import Withdrawal
from settlement.state_machines import WithdrawalState

if TYPE_CHECKING:
    from settlement.ledger.services import WalletLedger


# =============================================================================
# Constants
# =============================================================================

DEFAULT_MINIMUM_AMOUNT = 1000
DEFAULT_WITHDRAWAL_FEE = 50

REQUIRED_BANK_FIELDS = ("bank_code", "account_number", "account_name")

REFUND_DESCRIPTION = "Transfer failed, funds returned"


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class TransferInitiationResult:
    """
    Result of a successful transfer initiation.

    Attributes:
        withdrawal: The withdrawal, now PROCESSING
        transfer_code: Paystack transfer handle
        reference: Reference sent with the transfer
    """

    withdrawal: Withdrawal
    transfer_code: str
    reference: str


# =============================================================================
# Withdrawal Service
# =============================================================================


class WithdrawalService(BaseService):
    """
    Lifecycle of a withdrawal from request to settled payout.

    State Flow:
        request_withdrawal -> PENDING
        approve            -> APPROVED
        initiate_transfer  -> PROCESSING (wallet debited)
        complete           -> COMPLETED  (pending funds settled)
        gateway failure    -> REJECTED / FAILED (wallet refunded)

    All methods are class methods. The gateway adapter and ledger can be
    injected for testing:

        WithdrawalService.set_gateway_adapter(mock_adapter)
        WithdrawalService.set_ledger(WalletLedger(max_attempts=1))
    """

    _gateway_adapter: Any = None
    _ledger: WalletLedger | None = None

    @classmethod
    def get_gateway_adapter(cls) -> Any:
        """Get the gateway adapter (PaystackAdapter unless overridden)."""
        return cls._gateway_adapter or PaystackAdapter

    @classmethod
    def set_gateway_adapter(cls, adapter: Any) -> None:
        """Set the gateway adapter (for testing)."""
        cls._gateway_adapter = adapter

    @classmethod
    def get_ledger(cls) -> WalletLedger:
        return cls._ledger or default_ledger

    @classmethod
    def set_ledger(cls, ledger: WalletLedger | None) -> None:
        cls._ledger = ledger

    @staticmethod
    def minimum_amount() -> int:
        return getattr(settings, "WITHDRAWAL_MINIMUM_AMOUNT", DEFAULT_MINIMUM_AMOUNT)

    @staticmethod
    def withdrawal_fee() -> int:
        return getattr(settings, "WITHDRAWAL_FEE", DEFAULT_WITHDRAWAL_FEE)

    # =========================================================================
    # Lookups
    # =========================================================================

    @classmethod
    def get_withdrawal(cls, withdrawal_id: uuid.UUID) -> Withdrawal:
        """
        Raises:
            WithdrawalNotFound: If the withdrawal doesn't exist
        """
        try:
            return Withdrawal.objects.select_related("wallet").get(id=withdrawal_id)
        except Withdrawal.DoesNotExist:
            raise WithdrawalNotFound(
                f"Withdrawal {withdrawal_id} not found",
                details={"withdrawal_id": str(withdrawal_id)},
            )

    @classmethod
    def find_by_gateway_reference(
        cls, reference: str | None, transfer_code: str | None = None
    ) -> Withdrawal | None:
        """Find the withdrawal a transfer webhook refers to."""
        if reference:
            withdrawal = Withdrawal.objects.filter(
                metadata__gateway_reference=reference
            ).first()
            if withdrawal is not None:
                return withdrawal
        if transfer_code:
            return Withdrawal.objects.filter(
                metadata__gateway_transfer_handle=transfer_code
            ).first()
        return None

    # =========================================================================
    # Request & Review
    # =========================================================================

    @classmethod
    def request_withdrawal(
        cls,
        owner_id: str,
        role: str,
        amount: int,
        bank_details: dict[str, Any] | None = None,
    ) -> ServiceResult[Withdrawal]:
        """
        Create a PENDING withdrawal. The wallet is not touched until the
        transfer is initiated.

        Bank details default to those stored on the wallet.
        """
        missing = cls.validate_required(owner_id=owner_id, role=role)
        if missing:
            return missing

        minimum = cls.minimum_amount()
        fee = cls.withdrawal_fee()
        log_context = {"owner_id": str(owner_id), "role": role, "amount": amount}

        try:
            if amount < minimum:
                raise InvalidWithdrawalAmount(
                    f"Minimum withdrawal amount is {minimum}",
                    details={"amount": amount, "minimum": minimum},
                )
            if amount <= fee:
                raise InvalidWithdrawalAmount(
                    "Withdrawal amount must exceed the withdrawal fee",
                    details={"amount": amount, "fee": fee},
                )

            wallet = cls.get_ledger().find_wallet(owner_id, role)
            if wallet is None:
                raise WalletNotFound(
                    "No wallet found for this role",
                    details={"owner_id": str(owner_id), "role": role},
                )
            if amount > wallet.balance:
                raise InsufficientBalance(wallet.pk, amount, wallet.balance)
        except (SettlementError, WalletNotFound, InsufficientBalance) as e:
            cls.get_logger().info(
                f"Withdrawal request rejected: {e.message}",
                extra={**log_context, "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        bank_details = bank_details or wallet.bank_details or {}
        errors = {
            name: ["This field is required."]
            for name in REQUIRED_BANK_FIELDS
            if not bank_details.get(name)
        }
        if errors:
            return ServiceResult.failure(
                "Bank details are incomplete",
                error_code="VALIDATION_ERROR",
                errors=errors,
            )

        withdrawal = Withdrawal.objects.create(
            wallet=wallet,
            owner_id=wallet.owner_id,
            role=wallet.role,
            amount=amount,
            fee=fee,
            net_amount=amount - fee,
            bank_details={name: str(bank_details[name]) for name in REQUIRED_BANK_FIELDS},
        )

        cls.get_logger().info(
            "Withdrawal requested",
            extra={**log_context, "withdrawal_id": str(withdrawal.id), "fee": fee},
        )
        return ServiceResult.success(withdrawal)

    @classmethod
    def approve(
        cls, withdrawal_id: uuid.UUID, approved_by: str | None = None
    ) -> ServiceResult[Withdrawal]:
        """Transition: PENDING -> APPROVED."""
        return cls._review(withdrawal_id, "approve", approved_by)

    @classmethod
    def reject(cls, withdrawal_id: uuid.UUID, reason: str) -> ServiceResult[Withdrawal]:
        """Transition: PENDING/APPROVED -> REJECTED. No funds have moved yet."""
        return cls._review(withdrawal_id, "reject", reason)

    @classmethod
    def _review(cls, withdrawal_id: uuid.UUID, action: str, arg: Any) -> ServiceResult:
        with transaction.atomic():
            try:
                withdrawal = Withdrawal.objects.select_for_update().get(id=withdrawal_id)
            except Withdrawal.DoesNotExist:
                return ServiceResult.failure(
                    f"Withdrawal {withdrawal_id} not found",
                    error_code="WITHDRAWAL_NOT_FOUND",
                )

            transition = getattr(withdrawal, action)
            if not can_proceed(transition):
                return ServiceResult.failure(
                    f"Cannot {action} a withdrawal in status {withdrawal.status}",
                    error_code="INVALID_WITHDRAWAL_STATE",
                )
            transition(arg)
            withdrawal.save()

        cls.get_logger().info(
            f"Withdrawal {action} completed",
            extra={"withdrawal_id": str(withdrawal_id), "status": withdrawal.status},
        )
        return ServiceResult.success(withdrawal)

    # =========================================================================
    # Transfer Saga
    # =========================================================================

    @classmethod
    def initiate_transfer(
        cls, withdrawal_id: uuid.UUID
    ) -> ServiceResult[TransferInitiationResult]:
        """
        Debit the wallet and send the net amount through Paystack.

        Returns:
            ServiceResult with TransferInitiationResult on success. Failure
            codes: WITHDRAWAL_NOT_FOUND, TRANSFER_ALREADY_INITIATED,
            WITHDRAWAL_NOT_APPROVED, INSUFFICIENT_BALANCE (nothing changed)
            and GATEWAY_TRANSFER_FAILED (debit already refunded).
        """
        log_context = {"withdrawal_id": str(withdrawal_id)}

        # Phase 1: debit and move to PROCESSING together
        try:
            with transaction.atomic():
                try:
                    withdrawal = (
                        Withdrawal.objects.select_for_update().get(id=withdrawal_id)
                    )
                except Withdrawal.DoesNotExist:
                    raise WithdrawalNotFound(
                        f"Withdrawal {withdrawal_id} not found",
                        details=log_context,
                    )
                cls._check_can_initiate(withdrawal)

                cls.get_ledger().debit(
                    wallet_id=withdrawal.wallet_id,
                    amount=withdrawal.amount,
                    source=TransactionSource.WITHDRAWAL,
                    reference=f"withdrawal:{withdrawal.id}:debit",
                    description=f"Withdrawal {withdrawal.id}",
                    metadata={"withdrawal_id": str(withdrawal.id), "fee": withdrawal.fee},
                )
                withdrawal.start_processing()
                withdrawal.save()
        except (SettlementError, InsufficientBalance, WalletNotFound) as e:
            cls.get_logger().info(
                f"Transfer initiation refused: {e.message}",
                extra={**log_context, "error_code": e.error_code},
            )
            return ServiceResult.from_exception(e)

        cls.get_logger().info(
            "Phase 1 complete: wallet debited, withdrawal processing",
            extra={**log_context, "amount": withdrawal.amount},
        )

        # Phase 2: gateway calls, outside any transaction
        reference = f"PAYOUT_{withdrawal.id}_{uuid.uuid4().hex[:8]}"
        withdrawal.set_meta("gateway_reference", reference)
        adapter = cls.get_gateway_adapter()

        try:
            recipient_code = cls._ensure_recipient(withdrawal, adapter)
            account_name = withdrawal.bank_details.get("account_name", "")
            transfer = adapter.initiate_transfer(
                InitiateTransferParams(
                    recipient_code=recipient_code,
                    amount=withdrawal.net_amount,
                    reference=reference,
                    reason=f"Payout for {account_name}",
                )
            )
        except (PaystackError, ValueError) as e:
            cls.get_logger().error(
                f"Gateway transfer failed: {type(e).__name__}",
                extra={**log_context, "reference": reference, "error": str(e)},
            )
            cls._fail_withdrawal(withdrawal.id, str(e), action="fail_transfer")
            return ServiceResult.from_exception(
                GatewayTransferFailed(
                    f"Transfer could not be initiated, funds returned to wallet: {e}",
                    details={
                        **log_context,
                        "reference": reference,
                        "gateway_error": getattr(e, "error_code", type(e).__name__),
                    },
                )
            )

        # Phase 3: record the transfer handle
        try:
            with transaction.atomic():
                withdrawal = Withdrawal.objects.select_for_update().get(id=withdrawal.id)
                withdrawal.metadata.update(
                    {
                        "gateway_transfer_handle": transfer.transfer_code,
                        "gateway_reference": transfer.reference,
                        "transfer_initiated_at": timezone.now().isoformat(),
                    }
                )
                withdrawal.save(update_fields=["metadata", "updated_at"])
        except Exception:
            # Paystack holds the transfer; the webhook still finds it by reference
            cls.get_logger().exception(
                "Failed to store transfer handle after gateway success",
                extra={
                    **log_context,
                    "reference": reference,
                    "transfer_code": transfer.transfer_code,
                },
            )

        cls.get_logger().info(
            "Transfer initiated",
            extra={
                **log_context,
                "reference": reference,
                "transfer_code": transfer.transfer_code,
                "net_amount": withdrawal.net_amount,
            },
        )
        return ServiceResult.success(
            TransferInitiationResult(
                withdrawal=withdrawal,
                transfer_code=transfer.transfer_code,
                reference=transfer.reference,
            )
        )

    @staticmethod
    def _check_can_initiate(withdrawal: Withdrawal) -> None:
        if withdrawal.transfer_handle or withdrawal.status in (
            WithdrawalState.PROCESSING,
            WithdrawalState.COMPLETED,
        ):
            raise TransferAlreadyInitiated(
                "A transfer has already been initiated for this withdrawal",
                details={"withdrawal_id": str(withdrawal.id), "status": withdrawal.status},
            )
        if withdrawal.status != WithdrawalState.APPROVED:
            raise NotApproved(
                "Withdrawal must be approved before transfer",
                details={"withdrawal_id": str(withdrawal.id), "status": withdrawal.status},
            )

    @classmethod
    def _ensure_recipient(cls, withdrawal: Withdrawal, adapter: Any) -> str:
        """Return the Paystack recipient for the withdrawal, creating it once."""
        recipient_code = withdrawal.get_meta("gateway_recipient_handle")
        if recipient_code:
            return recipient_code

        bank = withdrawal.bank_details
        recipient = adapter.create_transfer_recipient(
            CreateRecipientParams(
                name=bank.get("account_name", ""),
                account_number=bank.get("account_number", ""),
                bank_code=bank.get("bank_code", ""),
                currency=getattr(settings, "PAYSTACK_CURRENCY", "NGN"),
            )
        )
        withdrawal.set_meta("gateway_recipient_handle", recipient.recipient_code)
        return recipient.recipient_code

    @classmethod
    def _fail_withdrawal(
        cls, withdrawal_id: uuid.UUID, reason: str, action: str
    ) -> Withdrawal:
        """
        Compensating step: move a PROCESSING withdrawal to REJECTED or
        FAILED and refund the debit in the same transaction.

        A withdrawal no longer PROCESSING is returned unchanged.
        """
        with transaction.atomic():
            withdrawal = Withdrawal.objects.select_for_update().get(id=withdrawal_id)
            if withdrawal.status != WithdrawalState.PROCESSING:
                return withdrawal

            getattr(withdrawal, action)(reason or "Transfer failed")
            withdrawal.save()
            cls.get_ledger().refund(
                wallet_id=withdrawal.wallet_id,
                amount=withdrawal.amount,
                reference=f"withdrawal:{withdrawal.id}:refund",
                description=REFUND_DESCRIPTION,
                metadata={"withdrawal_id": str(withdrawal.id), "reason": reason},
            )

        cls.get_logger().warning(
            "Withdrawal failed, funds returned to wallet",
            extra={
                "withdrawal_id": str(withdrawal_id),
                "status": withdrawal.status,
                "amount": withdrawal.amount,
                "reason": reason,
            },
        )
        return withdrawal

    # =========================================================================
    # Gateway Callbacks
    # =========================================================================

    @classmethod
    def complete(cls, withdrawal_id: uuid.UUID) -> ServiceResult[Withdrawal]:
        """
        Transition: PROCESSING -> COMPLETED and settle the earmarked funds.

        Completing an already COMPLETED withdrawal is a no-op success.
        """
        with transaction.atomic():
            try:
                withdrawal = Withdrawal.objects.select_for_update().get(id=withdrawal_id)
            except Withdrawal.DoesNotExist:
                return ServiceResult.failure(
                    f"Withdrawal {withdrawal_id} not found",
                    error_code="WITHDRAWAL_NOT_FOUND",
                )

            if withdrawal.status == WithdrawalState.COMPLETED:
                return ServiceResult.success(withdrawal)
            if withdrawal.status != WithdrawalState.PROCESSING:
                return ServiceResult.failure(
                    f"Cannot complete a withdrawal in status {withdrawal.status}",
                    error_code="INVALID_WITHDRAWAL_STATE",
                )

            withdrawal.complete()
            withdrawal.save()
            cls.get_ledger().settle_withdrawal(withdrawal.wallet_id, withdrawal.amount)

        cls.get_logger().info(
            "Withdrawal completed",
            extra={"withdrawal_id": str(withdrawal_id), "net_amount": withdrawal.net_amount},
        )
        return ServiceResult.success(withdrawal)

    @classmethod
    def complete_by_reference(
        cls, reference: str, transfer_code: str | None = None
    ) -> ServiceResult[Withdrawal]:
        withdrawal = cls.find_by_gateway_reference(reference, transfer_code)
        if withdrawal is None:
            return ServiceResult.failure(
                f"No withdrawal for transfer reference {reference}",
                error_code="WITHDRAWAL_NOT_FOUND",
            )
        return cls.complete(withdrawal.id)

    @classmethod
    def mark_failed_by_reference(
        cls, reference: str, reason: str, transfer_code: str | None = None
    ) -> ServiceResult[Withdrawal]:
        """
        Transition: PROCESSING -> FAILED with a refund, for a failure or
        reversal reported by the gateway. Repeats are no-op successes.
        """
        withdrawal = cls.find_by_gateway_reference(reference, transfer_code)
        if withdrawal is None:
            return ServiceResult.failure(
                f"No withdrawal for transfer reference {reference}",
                error_code="WITHDRAWAL_NOT_FOUND",
            )
        if withdrawal.status == WithdrawalState.COMPLETED:
            return ServiceResult.failure(
                "Withdrawal already completed",
                error_code="INVALID_WITHDRAWAL_STATE",
            )
        return ServiceResult.success(
            cls._fail_withdrawal(withdrawal.id, reason, action="mark_failed")
        )

    # =========================================================================
    # Maintenance
    # =========================================================================

    @classmethod
    def expire_stuck_withdrawals(cls, timeout_minutes: int) -> int:
        """
        Reject PROCESSING withdrawals that never got a transfer handle.

        These are left behind when the process dies between the debit and
        the gateway call. Returns the number of withdrawals refunded.
        """
        cutoff = timezone.now() - timedelta(minutes=timeout_minutes)
        stuck_ids = list(
            Withdrawal.objects.filter(
                status=WithdrawalState.PROCESSING,
                processing_started_at__lt=cutoff,
            )
            .exclude(metadata__has_key="gateway_transfer_handle")
            .values_list("id", flat=True)
        )

        expired = 0
        for withdrawal_id in stuck_ids:
            withdrawal = cls._fail_withdrawal(
                withdrawal_id,
                f"Transfer not initiated within {timeout_minutes} minutes",
                action="fail_transfer",
            )
            if withdrawal.status == WithdrawalState.REJECTED:
                expired += 1
        return expired
