"""
Settlement services.

Services:
    - OrderDistributionEngine: Splits paid orders into wallet credits
    - PaymentService: Paystack checkouts and charge confirmation
    - WithdrawalService: Withdrawal lifecycle and the transfer saga
    - EarningsService: Seller and rider earnings summaries
"""

from settlement.services.distribution_engine import (
    DistributionResult,
    OrderDistributionEngine,
    VendorPayout,
)
from settlement.services.earnings_service import EarningsService, EarningsSummary
from settlement.services.payment_service import (
    PaymentInitialization,
    PaymentService,
    PaymentVerification,
)
from settlement.services.withdrawal_service import (
    TransferInitiationResult,
    WithdrawalService,
)

__all__ = [
    "DistributionResult",
    "EarningsService",
    "EarningsSummary",
    "OrderDistributionEngine",
    "PaymentInitialization",
    "PaymentService",
    "PaymentVerification",
    "TransferInitiationResult",
    "VendorPayout",
    "WithdrawalService",
]
