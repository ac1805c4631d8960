"""
Role definitions and the commission table.

Commission rates are configuration, not code. A single CommissionTable is
built from settings and injected into the distribution engine, so every
call site uses the same rates.

Settings:
    COMMISSION_RATES: Mapping of seller role to rate, e.g. {"chef": "0.15"}
    DEFAULT_COMMISSION_RATE: Rate for roles missing from COMMISSION_RATES

Usage:
    from settlement.commission import CommissionTable, Role

    table = CommissionTable.from_settings()
    split = table.split(10_000, Role.CHEF)
    split.commission  # 1500
    split.payout      # 8500
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import models


class Role(models.TextChoices):
    """
    Wallet roles.

    Seller roles (chef, pharmacy, vendor, topvendor) earn order payouts.
    Riders earn delivery fees. The platform wallet collects commission.
    """

    CHEF = "chef", "Chef"
    PHARMACY = "pharmacy", "Pharmacy"
    VENDOR = "vendor", "Vendor"
    TOPVENDOR = "topvendor", "Top Vendor"
    RIDER = "rider", "Rider"
    PLATFORM = "platform", "Platform"


SELLER_ROLES = (Role.CHEF, Role.PHARMACY, Role.VENDOR, Role.TOPVENDOR)

DEFAULT_RATES = {
    Role.CHEF: "0.15",
    Role.PHARMACY: "0.12",
    Role.VENDOR: "0.10",
    Role.TOPVENDOR: "0.08",
}

DEFAULT_FALLBACK_RATE = "0.10"


@dataclass(frozen=True)
class CommissionSplit:
    """Result of applying a commission rate to one vendor group subtotal."""

    rate: Decimal
    commission: int
    payout: int


class CommissionTable:
    """
    Maps a seller role to the platform's commission rate.

    Unknown roles get the default rate; lookups never raise.
    """

    def __init__(self, rates: dict | None = None, default_rate=DEFAULT_FALLBACK_RATE):
        raw_rates = DEFAULT_RATES if rates is None else rates
        self.rates = {
            str(role): self._to_rate(rate, role) for role, rate in raw_rates.items()
        }
        self.default_rate = self._to_rate(default_rate, "default")

    @classmethod
    def from_settings(cls) -> CommissionTable:
        """Build the table from COMMISSION_RATES and DEFAULT_COMMISSION_RATE."""
        return cls(
            rates=getattr(settings, "COMMISSION_RATES", None),
            default_rate=getattr(
                settings, "DEFAULT_COMMISSION_RATE", DEFAULT_FALLBACK_RATE
            ),
        )

    @staticmethod
    def _to_rate(value, role) -> Decimal:
        # str() first so floats like 0.15 become Decimal("0.15") exactly
        rate = Decimal(str(value))
        if not Decimal("0") <= rate <= Decimal("1"):
            raise ImproperlyConfigured(
                f"Commission rate for {role!s} must be between 0 and 1, got {value!r}"
            )
        return rate

    def commission_rate(self, role) -> Decimal:
        """Return the configured rate for role, or the default rate."""
        return self.rates.get(str(role), self.default_rate)

    @staticmethod
    def commission(subtotal: int, rate: Decimal) -> int:
        """Commission on subtotal, rounded half-up to a whole currency unit."""
        return int(
            (Decimal(subtotal) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        )

    @classmethod
    def payout(cls, subtotal: int, rate: Decimal) -> int:
        """Amount owed to the seller: subtotal minus the rounded commission."""
        return subtotal - cls.commission(subtotal, rate)

    def split(self, subtotal: int, role) -> CommissionSplit:
        rate = self.commission_rate(role)
        commission = self.commission(subtotal, rate)
        return CommissionSplit(
            rate=rate,
            commission=commission,
            payout=subtotal - commission,
        )
