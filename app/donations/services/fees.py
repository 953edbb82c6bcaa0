"""
Fee and nights calculation.

Pure arithmetic apart from the nightly-rate lookup. All money is Decimal
with two places; fees round half-up, nights round down. Active rates are
cached per charity and day.

Usage:
    from donations.services import fees

    breakdown = fees.calculate_fees(Decimal("1000.00"))
    breakdown.net_amount  # Decimal("900.00")

    fees.calculate_nights_funded(breakdown.net_amount, charity_id=42)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.cache import cache
from django.utils import timezone

from core.exceptions import ConfigurationError

from donations.exceptions import InvalidAmount
from donations.models import NightlyRate

if TYPE_CHECKING:
    from datetime import date

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

NIGHTLY_RATE_CACHE_PREFIX = "nightly_rates"


@dataclass(frozen=True)
class FeeBreakdown:
    """
    Split of a gross donation.

    platform_fee + facilitator_fee + processing_fee + net_amount == gross
    """

    gross: Decimal
    platform_fee: Decimal
    facilitator_fee: Decimal
    processing_fee: Decimal
    net_amount: Decimal

    @property
    def total_fees(self) -> Decimal:
        return self.platform_fee + self.facilitator_fee + self.processing_fee


def _rate(value, name: str) -> Decimal:
    rate = Decimal(str(value))
    if not ZERO <= rate < Decimal("1"):
        raise ConfigurationError(
            f"{name} must be between 0 and 1",
            details={"setting": name, "value": str(value)},
        )
    return rate


class FeeCalculator:
    """
    Computes fees and funded nights.

    Args:
        platform_rate: Platform fee fraction (defaults to
            settings.DONATION_PLATFORM_FEE_RATE)
        facilitator_rate: Facilitator fee fraction (defaults to
            settings.DONATION_FACILITATOR_FEE_RATE)
    """

    def __init__(
        self,
        platform_rate: Decimal | None = None,
        facilitator_rate: Decimal | None = None,
    ):
        self.platform_rate = _rate(
            settings.DONATION_PLATFORM_FEE_RATE if platform_rate is None else platform_rate,
            "DONATION_PLATFORM_FEE_RATE",
        )
        self.facilitator_rate = _rate(
            settings.DONATION_FACILITATOR_FEE_RATE
            if facilitator_rate is None
            else facilitator_rate,
            "DONATION_FACILITATOR_FEE_RATE",
        )
        if self.platform_rate + self.facilitator_rate >= 1:
            raise ConfigurationError(
                "Combined fee rates must be below 1",
                details={
                    "platform_rate": str(self.platform_rate),
                    "facilitator_rate": str(self.facilitator_rate),
                },
            )

    def calculate_fees(self, gross_amount: Decimal) -> FeeBreakdown:
        """
        Split a gross amount into fees and net.

        Each fee is rounded to cents half-up; the net amount is the exact
        remainder, so the parts always add back to the gross.

        Raises:
            InvalidAmount: If the gross amount is not positive
        """
        gross = Decimal(str(gross_amount)).quantize(CENT, rounding=ROUND_HALF_UP)
        if gross <= 0:
            raise InvalidAmount(
                "Donation amount must be positive",
                details={"gross_amount": str(gross_amount)},
            )
        platform_fee = (gross * self.platform_rate).quantize(CENT, rounding=ROUND_HALF_UP)
        facilitator_fee = (gross * self.facilitator_rate).quantize(
            CENT, rounding=ROUND_HALF_UP
        )
        processing_fee = ZERO
        return FeeBreakdown(
            gross=gross,
            platform_fee=platform_fee,
            facilitator_fee=facilitator_fee,
            processing_fee=processing_fee,
            net_amount=gross - platform_fee - facilitator_fee - processing_fee,
        )

    # ==========================================================================
    # Nightly rates
    # ==========================================================================

    @staticmethod
    def _get_cache_key(charity_id: int, day: date) -> str:
        """Build cache key for a charity's active rates on one day."""
        return f"{NIGHTLY_RATE_CACHE_PREFIX}:{charity_id}:{day.isoformat()}"

    def get_active_rates(
        self,
        charity_id: int,
        on_date: date | None = None,
        use_cache: bool = True,
    ) -> list[Decimal]:
        """
        Rates of the charity's locations active on ``on_date`` (default today).

        Cached per charity and day for settings.NIGHTLY_RATE_CACHE_TTL
        seconds. Saving or deleting a rate drops today's entry.
        """
        day = on_date or timezone.localdate()
        cache_key = self._get_cache_key(charity_id, day)
        if use_cache:
            cached = cache.get(cache_key)
            if cached is not None:
                return cached

        rates = list(
            NightlyRate.objects.for_charity(charity_id)
            .active_on(day)
            .values_list("rate", flat=True)
        )

        if use_cache:
            cache.set(cache_key, rates, timeout=settings.NIGHTLY_RATE_CACHE_TTL)
        return rates

    def get_average_nightly_rate(
        self,
        charity_id: int,
        on_date: date | None = None,
    ) -> Decimal | None:
        """
        Unrounded average of the charity's active rates, None when there are none.

        Use round_rate() for display or for stamping on a donation.
        """
        rates = self.get_active_rates(charity_id, on_date)
        if not rates:
            return None
        return sum(rates, ZERO) / len(rates)

    def calculate_nights_funded(
        self,
        net_amount: Decimal,
        charity_id: int,
        on_date: date | None = None,
    ) -> int:
        """
        Whole nights ``net_amount`` pays for at the charity's average rate.

        Returns 0 and logs a warning when the charity has no active rate.
        """
        rates = self.get_active_rates(charity_id, on_date)
        if not rates:
            logger.warning(
                f"No active nightly rate for charity {charity_id}; 0 nights funded",
                extra={"charity_id": charity_id},
            )
            return 0
        return self.nights_for_rates(net_amount, rates)

    @staticmethod
    def nights_for_rates(net_amount: Decimal, rates: list[Decimal]) -> int:
        """
        floor(net_amount / average(rates)).

        Evaluated as floor(net_amount * len(rates) / sum(rates)) so the
        average is never rounded before the division.
        """
        total = sum(rates, ZERO)
        if total <= 0:
            return 0
        nights = Decimal(net_amount) * len(rates) / total
        return int(nights.to_integral_value(rounding=ROUND_FLOOR))

    @classmethod
    def nights_for_rate(cls, net_amount: Decimal, rate: Decimal) -> int:
        """floor(net_amount / rate); 0 for a non-positive rate."""
        return cls.nights_for_rates(net_amount, [Decimal(rate)])

    @staticmethod
    def round_rate(rate: Decimal) -> Decimal:
        return rate.quantize(CENT, rounding=ROUND_HALF_UP)


def invalidate_rate_cache(charity_id: int, on_date: date | None = None) -> None:
    """
    Drop the cached active rates of a charity for one day (default today).

    Other days expire with NIGHTLY_RATE_CACHE_TTL.
    """
    day = on_date or timezone.localdate()
    cache.delete(FeeCalculator._get_cache_key(charity_id, day))
