"""
Allocation engine.

Links donations to anonymized situations and records night usage while
keeping, for every donation:

    sum(live funding.nights_allocated) <= donation.nights_funded
    funding.nights_used <= funding.nights_allocated

Each command runs as one unit of work with the donation row locked, so
two concurrent allocations against the same donation are serialized.
An allocation then locks the charity fund and allocated-funds accounts
together, in id order, before reading the charity's available funds.

Usage:
    from donations.services import allocation

    result = allocation.allocate(
        donation_id=donation.id,
        situation_id=17,
        nights_to_allocate=4,
        amount_to_allocate=Decimal("600.00"),
        actor="staff:7",
    )
    if result.is_rejected:
        messages.warning(request, result.error)
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db.models import Sum

from core.services import BaseService, ServiceResult, unit_of_work
from ledger.services.accounts import SystemAccountCode
from ledger.types import to_money

from donations.exceptions import (
    CharityMismatch,
    DonationNotFound,
    FundingNotFound,
    InsufficientCapacity,
    InsufficientFunds,
    InvalidAmount,
    InvalidDonationState,
    SituationNotFound,
    UsageExceedsAllocation,
)
from donations.models import Donation, SituationFunding
from donations.state_machines import DonationStatus

if TYPE_CHECKING:
    from ledger.services import BalanceCalculator, TransactionRecorder

    from .situations import SituationDirectory

ALLOCATABLE_STATUSES = (
    DonationStatus.VERIFIED,
    DonationStatus.ALLOCATED,
    DonationStatus.PARTIALLY_USED,
)


def lock_donation(donation_id: uuid.UUID) -> Donation:
    """
    Fetch a donation with its row locked for the current transaction.

    Raises:
        DonationNotFound: If it does not exist
    """
    donation = Donation.objects.select_for_update().filter(id=donation_id).first()
    if donation is None:
        raise DonationNotFound(
            f"Donation {donation_id} not found",
            details={"donation_id": str(donation_id)},
        )
    return donation


def live_funding_totals(donation_id: uuid.UUID) -> tuple[int, int, Decimal]:
    """Return (nights allocated, nights used, amount allocated) over live fundings."""
    totals = SituationFunding.objects.filter(
        donation_id=donation_id,
        deallocated_at__isnull=True,
    ).aggregate(
        nights_allocated=Sum("nights_allocated"),
        nights_used=Sum("nights_used"),
        amount_allocated=Sum("amount_allocated"),
    )
    return (
        totals["nights_allocated"] or 0,
        totals["nights_used"] or 0,
        to_money(totals["amount_allocated"] or 0),
    )


class AllocationEngine(BaseService):
    """
    Commits donated nights to situations and tracks their use.

    Args:
        recorder: Posts the FUND_ALLOCATED transaction
        balances: Reads charity available funds
        situations: Resolves a situation to its charity
    """

    def __init__(
        self,
        recorder: TransactionRecorder,
        balances: BalanceCalculator,
        situations: SituationDirectory,
    ):
        self.recorder = recorder
        self.balances = balances
        self.situations = situations

    # ==========================================================================
    # Commands
    # ==========================================================================

    def allocate(
        self,
        donation_id: uuid.UUID,
        situation_id: int,
        nights_to_allocate: int,
        amount_to_allocate: Decimal,
        actor: str | None = None,
    ) -> ServiceResult[SituationFunding]:
        """
        Commit part of a donation to a situation.

        Rejected when:
            - nights or amount are not positive
            - the donation is not verified, already cancelled or fully used
            - the donation's receipt is not posted to the ledger yet
            - the situation is unknown or belongs to another charity
            - more nights are asked than the donation has left
            - the amount exceeds the donation's unallocated net amount
              or the charity's available funds

        On success the funding row and the allocation transaction are
        committed together and the donation status moves forward.
        """
        logger = self.get_logger()
        try:
            funding = unit_of_work(
                lambda: self._allocate(
                    donation_id, situation_id, nights_to_allocate, amount_to_allocate, actor
                )
            )
        except Exception as exc:
            return self.handle_exception(exc, "allocate")

        logger.info(
            f"Allocated {funding.nights_allocated} nights from donation "
            f"{donation_id} to situation {situation_id}",
            extra={
                "donation_id": str(donation_id),
                "situation_id": situation_id,
                "funding_id": str(funding.id),
                "amount": str(funding.amount_allocated),
            },
        )
        return ServiceResult.ok(funding)

    def record_usage(
        self,
        funding_id: uuid.UUID,
        nights_used: int,
        explanation: str = "",
        actor: str | None = None,
    ) -> ServiceResult[SituationFunding]:
        """
        Record nights consumed from a funding.

        Rejected when nights are not positive, the funding was returned
        to the charity fund, or the new total would pass the funding's
        allocated nights. The donation status then becomes
        PARTIALLY_USED or FULLY_USED from aggregate usage.
        """
        logger = self.get_logger()
        try:
            funding = unit_of_work(
                lambda: self._record_usage(funding_id, nights_used, explanation, actor)
            )
        except Exception as exc:
            return self.handle_exception(exc, "record_usage")

        logger.info(
            f"Recorded {nights_used} used nights on funding {funding_id}",
            extra={
                "funding_id": str(funding_id),
                "nights_used": funding.nights_used,
                "nights_allocated": funding.nights_allocated,
            },
        )
        return ServiceResult.ok(funding)

    # ==========================================================================
    # Queries
    # ==========================================================================

    def get_fundings_for_donation(self, donation_id: uuid.UUID) -> list[SituationFunding]:
        return list(SituationFunding.objects.filter(donation_id=donation_id))

    def get_fundings_for_situation(self, situation_id: int) -> list[SituationFunding]:
        return list(
            SituationFunding.objects.filter(
                situation_id=situation_id,
                deallocated_at__isnull=True,
            )
        )

    # ==========================================================================
    # Units of work
    # ==========================================================================

    def _allocate(
        self,
        donation_id: uuid.UUID,
        situation_id: int,
        nights: int,
        amount: Decimal,
        actor: str | None,
    ) -> SituationFunding:
        if nights <= 0:
            raise InvalidAmount(
                "Nights to allocate must be positive",
                error_code="INVALID_NIGHTS",
                details={"nights": nights},
            )
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(
                "Amount to allocate must be positive",
                details={"amount": str(amount)},
            )

        donation = lock_donation(donation_id)
        if donation.status not in ALLOCATABLE_STATUSES:
            raise InvalidDonationState(
                f"Cannot allocate a donation in status {donation.status}",
                details={"current_status": donation.status, "action": "allocate"},
            )
        if not donation.is_posted:
            raise InvalidDonationState(
                "Donation receipt is not posted to the ledger yet",
                error_code="DONATION_NOT_POSTED",
                details={"donation_id": str(donation.id)},
            )

        situation_charity_id = self.situations.charity_for(situation_id)
        if situation_charity_id is None:
            raise SituationNotFound(
                f"Situation {situation_id} not found",
                details={"situation_id": situation_id},
            )
        if situation_charity_id != donation.charity_id:
            raise CharityMismatch(
                "Situation belongs to a different charity than the donation",
                details={
                    "donation_charity_id": donation.charity_id,
                    "situation_charity_id": situation_charity_id,
                },
            )

        allocated_nights, used_nights, allocated_amount = live_funding_totals(donation.id)
        remaining_nights = donation.nights_funded - allocated_nights
        if nights > remaining_nights:
            raise InsufficientCapacity(requested=nights, available=remaining_nights)

        remaining_amount = donation.net_amount - allocated_amount
        if amount > remaining_amount:
            raise InsufficientFunds(
                required=amount,
                available=remaining_amount,
                details={"scope": "donation"},
            )

        self.recorder.lock_charity_accounts(
            donation.charity_id, [SystemAccountCode.ALLOCATED_FUNDS]
        )
        available = self.balances.get_charity_available_funds(donation.charity_id)
        if amount > available:
            raise InsufficientFunds(
                required=amount,
                available=available,
                details={"scope": "charity", "charity_id": donation.charity_id},
            )

        funding = SituationFunding.objects.create(
            donation=donation,
            situation_id=situation_id,
            charity_id=donation.charity_id,
            amount_allocated=amount,
            nights_allocated=nights,
            allocated_by=actor,
        )
        funding.ledger_transaction = self.recorder.record_allocation(funding, actor)
        funding.save(update_fields=["ledger_transaction", "updated_at"])

        donation.sync_usage_status(allocated_nights + nights, used_nights)
        donation.save()
        return funding

    def _record_usage(
        self,
        funding_id: uuid.UUID,
        nights: int,
        explanation: str,
        actor: str | None,
    ) -> SituationFunding:
        if nights <= 0:
            raise InvalidAmount(
                "Used nights must be positive",
                error_code="INVALID_NIGHTS",
                details={"nights": nights},
            )

        donation_id = (
            SituationFunding.objects.filter(id=funding_id)
            .values_list("donation_id", flat=True)
            .first()
        )
        if donation_id is None:
            raise FundingNotFound(
                f"Funding {funding_id} not found",
                details={"funding_id": str(funding_id)},
            )

        # Donation before funding, the same order allocate() locks in
        donation = lock_donation(donation_id)
        funding = SituationFunding.objects.select_for_update().get(id=funding_id)

        if not funding.is_active:
            raise InvalidDonationState(
                "Funding was returned to the charity fund",
                error_code="FUNDING_DEALLOCATED",
                details={"funding_id": str(funding_id)},
            )
        if funding.nights_used + nights > funding.nights_allocated:
            raise UsageExceedsAllocation(
                f"Cannot use {nights} nights: only {funding.nights_remaining} remain "
                f"on this funding",
                details={
                    "requested_nights": nights,
                    "nights_used": funding.nights_used,
                    "nights_allocated": funding.nights_allocated,
                },
            )

        if actor:
            explanation = f"{explanation} ({actor})" if explanation else f"({actor})"
        funding.append_usage(nights, explanation)
        funding.save(update_fields=["nights_used", "usage_explanation", "updated_at"])

        allocated_nights, used_nights, _ = live_funding_totals(donation.id)
        donation.sync_usage_status(allocated_nights, used_nights)
        donation.save()
        return funding
