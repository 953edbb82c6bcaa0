"""
Donation workflow.

Intake, verification, rejection and refund of donations, plus the
best-effort ledger posting that follows verification.

Verification and ledger posting are deliberately decoupled: a donation
marked verified stays verified even when the ledger posting fails. The
failure is kept on a LedgerPosting outbox row and retried by the
``retry_ledger_postings`` Celery task until it succeeds or runs out of
attempts.

Usage:
    from donations.services import donations

    result = donations.record_donation(
        donor_id=5, charity_id=42, gross_amount=Decimal("1000.00"), actor="staff:7"
    )
    donations.verify_donation(result.data.id, actor="staff:7")
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django_fsm import can_proceed

from core.services import BaseService, ServiceResult, unit_of_work
from ledger.services.accounts import SystemAccountCode

from donations.exceptions import DonationNotFound, InvalidDonationState
from donations.models import Donation, LedgerPosting, SituationFunding
from donations.state_machines import (
    LedgerPostingOperation,
    LedgerPostingStatus,
    VerificationStatus,
)

from .allocation import live_funding_totals, lock_donation

if TYPE_CHECKING:
    from ledger.models import LedgerTransaction
    from ledger.services import TransactionRecorder

    from .fees import FeeCalculator

# Accounts touched by the deallocations and the reversal of a refund
REFUND_ACCOUNT_CODES = (
    SystemAccountCode.CASH,
    SystemAccountCode.ALLOCATED_FUNDS,
    SystemAccountCode.PLATFORM_FEE_REVENUE,
    SystemAccountCode.FACILITATOR_FEE_REVENUE,
)


class DonationService(BaseService):
    """
    Donation lifecycle commands.

    Args:
        fees: FeeCalculator for the fee split and nights funded
        recorder: TransactionRecorder for receipts, deallocations and refunds
    """

    def __init__(self, fees: FeeCalculator, recorder: TransactionRecorder):
        self.fees = fees
        self.recorder = recorder

    # ==========================================================================
    # Intake
    # ==========================================================================

    def record_donation(
        self,
        donor_id: int,
        charity_id: int,
        gross_amount: Decimal,
        notes: str = "",
        actor: str | None = None,
    ) -> ServiceResult[Donation]:
        """
        Store a pending donation with its fee split and funded nights.

        The charity's average nightly rate and the fee-structure version
        are stamped on the donation so later rate changes do not alter it.
        """
        logger = self.get_logger()
        try:
            breakdown = self.fees.calculate_fees(gross_amount)
            nights = self.fees.calculate_nights_funded(breakdown.net_amount, charity_id)
            average_rate = self.fees.get_average_nightly_rate(charity_id)
            if average_rate is not None:
                average_rate = self.fees.round_rate(average_rate)

            donation = Donation.objects.create(
                donor_id=donor_id,
                charity_id=charity_id,
                gross_amount=breakdown.gross,
                platform_fee=breakdown.platform_fee,
                facilitator_fee=breakdown.facilitator_fee,
                processing_fee=breakdown.processing_fee,
                net_amount=breakdown.net_amount,
                nights_funded=nights,
                avg_nightly_rate_at_donation=average_rate,
                fee_structure_version=settings.DONATION_FEE_STRUCTURE_VERSION,
                recorded_by=actor,
                notes=notes,
            )
        except Exception as exc:
            return self.handle_exception(exc, "record_donation")

        logger.info(
            f"Recorded donation {donation.id} of {donation.gross_amount}",
            extra={
                "donation_id": str(donation.id),
                "charity_id": charity_id,
                "nights_funded": nights,
            },
        )
        return ServiceResult.ok(donation)

    # ==========================================================================
    # Verification
    # ==========================================================================

    def verify_donation(
        self,
        donation_id: uuid.UUID,
        actor: str | None = None,
    ) -> ServiceResult[Donation]:
        """
        Mark a pending donation verified, then try to post it.

        The status change and the outbox row commit together. The ledger
        posting runs afterwards in its own unit of work; if it fails the
        result is still OK and the posting stays queued for retry.
        """
        try:
            donation = unit_of_work(lambda: self._verify(donation_id, actor))
        except Exception as exc:
            return self.handle_exception(exc, "verify_donation")

        self.post_donation_to_ledger(donation.id)
        donation.refresh_from_db()
        return ServiceResult.ok(donation)

    def reject_donation(
        self,
        donation_id: uuid.UUID,
        reason: str,
        actor: str | None = None,
    ) -> ServiceResult[Donation]:
        """Pending -> Cancelled, verification Rejected. Nothing is posted."""
        logger = self.get_logger()

        def work() -> Donation:
            donation = lock_donation(donation_id)
            if not can_proceed(donation.reject):
                raise InvalidDonationState(
                    f"Cannot reject a donation in status {donation.status}",
                    details={"current_status": donation.status, "action": "reject"},
                )
            donation.reject(reason=reason, actor=actor)
            donation.save()
            return donation

        try:
            donation = unit_of_work(work)
        except Exception as exc:
            return self.handle_exception(exc, "reject_donation")

        logger.info(
            f"Rejected donation {donation_id}",
            extra={"donation_id": str(donation_id), "reason": reason},
        )
        return ServiceResult.ok(donation)

    # ==========================================================================
    # Refund
    # ==========================================================================

    def refund_donation(
        self,
        donation_id: uuid.UUID,
        reason: str,
        actor: str | None = None,
    ) -> ServiceResult[Donation]:
        """
        Reverse a posted donation.

        Allowed while no funded night has been used. In one unit of work
        every live allocation is returned to the charity fund, then the
        receipt is reversed and the donation is cancelled. Afterwards the
        charity fund and fee revenue accounts are back to their balances
        from before the donation.
        """
        logger = self.get_logger()
        try:
            donation = unit_of_work(lambda: self._refund(donation_id, reason, actor))
        except Exception as exc:
            return self.handle_exception(exc, "refund_donation")

        logger.info(
            f"Refunded donation {donation_id}",
            extra={
                "donation_id": str(donation_id),
                "refund_transaction_id": str(donation.refund_transaction_id),
                "reason": reason,
            },
        )
        return ServiceResult.ok(donation)

    # ==========================================================================
    # Ledger posting (outbox)
    # ==========================================================================

    def post_donation_to_ledger(self, donation_id: uuid.UUID) -> ServiceResult[LedgerTransaction]:
        """
        Post a verified donation's receipt, at most once.

        A donation that already has a receipt transaction is not posted
        again; its outbox row is simply marked posted. A failed attempt
        is counted on the outbox row outside the rolled-back unit of work.
        """
        logger = self.get_logger()
        try:
            txn = unit_of_work(lambda: self._post_receipt(donation_id))
        except Exception as exc:
            self._record_posting_failure(donation_id, exc)
            return self.handle_exception(exc, "post_donation_to_ledger")

        logger.info(
            f"Donation {donation_id} posted to ledger as {txn.code}",
            extra={"donation_id": str(donation_id), "transaction_code": txn.code},
        )
        return ServiceResult.ok(txn)

    def retry_pending_postings(self, max_attempts: int | None = None) -> dict[str, int]:
        """
        Retry every pending outbox row that still has attempts left.

        Returns:
            Counts of postings by outcome: posted, failed, skipped
        """
        if max_attempts is None:
            max_attempts = settings.LEDGER_POSTING_MAX_ATTEMPTS

        counts = {"posted": 0, "failed": 0, "skipped": 0}
        pending = LedgerPosting.objects.filter(
            status=LedgerPostingStatus.PENDING,
            operation=LedgerPostingOperation.DONATION_RECEIVED,
        ).order_by("created_at")
        for posting in pending:
            if not posting.can_retry(max_attempts):
                counts["skipped"] += 1
                continue
            result = self.post_donation_to_ledger(posting.donation_id)
            counts["posted" if result.success else "failed"] += 1
        return counts

    # ==========================================================================
    # Units of work
    # ==========================================================================

    def _verify(self, donation_id: uuid.UUID, actor: str | None) -> Donation:
        donation = lock_donation(donation_id)
        if not can_proceed(donation.verify):
            raise InvalidDonationState(
                f"Cannot verify a donation in status {donation.status}",
                details={"current_status": donation.status, "action": "verify"},
            )
        donation.verify(actor=actor)
        donation.save()
        LedgerPosting.objects.get_or_create(
            donation=donation,
            operation=LedgerPostingOperation.DONATION_RECEIVED,
            defaults={"actor": actor},
        )
        self.get_logger().info(
            f"Verified donation {donation.id}",
            extra={"donation_id": str(donation.id), "actor": actor},
        )
        return donation

    def _post_receipt(self, donation_id: uuid.UUID) -> LedgerTransaction:
        donation = lock_donation(donation_id)
        if donation.verification_status != VerificationStatus.VERIFIED:
            raise InvalidDonationState(
                "Only verified donations are posted to the ledger",
                details={"verification_status": donation.verification_status},
            )
        posting, _ = LedgerPosting.objects.select_for_update().get_or_create(
            donation=donation,
            operation=LedgerPostingOperation.DONATION_RECEIVED,
        )

        if donation.ledger_transaction_id is not None:
            txn = donation.ledger_transaction
        else:
            txn = self.recorder.record_donation_received(donation, actor=posting.actor)
            donation.ledger_transaction = txn
            donation.save(update_fields=["ledger_transaction", "updated_at"])
            posting.mark_attempt()

        if not posting.is_posted:
            posting.mark_posted(txn)
            posting.save()
        return txn

    def _record_posting_failure(self, donation_id: uuid.UUID, exc: Exception) -> None:
        max_attempts = settings.LEDGER_POSTING_MAX_ATTEMPTS
        with transaction.atomic():
            posting = (
                LedgerPosting.objects.select_for_update()
                .filter(
                    donation_id=donation_id,
                    operation=LedgerPostingOperation.DONATION_RECEIVED,
                )
                .first()
            )
            if posting is None or posting.is_posted:
                return
            posting.mark_attempt()
            posting.mark_failed(str(exc), max_attempts)
            posting.save()

        self.get_logger().warning(
            f"Ledger posting for donation {donation_id} failed "
            f"(attempt {posting.attempts}/{max_attempts})",
            extra={
                "donation_id": str(donation_id),
                "attempts": posting.attempts,
                "posting_status": posting.status,
            },
        )

    def _refund(self, donation_id: uuid.UUID, reason: str, actor: str | None) -> Donation:
        donation = lock_donation(donation_id)
        if not can_proceed(donation.refund):
            raise InvalidDonationState(
                f"Cannot refund a donation in status {donation.status}",
                details={"current_status": donation.status, "action": "refund"},
            )
        if not donation.is_posted:
            raise InvalidDonationState(
                "Donation receipt is not posted to the ledger yet",
                error_code="DONATION_NOT_POSTED",
                details={"donation_id": str(donation.id)},
            )
        _, used_nights, _ = live_funding_totals(donation.id)
        if used_nights > 0:
            raise InvalidDonationState(
                f"Cannot refund: {used_nights} funded nights were already used",
                error_code="DONATION_NIGHTS_USED",
                details={"nights_used": used_nights},
            )

        now = timezone.now()
        live_fundings = list(
            SituationFunding.objects.select_for_update().filter(
                donation_id=donation.id,
                deallocated_at__isnull=True,
            )
        )
        self.recorder.lock_charity_accounts(donation.charity_id, REFUND_ACCOUNT_CODES)
        for funding in live_fundings:
            funding.deallocation_transaction = self.recorder.record_deallocation(
                funding, actor=actor
            )
            funding.deallocated_at = now
            funding.save(
                update_fields=["deallocation_transaction", "deallocated_at", "updated_at"]
            )

        donation.refund_transaction = self.recorder.record_refund(
            donation, reason=reason, actor=actor
        )
        donation.refund(reason=reason)
        donation.save()
        return donation
