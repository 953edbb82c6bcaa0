"""
Tests for DonationService and AllocationEngine.

Run against the real ledger: every command that succeeds must leave the
trial balance intact, and every rejected command must leave the books
untouched.
"""

import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest

from core.services import ResultStatus
from donations.models import Donation, LedgerPosting, SituationFunding
from donations.services import allocation, donations
from donations.state_machines import (
    DonationStatus,
    LedgerPostingStatus,
    VerificationStatus,
)
from donations.tests.factories import (
    DonationFactory,
    NightlyRateFactory,
    SituationRefFactory,
)
from ledger.exceptions import SystemAccountMissing
from ledger.models import LedgerTransaction, TransactionType
from ledger.services import auditor, balances, chart, recorder
from ledger.services.accounts import SystemAccountCode
from ledger.types import EntryLine


@pytest.fixture
def allocated(posted_donation, situation):
    """Four of the donation's six nights (600.00) allocated to situation 17."""
    result = allocation.allocate(
        donation_id=posted_donation.id,
        situation_id=situation.situation_id,
        nights_to_allocate=4,
        amount_to_allocate=Decimal("600.00"),
        actor="staff:1",
    )
    assert result.success, result.error
    return result.data


# =============================================================================
# Intake
# =============================================================================


class TestRecordDonation:
    """Tests for DonationService.record_donation()."""

    def test_stores_fee_split_and_nights(self, db, nightly_rate):
        """Should store the fee split and nights funded."""
        result = donations.record_donation(
            donor_id=5, charity_id=42, gross_amount=Decimal("1000.00"), actor="staff:1"
        )

        donation = result.data
        assert result.success
        assert donation.status == DonationStatus.PENDING
        assert donation.verification_status == VerificationStatus.PENDING
        assert donation.platform_fee == Decimal("70.00")
        assert donation.facilitator_fee == Decimal("30.00")
        assert donation.net_amount == Decimal("900.00")
        assert donation.nights_funded == 6
        assert donation.avg_nightly_rate_at_donation == Decimal("150.00")
        assert donation.fee_structure_version == "v1.0"
        assert donation.recorded_by == "staff:1"

    def test_nothing_posted_before_verification(self, system_accounts, nightly_rate):
        """Should not post to the ledger before verification."""
        donations.record_donation(donor_id=5, charity_id=42, gross_amount=Decimal("50.00"))

        assert LedgerTransaction.objects.count() == 0

    def test_no_rate_funds_zero_nights(self, db):
        """Should fund zero nights when the charity has no rate."""
        result = donations.record_donation(
            donor_id=5, charity_id=42, gross_amount=Decimal("1000.00")
        )

        assert result.data.nights_funded == 0
        assert result.data.avg_nightly_rate_at_donation is None

    def test_nights_use_exact_average_and_stamp_rounded_rate(self, db):
        """Should divide by the exact average and stamp it rounded to cents."""
        NightlyRateFactory(charity_id=7, rate=Decimal("100.00"))
        NightlyRateFactory(charity_id=7, rate=Decimal("100.00"))
        NightlyRateFactory(charity_id=7, rate=Decimal("100.01"))

        result = donations.record_donation(
            donor_id=5, charity_id=7, gross_amount=Decimal("1000.00")
        )

        assert result.success
        assert result.data.nights_funded == 8
        assert result.data.avg_nightly_rate_at_donation == Decimal("100.00")

    def test_non_positive_amount_rejected(self, db):
        """Should reject a zero or negative amount."""
        result = donations.record_donation(
            donor_id=5, charity_id=42, gross_amount=Decimal("0.00")
        )

        assert result.status == ResultStatus.REJECTED
        assert result.error_code == "INVALID_AMOUNT"
        assert Donation.objects.count() == 0


# =============================================================================
# Verification and ledger posting
# =============================================================================


class TestVerifyDonation:
    """Tests for DonationService.verify_donation()."""

    def test_verification_posts_receipt(self, system_accounts, pending_donation):
        """Should post the receipt when the donation is verified."""
        result = donations.verify_donation(pending_donation.id, actor="staff:1")

        donation = result.data
        posting = LedgerPosting.objects.get(donation=donation)
        assert result.success
        assert donation.status == DonationStatus.VERIFIED
        assert donation.ledger_transaction.transaction_type == (
            TransactionType.DONATION_RECEIVED
        )
        assert posting.status == LedgerPostingStatus.POSTED
        assert posting.attempts == 1
        assert balances.get_charity_available_funds(42) == Decimal("900.00")

    def test_cannot_verify_twice(self, posted_donation):
        """Should reject verifying an already verified donation."""
        result = donations.verify_donation(posted_donation.id)

        assert result.is_rejected
        assert result.error_code == "INVALID_DONATION_STATE"

    def test_unknown_donation(self, db):
        """Should reject an unknown donation id."""
        result = donations.verify_donation(uuid.uuid4())

        assert result.is_rejected
        assert result.error_code == "DONATION_NOT_FOUND"

    def test_ledger_failure_keeps_verification(self, system_accounts, pending_donation):
        """A failed posting is queued; the donation stays verified."""
        with patch.object(
            recorder,
            "record_donation_received",
            side_effect=SystemAccountMissing(SystemAccountCode.CASH),
        ):
            result = donations.verify_donation(pending_donation.id, actor="staff:1")

        posting = LedgerPosting.objects.get(donation=pending_donation)
        assert result.success
        assert result.data.status == DonationStatus.VERIFIED
        assert result.data.is_posted is False
        assert posting.status == LedgerPostingStatus.PENDING
        assert posting.attempts == 1
        assert "SYSTEM_ACCOUNT_MISSING" in posting.last_error
        assert LedgerTransaction.objects.count() == 0

    def test_posting_is_idempotent(self, posted_donation):
        """Should not post a second receipt for the same donation."""
        first = donations.post_donation_to_ledger(posted_donation.id)
        second = donations.post_donation_to_ledger(posted_donation.id)

        assert first.data.id == second.data.id == posted_donation.ledger_transaction_id
        assert (
            LedgerTransaction.objects.filter(
                transaction_type=TransactionType.DONATION_RECEIVED
            ).count()
            == 1
        )

    def test_pending_donation_is_not_posted(self, system_accounts, pending_donation):
        """Should refuse to post a donation that is not verified."""
        result = donations.post_donation_to_ledger(pending_donation.id)

        assert result.is_rejected
        assert LedgerTransaction.objects.count() == 0


class TestRetryPendingPostings:
    """Tests for DonationService.retry_pending_postings()."""

    def _verify_with_ledger_down(self, donation):
        with patch.object(
            recorder,
            "record_donation_received",
            side_effect=SystemAccountMissing(SystemAccountCode.CASH),
        ):
            donations.verify_donation(donation.id)

    def test_retry_posts_once_ledger_recovers(self, system_accounts, pending_donation):
        """Should post the receipt on retry once the ledger is back."""
        self._verify_with_ledger_down(pending_donation)

        counts = donations.retry_pending_postings()

        pending_donation.refresh_from_db()
        posting = LedgerPosting.objects.get(donation=pending_donation)
        assert counts == {"posted": 1, "failed": 0, "skipped": 0}
        assert pending_donation.is_posted
        assert posting.status == LedgerPostingStatus.POSTED
        assert posting.last_error is None

    def test_gives_up_after_max_attempts(self, system_accounts, pending_donation, settings):
        """Should mark the posting failed after the last attempt."""
        settings.LEDGER_POSTING_MAX_ATTEMPTS = 2
        self._verify_with_ledger_down(pending_donation)

        with patch.object(
            recorder,
            "record_donation_received",
            side_effect=SystemAccountMissing(SystemAccountCode.CASH),
        ):
            counts = donations.retry_pending_postings()

        posting = LedgerPosting.objects.get(donation=pending_donation)
        assert counts["failed"] == 1
        assert posting.attempts == 2
        assert posting.status == LedgerPostingStatus.FAILED
        assert donations.retry_pending_postings() == {
            "posted": 0,
            "failed": 0,
            "skipped": 0,
        }

    def test_exhausted_rows_are_skipped(self, system_accounts, pending_donation):
        """Should skip postings that used up their attempts."""
        self._verify_with_ledger_down(pending_donation)

        counts = donations.retry_pending_postings(max_attempts=1)

        assert counts == {"posted": 0, "failed": 0, "skipped": 1}


class TestRejectDonation:
    def test_reject_pending(self, pending_donation):
        """Should reject a pending donation."""
        result = donations.reject_donation(pending_donation.id, reason="Bounced", actor="staff:1")

        assert result.success
        assert result.data.status == DonationStatus.CANCELLED
        assert result.data.verification_status == VerificationStatus.REJECTED
        assert LedgerTransaction.objects.count() == 0

    def test_cannot_reject_verified(self, posted_donation):
        """Should refuse to reject a verified donation."""
        result = donations.reject_donation(posted_donation.id, reason="late")

        assert result.is_rejected
        assert result.error_code == "INVALID_DONATION_STATE"


# =============================================================================
# Allocation
# =============================================================================


class TestAllocate:
    """Tests for AllocationEngine.allocate()."""

    def test_allocation_marks_donation_allocated(self, allocated, posted_donation):
        """Should allocate nights and move funds to allocated."""
        posted_donation.refresh_from_db()

        assert posted_donation.status == DonationStatus.ALLOCATED
        assert allocated.nights_allocated == 4
        assert allocated.amount_allocated == Decimal("600.00")
        assert allocated.charity_id == 42
        assert allocated.ledger_transaction.transaction_type == (
            TransactionType.FUND_ALLOCATED
        )
        assert balances.get_charity_available_funds(42) == Decimal("300.00")
        assert balances.get_balance_by_code(SystemAccountCode.ALLOCATED_FUNDS) == Decimal(
            "600.00"
        )

    def test_over_capacity_rejected(self, allocated, posted_donation, situation):
        """Only 2 of 6 nights remain after allocating 4."""
        result = allocation.allocate(
            posted_donation.id, situation.situation_id, 3, Decimal("150.00")
        )

        assert result.is_rejected
        assert result.error_code == "INSUFFICIENT_CAPACITY"
        assert result.details["available_nights"] == 2
        assert SituationFunding.objects.count() == 1

    def test_remaining_nights_can_be_allocated(self, allocated, posted_donation, situation):
        """Should allow allocating the remaining nights elsewhere."""
        second = SituationRefFactory(situation_id=23, charity_id=42)

        result = allocation.allocate(
            posted_donation.id, second.situation_id, 2, Decimal("300.00")
        )

        assert result.success
        assert posted_donation.get_nights_remaining() == 0

    def test_amount_above_donation_net_rejected(self, posted_donation, situation):
        """Should reject an amount above the donation's net."""
        result = allocation.allocate(
            posted_donation.id, situation.situation_id, 4, Decimal("950.00")
        )

        assert result.is_rejected
        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert result.details["scope"] == "donation"

    def test_amount_above_charity_funds_rejected(self, posted_donation, situation):
        """A manual adjustment that drained the fund blocks the allocation."""
        fund = chart.get_account_by_code("2000-42")
        cash = chart.get_account_by_code(SystemAccountCode.CASH)
        recorder.post(
            TransactionType.ADJUSTMENT,
            [
                EntryLine.debit(fund.id, Decimal("800.00")),
                EntryLine.credit(cash.id, Decimal("800.00")),
            ],
            description="Correction",
        )

        result = allocation.allocate(
            posted_donation.id, situation.situation_id, 1, Decimal("150.00")
        )

        assert result.is_rejected
        assert result.error_code == "INSUFFICIENT_FUNDS"
        assert result.details["scope"] == "charity"

    def test_situation_of_other_charity_rejected(self, posted_donation, other_charity_situation):
        """Should reject a situation owned by another charity."""
        result = allocation.allocate(
            posted_donation.id, other_charity_situation.situation_id, 1, Decimal("150.00")
        )

        assert result.is_rejected
        assert result.error_code == "CHARITY_MISMATCH"

    def test_unknown_situation_rejected(self, posted_donation):
        """Should reject an unknown situation."""
        result = allocation.allocate(posted_donation.id, 404, 1, Decimal("150.00"))

        assert result.is_rejected
        assert result.error_code == "SITUATION_NOT_FOUND"

    @pytest.mark.parametrize("nights,amount", [(0, "150.00"), (1, "0.00")])
    def test_non_positive_request_rejected(self, posted_donation, situation, nights, amount):
        """Should reject zero nights or a zero amount."""
        result = allocation.allocate(
            posted_donation.id, situation.situation_id, nights, Decimal(amount)
        )

        assert result.is_rejected

    def test_pending_donation_rejected(self, system_accounts, pending_donation, situation):
        """Should reject allocating from a pending donation."""
        result = allocation.allocate(
            pending_donation.id, situation.situation_id, 1, Decimal("150.00")
        )

        assert result.is_rejected
        assert result.error_code == "INVALID_DONATION_STATE"

    def test_unposted_donation_rejected(self, system_accounts, verified_donation, situation):
        """Should reject allocating before the receipt is posted."""
        result = allocation.allocate(
            verified_donation.id, situation.situation_id, 1, Decimal("150.00")
        )

        assert result.is_rejected
        assert result.error_code == "DONATION_NOT_POSTED"

    def test_rejection_leaves_books_untouched(self, posted_donation, situation):
        """Should write nothing when the allocation is rejected."""
        before = LedgerTransaction.objects.count()

        allocation.allocate(posted_donation.id, situation.situation_id, 7, Decimal("900.00"))

        assert LedgerTransaction.objects.count() == before
        assert SituationFunding.objects.count() == 0

    def test_queries(self, allocated, posted_donation, situation):
        """Should list fundings by donation and by situation."""
        assert allocation.get_fundings_for_donation(posted_donation.id) == [allocated]
        assert allocation.get_fundings_for_situation(situation.situation_id) == [allocated]


class TestRecordUsage:
    """Tests for AllocationEngine.record_usage()."""

    def test_partial_usage(self, allocated, posted_donation):
        """Should record used nights against the funding."""
        result = allocation.record_usage(allocated.id, 2, "Two nights at Harbor House")

        posted_donation.refresh_from_db()
        assert result.success
        assert result.data.nights_used == 2
        assert result.data.nights_remaining == 2
        assert posted_donation.status == DonationStatus.PARTIALLY_USED

    def test_usage_beyond_allocation_rejected(self, allocated):
        """Should reject using more nights than allocated."""
        allocation.record_usage(allocated.id, 3)

        result = allocation.record_usage(allocated.id, 2)

        allocated.refresh_from_db()
        assert result.is_rejected
        assert result.error_code == "USAGE_EXCEEDS_ALLOCATION"
        assert allocated.nights_used == 3

    def test_full_usage_marks_fully_used(self, allocated, posted_donation, situation):
        """Should mark the donation fully used once every night is used."""
        second = SituationRefFactory(situation_id=23, charity_id=42)
        other = allocation.allocate(
            posted_donation.id, second.situation_id, 2, Decimal("300.00")
        ).data

        allocation.record_usage(allocated.id, 4)
        allocation.record_usage(other.id, 2)

        posted_donation.refresh_from_db()
        assert posted_donation.status == DonationStatus.FULLY_USED

    def test_actor_is_logged_in_explanation(self, allocated):
        """Should append the actor to the usage explanation."""
        result = allocation.record_usage(allocated.id, 1, "Night one", actor="staff:3")

        assert result.data.usage_explanation.endswith("+1: Night one (staff:3)")

    def test_unknown_funding(self, db):
        """Should reject an unknown funding id."""
        result = allocation.record_usage(uuid.uuid4(), 1)

        assert result.is_rejected
        assert result.error_code == "FUNDING_NOT_FOUND"

    def test_non_positive_nights(self, allocated):
        """Should reject recording zero nights."""
        result = allocation.record_usage(allocated.id, 0)

        assert result.is_rejected
        assert result.error_code == "INVALID_NIGHTS"


# =============================================================================
# Refund
# =============================================================================


class TestRefundDonation:
    """Tests for DonationService.refund_donation()."""

    def test_refund_after_allocation_restores_balances(self, allocated, posted_donation):
        """Should deallocate and zero every touched balance."""
        result = donations.refund_donation(
            posted_donation.id, reason="Donor request", actor="staff:2"
        )

        donation = result.data
        allocated.refresh_from_db()
        assert result.success
        assert donation.status == DonationStatus.CANCELLED
        assert donation.refund_transaction.transaction_type == (
            TransactionType.DONATION_REFUND
        )
        assert donation.refund_transaction.notes == "Donor request"
        assert allocated.is_active is False
        assert allocated.deallocation_transaction is not None
        for code in (
            "2000-42",
            SystemAccountCode.PLATFORM_FEE_REVENUE,
            SystemAccountCode.FACILITATOR_FEE_REVENUE,
            SystemAccountCode.ALLOCATED_FUNDS,
            SystemAccountCode.CASH,
        ):
            assert balances.get_balance_by_code(code) == Decimal("0.00")
        assert auditor.verify_trial_balance() is True

    def test_refund_verified_without_allocations(self, posted_donation):
        """Should refund a donation with no allocations."""
        result = donations.refund_donation(posted_donation.id, reason="Duplicate")

        assert result.success
        assert balances.get_charity_available_funds(42) == Decimal("0.00")

    def test_refund_after_usage_rejected(self, allocated, posted_donation):
        """Should refuse a refund once nights were used."""
        allocation.record_usage(allocated.id, 1)

        result = donations.refund_donation(posted_donation.id, reason="too late")

        assert result.is_rejected
        assert result.error_code == "INVALID_DONATION_STATE"
        assert not LedgerTransaction.objects.filter(
            transaction_type=TransactionType.DONATION_REFUND
        ).exists()

    def test_refund_unposted_rejected(self, system_accounts, verified_donation):
        """Should refuse a refund before the receipt is posted."""
        result = donations.refund_donation(verified_donation.id, reason="x")

        assert result.is_rejected
        assert result.error_code == "DONATION_NOT_POSTED"

    def test_refund_pending_rejected(self, pending_donation):
        """Should refuse to refund a pending donation."""
        result = donations.refund_donation(pending_donation.id, reason="x")

        assert result.is_rejected
        assert result.error_code == "INVALID_DONATION_STATE"

    def test_refunded_donation_cannot_be_allocated(self, posted_donation, situation):
        """Should reject allocating from a refunded donation."""
        donations.refund_donation(posted_donation.id, reason="Duplicate")

        result = allocation.allocate(
            posted_donation.id, situation.situation_id, 1, Decimal("150.00")
        )

        assert result.is_rejected
        assert result.error_code == "INVALID_DONATION_STATE"


class TestAccountLockOrder:
    """Every unit of work locks the accounts it touches up front, in id order."""

    @pytest.fixture
    def events(self):
        events = []
        lock_accounts = recorder.lock_accounts
        get_available = balances.get_charity_available_funds

        def track_lock(account_ids):
            events.append(("lock", set(account_ids)))
            return lock_accounts(account_ids)

        def track_available(*args, **kwargs):
            events.append(("available", None))
            return get_available(*args, **kwargs)

        with patch.object(recorder, "lock_accounts", side_effect=track_lock), patch.object(
            balances, "get_charity_available_funds", side_effect=track_available
        ):
            yield events

    def _ids(self, *codes):
        return {chart.get_account_by_code(code).id for code in codes}

    def _assert_later_locks_held(self, events):
        first = events[0][1]
        for kind, account_ids in events[1:]:
            if kind == "lock":
                assert account_ids <= first

    def test_allocation_locks_before_reading_available_funds(
        self, posted_donation, situation, events
    ):
        """Should lock fund and allocated funds together before the balance read."""
        result = allocation.allocate(
            posted_donation.id, situation.situation_id, 1, Decimal("150.00")
        )

        assert result.success, result.error
        assert events[0] == (
            "lock",
            self._ids("2000-42", SystemAccountCode.ALLOCATED_FUNDS),
        )
        assert events[1] == ("available", None)
        self._assert_later_locks_held(events)

    def test_refund_locks_every_account_first(self, allocated, posted_donation, events):
        """Should lock all refund and deallocation accounts before posting."""
        result = donations.refund_donation(posted_donation.id, reason="Duplicate")

        assert result.success, result.error
        assert events[0] == (
            "lock",
            self._ids(
                "2000-42",
                SystemAccountCode.CASH,
                SystemAccountCode.ALLOCATED_FUNDS,
                SystemAccountCode.PLATFORM_FEE_REVENUE,
                SystemAccountCode.FACILITATOR_FEE_REVENUE,
            ),
        )
        assert len([kind for kind, _ in events if kind == "lock"]) == 3
        self._assert_later_locks_held(events)


def test_factory_donation_is_consistent(db):
    """Sanity check that factory defaults pass the model's own validation."""
    donation = DonationFactory()

    assert donation.total_fees + donation.net_amount == donation.gross_amount
