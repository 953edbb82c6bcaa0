"""
Tests for donation Celery tasks.

Tests cover:
- post_donation_to_ledger task
- retry_ledger_postings task
"""

from unittest.mock import patch
from uuid import uuid4

from core.services import ResultStatus
from donations.models import LedgerPosting
from donations.state_machines import LedgerPostingStatus
from donations.tasks import post_donation_to_ledger, retry_ledger_postings
from ledger.exceptions import SystemAccountMissing
from ledger.services import recorder
from ledger.services.accounts import SystemAccountCode


class TestPostDonationToLedger:
    """Tests for the post_donation_to_ledger task."""

    def test_already_posted_donation_returns_code(self, posted_donation):
        result = post_donation_to_ledger(str(posted_donation.id))

        assert result["status"] == ResultStatus.OK
        assert result["transaction_code"] == posted_donation.ledger_transaction.code

    def test_missing_donation(self, db):
        result = post_donation_to_ledger(str(uuid4()))

        assert result["status"] == ResultStatus.REJECTED
        assert result["error_code"] == "DONATION_NOT_FOUND"


class TestRetryLedgerPostings:
    """Tests for the retry_ledger_postings periodic task."""

    def test_nothing_pending(self, db):
        assert retry_ledger_postings() == {"posted": 0, "failed": 0, "skipped": 0}

    def test_posts_queued_donation(self, system_accounts, pending_donation):
        from donations.services import donations

        with patch.object(
            recorder,
            "record_donation_received",
            side_effect=SystemAccountMissing(SystemAccountCode.CASH),
        ):
            donations.verify_donation(pending_donation.id)

        counts = retry_ledger_postings()

        posting = LedgerPosting.objects.get(donation=pending_donation)
        assert counts["posted"] == 1
        assert posting.status == LedgerPostingStatus.POSTED
