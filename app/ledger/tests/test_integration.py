"""
End-to-end ledger flows.

Runs a realistic sequence of postings and checks the books after every
step: the trial balance holds, every transaction balances, and every
cached balance equals the replayed balance.
"""

from decimal import Decimal

from ledger.models import Account, LedgerTransaction
from ledger.services import auditor, balances, recorder
from ledger.services.accounts import SystemAccountCode
from ledger.types import BookingRef


def assert_books_consistent():
    assert auditor.verify_trial_balance() is True
    assert auditor.find_unbalanced_transactions() == []
    assert auditor.find_balance_drift() == []


class TestDonationToBookingFlow:
    """Money flows from donor to location and the books stay consistent."""

    def test_receipt_allocation_disbursement_and_refund(
        self, system_accounts, make_donation, make_funding
    ):
        kept = make_donation()
        refunded = make_donation(
            gross="200.00", platform_fee="14.00", facilitator_fee="6.00", net="180.00"
        )

        recorder.record_donation_received(kept, actor="staff:1")
        assert_books_consistent()
        recorder.record_donation_received(refunded, actor="staff:1")
        assert_books_consistent()
        assert balances.get_charity_available_funds(42) == Decimal("1080.00")

        funding = make_funding(amount="600.00")
        recorder.record_allocation(funding, actor="staff:1")
        assert_books_consistent()

        booking = BookingRef(booking_id="B-9", confirmation_code="CONF-9")
        recorder.record_disbursement(booking, Decimal("300.00"), charity_id=42)
        assert_books_consistent()

        recorder.record_refund(refunded, reason="Card dispute", actor="staff:2")
        assert_books_consistent()

        assert balances.get_charity_available_funds(42) == Decimal("300.00")
        assert balances.get_balance_by_code(SystemAccountCode.ALLOCATED_FUNDS) == Decimal(
            "300.00"
        )
        assert balances.get_balance_by_code(SystemAccountCode.CASH) == Decimal("700.00")
        assert balances.get_balance_by_code(
            SystemAccountCode.PLATFORM_FEE_REVENUE
        ) == Decimal("70.00")
        assert LedgerTransaction.objects.count() == 5

    def test_many_charities_keep_separate_funds(self, system_accounts, make_donation):
        for charity in (1, 2, 3):
            recorder.record_donation_received(make_donation(charity=charity))

        for charity in (1, 2, 3):
            assert balances.get_charity_available_funds(charity) == Decimal("900.00")
        assert Account.objects.filter(charity_id__isnull=False).count() == 3
        assert_books_consistent()
