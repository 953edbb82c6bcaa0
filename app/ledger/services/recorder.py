"""
Transaction recorder.

Builds balanced multi-entry transactions for each financial event and
posts them as one unit of work:

    1. Check debits == credits (nothing written yet)
    2. Lock every touched account, in id order
    3. Take the next TXN-YYYYMMDD-NNNNN code
    4. Insert the transaction and its entries
    5. Refresh cached balances and running balances

Any exception aborts the whole unit, including the caller's surrounding
unit of work when the recorder is called from inside one.

Usage:
    from ledger.services import recorder

    txn = recorder.record_donation_received(donation, actor="staff:7")
    txn.code  # "TXN-20250101-00001"
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db import IntegrityError, transaction
from django.utils import timezone

from core.services import unit_of_work

from ..exceptions import (
    AccountNotFound,
    InactiveAccount,
    InvalidEntryError,
    TransactionAlreadyReversed,
    TransactionNotFound,
    UnbalancedTransactionError,
)
from ..models import (
    ZERO,
    Account,
    EntryType,
    LedgerEntry,
    LedgerTransaction,
    TransactionCodeSequence,
    TransactionType,
)
from ..types import EntryLine
from .accounts import SystemAccountCode

if TYPE_CHECKING:
    import uuid
    from collections.abc import Sequence
    from datetime import datetime

    from donations.models import Donation, SituationFunding

    from ..types import BookingRef
    from .accounts import ChartOfAccounts
    from .balances import BalanceCalculator

logger = logging.getLogger(__name__)

TRANSACTION_CODE_FORMAT = "TXN-{date:%Y%m%d}-"


class ReferenceType:
    """Values stored in LedgerTransaction.reference_type."""

    DONATION = "donation"
    SITUATION_FUNDING = "situation_funding"
    BOOKING = "booking"


def check_balanced(lines: Sequence[EntryLine]) -> Decimal:
    """
    Verify a set of lines before it is posted.

    Returns:
        The debit total (the transaction's total amount)

    Raises:
        InvalidEntryError: If there is no debit line or no credit line
        UnbalancedTransactionError: If debits and credits differ
    """
    total_debits = sum(
        (line.amount for line in lines if line.entry_type == EntryType.DEBIT), ZERO
    )
    total_credits = sum(
        (line.amount for line in lines if line.entry_type == EntryType.CREDIT), ZERO
    )
    if total_debits == ZERO or total_credits == ZERO:
        raise InvalidEntryError(
            "A transaction needs at least one debit and one credit",
            details={"line_count": len(lines)},
        )
    if total_debits != total_credits:
        raise UnbalancedTransactionError(total_debits, total_credits)
    return total_debits


class TransactionRecorder:
    """
    Posts balanced transactions for donations, allocations, disbursements
    and refunds.

    Args:
        chart: ChartOfAccounts resolving system and charity fund accounts
        balances: BalanceCalculator refreshing cached balances after posting
    """

    def __init__(self, chart: ChartOfAccounts, balances: BalanceCalculator):
        self.chart = chart
        self.balances = balances

    # ==========================================================================
    # Financial events
    # ==========================================================================

    def record_donation_received(
        self,
        donation: Donation,
        actor: str | None = None,
    ) -> LedgerTransaction:
        """
        Post a verified donation.

        Entries:
            DEBIT  cash                     gross amount
            CREDIT charity fund             net amount
            CREDIT platform fee revenue     platform fee (when > 0)
            CREDIT facilitator fee revenue  facilitator fee (when > 0)

        A charity's first donation creates its fund account in the same
        unit of work, so a failed posting leaves no account behind.
        """
        return unit_of_work(lambda: self._record_donation_received(donation, actor))

    def _record_donation_received(
        self,
        donation: Donation,
        actor: str | None,
    ) -> LedgerTransaction:
        cash = self.chart.get_account_by_code(SystemAccountCode.CASH)
        fund = self.chart.get_or_create_charity_fund_account(donation.charity_id)
        platform = self.chart.get_account_by_code(SystemAccountCode.PLATFORM_FEE_REVENUE)
        facilitator = self.chart.get_account_by_code(
            SystemAccountCode.FACILITATOR_FEE_REVENUE
        )

        lines = [
            EntryLine.debit(cash.id, donation.gross_amount, memo=f"Donation #{donation.id}"),
            EntryLine.credit(fund.id, donation.net_amount, memo="Net donation for housing"),
        ]
        if donation.platform_fee > 0:
            lines.append(
                EntryLine.credit(platform.id, donation.platform_fee, memo="Platform fee")
            )
        if donation.facilitator_fee > 0:
            lines.append(
                EntryLine.credit(
                    facilitator.id, donation.facilitator_fee, memo="Facilitator fee"
                )
            )

        return self.post(
            TransactionType.DONATION_RECEIVED,
            lines,
            description=f"Donation received from donor {donation.donor_id}",
            reference_type=ReferenceType.DONATION,
            reference_id=donation.id,
            charity_id=donation.charity_id,
            actor=actor,
        )

    def record_allocation(
        self,
        funding: SituationFunding,
        actor: str | None = None,
    ) -> LedgerTransaction:
        """
        Commit part of a charity's fund to a situation.

        Entries:
            DEBIT  charity fund     allocated amount
            CREDIT allocated funds  allocated amount

        The charity's available funds are checked by the allocation
        engine, not here.
        """
        return unit_of_work(lambda: self._record_allocation(funding, actor))

    def _record_allocation(
        self,
        funding: SituationFunding,
        actor: str | None,
    ) -> LedgerTransaction:
        fund = self.chart.get_or_create_charity_fund_account(funding.charity_id)
        allocated = self.chart.get_account_by_code(SystemAccountCode.ALLOCATED_FUNDS)
        memo = (
            f"Allocated {funding.nights_allocated} nights "
            f"to situation {funding.situation_id}"
        )
        return self.post(
            TransactionType.FUND_ALLOCATED,
            [
                EntryLine.debit(fund.id, funding.amount_allocated, memo=memo),
                EntryLine.credit(allocated.id, funding.amount_allocated, memo=memo),
            ],
            description=f"Fund allocation to situation {funding.situation_id}",
            reference_type=ReferenceType.SITUATION_FUNDING,
            reference_id=funding.id,
            charity_id=funding.charity_id,
            actor=actor,
        )

    def record_deallocation(
        self,
        funding: SituationFunding,
        actor: str | None = None,
    ) -> LedgerTransaction:
        """
        Return an allocation to the charity fund.

        Entries:
            DEBIT  allocated funds  allocated amount
            CREDIT charity fund     allocated amount

        Marks the allocation transaction as reversed.
        """
        return unit_of_work(lambda: self._record_deallocation(funding, actor))

    def _record_deallocation(
        self,
        funding: SituationFunding,
        actor: str | None,
    ) -> LedgerTransaction:
        fund = self.chart.get_or_create_charity_fund_account(funding.charity_id)
        allocated = self.chart.get_account_by_code(SystemAccountCode.ALLOCATED_FUNDS)
        memo = f"Deallocated from situation {funding.situation_id}"
        return self.post(
            TransactionType.FUND_DEALLOCATED,
            [
                EntryLine.debit(allocated.id, funding.amount_allocated, memo=memo),
                EntryLine.credit(fund.id, funding.amount_allocated, memo=memo),
            ],
            description=f"Fund deallocation from situation {funding.situation_id}",
            reference_type=ReferenceType.SITUATION_FUNDING,
            reference_id=funding.id,
            charity_id=funding.charity_id,
            actor=actor,
            reversal_of_id=funding.ledger_transaction_id,
        )

    def record_disbursement(
        self,
        booking: BookingRef,
        amount: Decimal,
        actor: str | None = None,
        charity_id: int | None = None,
    ) -> LedgerTransaction:
        """
        Pay allocated money out to a location for a booking.

        Entries:
            DEBIT  allocated funds  amount
            CREDIT cash             amount
        """
        allocated = self.chart.get_account_by_code(SystemAccountCode.ALLOCATED_FUNDS)
        cash = self.chart.get_account_by_code(SystemAccountCode.CASH)
        location = booking.location_name or "location"
        return self.post(
            TransactionType.FUND_DISBURSED,
            [
                EntryLine.debit(
                    allocated.id,
                    amount,
                    memo=f"Payment for booking {booking.confirmation_code}".rstrip(),
                ),
                EntryLine.credit(cash.id, amount, memo=f"Paid to {location}"),
            ],
            description=f"Disbursement for booking {booking.booking_id}",
            reference_type=ReferenceType.BOOKING,
            reference_id=booking.booking_id,
            charity_id=charity_id,
            actor=actor,
        )

    def record_refund(
        self,
        donation: Donation,
        reason: str,
        actor: str | None = None,
    ) -> LedgerTransaction:
        """
        Reverse a donation receipt.

        Entries:
            DEBIT  charity fund             net amount
            DEBIT  platform fee revenue     platform fee (when > 0)
            DEBIT  facilitator fee revenue  facilitator fee (when > 0)
            CREDIT cash                     gross amount

        Raises:
            TransactionNotFound: If the donation was never posted
            TransactionAlreadyReversed: If it was already refunded
        """
        return unit_of_work(lambda: self._record_refund(donation, reason, actor))

    def _record_refund(
        self,
        donation: Donation,
        reason: str,
        actor: str | None,
    ) -> LedgerTransaction:
        original = (
            LedgerTransaction.objects.filter(
                transaction_type=TransactionType.DONATION_RECEIVED,
                reference_type=ReferenceType.DONATION,
                reference_id=str(donation.id),
            )
            .order_by("created_at")
            .first()
        )
        if original is None:
            raise TransactionNotFound(
                f"Donation {donation.id} has no posted receipt to refund",
                details={"donation_id": str(donation.id)},
            )

        cash = self.chart.get_account_by_code(SystemAccountCode.CASH)
        fund = self.chart.get_or_create_charity_fund_account(donation.charity_id)
        platform = self.chart.get_account_by_code(SystemAccountCode.PLATFORM_FEE_REVENUE)
        facilitator = self.chart.get_account_by_code(
            SystemAccountCode.FACILITATOR_FEE_REVENUE
        )

        lines = [EntryLine.debit(fund.id, donation.net_amount, memo="Refund - net amount")]
        if donation.platform_fee > 0:
            lines.append(
                EntryLine.debit(
                    platform.id, donation.platform_fee, memo="Refund - platform fee"
                )
            )
        if donation.facilitator_fee > 0:
            lines.append(
                EntryLine.debit(
                    facilitator.id, donation.facilitator_fee, memo="Refund - facilitator fee"
                )
            )
        lines.append(
            EntryLine.credit(cash.id, donation.gross_amount, memo="Refund to donor")
        )

        return self.post(
            TransactionType.DONATION_REFUND,
            lines,
            description=f"Refund of donation #{donation.id}",
            reference_type=ReferenceType.DONATION,
            reference_id=donation.id,
            charity_id=donation.charity_id,
            notes=reason,
            actor=actor,
            reversal_of_id=original.id,
        )

    # ==========================================================================
    # Posting
    # ==========================================================================

    def post(
        self,
        transaction_type: str,
        lines: Sequence[EntryLine],
        description: str,
        reference_type: str | None = None,
        reference_id: object | None = None,
        charity_id: int | None = None,
        notes: str = "",
        actor: str | None = None,
        reversal_of_id: uuid.UUID | None = None,
        transaction_date: datetime | None = None,
    ) -> LedgerTransaction:
        """
        Post a balanced transaction atomically.

        Also used directly for adjustments, transfers and opening balances.

        Raises:
            InvalidEntryError: If lines are empty or one-sided
            UnbalancedTransactionError: If debits != credits
            AccountNotFound: If a line points at an unknown account
            InactiveAccount: If a line points at a deactivated account
            TransactionAlreadyReversed: If ``reversal_of_id`` was already reversed
        """
        total = check_balanced(lines)
        when = transaction_date or timezone.now()

        def work() -> LedgerTransaction:
            accounts = self.lock_accounts({line.account_id for line in lines})

            if reversal_of_id is not None:
                self._mark_reversed(reversal_of_id)

            txn = LedgerTransaction.objects.create(
                code=self.generate_transaction_code(when),
                transaction_type=transaction_type,
                transaction_date=when,
                description=description,
                reference_type=reference_type,
                reference_id=str(reference_id) if reference_id is not None else None,
                charity_id=charity_id,
                total_amount=total,
                notes=notes,
                reversal_of_id=reversal_of_id,
                created_by=actor,
            )
            for line in lines:
                LedgerEntry.objects.create(
                    transaction=txn,
                    account_id=line.account_id,
                    entry_type=line.entry_type,
                    amount=line.amount,
                    memo=line.memo,
                )

            self.balances.refresh_balances(txn.id, accounts)
            return txn

        txn = unit_of_work(work)
        logger.info(
            f"Posted {txn.code} {transaction_type} {total}",
            extra={
                "transaction_code": txn.code,
                "transaction_type": transaction_type,
                "total_amount": str(total),
                "reference_type": reference_type,
                "reference_id": txn.reference_id,
            },
        )
        return txn

    def lock_accounts(self, account_ids: set[uuid.UUID]) -> list[Account]:
        """
        Lock accounts FOR UPDATE in id order and check they can be posted to.

        Every posting takes its locks through here. Re-locking rows the
        current transaction already holds does not wait.

        Raises:
            AccountNotFound: If an id is unknown
            InactiveAccount: If an account is deactivated
        """
        accounts = list(
            Account.objects.filter(id__in=account_ids).select_for_update().order_by("id")
        )
        found = {account.id for account in accounts}
        for account_id in account_ids - found:
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )
        for account in accounts:
            if not account.is_active:
                raise InactiveAccount(
                    f"Account {account.code} is inactive",
                    details={"account_code": account.code},
                )
        return accounts

    def lock_charity_accounts(
        self,
        charity_id: int,
        system_codes: Sequence[str],
    ) -> list[Account]:
        """
        Lock a charity's fund account together with ``system_codes``.

        A unit of work that reads balances before posting, or posts more
        than one transaction, calls this first with every account it will
        touch. All later postings then only re-take locks already held,
        so the id order of the whole unit is kept. The fund account is
        not created when missing.

        Returns:
            The locked accounts in id order
        """
        account_ids = {
            self.chart.get_account_by_code(code).id for code in system_codes
        }
        fund = self.chart.find_charity_fund_account(charity_id)
        if fund is not None:
            account_ids.add(fund.id)
        return self.lock_accounts(account_ids)

    def _mark_reversed(self, transaction_id: uuid.UUID) -> None:
        original = (
            LedgerTransaction.objects.select_for_update()
            .filter(id=transaction_id)
            .first()
        )
        if original is None:
            raise TransactionNotFound(
                f"Transaction {transaction_id} not found",
                details={"transaction_id": str(transaction_id)},
            )
        if original.is_reversed:
            raise TransactionAlreadyReversed(
                f"Transaction {original.code} was already reversed",
                details={"transaction_code": original.code},
            )
        LedgerTransaction.objects.filter(id=transaction_id).update(is_reversed=True)

    def generate_transaction_code(self, when: datetime | None = None) -> str:
        """
        Take the next code for the day of ``when``.

        The per-day sequence row is locked FOR UPDATE, so concurrent
        callers are serialized and codes are strictly increasing. A new
        day's row is seeded from the highest suffix already in use.
        """
        day = timezone.localdate(when or timezone.now())
        prefix = TRANSACTION_CODE_FORMAT.format(date=day)

        with transaction.atomic():
            sequence = (
                TransactionCodeSequence.objects.select_for_update()
                .filter(prefix=prefix)
                .first()
            )
            if sequence is None:
                try:
                    with transaction.atomic():
                        TransactionCodeSequence.objects.create(
                            prefix=prefix,
                            last_value=self._max_code_suffix(prefix),
                        )
                except IntegrityError:
                    # Another process seeded the same day first
                    pass
                sequence = TransactionCodeSequence.objects.select_for_update().get(
                    prefix=prefix
                )
            sequence.last_value += 1
            sequence.save(update_fields=["last_value"])

        return f"{prefix}{sequence.last_value:05d}"

    def _max_code_suffix(self, prefix: str) -> int:
        codes = LedgerTransaction.objects.filter(code__startswith=prefix).values_list(
            "code", flat=True
        )
        suffixes = [int(code[len(prefix):]) for code in codes if code[len(prefix):].isdigit()]
        return max(suffixes, default=0)

    # ==========================================================================
    # Queries
    # ==========================================================================

    def get_transaction(self, code: str) -> LedgerTransaction:
        """
        Fetch a transaction by code with its entries prefetched.

        Raises:
            TransactionNotFound: If no transaction has that code
        """
        txn = (
            LedgerTransaction.objects.filter(code=code)
            .prefetch_related("entries__account")
            .first()
        )
        if txn is None:
            raise TransactionNotFound(
                f"Transaction {code} not found",
                details={"transaction_code": code},
            )
        return txn

    def get_transactions_by_reference(
        self,
        reference_type: str,
        reference_id: object,
    ) -> list[LedgerTransaction]:
        """
        Return every transaction caused by one business event, oldest first.

        Example:
            recorder.get_transactions_by_reference("donation", donation.id)
        """
        return list(
            LedgerTransaction.objects.filter(
                reference_type=reference_type,
                reference_id=str(reference_id),
            )
            .prefetch_related("entries")
            .order_by("transaction_date", "code")
        )
