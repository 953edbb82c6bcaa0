"""
Balance calculation by replaying entries.

The authoritative balance of an account is derived from its entries:
debits minus credits for debit-normal accounts (ASSET, EXPENSE), credits
minus debits for everything else. ``Account.current_balance`` and
``LedgerEntry.running_balance`` are caches refreshed from that replay
after each posted transaction.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from django.db.models import DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from ..models import (
    MONEY_DECIMAL_PLACES,
    MONEY_MAX_DIGITS,
    ZERO,
    Account,
    EntryType,
    LedgerEntry,
)
from ..types import to_money

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable
    from datetime import date

    from django.db.models import QuerySet

    from .accounts import ChartOfAccounts


def _money_output() -> DecimalField:
    return DecimalField(max_digits=MONEY_MAX_DIGITS, decimal_places=MONEY_DECIMAL_PLACES)


def sum_debits_and_credits(entries: QuerySet[LedgerEntry]) -> tuple[Decimal, Decimal]:
    """
    Return ``(total_debits, total_credits)`` for a queryset of entries.

    Both totals are computed in a single aggregate query and are 0.00
    for an empty queryset.
    """
    totals = entries.aggregate(
        debits=Coalesce(
            Sum("amount", filter=Q(entry_type=EntryType.DEBIT)),
            Value(ZERO),
            output_field=_money_output(),
        ),
        credits=Coalesce(
            Sum("amount", filter=Q(entry_type=EntryType.CREDIT)),
            Value(ZERO),
            output_field=_money_output(),
        ),
    )
    return to_money(totals["debits"]), to_money(totals["credits"])


class BalanceCalculator:
    """
    Read side of the ledger plus the cache refresh run after each posting.

    Args:
        chart: ChartOfAccounts used to find charity fund accounts
    """

    def __init__(self, chart: ChartOfAccounts):
        self.chart = chart

    def get_account_balance(self, account: Account) -> Decimal:
        """
        Replay every entry ever posted to ``account``.

        Returns:
            debits - credits for ASSET/EXPENSE accounts,
            credits - debits otherwise
        """
        debits, credits = sum_debits_and_credits(
            LedgerEntry.objects.filter(account_id=account.id)
        )
        return account.signed_amount(EntryType.DEBIT, debits) + account.signed_amount(
            EntryType.CREDIT, credits
        )

    def get_balance_by_code(self, code: str) -> Decimal:
        return self.get_account_balance(self.chart.get_account_by_code(code))

    def get_charity_available_funds(self, charity_id: int) -> Decimal:
        """
        Return the unallocated funds held for a charity.

        A charity that never received a donation has no fund account yet;
        its available funds are 0.00 and no account is created.
        """
        account = self.chart.find_charity_fund_account(charity_id)
        if account is None:
            return ZERO
        return self.get_account_balance(account)

    def refresh_balances(
        self,
        transaction_id: uuid.UUID,
        accounts: Iterable[Account],
    ) -> dict[uuid.UUID, Decimal]:
        """
        Recompute cached balances after a transaction was written.

        For each account touched by the transaction, the replayed balance
        is stored in ``Account.current_balance`` and as the running
        balance of that transaction's entries on the account.

        Must run inside the unit of work that posted the transaction,
        with the accounts already locked.

        Returns:
            Mapping of account id to its new balance
        """
        now = timezone.now()
        balances: dict[uuid.UUID, Decimal] = {}
        for account in accounts:
            balance = self.get_account_balance(account)
            Account.objects.filter(id=account.id).update(
                current_balance=balance,
                updated_at=now,
            )
            LedgerEntry.objects.filter(
                transaction_id=transaction_id,
                account_id=account.id,
            ).update(running_balance=balance)
            account.current_balance = balance
            balances[account.id] = balance
        return balances

    def get_account_history(
        self,
        account: Account,
        date_from: date,
        date_to: date,
    ) -> list[LedgerEntry]:
        """
        Return the account's entries for transactions dated in the range.

        Both bounds are inclusive calendar days: the window is
        [date_from 00:00, date_to + 1 day 00:00) in the current time zone.
        """
        start = timezone.make_aware(datetime.combine(date_from, time.min))
        end = timezone.make_aware(datetime.combine(date_to + timedelta(days=1), time.min))
        return list(
            LedgerEntry.objects.filter(
                account_id=account.id,
                transaction__transaction_date__gte=start,
                transaction__transaction_date__lt=end,
            )
            .select_related("transaction")
            .order_by("transaction__transaction_date", "created_at")
        )
