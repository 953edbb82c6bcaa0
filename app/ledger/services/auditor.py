"""
Trial-balance auditor.

Read-only health checks over the whole ledger. Posting already refuses
unbalanced transactions; these checks catch anything written around the
recorder and act as a regression oracle in tests.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.db.models import Q, Sum

from ..models import ZERO, Account, EntryType, LedgerEntry, LedgerTransaction
from ..types import BalanceDrift, TrialBalance
from .balances import sum_debits_and_credits

if TYPE_CHECKING:
    from .balances import BalanceCalculator

logger = logging.getLogger(__name__)


class TrialBalanceAuditor:
    """
    System-wide verification of the double-entry invariants.

    Args:
        balances: BalanceCalculator used to replay account balances
    """

    def __init__(self, balances: BalanceCalculator):
        self.balances = balances

    def get_trial_balance_totals(self) -> TrialBalance:
        """Sum every debit and every credit entry in the ledger."""
        debits, credits = sum_debits_and_credits(LedgerEntry.objects.all())
        return TrialBalance(total_debits=debits, total_credits=credits)

    def verify_trial_balance(self) -> bool:
        """
        Return True when total debits equal total credits.

        An imbalance is logged at ERROR with both totals.
        """
        totals = self.get_trial_balance_totals()
        if not totals.is_balanced:
            logger.error(
                "Trial balance failed",
                extra={
                    "total_debits": str(totals.total_debits),
                    "total_credits": str(totals.total_credits),
                },
            )
        return totals.is_balanced

    def find_unbalanced_transactions(self) -> list[LedgerTransaction]:
        """Return committed transactions whose own entries do not balance."""
        rows = LedgerTransaction.objects.annotate(
            debits=Sum("entries__amount", filter=Q(entries__entry_type=EntryType.DEBIT)),
            credits=Sum("entries__amount", filter=Q(entries__entry_type=EntryType.CREDIT)),
        ).order_by("transaction_date", "code")
        return [
            txn
            for txn in rows
            if (txn.debits or ZERO) != (txn.credits or ZERO)
        ]

    def find_balance_drift(self) -> list[BalanceDrift]:
        """Return accounts whose cached balance differs from their entries."""
        drifts: list[BalanceDrift] = []
        for account in Account.objects.order_by("code"):
            replayed = self.balances.get_account_balance(account)
            if replayed != account.current_balance:
                drifts.append(
                    BalanceDrift(
                        account_id=account.id,
                        account_code=account.code,
                        cached_balance=account.current_balance,
                        replayed_balance=replayed,
                    )
                )
        if drifts:
            logger.warning(
                f"{len(drifts)} account(s) have a stale cached balance",
                extra={"account_codes": [drift.account_code for drift in drifts]},
            )
        return drifts
