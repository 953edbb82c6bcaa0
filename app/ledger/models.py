"""
Ledger models for double-entry bookkeeping.

This module defines the persisted state of the ledger:
- Account: One line of the chart of accounts, with a cached balance
- LedgerTransaction: A balanced group of entries for one financial event
- LedgerEntry: One debit or one credit against one account
- TransactionCodeSequence: Per-day counter behind TXN-YYYYMMDD-NNNNN codes

Every transaction's debit entries sum to its credit entries. Entries are
append-only; corrections are new reversing transactions.

Usage:
    from ledger.models import Account, AccountType, EntryType

    cash = Account.objects.get(code="1000")
    cash.increases_with_debit  # True for ASSET and EXPENSE accounts
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.db.models import Q
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from .exceptions import ImmutableRecordError

ZERO = Decimal("0.00")

# Shared precision for every monetary column in the ledger
MONEY_MAX_DIGITS = 15
MONEY_DECIMAL_PLACES = 2


class AccountType(models.TextChoices):
    """
    Standard account categories.

    ASSET and EXPENSE accounts increase with debits.
    LIABILITY, EQUITY and REVENUE accounts increase with credits.
    """

    ASSET = "asset", "Asset"
    LIABILITY = "liability", "Liability"
    EQUITY = "equity", "Equity"
    REVENUE = "revenue", "Revenue"
    EXPENSE = "expense", "Expense"


DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})


class EntryType(models.TextChoices):
    """Side of a ledger entry."""

    DEBIT = "debit", "Dr"
    CREDIT = "credit", "Cr"


class TransactionType(models.TextChoices):
    """
    Financial events recorded in the ledger.

    Values:
        DONATION_RECEIVED: Verified donation lands in cash and charity fund
        DONATION_REFUND: Reversal of a donation receipt
        FUND_ALLOCATED: Charity fund committed to a situation
        FUND_DEALLOCATED: Allocation returned to the charity fund
        FUND_DISBURSED: Allocated money paid out for a booking
        FEE_COLLECTED: Standalone fee movement
        ADJUSTMENT: Manual correction
        OPENING_BALANCE: Migration of balances from a previous system
        TRANSFER: Movement between two accounts
    """

    DONATION_RECEIVED = "donation_received", "Donation Received"
    DONATION_REFUND = "donation_refund", "Donation Refund"
    FUND_ALLOCATED = "fund_allocated", "Fund Allocated to Situation"
    FUND_DEALLOCATED = "fund_deallocated", "Fund Deallocated from Situation"
    FUND_DISBURSED = "fund_disbursed", "Fund Disbursed for Booking"
    FEE_COLLECTED = "fee_collected", "Fee Collected"
    ADJUSTMENT = "adjustment", "Manual Adjustment"
    OPENING_BALANCE = "opening_balance", "Opening Balance"
    TRANSFER = "transfer", "Fund Transfer"


class Account(UUIDPrimaryKeyMixin, BaseModel):
    """
    An account in the chart of accounts.

    System accounts are seeded once with fixed codes. Charity fund
    accounts are created lazily, one per charity, as children of the
    "funds held" account.

    Fields:
        code: Unique, human-meaningful account code (e.g. "1000", "2000-42")
        name: Display name
        type: AccountType, fixed at creation
        parent: Optional parent account for charity-scoped sub-accounts
        charity_id: Owning charity for charity fund accounts
        is_system_account: Protects well-known accounts from deactivation
        is_active: Accounts are never deleted, only deactivated
        current_balance: Write-through cache of the replayed balance

    Note:
        current_balance is refreshed after every posted transaction but
        is never the source of truth. BalanceCalculator replays entries.
    """

    code = models.CharField(
        max_length=50,
        unique=True,
        help_text="Unique account code shown in reports",
    )
    name = models.CharField(
        max_length=200,
        help_text="Display name",
    )
    type = models.CharField(
        max_length=20,
        choices=AccountType.choices,
        help_text="Accounting category; decides which side increases the balance",
    )
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="children",
        help_text="Parent account for charity-scoped sub-accounts",
    )
    charity_id = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Charity owning this account (charity fund accounts only)",
    )
    is_system_account = models.BooleanField(
        default=False,
        help_text="Well-known account seeded at startup",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive accounts reject new entries",
    )
    description = models.TextField(
        blank=True,
        default="",
    )
    current_balance = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
        default=ZERO,
        help_text="Cached balance, refreshed after each posted transaction",
    )

    class Meta:
        ordering = ["code"]
        indexes = [
            models.Index(
                fields=["type", "is_active"],
                name="ledger_acco_type_5e2a1c_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return 'code - name'."""
        return f"{self.code} - {self.name}"

    @property
    def increases_with_debit(self) -> bool:
        """True for ASSET and EXPENSE accounts."""
        return self.type in DEBIT_NORMAL_TYPES

    def signed_amount(self, entry_type: str, amount: Decimal) -> Decimal:
        """
        Return the effect of an entry on this account's balance.

        A debit raises a debit-normal account and lowers a credit-normal
        one; credits do the opposite.
        """
        if (entry_type == EntryType.DEBIT) == self.increases_with_debit:
            return amount
        return -amount


class LedgerTransaction(UUIDPrimaryKeyMixin, models.Model):
    """
    A balanced group of ledger entries for one financial event.

    Immutable once posted, except for the reversal flag which is set
    (via a queryset update) when a later transaction reverses it.

    Fields:
        code: TXN-YYYYMMDD-NNNNN, sequential per day
        transaction_type: TransactionType
        transaction_date: When the event happened
        description: Free text
        reference_type / reference_id: Business event that caused it
            (e.g. "donation" + donation id, "booking" + booking id)
        charity_id: Charity concerned, when there is one
        total_amount: Sum of the debit side
        notes: Extra context (refund reason, etc.)
        is_reversed: Set when a reversing transaction was posted
        reversal_of: The transaction this one reverses
        created_by: Actor identifier
    """

    code = models.CharField(
        max_length=50,
        unique=True,
        help_text="Human-sortable transaction code (TXN-YYYYMMDD-NNNNN)",
    )
    transaction_type = models.CharField(
        max_length=50,
        choices=TransactionType.choices,
        db_index=True,
    )
    transaction_date = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="When the financial event happened",
    )
    description = models.CharField(max_length=500)
    reference_type = models.CharField(
        max_length=50,
        null=True,
        blank=True,
        help_text="Type of the business event (donation, booking, situation_funding)",
    )
    reference_id = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        help_text="Identifier of the business event",
    )
    charity_id = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        db_index=True,
    )
    total_amount = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
    )
    notes = models.TextField(blank=True, default="")
    is_reversed = models.BooleanField(default=False)
    reversal_of = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="reversals",
    )
    created_by = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Identifier of the user/service that posted this",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["transaction_date", "code"]
        indexes = [
            models.Index(
                fields=["reference_type", "reference_id"],
                name="ledger_ledg_referen_8b7f3d_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.code} ({self.get_transaction_type_display()})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(
                f"Ledger transaction {self.code} is immutable",
                details={"transaction_code": self.code},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            f"Ledger transaction {self.code} cannot be deleted",
            details={"transaction_code": self.code},
        )


class LedgerEntry(UUIDPrimaryKeyMixin, models.Model):
    """
    One side of a double entry.

    Fields:
        transaction: Owning LedgerTransaction
        account: Account affected
        entry_type: DEBIT or CREDIT
        amount: Positive amount
        running_balance: Balance of the account right after the owning
            transaction was posted
        memo: Optional note
    """

    transaction = models.ForeignKey(
        LedgerTransaction,
        on_delete=models.PROTECT,
        related_name="entries",
    )
    account = models.ForeignKey(
        Account,
        on_delete=models.PROTECT,
        related_name="entries",
    )
    entry_type = models.CharField(
        max_length=10,
        choices=EntryType.choices,
    )
    amount = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
        help_text="Always positive; the side is given by entry_type",
    )
    running_balance = models.DecimalField(
        max_digits=MONEY_MAX_DIGITS,
        decimal_places=MONEY_DECIMAL_PLACES,
        null=True,
        blank=True,
        help_text="Account balance snapshot after the transaction posted",
    )
    memo = models.CharField(max_length=500, blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["created_at"]
        verbose_name_plural = "ledger entries"
        indexes = [
            models.Index(
                fields=["account", "entry_type"],
                name="ledger_ledg_account_4c9e2b_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="ledger_entry_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_entry_type_display()} {self.amount:,.2f}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError(
                "Ledger entries are append-only",
                details={"entry_id": str(self.pk)},
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError(
            "Ledger entries are append-only",
            details={"entry_id": str(self.pk)},
        )


class TransactionCodeSequence(models.Model):
    """
    Per-day counter for transaction codes.

    One row per prefix (e.g. "TXN-20250101-"). The row is locked with
    SELECT ... FOR UPDATE while the next number is taken, so concurrent
    postings on the same day never receive the same code.
    """

    prefix = models.CharField(max_length=20, unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.prefix}{self.last_value:05d}"
