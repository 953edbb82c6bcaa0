"""
Data types for ledger operations.

This module defines dataclasses used throughout the ledger system
for type-safe data transfer between layers.

Types:
    EntryLine: One debit or credit line of a transaction being built
    BookingRef: The booking a disbursement pays for
    TrialBalance: System-wide debit/credit totals
    BalanceDrift: An account whose cached balance disagrees with its entries

Usage:
    from ledger.types import EntryLine

    lines = [
        EntryLine.debit(cash.id, Decimal("1000.00"), memo="Donation #42"),
        EntryLine.credit(fund.id, Decimal("900.00")),
        EntryLine.credit(platform_fee.id, Decimal("70.00")),
        EntryLine.credit(facilitator_fee.id, Decimal("30.00")),
    ]
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .exceptions import InvalidEntryError
from .models import EntryType

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """
    Coerce a number to a two-decimal Decimal using half-up rounding.

    Strings and ints are converted exactly; floats go through ``str`` so
    that ``0.1`` becomes ``Decimal("0.10")`` rather than its binary expansion.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class EntryLine:
    """
    One line of a transaction before it is posted.

    Attributes:
        account_id: UUID of the account affected
        entry_type: EntryType.DEBIT or EntryType.CREDIT
        amount: Positive two-decimal amount
        memo: Optional note copied to the LedgerEntry
    """

    account_id: uuid.UUID
    entry_type: str
    amount: Decimal
    memo: str = ""

    def __post_init__(self) -> None:
        """Validate the line after initialization."""
        if self.entry_type not in EntryType.values:
            raise InvalidEntryError(
                f"Unknown entry type {self.entry_type!r}",
                details={"entry_type": str(self.entry_type)},
            )
        if self.amount is None or self.amount <= 0:
            raise InvalidEntryError(
                "Entry amount must be positive",
                details={"amount": str(self.amount)},
            )

    @classmethod
    def debit(cls, account_id: uuid.UUID, amount: Decimal, memo: str = "") -> EntryLine:
        return cls(account_id, EntryType.DEBIT, to_money(amount), memo)

    @classmethod
    def credit(cls, account_id: uuid.UUID, amount: Decimal, memo: str = "") -> EntryLine:
        return cls(account_id, EntryType.CREDIT, to_money(amount), memo)


@dataclass(frozen=True)
class BookingRef:
    """
    The booking a disbursement pays for.

    Bookings live outside the ledger; only these identifying fields are
    copied onto the transaction.
    """

    booking_id: str
    confirmation_code: str = ""
    location_name: str = ""


@dataclass(frozen=True)
class TrialBalance:
    """System-wide totals of every debit and credit entry."""

    total_debits: Decimal
    total_credits: Decimal

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits


@dataclass(frozen=True)
class BalanceDrift:
    """An account whose cached balance differs from the replayed balance."""

    account_id: uuid.UUID
    account_code: str
    cached_balance: Decimal
    replayed_balance: Decimal
