"""
Tests for ledger models and value types.

Covers balance sign conventions, append-only entries, transaction
immutability, the positive-amount constraint and EntryLine validation.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError, transaction

from ledger.exceptions import ImmutableRecordError, InvalidEntryError
from ledger.models import Account, AccountType, EntryType, LedgerEntry
from ledger.tests.factories import (
    AccountFactory,
    LedgerEntryFactory,
    LedgerTransactionFactory,
)
from ledger.types import EntryLine, TrialBalance, to_money


class TestAccount:
    """Tests for the Account model."""

    @pytest.mark.parametrize(
        "account_type,expected",
        [
            (AccountType.ASSET, True),
            (AccountType.EXPENSE, True),
            (AccountType.LIABILITY, False),
            (AccountType.EQUITY, False),
            (AccountType.REVENUE, False),
        ],
    )
    def test_increases_with_debit(self, account_type, expected):
        """ASSET and EXPENSE accounts are debit-normal."""
        account = Account(code="x", name="x", type=account_type)

        assert account.increases_with_debit is expected

    def test_signed_amount_for_liability(self):
        """A credit raises a liability; a debit lowers it."""
        account = Account(code="x", name="x", type=AccountType.LIABILITY)

        assert account.signed_amount(EntryType.CREDIT, Decimal("5.00")) == Decimal("5.00")
        assert account.signed_amount(EntryType.DEBIT, Decimal("5.00")) == Decimal("-5.00")

    def test_str(self, db):
        account = AccountFactory(code="1234", name="Petty Cash")

        assert str(account) == "1234 - Petty Cash"

    def test_default_balance_is_zero(self, db):
        account = AccountFactory()

        assert account.current_balance == Decimal("0.00")
        assert account.is_active is True


class TestLedgerTransactionImmutability:
    """Posted transactions cannot be edited or deleted."""

    def test_save_existing_raises(self, db):
        txn = LedgerTransactionFactory()
        txn.description = "edited"

        with pytest.raises(ImmutableRecordError):
            txn.save()

    def test_delete_raises(self, db):
        txn = LedgerTransactionFactory()

        with pytest.raises(ImmutableRecordError):
            txn.delete()


class TestLedgerEntry:
    """Tests for the LedgerEntry model."""

    def test_entries_are_append_only(self, db):
        """Updating an existing entry is refused."""
        entry = LedgerEntryFactory()
        entry.amount = Decimal("99.00")

        with pytest.raises(ImmutableRecordError):
            entry.save()

    def test_entries_cannot_be_deleted(self, db):
        entry = LedgerEntryFactory()

        with pytest.raises(ImmutableRecordError):
            entry.delete()

        assert LedgerEntry.objects.filter(id=entry.id).exists()

    def test_non_positive_amount_rejected_by_database(self, db):
        """The check constraint refuses zero amounts written around the recorder."""
        txn = LedgerTransactionFactory()
        account = AccountFactory()

        with pytest.raises(IntegrityError):
            with transaction.atomic():
                LedgerEntry.objects.create(
                    transaction=txn,
                    account=account,
                    entry_type=EntryType.DEBIT,
                    amount=Decimal("0.00"),
                )


class TestEntryLine:
    """Tests for the EntryLine value type."""

    def test_debit_rounds_to_cents(self):
        line = EntryLine.debit(account_id=None, amount=Decimal("10.005"))

        assert line.entry_type == EntryType.DEBIT
        assert line.amount == Decimal("10.01")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1.00")])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(InvalidEntryError):
            EntryLine.credit(account_id=None, amount=amount)

    def test_unknown_entry_type_rejected(self):
        with pytest.raises(InvalidEntryError):
            EntryLine(account_id=None, entry_type="sideways", amount=Decimal("1.00"))


class TestMoneyHelpers:
    def test_to_money_from_float_uses_decimal_text(self):
        assert to_money(0.1) == Decimal("0.10")

    def test_to_money_rounds_half_up(self):
        assert to_money("2.345") == Decimal("2.35")

    def test_trial_balance_difference(self):
        totals = TrialBalance(Decimal("10.00"), Decimal("7.50"))

        assert totals.is_balanced is False
        assert totals.difference == Decimal("2.50")
