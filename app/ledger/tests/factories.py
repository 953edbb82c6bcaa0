"""
Factory Boy factories for ledger test data.

Usage:
    from ledger.tests.factories import AccountFactory, LedgerEntryFactory

    # A standalone asset account
    account = AccountFactory(type=AccountType.ASSET)

    # A raw entry written around the recorder (e.g. to corrupt the books
    # in auditor tests)
    entry = LedgerEntryFactory(account=account, amount=Decimal("5.00"))

Note:
    Normal postings go through TransactionRecorder; these factories
    exist for setting up edge cases the recorder would refuse.
"""

from decimal import Decimal

import factory

from ledger.models import (
    Account,
    AccountType,
    EntryType,
    LedgerEntry,
    LedgerTransaction,
    TransactionType,
)


class AccountFactory(factory.django.DjangoModelFactory):
    """
    Factory for creating Account instances.

    Default creates an active, non-system ASSET account with a unique code.
    """

    class Meta:
        model = Account
        skip_postgeneration_save = True

    code = factory.Sequence(lambda n: f"9{n:03d}")
    name = factory.Sequence(lambda n: f"Test Account {n}")
    type = AccountType.ASSET
    is_system_account = False
    is_active = True


class LedgerTransactionFactory(factory.django.DjangoModelFactory):
    """Factory for LedgerTransaction rows with no entries."""

    class Meta:
        model = LedgerTransaction
        skip_postgeneration_save = True

    code = factory.Sequence(lambda n: f"TXN-19990101-{n + 1:05d}")
    transaction_type = TransactionType.ADJUSTMENT
    description = factory.Faker("sentence")
    total_amount = Decimal("10.00")
    created_by = "test_factory"


class LedgerEntryFactory(factory.django.DjangoModelFactory):
    """
    Factory for LedgerEntry rows.

    Writes a single entry without its balancing counterpart.
    """

    class Meta:
        model = LedgerEntry
        skip_postgeneration_save = True

    transaction = factory.SubFactory(LedgerTransactionFactory)
    account = factory.SubFactory(AccountFactory)
    entry_type = EntryType.DEBIT
    amount = Decimal("10.00")
