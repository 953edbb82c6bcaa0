"""
Ledger-specific exceptions for double-entry bookkeeping.

This module provides a hierarchy of exceptions for ledger operations,
inheriting from the core exception base class so callers can branch on
``recoverable``.

Exception Hierarchy:
    LedgerError (base, fatal)
    ├── UnbalancedTransactionError - Debits != credits before posting (fatal)
    ├── InvalidEntryError - Malformed entry built by a caller (fatal)
    ├── ImmutableRecordError - Attempt to edit/delete posted rows (fatal)
    ├── SystemAccountMissing - Seeded account absent (fatal, configuration)
    ├── AccountNotFound - Account lookup failures (recoverable)
    ├── InactiveAccount - Posting to a deactivated account (recoverable)
    ├── ProtectedAccountError - Deactivating a system account (recoverable)
    ├── TransactionNotFound - Transaction lookup failures (recoverable)
    └── TransactionAlreadyReversed - Second reversal of one posting (recoverable)

Lookups also derive from core NotFoundError, a second reversal from
ConflictError, and a missing system account from ConfigurationError.

Usage:
    from ledger.exceptions import UnbalancedTransactionError

    if total_debits != total_credits:
        raise UnbalancedTransactionError(total_debits, total_credits)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import (
    BaseApplicationError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
)

if TYPE_CHECKING:
    from decimal import Decimal
    from typing import Any


class LedgerError(BaseApplicationError):
    """
    Base exception for all ledger operations.

    Ledger errors are fatal by default: they point at a defect in how a
    caller built a transaction or at a broken deployment, not at bad
    user input.
    """

    default_error_code: str = "LEDGER_ERROR"


class UnbalancedTransactionError(LedgerError):
    """
    Raised when a transaction's debits do not equal its credits.

    Checked before anything is written. The surrounding unit of work is
    aborted, so nothing from the operation is persisted.

    Attributes:
        total_debits: Sum of the debit entries
        total_credits: Sum of the credit entries
    """

    default_error_code: str = "UNBALANCED_TRANSACTION"

    def __init__(
        self,
        total_debits: Decimal,
        total_credits: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.total_debits = total_debits
        self.total_credits = total_credits

        full_details = {
            "total_debits": str(total_debits),
            "total_credits": str(total_credits),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=(
                f"Transaction is not balanced: debits {total_debits}, "
                f"credits {total_credits}"
            ),
            error_code=error_code,
            details=full_details,
        )


class InvalidEntryError(LedgerError):
    """
    Raised when an entry line is malformed (non-positive amount, bad side).

    Example:
        raise InvalidEntryError(
            "Entry amount must be positive",
            details={"amount": str(amount)},
        )
    """

    default_error_code: str = "INVALID_ENTRY"


class ImmutableRecordError(LedgerError):
    """
    Raised when code tries to update or delete a posted transaction or entry.

    Corrections are made by posting a reversing transaction.
    """

    default_error_code: str = "IMMUTABLE_RECORD"


class SystemAccountMissing(LedgerError, ConfigurationError):
    """
    Raised when a well-known system account has not been seeded.

    This is a deployment problem: run ``manage.py ensure_system_accounts``.
    """

    default_error_code: str = "SYSTEM_ACCOUNT_MISSING"

    def __init__(self, code: str, details: dict[str, Any] | None = None):
        self.code = code
        full_details = {"account_code": code}
        if details:
            full_details.update(details)
        super().__init__(
            message=f"System account {code} is missing; run ensure_system_accounts",
            details=full_details,
        )


class AccountNotFound(LedgerError, NotFoundError):
    """
    Raised when a non-system account cannot be found.

    Example:
        account = Account.objects.filter(code=code).first()
        if not account:
            raise AccountNotFound(
                f"Account {code} not found",
                details={"account_code": code},
            )
    """

    default_error_code: str = "ACCOUNT_NOT_FOUND"
    recoverable = True


class InactiveAccount(LedgerError):
    """
    Raised when attempting to post to an inactive account.

    Accounts can be deactivated but their history is preserved.
    New entries against them are rejected.
    """

    default_error_code: str = "INACTIVE_ACCOUNT"
    recoverable = True


class ProtectedAccountError(LedgerError):
    """Raised when trying to deactivate a system account."""

    default_error_code: str = "PROTECTED_ACCOUNT"
    recoverable = True


class TransactionNotFound(LedgerError, NotFoundError):
    """Raised when a transaction lookup by code or reference misses."""

    default_error_code: str = "TRANSACTION_NOT_FOUND"
    recoverable = True


class TransactionAlreadyReversed(LedgerError, ConflictError):
    """
    Raised when posting a second reversal of the same transaction.

    Example:
        if original.is_reversed:
            raise TransactionAlreadyReversed(
                f"Transaction {original.code} was already reversed",
                details={"transaction_code": original.code},
            )
    """

    default_error_code: str = "TRANSACTION_ALREADY_REVERSED"
    recoverable = True
