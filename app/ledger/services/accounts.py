"""
Chart of accounts.

Owns the fixed set of system accounts and the lazily created per-charity
fund accounts.

Usage:
    from ledger.services import chart
    from ledger.services.accounts import SystemAccountCode

    chart.ensure_system_accounts()
    fund = chart.get_or_create_charity_fund_account(charity_id=42)
    cash = chart.get_account_by_code(SystemAccountCode.CASH)
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from django.db import IntegrityError, transaction

from ..exceptions import AccountNotFound, ProtectedAccountError, SystemAccountMissing
from ..models import Account, AccountType

logger = logging.getLogger(__name__)


class SystemAccountCode:
    """Well-known account codes."""

    CASH = "1000"
    ACCOUNTS_RECEIVABLE = "1100"
    FUNDS_HELD = "2000"
    ALLOCATED_FUNDS = "2100"
    PLATFORM_FEE_REVENUE = "4000"
    FACILITATOR_FEE_REVENUE = "4100"
    HOUSING_DISBURSEMENTS = "5000"
    REFUNDS_EXPENSE = "5100"


@dataclass(frozen=True)
class SystemAccountDefinition:
    code: str
    name: str
    type: str
    description: str


SYSTEM_ACCOUNTS: tuple[SystemAccountDefinition, ...] = (
    SystemAccountDefinition(
        SystemAccountCode.CASH,
        "Cash",
        AccountType.ASSET,
        "Money received from donors and not yet paid out",
    ),
    SystemAccountDefinition(
        SystemAccountCode.ACCOUNTS_RECEIVABLE,
        "Accounts Receivable",
        AccountType.ASSET,
        "Pledged donations not yet received",
    ),
    SystemAccountDefinition(
        SystemAccountCode.FUNDS_HELD,
        "Charity Funds Held",
        AccountType.LIABILITY,
        "Parent account for per-charity fund accounts",
    ),
    SystemAccountDefinition(
        SystemAccountCode.ALLOCATED_FUNDS,
        "Allocated Funds",
        AccountType.LIABILITY,
        "Funds committed to situations and awaiting disbursement",
    ),
    SystemAccountDefinition(
        SystemAccountCode.PLATFORM_FEE_REVENUE,
        "Platform Fee Revenue",
        AccountType.REVENUE,
        "Platform share of each donation",
    ),
    SystemAccountDefinition(
        SystemAccountCode.FACILITATOR_FEE_REVENUE,
        "Facilitator Fee Revenue",
        AccountType.REVENUE,
        "Facilitator share of each donation",
    ),
    SystemAccountDefinition(
        SystemAccountCode.HOUSING_DISBURSEMENTS,
        "Housing Disbursements",
        AccountType.EXPENSE,
        "Payments made to locations for bookings",
    ),
    SystemAccountDefinition(
        SystemAccountCode.REFUNDS_EXPENSE,
        "Refunds Expense",
        AccountType.EXPENSE,
        "Refunds issued to donors",
    ),
)

SYSTEM_ACCOUNT_CODES = frozenset(definition.code for definition in SYSTEM_ACCOUNTS)

CHARITY_FUND_PREFIX = f"{SystemAccountCode.FUNDS_HELD}-"


def charity_fund_code(charity_id: int) -> str:
    """Return the account code of a charity's fund account (e.g. '2000-42')."""
    return f"{CHARITY_FUND_PREFIX}{charity_id}"


class ChartOfAccounts:
    """
    Manages accounts: seeding, lookup and activation.

    Accounts are never deleted. Charity fund accounts are Liability
    accounts parented under the funds-held system account.
    """

    def ensure_system_accounts(self) -> list[Account]:
        """
        Create any missing system account.

        Idempotent: existing codes are left untouched, so a second call
        is a no-op.

        Returns:
            The accounts created by this call (empty when nothing was missing)
        """
        created_accounts: list[Account] = []
        for definition in SYSTEM_ACCOUNTS:
            account, created = Account.objects.get_or_create(
                code=definition.code,
                defaults={
                    "name": definition.name,
                    "type": definition.type,
                    "description": definition.description,
                    "is_system_account": True,
                },
            )
            if created:
                logger.info(
                    f"Created system account {account.code} ({account.name})",
                    extra={"account_code": account.code, "account_type": account.type},
                )
                created_accounts.append(account)
        return created_accounts

    def get_or_create_charity_fund_account(self, charity_id: int) -> Account:
        """
        Return the charity's fund account, creating it on first use.

        The account code is unique, so two concurrent first donations to
        the same charity cannot both insert. The loser of that race hits
        IntegrityError inside a savepoint and reads the winner's row.

        Raises:
            SystemAccountMissing: If the funds-held parent was never seeded
        """
        code = charity_fund_code(charity_id)
        account = self.find_charity_fund_account(charity_id)
        if account is not None:
            return account

        parent = self.get_account_by_code(SystemAccountCode.FUNDS_HELD)
        try:
            with transaction.atomic():
                account = Account.objects.create(
                    code=code,
                    name=f"Charity Fund: {charity_id}",
                    type=AccountType.LIABILITY,
                    parent=parent,
                    charity_id=charity_id,
                    description=f"Net donated funds held for charity {charity_id}",
                )
        except IntegrityError:
            return Account.objects.get(code=code)

        logger.info(
            f"Created charity fund account {code}",
            extra={"account_code": code, "charity_id": charity_id},
        )
        return account

    def find_charity_fund_account(self, charity_id: int) -> Account | None:
        """Return the charity's fund account without creating it."""
        return Account.objects.filter(code=charity_fund_code(charity_id)).first()

    def get_account_by_code(self, code: str) -> Account:
        """
        Look up an account by its code.

        Raises:
            SystemAccountMissing: If ``code`` is a system code that was
                never seeded (deployment problem)
            AccountNotFound: For any other missing code
        """
        account = Account.objects.filter(code=code).first()
        if account is not None:
            return account
        if code in SYSTEM_ACCOUNT_CODES:
            raise SystemAccountMissing(code)
        raise AccountNotFound(
            f"Account {code} not found",
            details={"account_code": code},
        )

    def get_account(self, account_id: uuid.UUID) -> Account:
        """
        Get account by ID.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        try:
            return Account.objects.get(id=account_id)
        except Account.DoesNotExist:
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": str(account_id)},
            )

    def list_accounts(self, include_inactive: bool = False) -> list[Account]:
        """Return accounts ordered by code (active only unless asked)."""
        queryset = Account.objects.all()
        if not include_inactive:
            queryset = queryset.filter(is_active=True)
        return list(queryset.order_by("code"))

    def deactivate_account(self, account_id: uuid.UUID) -> Account:
        """
        Mark an account inactive.

        History is preserved; new postings against the account are refused.

        Raises:
            AccountNotFound: If account doesn't exist
            ProtectedAccountError: If the account is a system account
        """
        account = self.get_account(account_id)
        if account.is_system_account:
            raise ProtectedAccountError(
                f"System account {account.code} cannot be deactivated",
                details={"account_code": account.code},
            )
        account.is_active = False
        account.save(update_fields=["is_active", "updated_at"])
        logger.info(
            f"Deactivated account {account.code}",
            extra={"account_code": account.code},
        )
        return account

    def reactivate_account(self, account_id: uuid.UUID) -> Account:
        """
        Reactivate a previously deactivated account.

        Raises:
            AccountNotFound: If account doesn't exist
        """
        account = self.get_account(account_id)
        account.is_active = True
        account.save(update_fields=["is_active", "updated_at"])
        return account
