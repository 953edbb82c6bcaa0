"""
Pytest fixtures for ledger tests.

Sections:
    - Account Fixtures: Seeded system accounts and charity fund accounts
    - Business Event Fixtures: Lightweight donation/funding stand-ins
"""

import uuid
from decimal import Decimal
from types import SimpleNamespace

import pytest

from ledger.services import chart
from ledger.services.accounts import SystemAccountCode


# ==========================================================================
# Account Fixtures
# ==========================================================================


@pytest.fixture
def system_accounts(db):
    """Seed the chart of accounts and return accounts keyed by code."""
    chart.ensure_system_accounts()
    return {account.code: account for account in chart.list_accounts()}


@pytest.fixture
def cash_account(system_accounts):
    return system_accounts[SystemAccountCode.CASH]


@pytest.fixture
def allocated_account(system_accounts):
    return system_accounts[SystemAccountCode.ALLOCATED_FUNDS]


@pytest.fixture
def charity_id():
    return 42


@pytest.fixture
def charity_fund(system_accounts, charity_id):
    """The charity's fund account, created up front."""
    return chart.get_or_create_charity_fund_account(charity_id)


# ==========================================================================
# Business Event Fixtures
# ==========================================================================


@pytest.fixture
def make_donation(charity_id):
    """
    Build a donation-shaped object for the recorder.

    The recorder only reads a handful of attributes, so ledger tests do
    not need the donations app.
    """

    def _make(
        gross="1000.00",
        platform_fee="70.00",
        facilitator_fee="30.00",
        net="900.00",
        charity=None,
    ):
        return SimpleNamespace(
            id=uuid.uuid4(),
            donor_id=7,
            charity_id=charity if charity is not None else charity_id,
            gross_amount=Decimal(gross),
            platform_fee=Decimal(platform_fee),
            facilitator_fee=Decimal(facilitator_fee),
            net_amount=Decimal(net),
        )

    return _make


@pytest.fixture
def donation(make_donation):
    """A 1000.00 donation split 70 / 30 / 900."""
    return make_donation()


@pytest.fixture
def make_funding(charity_id):
    """Build a situation-funding-shaped object for the recorder."""

    def _make(amount="600.00", nights=4, situation_id=17, ledger_transaction_id=None):
        return SimpleNamespace(
            id=uuid.uuid4(),
            charity_id=charity_id,
            situation_id=situation_id,
            amount_allocated=Decimal(amount),
            nights_allocated=nights,
            ledger_transaction_id=ledger_transaction_id,
        )

    return _make
