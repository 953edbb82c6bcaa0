"""
Pytest fixtures for donation tests.

Fixtures provide donations in various states, seeded ledger accounts
and published situations for allocation tests.

Usage:
    def test_allocate(posted_donation, situation):
        result = allocation.allocate(posted_donation.id, situation.situation_id, 4,
                                     Decimal("600.00"))
        assert result.success
"""

from decimal import Decimal

import pytest

from donations.services import donations
from donations.state_machines import DonationStatus, VerificationStatus
from donations.tests.factories import (
    DonationFactory,
    NightlyRateFactory,
    SituationRefFactory,
)
from ledger.services import chart


# =============================================================================
# Ledger Fixtures
# =============================================================================


@pytest.fixture
def system_accounts(db):
    """Seed the chart of accounts."""
    chart.ensure_system_accounts()


# =============================================================================
# Rate and Situation Fixtures
# =============================================================================


@pytest.fixture
def nightly_rate(db):
    """A single 150.00 rate for charity 42, active since last month."""
    return NightlyRateFactory(charity_id=42, rate=Decimal("150.00"))


@pytest.fixture
def situation(db):
    """Situation 17, published for charity 42."""
    return SituationRefFactory(situation_id=17, charity_id=42)


@pytest.fixture
def other_charity_situation(db):
    """Situation 18, belonging to charity 99."""
    return SituationRefFactory(situation_id=18, charity_id=99)


# =============================================================================
# Donation State Fixtures
# =============================================================================


@pytest.fixture
def pending_donation(db):
    """A pending 1000.00 donation funding 6 nights."""
    return DonationFactory()


@pytest.fixture
def verified_donation(db):
    """A verified donation with no ledger posting."""
    return DonationFactory(
        status=DonationStatus.VERIFIED,
        verification_status=VerificationStatus.VERIFIED,
    )


@pytest.fixture
def posted_donation(system_accounts, nightly_rate):
    """
    A 1000.00 donation recorded, verified and posted through the service.

    Fees 70.00 / 30.00, net 900.00, 6 nights at 150.00.
    """
    result = donations.record_donation(
        donor_id=5, charity_id=42, gross_amount=Decimal("1000.00"), actor="staff:1"
    )
    verified = donations.verify_donation(result.data.id, actor="staff:1")
    assert verified.data.is_posted
    return verified.data
