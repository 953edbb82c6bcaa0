"""
Donation services wired to the ledger.

Usage:
    from donations.services import allocation, donations, fees
"""

from ledger.services import balances, recorder

from .allocation import AllocationEngine
from .donation_service import DonationService
from .fees import FeeBreakdown, FeeCalculator
from .situations import OrmSituationDirectory, SituationDirectory

fees = FeeCalculator()
allocation = AllocationEngine(
    recorder=recorder,
    balances=balances,
    situations=OrmSituationDirectory(),
)
donations = DonationService(fees=fees, recorder=recorder)

__all__ = [
    "AllocationEngine",
    "DonationService",
    "FeeBreakdown",
    "FeeCalculator",
    "OrmSituationDirectory",
    "SituationDirectory",
    "allocation",
    "donations",
    "fees",
]
