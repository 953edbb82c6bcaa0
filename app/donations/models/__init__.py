"""
Donation domain models.

This module contains all donation-related models:
- Donation: Money given to a charity, with its fee split and lifecycle
- SituationFunding: Nights from a donation committed to a situation
- NightlyRate: Per-location rate used to compute nights funded
- SituationRef: Situation-to-charity mapping published by the redaction layer
- LedgerPosting: Outbox row for ledger postings retried in the background
"""

from donations.models.donation import Donation
from donations.models.ledger_posting import LedgerPosting
from donations.models.nightly_rate import NightlyRate
from donations.models.situation_funding import SituationFunding
from donations.models.situation_ref import SituationRef

__all__ = [
    "Donation",
    "LedgerPosting",
    "NightlyRate",
    "SituationFunding",
    "SituationRef",
]
