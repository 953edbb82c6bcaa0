"""
State machine enums for donation models.

This module defines the state enums used by donation models with django-fsm.
"""

from donations.state_machines.states import (
    DonationStatus,
    LedgerPostingOperation,
    LedgerPostingStatus,
    VerificationStatus,
)

__all__ = [
    "DonationStatus",
    "LedgerPostingOperation",
    "LedgerPostingStatus",
    "VerificationStatus",
]
