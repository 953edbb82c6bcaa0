"""
State enums for donation models.

This module defines all state enums used by donation models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Donation Status:
    pending → verified → allocated → partially_used → fully_used
    pending → cancelled (rejection)
    verified/allocated → cancelled (refund)

Verification Status (independent of the lifecycle):
    pending → verified
    pending → rejected

Ledger Posting (outbox):
    pending → posted
    pending → failed (attempts exhausted)
"""

from django.db import models


class DonationStatus(models.TextChoices):
    """
    States for the Donation lifecycle.

    Terminal states: FULLY_USED, CANCELLED

    State Flow:
        PENDING → VERIFIED → ALLOCATED → PARTIALLY_USED → FULLY_USED

    Cancellation Flow:
        PENDING → CANCELLED (rejected during verification)
        VERIFIED → CANCELLED (refunded)
        ALLOCATED → CANCELLED (refunded after its allocations were returned)
    """

    PENDING = "pending", "Pending"
    VERIFIED = "verified", "Verified"
    ALLOCATED = "allocated", "Allocated"
    PARTIALLY_USED = "partially_used", "Partially Used"
    FULLY_USED = "fully_used", "Fully Used"
    CANCELLED = "cancelled", "Cancelled"


class VerificationStatus(models.TextChoices):
    """Whether staff confirmed the money actually arrived."""

    PENDING = "pending", "Pending"
    VERIFIED = "verified", "Verified"
    REJECTED = "rejected", "Rejected"


class LedgerPostingStatus(models.TextChoices):
    """
    States for a queued ledger posting.

    PENDING: Not posted yet; the retry task will try again
    POSTED: The ledger transaction exists
    FAILED: Attempts exhausted; needs manual reconciliation
    """

    PENDING = "pending", "Pending"
    POSTED = "posted", "Posted"
    FAILED = "failed", "Failed"


class LedgerPostingOperation(models.TextChoices):
    """Ledger operations that can be queued for retry."""

    DONATION_RECEIVED = "donation_received", "Donation Received"
