"""
LedgerPosting model.

Outbox row for a ledger posting that must eventually happen. Donation
verification writes one in the same unit of work as the status change,
then tries to post. If the ledger is unavailable the verification still
stands and the retry task picks the row up later.

Usage:
    posting = LedgerPosting.objects.get(donation=donation)
    posting.is_posted
    posting.attempts, posting.last_error
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

from donations.state_machines import LedgerPostingOperation, LedgerPostingStatus


class LedgerPosting(UUIDPrimaryKeyMixin, BaseModel):
    """
    A queued ledger operation for one donation.

    Fields:
        donation: Donation to post
        operation: Which ledger operation to run
        status: pending / posted / failed
        attempts: Posting attempts made so far
        last_error: Error of the latest failed attempt
        actor: Who triggered the original operation
        ledger_transaction: Resulting transaction once posted
    """

    donation = models.ForeignKey(
        "donations.Donation",
        on_delete=models.PROTECT,
        related_name="ledger_postings",
    )
    operation = models.CharField(
        max_length=50,
        choices=LedgerPostingOperation.choices,
        default=LedgerPostingOperation.DONATION_RECEIVED,
    )
    status = models.CharField(
        max_length=20,
        choices=LedgerPostingStatus.choices,
        default=LedgerPostingStatus.PENDING,
        db_index=True,
    )
    attempts = models.PositiveSmallIntegerField(default=0)
    last_error = models.TextField(null=True, blank=True)
    last_attempt_at = models.DateTimeField(null=True, blank=True)
    posted_at = models.DateTimeField(null=True, blank=True)
    actor = models.CharField(max_length=255, null=True, blank=True)
    ledger_transaction = models.ForeignKey(
        "ledger.LedgerTransaction",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(
                fields=["status", "attempts"],
                name="donations_l_status_b4f8a3_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["donation", "operation"],
                name="ledger_posting_unique_operation",
            ),
        ]

    def __str__(self) -> str:
        return f"LedgerPosting({self.operation}, {self.status}, attempts={self.attempts})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_posted(self) -> bool:
        return self.status == LedgerPostingStatus.POSTED

    @property
    def is_pending(self) -> bool:
        return self.status == LedgerPostingStatus.PENDING

    def can_retry(self, max_attempts: int) -> bool:
        """Check if another attempt is allowed."""
        return self.is_pending and self.attempts < max_attempts

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_attempt(self) -> None:
        """
        Count a posting attempt.

        Note: Does not save - caller must save after calling.
        """
        self.attempts += 1
        self.last_attempt_at = timezone.now()

    def mark_posted(self, ledger_transaction) -> None:
        """
        Record a successful posting.

        Note: Does not save - caller must save after calling.
        """
        self.status = LedgerPostingStatus.POSTED
        self.posted_at = timezone.now()
        self.ledger_transaction = ledger_transaction
        self.last_error = None

    def mark_failed(self, error_message: str, max_attempts: int) -> None:
        """
        Record a failed attempt; give up once attempts are exhausted.

        Note: Does not save - caller must save after calling.
        """
        self.last_error = error_message
        if self.attempts >= max_attempts:
            self.status = LedgerPostingStatus.FAILED
