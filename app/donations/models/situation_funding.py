"""
SituationFunding model.

Bridges a Donation and an anonymized situation: how many of the
donation's nights (and how much of its money) were committed to that
situation, and how many of those nights have been used.
"""

from __future__ import annotations

from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel


class SituationFunding(UUIDPrimaryKeyMixin, BaseModel):
    """
    Nights and money from one donation committed to one situation.

    Fields:
        donation: Source donation
        situation_id: Anonymized situation identifier
        charity_id: Charity of both the donation and the situation
        amount_allocated / nights_allocated: What was committed
        nights_used: Only ever increases; never above nights_allocated
        usage_explanation: Append-only log of usage notes
        ledger_transaction: FUND_ALLOCATED posting
        deallocation_transaction / deallocated_at: Set when the
            allocation was returned to the charity fund (refunds)
    """

    donation = models.ForeignKey(
        "donations.Donation",
        on_delete=models.PROTECT,
        related_name="fundings",
    )
    situation_id = models.PositiveBigIntegerField(db_index=True)
    charity_id = models.PositiveBigIntegerField(db_index=True)

    amount_allocated = models.DecimalField(max_digits=15, decimal_places=2)
    nights_allocated = models.PositiveIntegerField()
    nights_used = models.PositiveIntegerField(default=0)

    allocated_at = models.DateTimeField(default=timezone.now)
    allocated_by = models.CharField(max_length=255, null=True, blank=True)
    usage_explanation = models.TextField(blank=True, default="")

    ledger_transaction = models.ForeignKey(
        "ledger.LedgerTransaction",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )
    deallocation_transaction = models.ForeignKey(
        "ledger.LedgerTransaction",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
    )
    deallocated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["allocated_at"]
        indexes = [
            models.Index(
                fields=["donation", "deallocated_at"],
                name="donations_s_donatio_7c2d41_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(nights_used__lte=F("nights_allocated")),
                name="funding_used_within_allocated",
            ),
            models.CheckConstraint(
                condition=Q(nights_allocated__gt=0),
                name="funding_nights_positive",
            ),
            models.CheckConstraint(
                condition=Q(amount_allocated__gt=0),
                name="funding_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return (
            f"SituationFunding(situation={self.situation_id}, "
            f"{self.nights_used}/{self.nights_allocated} nights)"
        )

    @property
    def nights_remaining(self) -> int:
        return self.nights_allocated - self.nights_used

    @property
    def is_active(self) -> bool:
        """False once the allocation was returned to the charity fund."""
        return self.deallocated_at is None

    def append_usage(self, nights: int, explanation: str) -> None:
        """
        Add used nights and log the explanation. Does not save.

        Each log line reads "<timestamp> +<nights>: <explanation>", or
        "<timestamp> +<nights>" when there is no explanation.
        """
        self.nights_used += nights
        line = f"{timezone.now():%Y-%m-%d %H:%M} +{nights}"
        if explanation:
            line = f"{line}: {explanation}"
        if self.usage_explanation:
            self.usage_explanation = f"{self.usage_explanation}\n{line}"
        else:
            self.usage_explanation = line
