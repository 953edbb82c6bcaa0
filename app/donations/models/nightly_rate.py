"""
NightlyRate model.

Negotiated per-night rate at one location of a charity. Read-only input
for the nights-funded calculation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.db import models
from django.db.models import Q

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel

if TYPE_CHECKING:
    from datetime import date


class NightlyRateQuerySet(models.QuerySet):
    def active_on(self, day: date) -> NightlyRateQuerySet:
        """Rates with effective_date <= day and no end date or end_date >= day."""
        return self.filter(effective_date__lte=day).filter(
            Q(end_date__isnull=True) | Q(end_date__gte=day)
        )

    def for_charity(self, charity_id: int) -> NightlyRateQuerySet:
        return self.filter(charity_id=charity_id)


class NightlyRate(UUIDPrimaryKeyMixin, BaseModel):
    """
    A location's nightly rate over a date range.

    Fields:
        location_id: Location the rate applies to
        charity_id: Charity that negotiated it
        rate: Price per night
        effective_date: First day the rate applies
        end_date: Last day it applies (open-ended when null)
    """

    location_id = models.PositiveBigIntegerField(db_index=True)
    charity_id = models.PositiveBigIntegerField(db_index=True)
    rate = models.DecimalField(max_digits=10, decimal_places=2)
    effective_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)
    notes = models.TextField(blank=True, default="")

    objects = NightlyRateQuerySet.as_manager()

    class Meta:
        ordering = ["location_id", "-effective_date"]
        indexes = [
            models.Index(
                fields=["charity_id", "effective_date"],
                name="donations_n_charity_9e5b12_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(rate__gt=0),
                name="nightly_rate_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"NightlyRate(location={self.location_id}, {self.rate} from {self.effective_date})"

    def is_active_on(self, day: date) -> bool:
        if self.effective_date > day:
            return False
        return self.end_date is None or day <= self.end_date
