"""
SituationRef model.

The only view of a situation the donations app gets: its identifier and
its charity. Rows are published by the redaction layer; no beneficiary
data is stored here.
"""

from django.db import models
from django.utils import timezone


class SituationRef(models.Model):
    situation_id = models.PositiveBigIntegerField(unique=True)
    charity_id = models.PositiveBigIntegerField(db_index=True)
    published_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["situation_id"]

    def __str__(self) -> str:
        return f"Situation {self.situation_id} (charity {self.charity_id})"
