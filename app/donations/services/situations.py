"""
Situation lookup.

The allocation engine never sees beneficiary records; it only asks which
charity a situation belongs to.

Usage:
    from donations.services.situations import OrmSituationDirectory

    directory = OrmSituationDirectory()
    directory.charity_for(situation_id=17)  # 42, or None if unknown

    class InMemoryDirectory:
        def __init__(self, mapping): self.mapping = mapping
        def charity_for(self, situation_id): return self.mapping.get(situation_id)

    # InMemoryDirectory is a valid SituationDirectory (duck typing)
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from donations.models import SituationRef


@runtime_checkable
class SituationDirectory(Protocol):
    """Resolves a situation identifier to its owning charity."""

    def charity_for(self, situation_id: int) -> int | None:
        """
        Return the charity id of the situation.

        Returns:
            The charity id, or None when the situation is unknown
        """
        ...


class OrmSituationDirectory:
    """Reads the SituationRef table published by the redaction layer."""

    def charity_for(self, situation_id: int) -> int | None:
        return (
            SituationRef.objects.filter(situation_id=situation_id)
            .values_list("charity_id", flat=True)
            .first()
        )
