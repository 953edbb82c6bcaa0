"""
Django signals for the donations app.

This module defines signal handlers for:
- Dropping cached nightly rates when a rate is saved or deleted

Related files:
    - services/fees.py: Rate cache and nights calculation
    - apps.py: Signal import in ready()
"""

import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from donations.services.fees import invalidate_rate_cache

logger = logging.getLogger(__name__)


@receiver(post_save, sender="donations.NightlyRate")
@receiver(post_delete, sender="donations.NightlyRate")
def invalidate_nightly_rate_cache(sender, instance, **kwargs):
    """
    Drop today's cached rates for the rate's charity.

    Args:
        sender: The NightlyRate model class
        instance: The NightlyRate that changed
        **kwargs: Additional signal arguments
    """
    invalidate_rate_cache(instance.charity_id)
    logger.debug(
        f"Nightly rate cache dropped for charity {instance.charity_id}",
        extra={"charity_id": instance.charity_id},
    )
