"""
Celery tasks for the donation workflow.

This module provides async tasks for:
- Posting a single verified donation to the ledger
- Periodically retrying queued ledger postings

Usage:
    from donations.tasks import post_donation_to_ledger

    # Queue a posting for one donation
    post_donation_to_ledger.delay(str(donation.id))

    # Retry everything still pending (typically via celery-beat)
    from donations.tasks import retry_ledger_postings
    retry_ledger_postings.delay()
"""

from __future__ import annotations

import logging
from uuid import UUID

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def post_donation_to_ledger(donation_id: str) -> dict:
    """
    Post one verified donation's receipt to the ledger.

    Idempotent: a donation that is already posted is left alone.

    Args:
        donation_id: UUID of the Donation

    Returns:
        Dict with the result status and the transaction code when posted
    """
    from donations.services import donations

    result = donations.post_donation_to_ledger(UUID(str(donation_id)))
    if result.success:
        return {"status": result.status, "transaction_code": result.data.code}
    return {"status": result.status, "error_code": result.error_code}


@shared_task
def retry_ledger_postings() -> dict:
    """
    Periodic task to retry pending ledger postings.

    Postings that reach LEDGER_POSTING_MAX_ATTEMPTS are marked failed
    and left for manual reconciliation.

    This task is scheduled via celery-beat (see CELERY_BEAT_SCHEDULE).

    Returns:
        Dict with counts of posted, failed and skipped postings
    """
    from donations.services import donations

    counts = donations.retry_pending_postings()
    logger.info(
        f"Retried ledger postings: {counts['posted']} posted, {counts['failed']} failed",
        extra=counts,
    )
    return counts
