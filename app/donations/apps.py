"""
Donations app configuration.

This app provides the donation workflow around the ledger:
- Donation intake, verification, rejection and refund
- Fee and nights-funded calculation
- Allocation of funded nights to anonymized situations
- Outbox and retry task for ledger postings
"""

from django.apps import AppConfig


class DonationsConfig(AppConfig):
    """Configuration for the donations application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "donations"
    verbose_name = "Donations"

    def ready(self):
        """
        Import signals when the app is ready.

        This ensures signal handlers are connected.
        """
        from donations import signals  # noqa: F401
