"""
Ledger app configuration.

This app provides the double-entry ledger: chart of accounts, balanced
transactions, derived balances and the trial-balance audit.
"""

from django.apps import AppConfig


class LedgerConfig(AppConfig):
    """Configuration for the ledger application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger"
    verbose_name = "Ledger"
