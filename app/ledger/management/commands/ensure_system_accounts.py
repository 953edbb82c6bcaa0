"""
Create the well-known ledger accounts if they are missing.

Run at deploy time:
    python manage.py ensure_system_accounts
"""

from django.core.management.base import BaseCommand

from ledger.services import chart


class Command(BaseCommand):
    help = "Create missing system ledger accounts (idempotent)."

    def handle(self, *args, **options):
        created = chart.ensure_system_accounts()
        if not created:
            self.stdout.write("System accounts already present.")
            return
        for account in created:
            self.stdout.write(self.style.SUCCESS(f"Created {account}"))
