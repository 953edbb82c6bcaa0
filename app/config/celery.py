"""
Celery configuration for the Django application.

Celery runs the background side of the donation workflow:
- Retrying ledger postings that failed after a donation was verified
  (``donations.tasks.retry_ledger_postings``, scheduled by celery-beat)
- Posting a single donation on demand (``donations.tasks.post_donation_to_ledger``)

Redis is both the message broker and result backend. Tasks are
auto-discovered from all installed Django apps.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
