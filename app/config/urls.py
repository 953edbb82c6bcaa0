"""
URL configuration for the Django application.

URL Structure:
    /admin/    - Django admin (accounts, transactions, donations, fundings)
    /health/   - Health check endpoint (database + ledger readiness)

For more information, see:
https://docs.djangoproject.com/en/5.2/topics/http/urls/
"""

from django.contrib import admin
from django.urls import path

from core.views import health_check

urlpatterns = [
    path("admin/", admin.site.urls),
    path("health/", health_check, name="health-check"),
]
