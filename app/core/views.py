"""
Core views providing infrastructure endpoints.
"""

from django.db import connection
from django.http import JsonResponse

from ledger.models import Account
from ledger.services.accounts import SYSTEM_ACCOUNT_CODES


def health_check(request):
    """
    Health check endpoint for load balancers and orchestration.

    Reports database connectivity and whether the ledger's system
    accounts have been seeded (``manage.py ensure_system_accounts``).

    HTTP Status Codes:
        200: Database reachable and ledger ready
        503: Otherwise

    Example Response:
        {"status": "healthy", "database": "connected", "ledger": "ready"}
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "ledger": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        return JsonResponse(health_status, status=503)

    seeded = Account.objects.filter(code__in=SYSTEM_ACCOUNT_CODES).count()
    if seeded == len(SYSTEM_ACCOUNT_CODES):
        health_status["ledger"] = "ready"
    else:
        health_status["ledger"] = "missing_system_accounts"
        health_status["status"] = "unhealthy"
        is_healthy = False

    return JsonResponse(health_status, status=200 if is_healthy else 503)
