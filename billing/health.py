"""Health check endpoints for load balancers and orchestration."""

import os
import time
from typing import Any, Dict

from django.conf import settings
from django.db import connections
from django.db.utils import OperationalError
from django.http import JsonResponse
from django.utils import timezone

APP_VERSION = os.environ.get("APP_VERSION", "1.0.0")
APP_START_TIME = time.time()


def _get_uptime_formatted() -> Dict[str, Any]:
    """Get uptime in human-readable format and raw seconds."""
    uptime_seconds = int(time.time() - APP_START_TIME)
    days, remainder = divmod(uptime_seconds, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")

    return {"seconds": uptime_seconds, "formatted": " ".join(parts)}


def _no_cache(response: JsonResponse) -> JsonResponse:
    # Stale health responses cause false failures
    response["Cache-Control"] = "no-cache, no-store, must-revalidate, max-age=0"
    response["Pragma"] = "no-cache"
    return response


def liveness_check(request):
    """Returns 200 while the process is responsive. Does not touch the database."""
    return _no_cache(
        JsonResponse(
            {
                "status": "healthy",
                "version": APP_VERSION,
                "environment": "development" if settings.DEBUG else "production",
                "timestamp": timezone.now().isoformat(),
                "uptime": _get_uptime_formatted(),
            }
        )
    )


def readiness_check(request):
    """Readiness check - checks database connectivity."""
    start = time.perf_counter()
    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except OperationalError:
        return _no_cache(JsonResponse({"status": "not_ready", "database": "down"}, status=503))

    return _no_cache(
        JsonResponse(
            {
                "status": "ready",
                "database": "up",
                "database_latency_ms": round((time.perf_counter() - start) * 1000, 2),
            }
        )
    )
