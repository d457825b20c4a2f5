import time
import logging
from django.http import JsonResponse
from django.db import connection
from django.core.cache import cache

logger = logging.getLogger(__name__)

def health_check(request):
    """
    Liveness Probe.
    Returns 200 if DB/cache are up.
    Returns 503 ONLY if critical infrastructure is unreachable.
    """
    status_data = {
        "status": "ok",
        "services": {"db": "ok", "cache": "ok", "beat": "ok"}
    }

    # 1. Database holds every offer and assignment (Critical)
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except Exception as e:
        logger.critical(f"Health Check DB Fail: {e}")
        status_data["status"] = "error"
        status_data["services"]["db"] = "unreachable"
        return JsonResponse(status_data, status=503)

    # 2. Cache backs throttling and token revocation (Critical)
    try:
        cache.set("health_ping", "pong", timeout=5)
        if cache.get("health_ping") != "pong":
            raise RuntimeError("Cache R/W mismatch")
    except Exception as e:
        logger.critical(f"Health Check Cache Fail: {e}")
        status_data["status"] = "error"
        status_data["services"]["cache"] = "unreachable"
        return JsonResponse(status_data, status=503)

    # 3. Beat only drives SLA monitoring, so a stale heartbeat degrades
    # the status without failing the probe.
    last_beat = cache.get("celery_beat_health")
    if last_beat is None:
        status_data["services"]["beat"] = "warming_up"
    elif time.time() - float(last_beat) > 90:
        status_data["services"]["beat"] = "stuck"
        status_data["status"] = "degraded"

    return JsonResponse(status_data, status=200)
