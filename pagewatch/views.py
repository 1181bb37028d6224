"""
PageWatch views.

Includes health check endpoint for monitoring and load balancer checks.
"""

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse

from pagewatch.models import CrawlRun, CrawlTrigger

logger = logging.getLogger(__name__)


def get_redis_connection():
    """
    Get Redis connection for health check.

    Returns:
        Redis client if reachable, None if not.
    """
    from pagewatch.monitoring.crawl_volume import _get_redis_client

    return _get_redis_client()


def get_celery_worker_count():
    """
    Get the count of active Celery workers.

    Returns:
        int: Number of active workers, 0 if Celery not available.
    """
    try:
        from config.celery import app as celery_app

        inspect = celery_app.control.inspect(timeout=1.0)
        active = inspect.active()
        if active:
            return len(active)
        return 0
    except Exception as e:
        logger.debug(f"Celery inspect failed: {e}")
        return 0


def health_check(request):
    """
    Health check endpoint for PageWatch.

    Endpoint: GET /api/health/
    No authentication required (for load balancer checks).

    Response fields:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "error"
        - redis: "connected" or "unavailable"
        - celery_workers: integer count of active workers
        - last_tick: ISO timestamp of the last completed scheduled tick
        - last_tick_summary: counters from that tick

    Returns:
        JsonResponse: HTTP 200 for healthy, HTTP 503 for unhealthy
    """
    status = "healthy"
    http_status = 200

    database_status = "connected"
    try:
        connection.ensure_connection()
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        database_status = "error"
        status = "unhealthy"
        http_status = 503

    # Redis only backs the crawl volume counter, which falls back to the DB
    redis_status = "connected" if get_redis_connection() is not None else "unavailable"

    celery_workers = get_celery_worker_count()

    last_tick = None
    last_tick_summary = None
    if database_status == "connected":
        try:
            run = (
                CrawlRun.objects.filter(trigger=CrawlTrigger.SCHEDULED, completed_at__isnull=False)
                .order_by("-completed_at")
                .first()
            )
            if run is not None:
                last_tick = run.completed_at.isoformat()
                last_tick_summary = run.summary
        except DatabaseError as e:
            logger.warning(f"Health check could not read crawl runs: {e}")

    response_data = {
        "status": status,
        "database": database_status,
        "redis": redis_status,
        "celery_workers": celery_workers,
        "last_tick": last_tick,
        "last_tick_summary": last_tick_summary,
    }

    return JsonResponse(response_data, status=http_status)
