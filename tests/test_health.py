"""
Tests for the health check endpoint.
"""

from unittest.mock import MagicMock, patch

import pytest


@pytest.mark.django_db
class TestHealthCheck:
    """Tests for GET /api/health/."""

    def test_healthy_without_redis_or_workers(self, client):
        with patch("pagewatch.views.get_redis_connection", return_value=None), \
                patch("pagewatch.views.get_celery_worker_count", return_value=0):
            response = client.get("/api/health/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "connected"
        assert data["redis"] == "unavailable"
        assert data["celery_workers"] == 0
        assert data["last_tick"] is None

    def test_reports_redis_and_workers(self, client):
        with patch("pagewatch.views.get_redis_connection", return_value=MagicMock()), \
                patch("pagewatch.views.get_celery_worker_count", return_value=2):
            data = client.get("/api/health/").json()

        assert data["redis"] == "connected"
        assert data["celery_workers"] == 2

    def test_last_scheduled_tick(self, client):
        from datetime import timedelta

        from django.utils import timezone

        from pagewatch.models import CrawlRun, CrawlRunStatus, CrawlTrigger

        finished = timezone.now() - timedelta(minutes=5)
        CrawlRun.objects.create(
            trigger=CrawlTrigger.SCHEDULED,
            status=CrawlRunStatus.COMPLETED,
            completed_at=finished - timedelta(hours=1),
            summary={"processed": 1},
        )
        CrawlRun.objects.create(
            trigger=CrawlTrigger.SCHEDULED,
            status=CrawlRunStatus.COMPLETED,
            completed_at=finished,
            summary={"processed": 4, "alerts_created": 1},
        )
        CrawlRun.objects.create(
            trigger=CrawlTrigger.MANUAL,
            status=CrawlRunStatus.COMPLETED,
            completed_at=timezone.now(),
            summary={"processed": 1},
        )

        with patch("pagewatch.views.get_redis_connection", return_value=None), \
                patch("pagewatch.views.get_celery_worker_count", return_value=0):
            data = client.get("/api/health/").json()

        assert data["last_tick"] == finished.isoformat()
        assert data["last_tick_summary"] == {"processed": 4, "alerts_created": 1}

    def test_database_down_is_unhealthy(self, client):
        from django.db import DatabaseError

        broken = MagicMock()
        broken.ensure_connection.side_effect = DatabaseError("connection refused")

        with patch("pagewatch.views.connection", broken), \
                patch("pagewatch.views.get_redis_connection", return_value=None), \
                patch("pagewatch.views.get_celery_worker_count", return_value=0):
            response = client.get("/api/health/")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "unhealthy"
        assert data["database"] == "error"
        assert data["last_tick"] is None

    def test_no_authentication_required(self, client):
        with patch("pagewatch.views.get_redis_connection", return_value=None), \
                patch("pagewatch.views.get_celery_worker_count", return_value=0):
            response = client.get("/api/health/")

        assert response.status_code == 200
