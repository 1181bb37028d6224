"""
Tests for the retention sweeper.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest


@pytest.fixture
def aged_history(tenant, target, make_snapshot):
    """Two old and one fresh snapshot, with an alert linking them."""
    from django.utils import timezone

    from pagewatch.models import Alert

    old_a = make_snapshot(target, text="pro plan $39/mo", age=timedelta(days=20))
    old_b = make_snapshot(target, text="pro plan $49/mo", age=timedelta(days=10))
    fresh = make_snapshot(target, text="pro plan $59/mo", age=timedelta(days=1))
    Alert.objects.create(
        target=target,
        previous_snapshot=old_a,
        current_snapshot=old_b,
        severity="high",
        summary="Pricing updated: Pro:$39→$49",
        created_at=timezone.now() - timedelta(days=10),
    )
    Alert.objects.create(
        target=target,
        previous_snapshot=old_b,
        current_snapshot=fresh,
        severity="high",
        summary="Pricing updated: Pro:$49→$59",
        created_at=timezone.now() - timedelta(days=1),
    )
    return fresh


@pytest.mark.django_db
class TestRetentionSweeper:
    """Tests for RetentionSweeper.run()."""

    def test_free_tenant_history_pruned(self, aged_history, target):
        from pagewatch.models import Alert, Snapshot
        from pagewatch.services.retention import RetentionSweeper

        result = RetentionSweeper().run()

        assert result.success is True
        assert result.total_deleted == 3
        assert result.tenants_affected == 1
        assert result.details[0].snapshots_deleted == 2
        assert result.details[0].alerts_deleted == 1

        assert list(Snapshot.objects.filter(target=target)) == [aged_history]
        remaining = Alert.objects.get(target=target)
        assert remaining.current_snapshot == aged_history
        assert remaining.previous_snapshot is None

    def test_dry_run_deletes_nothing(self, aged_history, target):
        from pagewatch.models import Snapshot
        from pagewatch.services.retention import RetentionSweeper

        result = RetentionSweeper(dry_run=True).run()

        assert result.dry_run is True
        assert result.total_deleted == 3
        assert Snapshot.objects.filter(target=target).count() == 3

    def test_newest_snapshot_kept_even_when_stale(self, target, make_snapshot):
        from pagewatch.models import Snapshot
        from pagewatch.services.retention import RetentionSweeper

        baseline = make_snapshot(target, text="pro plan $49/mo", age=timedelta(days=30))

        result = RetentionSweeper().run()

        assert result.total_deleted == 0
        assert list(Snapshot.objects.filter(target=target)) == [baseline]

    def test_pro_tenant_unlimited(self, pro_tenant, make_snapshot):
        from pagewatch.models import Snapshot, Target
        from pagewatch.services.retention import RetentionSweeper

        target = Target.objects.create(tenant=pro_tenant, url="https://globex.example.com/pricing")
        make_snapshot(target, age=timedelta(days=400))

        result = RetentionSweeper().run()

        assert result.total_deleted == 0
        assert Snapshot.objects.filter(target=target).count() == 1

    def test_tenant_without_targets(self, tenant):
        from pagewatch.services.retention import RetentionSweeper

        result = RetentionSweeper().run()

        assert result.success is True
        assert result.tenants_affected == 0

    def test_retention_window_from_settings(self, settings, aged_history):
        from pagewatch.services.retention import RetentionSweeper

        settings.PAGEWATCH_RETENTION_DAYS = {"free": 30, "pro": None}

        assert RetentionSweeper().run().total_deleted == 0

    def test_unknown_plan_gets_fallback_window(self):
        from pagewatch.services.retention import get_retention_days

        assert get_retention_days("legacy") == 7

    def test_tenant_failure_does_not_stop_sweep(self, aged_history, pro_tenant):
        from django.db import DatabaseError

        from pagewatch.services.retention import RetentionSweeper

        sweeper = RetentionSweeper()
        with patch.object(sweeper, "sweep_tenant", side_effect=DatabaseError("deadlock")):
            result = sweeper.run()

        assert result.success is True
        assert result.tenants_failed == 1
        assert result.total_deleted == 0

    def test_tenant_listing_failure_aborts(self):
        from django.db import DatabaseError

        from pagewatch.services.retention import RetentionSweeper

        with patch("pagewatch.services.retention.Tenant.objects.only", side_effect=DatabaseError("down")):
            result = RetentionSweeper().run()

        assert result.success is False
        assert result.error == "Failed to fetch tenants"
        assert result.to_dict()["error"] == "Failed to fetch tenants"
