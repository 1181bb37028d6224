"""
Retention Sweeper.

Weekly cleanup of snapshot and alert history by plan:
- free: 7 days
- pro: unlimited (skipped)

Each target's newest snapshot is always kept: an unchanged page stores no
new snapshot, so the newest one is the baseline the next change is diffed
against, however old it is.

Failure to list tenants aborts the sweep with an error result. A failure
while deleting one tenant's history is logged and the sweep moves on.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from pagewatch.models import Alert, PlanTier, Snapshot, Tenant
from pagewatch.monitoring import capture_alert

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS: Dict[str, Optional[int]] = {
    PlanTier.FREE: 7,
    PlanTier.PRO: None,
}

# Plans missing from the retention table get the free window
FALLBACK_RETENTION_DAYS = 7


@dataclass
class TenantRetentionResult:
    """Deletions for one tenant."""

    tenant_id: str
    plan: str
    snapshots_deleted: int = 0
    alerts_deleted: int = 0

    @property
    def deleted(self) -> int:
        return self.snapshots_deleted + self.alerts_deleted


@dataclass
class RetentionResult:
    """Outcome of one sweep."""

    success: bool
    total_deleted: int = 0
    tenants_affected: int = 0
    tenants_failed: int = 0
    details: List[TenantRetentionResult] = field(default_factory=list)
    error: Optional[str] = None
    dry_run: bool = False

    def to_dict(self) -> dict:
        data = {
            "success": self.success,
            "total_deleted": self.total_deleted,
            "tenants_affected": self.tenants_affected,
            "tenants_failed": self.tenants_failed,
            "dry_run": self.dry_run,
        }
        if self.error:
            data["error"] = self.error
        return data


def get_retention_days(plan: str) -> Optional[int]:
    """Retention window in days for a plan; None means unlimited."""
    configured = getattr(settings, "PAGEWATCH_RETENTION_DAYS", DEFAULT_RETENTION_DAYS)
    if plan in configured:
        return configured[plan]
    return FALLBACK_RETENTION_DAYS


class RetentionSweeper:
    """Deletes history older than each tenant's plan allows."""

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run

    def run(self, now: Optional[datetime] = None) -> RetentionResult:
        """
        Sweep every tenant.

        Args:
            now: Reference time for cutoffs

        Returns:
            RetentionResult with totals and per-tenant details
        """
        now = now or timezone.now()
        logger.info("Starting retention sweep (dry_run=%s)", self.dry_run)

        try:
            tenants = list(Tenant.objects.only("id", "plan"))
        except DatabaseError as e:
            logger.error(f"Failed to fetch tenants for retention sweep: {e}")
            capture_alert(
                "Retention sweep aborted: failed to fetch tenants",
                level="error",
                alert_type="retention_sweep",
                extra_data={"error": str(e)},
            )
            return RetentionResult(success=False, error="Failed to fetch tenants", dry_run=self.dry_run)

        result = RetentionResult(success=True, dry_run=self.dry_run)

        for tenant in tenants:
            retention_days = get_retention_days(tenant.plan)
            if retention_days is None:
                continue

            cutoff = now - timedelta(days=retention_days)

            try:
                tenant_result = self.sweep_tenant(tenant, cutoff)
            except DatabaseError as e:
                result.tenants_failed += 1
                logger.error(f"Retention sweep failed for tenant {tenant.id}: {e}")
                continue

            if tenant_result.deleted > 0:
                result.total_deleted += tenant_result.deleted
                result.details.append(tenant_result)

        result.tenants_affected = len(result.details)

        logger.info(
            "Retention sweep complete: deleted=%d tenants_affected=%d tenants_failed=%d",
            result.total_deleted,
            result.tenants_affected,
            result.tenants_failed,
        )
        return result

    def sweep_tenant(self, tenant: Tenant, cutoff: datetime) -> TenantRetentionResult:
        """
        Delete one tenant's snapshots and alerts created before cutoff.

        A tenant without targets is a no-op. Each target's newest snapshot
        survives regardless of age.
        """
        tenant_result = TenantRetentionResult(tenant_id=str(tenant.id), plan=tenant.plan)

        target_ids = list(tenant.targets.values_list("id", flat=True))
        if not target_ids:
            return tenant_result

        alerts = Alert.objects.filter(target_id__in=target_ids, created_at__lt=cutoff)
        baseline_ids = []
        for target_id in target_ids:
            newest = (
                Snapshot.objects.filter(target_id=target_id)
                .order_by("-created_at")
                .values_list("id", flat=True)
                .first()
            )
            if newest is not None:
                baseline_ids.append(newest)

        snapshots = Snapshot.objects.filter(
            target_id__in=target_ids, created_at__lt=cutoff
        ).exclude(id__in=baseline_ids)

        if self.dry_run:
            tenant_result.alerts_deleted = alerts.count()
            tenant_result.snapshots_deleted = snapshots.count()
            return tenant_result

        # Alerts reference snapshots, delete them first
        with transaction.atomic():
            tenant_result.alerts_deleted, _ = alerts.delete()
            snapshot_count, _ = snapshots.delete()

        tenant_result.snapshots_deleted = snapshot_count
        return tenant_result
