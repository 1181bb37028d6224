"""
Tenant quota management.

Enforces per-tenant daily limits by plan tier. Counters live on the Tenant
row and roll over when the UTC date changes.

Limits:
- free: 1 active target, 1 scheduled crawl/day, 1 manual check/day
- pro: 25 active targets, 50 scheduled crawls/day, 5 manual checks/day
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from typing import Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from pagewatch.models import PlanTier, Tenant, TargetStatus

logger = logging.getLogger(__name__)

QUOTA_LIMITS = {
    PlanTier.FREE: {
        "max_active_targets": 1,
        "scheduled_crawls_per_day": 1,
        "manual_checks_per_day": 1,
    },
    PlanTier.PRO: {
        "max_active_targets": 25,
        "scheduled_crawls_per_day": 50,
        "manual_checks_per_day": 5,
    },
}


@dataclass
class QuotaCheckResult:
    """Outcome of a quota check; denial reasons are display-ready."""

    allowed: bool
    reason: Optional[str] = None
    upgrade_prompt: bool = False


def get_limits(plan: str) -> dict:
    return QUOTA_LIMITS.get(plan, QUOTA_LIMITS[PlanTier.FREE])


def _utc_date(value: datetime):
    return value.astimezone(dt_timezone.utc).date()


def ensure_quota_reset(tenant: Tenant, now: Optional[datetime] = None) -> bool:
    """
    Zero the daily counters if the last reset was on an earlier UTC day.

    Returns:
        True if the counters were reset
    """
    now = now or timezone.now()
    if tenant.last_quota_reset and _utc_date(tenant.last_quota_reset) == _utc_date(now):
        return False

    tenant.crawls_today = 0
    tenant.manual_checks_today = 0
    tenant.last_quota_reset = now
    tenant.save(update_fields=["crawls_today", "manual_checks_today", "last_quota_reset"])

    logger.debug("Reset daily quotas for tenant %s", tenant.id)
    return True


def can_scheduled_crawl(tenant: Tenant) -> QuotaCheckResult:
    """Check whether the tenant has scheduled crawls left today."""
    limits = get_limits(tenant.plan)

    if tenant.crawls_today >= limits["scheduled_crawls_per_day"]:
        return QuotaCheckResult(
            allowed=False,
            reason="Daily crawl limit reached",
            upgrade_prompt=tenant.plan == PlanTier.FREE,
        )

    return QuotaCheckResult(allowed=True)


def can_manual_check(tenant: Tenant) -> QuotaCheckResult:
    """Check whether the tenant has manual checks left today."""
    limits = get_limits(tenant.plan)

    if tenant.manual_checks_today >= limits["manual_checks_per_day"]:
        return QuotaCheckResult(
            allowed=False,
            reason="You've reached today's manual check limit. We'll check again tomorrow.",
            upgrade_prompt=tenant.plan == PlanTier.FREE,
        )

    return QuotaCheckResult(allowed=True)


def can_add_target(tenant: Tenant) -> QuotaCheckResult:
    """Check whether the tenant may add another active target."""
    limits = get_limits(tenant.plan)
    active = tenant.targets.filter(status=TargetStatus.ACTIVE).count()

    if active >= limits["max_active_targets"]:
        if tenant.plan == PlanTier.FREE:
            return QuotaCheckResult(
                allowed=False,
                reason="Free plan limited to 1 competitor. Upgrade to Pro for unlimited.",
                upgrade_prompt=True,
            )
        return QuotaCheckResult(
            allowed=False,
            reason="You've reached the maximum pages. Contact us if you need more.",
        )

    return QuotaCheckResult(allowed=True)


def _increment(tenant: Tenant, field_name: str) -> Tenant:
    with transaction.atomic():
        ensure_quota_reset(tenant)
        Tenant.objects.filter(pk=tenant.pk).update(**{field_name: F(field_name) + 1})
    tenant.refresh_from_db(fields=["crawls_today", "manual_checks_today", "last_quota_reset"])
    return tenant


def increment_crawls(tenant: Tenant) -> Tenant:
    """Count one scheduled crawl against today's quota."""
    return _increment(tenant, "crawls_today")


def increment_manual_checks(tenant: Tenant) -> Tenant:
    """Count one manual check against today's quota."""
    return _increment(tenant, "manual_checks_today")


def reset_all_quotas(now: Optional[datetime] = None) -> int:
    """
    Reset daily counters for every tenant not yet reset today.

    Returns:
        Number of tenants reset
    """
    now = now or timezone.now()
    day_start = now.astimezone(dt_timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)

    count = Tenant.objects.filter(last_quota_reset__lt=day_start).update(
        crawls_today=0,
        manual_checks_today=0,
        last_quota_reset=now,
    )
    logger.info("Reset daily quotas for %d tenants", count)
    return count
