"""
Abuse guardrails wired to the database.

Gathers the aggregate counts each predicate in pagewatch.guardrails.abuse
needs and combines the results into the most restrictive flag.

Applied:
- scheduled tick, per tick: global_throttle
- scheduled tick, per target: page_hoarding (tenant), volatile_page (target)
- manual check: manual_spam, global_throttle, page_hoarding, volatile_page
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from django.utils import timezone

from pagewatch.guardrails import abuse
from pagewatch.guardrails.abuse import AbuseDetectionResult
from pagewatch.models import Alert, Snapshot
from pagewatch.monitoring import get_crawl_volume_counter

logger = logging.getLogger(__name__)


def check_page_hoarding(tenant, now: Optional[datetime] = None) -> AbuseDetectionResult:
    """Run the hoarding check against a tenant's targets and alert history."""
    now = now or timezone.now()
    targets = tenant.targets.all()

    return abuse.detect_page_hoarding(
        targets_added_24h=targets.filter(created_at__gte=now - timedelta(hours=24)).count(),
        meaningful_alerts=Alert.objects.filter(target__tenant=tenant, is_meaningful=True).count(),
        total_targets=targets.count(),
    )


def check_volatile_page(target) -> AbuseDetectionResult:
    """Run the volatility check over the target's recent snapshots."""
    recent = list(
        Snapshot.objects.filter(target=target)
        .order_by("-created_at")
        .values_list("fingerprint", "created_at")[: abuse.VOLATILE_WINDOW]
    )
    if not recent:
        return abuse.NOT_FLAGGED

    window_start = recent[-1][1]
    meaningful_alerts = Alert.objects.filter(
        target=target,
        is_meaningful=True,
        created_at__gte=window_start,
    ).count()

    return abuse.detect_volatile_page(
        recent_fingerprints=[fingerprint for fingerprint, _ in recent],
        meaningful_alerts=meaningful_alerts,
    )


def check_global_throttle(counter=None) -> AbuseDetectionResult:
    """Run the global circuit breaker against today's crawl volume."""
    counter = counter or get_crawl_volume_counter()
    return abuse.check_global_throttle(counter.get_today_count())


def check_manual_spam(tenant) -> AbuseDetectionResult:
    return abuse.detect_manual_spam(tenant.manual_checks_today, tenant.plan)


def run_target_checks(target) -> Optional[AbuseDetectionResult]:
    """
    Per-target checks for a scheduled tick.

    Returns:
        The most restrictive flagged result, or None
    """
    results: List[AbuseDetectionResult] = [
        check_page_hoarding(target.tenant),
        check_volatile_page(target),
    ]
    return abuse.most_restrictive(results)


def run_manual_checks(target, counter=None) -> Optional[AbuseDetectionResult]:
    """
    All checks that apply to a manual "check now".

    Returns:
        The most restrictive flagged result, or None
    """
    results: List[AbuseDetectionResult] = [
        check_manual_spam(target.tenant),
        check_global_throttle(counter),
        check_page_hoarding(target.tenant),
        check_volatile_page(target),
    ]
    flagged = abuse.most_restrictive(results)
    if flagged is not None:
        logger.info(
            "Manual check on target %s flagged %s (%s)", target.id, flagged.flag, flagged.action
        )
    return flagged
