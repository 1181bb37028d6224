"""
Celery tasks for PageWatch.

Tasks:
- run_crawl_tick: Scheduled batch over all active targets (or a subset)
- check_target_now: Manual "check now" for one target
- run_retention_sweep: Weekly history cleanup by plan
- reset_daily_quotas: Zero daily tenant counters after UTC midnight
- purge_expired_leases: Drop target leases left behind by dead workers
"""

import asyncio
import logging
from typing import List, Optional

from celery import shared_task

logger = logging.getLogger(__name__)


def _run_async(coro):
    """Run a coroutine on a fresh event loop owned by this task."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()
        asyncio.set_event_loop(None)


@shared_task(name="pagewatch.tasks.run_crawl_tick", bind=True)
def run_crawl_tick(
    self,
    target_ids: Optional[List[str]] = None,
    concurrency: Optional[int] = None,
) -> dict:
    """
    Run one scheduled crawl tick.

    Args:
        target_ids: Restrict the tick to these targets (default: all active)
        concurrency: Override PAGEWATCH_MAX_CONCURRENCY

    Returns:
        Dict with per-status counts for the tick
    """
    from pagewatch.services.orchestrator import Orchestrator

    logger.info(
        f"Starting crawl tick (targets={'all' if target_ids is None else len(target_ids)})"
    )

    orchestrator = Orchestrator(concurrency=concurrency)
    summary = _run_async(orchestrator.run_tick(target_ids))

    result = summary.to_dict()
    result["status"] = "completed"
    return result


@shared_task(name="pagewatch.tasks.check_target_now", bind=True)
def check_target_now(self, target_id: str) -> dict:
    """
    Run a manual check for one target.

    Args:
        target_id: UUID of the Target to check

    Returns:
        Dict describing the check outcome
    """
    from pagewatch.models import Target
    from pagewatch.services.orchestrator import Orchestrator

    logger.info(f"Manual check requested for target {target_id}")

    try:
        result = _run_async(Orchestrator().check_now(target_id))
    except Target.DoesNotExist:
        logger.error(f"Target {target_id} not found")
        return {"success": False, "status": "not_found", "target_id": str(target_id)}

    data = result.to_dict()
    data["target_id"] = str(target_id)
    return data


@shared_task(name="pagewatch.tasks.run_retention_sweep", bind=True)
def run_retention_sweep(self, dry_run: bool = False) -> dict:
    """
    Delete snapshot and alert history past each plan's retention window.

    Args:
        dry_run: Count what would be deleted without deleting

    Returns:
        Dict with sweep totals
    """
    from pagewatch.services.retention import RetentionSweeper

    result = RetentionSweeper(dry_run=dry_run).run()
    if not result.success:
        logger.error(f"Retention sweep failed: {result.error}")
    return result.to_dict()


@shared_task(name="pagewatch.tasks.reset_daily_quotas")
def reset_daily_quotas() -> dict:
    """Reset daily crawl and manual check counters for all tenants."""
    from pagewatch.services.quota_manager import reset_all_quotas

    count = reset_all_quotas()
    return {"status": "completed", "tenants_reset": count}


@shared_task(name="pagewatch.tasks.purge_expired_leases")
def purge_expired_leases() -> dict:
    from pagewatch.services.lease import purge_expired_leases as purge

    removed = purge()
    if removed:
        logger.info(f"Purged {removed} expired target leases")
    return {"status": "completed", "leases_purged": removed}
