"""
Crawl Orchestrator.

Runs the change-detection pipeline for every active target once per
scheduled tick, and for single targets on a manual "check now".

Per-target pipeline (strictly sequential):
1. Claim the target lease
2. Eligibility gate (status, failure threshold, cooldown, checked today)
3. Guardrails: volatile page / page hoarding, frequency decay, daily quota
4. Fetch through the cheap/accurate cascade
5. Normalize and fingerprint
6. Revert check against recent history
7. Diff and classify
8. Persist snapshot (and alert) and record success, or record failure
9. Release the lease

Across targets:
- Bounded pool (asyncio.Semaphore) sized by PAGEWATCH_MAX_CONCURRENCY
- Per-backend rate limiting inside the cascade
- Tick deadline: targets not started before it are deferred to the next tick
- One target's exception never aborts the batch; it is counted in errors
- Global throttle defers the whole tick
"""

import asyncio
import logging
import random
import time
from dataclasses import asdict, dataclass, field, replace
from datetime import timedelta
from typing import Callable, Iterable, List, Optional, Union

from asgiref.sync import sync_to_async
from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from pagewatch.diff import classify, compute_diff, create_normalized_snapshot, summarize_diff
from pagewatch.diff.classifier import SEVERITY_MINOR, validate_snapshot_input
from pagewatch.exceptions import ClassificationError, FetchError, FetchErrorCode, PersistenceError
from pagewatch.fetchers import CascadeFetcher, get_pricing_context
from pagewatch.fetchers.scraper_selector import ScraperSelector
from pagewatch.guardrails import eligibility
from pagewatch.guardrails.abuse import ACTION_THROTTLE, ACTION_WARN, FLAG_FAILURE_LOOP
from pagewatch.guardrails.frequency import get_last_meaningful_change, should_check_by_frequency
from pagewatch.models import Alert, CrawlRun, CrawlTrigger, Snapshot, Target, TargetStatus
from pagewatch.monitoring import capture_alert, get_crawl_volume_counter, log_error_with_context
from pagewatch.services import abuse_checks, quota_manager
from pagewatch.services.lease import claim_lease, default_owner, release_lease

logger = logging.getLogger(__name__)

STATUS_PROCESSED = "processed"
STATUS_SKIPPED = "skipped"
STATUS_THROTTLED = "throttled"
STATUS_FAILED = "failed"
STATUS_ERROR = "error"
STATUS_DEFERRED = "deferred"

DEFAULT_MAX_CONCURRENCY = 5
DEFAULT_TICK_DEADLINE_SECONDS = 240
DEFAULT_THROTTLED_CHECK_DAYS = 7


def _db(func):
    return sync_to_async(func, thread_sensitive=True)


@dataclass
class TargetOutcome:
    """What happened to one target during a run."""

    target_id: str
    status: str
    reason: Optional[str] = None
    strategy: Optional[str] = None
    escalated: bool = False
    severity: Optional[str] = None
    summary: Optional[str] = None
    alert_created: bool = False
    revert: bool = False
    paused: bool = False
    flag: Optional[str] = None


@dataclass
class BatchSummary:
    """Counters for one orchestrator tick."""

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    errors: int = 0
    paused: int = 0
    alerts_created: int = 0
    reverts: int = 0
    throttled: int = 0
    deferred: int = 0
    global_throttle: bool = False
    outcomes: List[TargetOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    def record(self, outcome: TargetOutcome):
        """Fold one target outcome into the counters."""
        self.outcomes.append(outcome)

        if outcome.status == STATUS_PROCESSED:
            self.processed += 1
        elif outcome.status == STATUS_SKIPPED:
            self.skipped += 1
        elif outcome.status == STATUS_THROTTLED:
            self.throttled += 1
        elif outcome.status == STATUS_FAILED:
            self.failed += 1
        elif outcome.status == STATUS_DEFERRED:
            self.deferred += 1
        else:
            self.errors += 1

        if outcome.paused:
            self.paused += 1
        if outcome.alert_created:
            self.alerts_created += 1
        if outcome.revert:
            self.reverts += 1

    def to_dict(self, include_outcomes: bool = False) -> dict:
        data = {
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "errors": self.errors,
            "paused": self.paused,
            "alerts_created": self.alerts_created,
            "reverts": self.reverts,
            "throttled": self.throttled,
            "deferred": self.deferred,
            "global_throttle": self.global_throttle,
        }
        if include_outcomes:
            data["outcomes"] = [asdict(outcome) for outcome in self.outcomes]
        return data


@dataclass
class ManualCheckResult:
    """Outcome of a manual "check now"; reason is display-ready."""

    success: bool
    status: str
    reason: Optional[str] = None
    flag: Optional[str] = None
    action: Optional[str] = None
    upgrade_prompt: bool = False
    outcome: Optional[TargetOutcome] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "status": self.status,
            "reason": self.reason,
            "flag": self.flag,
            "action": self.action,
            "upgrade_prompt": self.upgrade_prompt,
            "outcome": asdict(self.outcome) if self.outcome else None,
        }


@dataclass
class _FetchPlan:
    context: object
    last_snapshot: Optional[Snapshot]
    proven_best: Optional[str]
    prior_failure_count: int
    flag: Optional[str] = None


class Orchestrator:
    """
    Runs the change-detection pipeline over targets.

    Only this class persists snapshots and alerts or invokes the fetchers.
    """

    def __init__(
        self,
        fetcher: Optional[CascadeFetcher] = None,
        concurrency: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
        owner: Optional[str] = None,
        volume_counter=None,
        clock: Callable[[], float] = time.monotonic,
        rand: Callable[[], float] = random.random,
    ):
        """
        Initialize the orchestrator.

        Args:
            fetcher: Cascade fetcher (default builds one and closes it after each run)
            concurrency: Max targets in flight (default PAGEWATCH_MAX_CONCURRENCY)
            deadline_seconds: Tick budget (default PAGEWATCH_TICK_DEADLINE_SECONDS)
            owner: Lease owner label (default host:pid)
            volume_counter: Global crawl volume counter (default Redis-backed)
            clock: Monotonic clock for the tick deadline
            rand: Random source for frequency decay
        """
        self._fetcher = fetcher
        self._owns_fetcher = fetcher is None
        self.concurrency = max(
            1,
            concurrency or getattr(settings, "PAGEWATCH_MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY),
        )
        self.deadline_seconds = deadline_seconds or getattr(
            settings, "PAGEWATCH_TICK_DEADLINE_SECONDS", DEFAULT_TICK_DEADLINE_SECONDS
        )
        self.owner = owner or default_owner()
        self._volume_counter = volume_counter
        self.clock = clock
        self.rand = rand
        self.alert_on_minor = getattr(settings, "PAGEWATCH_ALERT_ON_MINOR", False)

    @property
    def fetcher(self) -> CascadeFetcher:
        if self._fetcher is None:
            self._fetcher = CascadeFetcher()
        return self._fetcher

    @property
    def volume_counter(self):
        if self._volume_counter is None:
            self._volume_counter = get_crawl_volume_counter()
        return self._volume_counter

    async def close(self):
        """Close the fetcher if this orchestrator created it."""
        if self._owns_fetcher and self._fetcher is not None:
            await self._fetcher.close()
            self._fetcher = None

    # ------------------------------------------------------------------
    # Batch tick
    # ------------------------------------------------------------------

    async def run_tick(
        self,
        targets: Optional[Iterable[Union[Target, str]]] = None,
    ) -> BatchSummary:
        """
        Process a batch of targets concurrently.

        Args:
            targets: Targets or target IDs (default: every active target)

        Returns:
            BatchSummary with per-status counters
        """
        run = await _db(self._start_run)(CrawlTrigger.SCHEDULED)
        summary = BatchSummary()

        try:
            batch = await _db(self._load_targets)(targets)
            run.targets_total = len(batch)

            throttle = await _db(self._check_global_throttle)()
            if throttle.flagged:
                summary.global_throttle = True
                for target in batch:
                    summary.record(
                        TargetOutcome(
                            target_id=str(target.id),
                            status=STATUS_DEFERRED,
                            reason=throttle.message,
                            flag=throttle.flag,
                        )
                    )
                capture_alert(
                    "Global crawl throttle engaged; tick deferred",
                    alert_type="global_throttle",
                    extra_data={"deferred": len(batch)},
                )
            else:
                await self._run_pool(batch, summary)

        except Exception as e:
            logger.exception(f"Crawl tick {run.id} aborted: {e}")
            await _db(self._finish_run)(run, summary, success=False, error_message=str(e))
            raise

        finally:
            await self.close()

        await _db(self._finish_run)(run, summary, success=True)

        logger.info(
            "Crawl tick %s complete: processed=%d skipped=%d failed=%d errors=%d "
            "paused=%d alerts=%d reverts=%d throttled=%d deferred=%d",
            run.id,
            summary.processed,
            summary.skipped,
            summary.failed,
            summary.errors,
            summary.paused,
            summary.alerts_created,
            summary.reverts,
            summary.throttled,
            summary.deferred,
        )
        return summary

    def _check_global_throttle(self):
        return abuse_checks.check_global_throttle(self.volume_counter)

    async def _run_pool(self, batch: List[Target], summary: BatchSummary):
        semaphore = asyncio.Semaphore(self.concurrency)
        deadline = self.clock() + self.deadline_seconds

        async def worker(target: Target) -> TargetOutcome:
            async with semaphore:
                if self.clock() >= deadline:
                    return TargetOutcome(
                        target_id=str(target.id),
                        status=STATUS_DEFERRED,
                        reason="Tick deadline reached",
                    )
                try:
                    return await self.process_target(target)
                except Exception as e:
                    logger.exception(f"Unhandled error processing target {target.id}: {e}")
                    return TargetOutcome(
                        target_id=str(target.id),
                        status=STATUS_ERROR,
                        reason=str(e),
                    )

        outcomes = await asyncio.gather(*(worker(target) for target in batch))
        for outcome in outcomes:
            summary.record(outcome)

    def _start_run(self, trigger: str) -> CrawlRun:
        run = CrawlRun.objects.create(trigger=trigger)
        run.start()
        return run

    def _finish_run(
        self,
        run: CrawlRun,
        summary: BatchSummary,
        success: bool,
        error_message: Optional[str] = None,
    ):
        run.targets_total = max(run.targets_total, summary.total)
        run.processed = summary.processed
        run.skipped = summary.skipped + summary.throttled
        run.failed = summary.failed
        run.errors_count = summary.errors
        run.alerts_created = summary.alerts_created
        run.deferred = summary.deferred
        run.summary = summary.to_dict()
        run.complete(success=success, error_message=error_message)

    def _load_targets(self, targets) -> List[Target]:
        """Resolve the batch, one entry per target."""
        if targets is None:
            return list(
                Target.objects.filter(status=TargetStatus.ACTIVE).select_related("tenant")
            )

        ids = []
        for item in targets:
            target_id = str(getattr(item, "id", item))
            if target_id not in ids:
                ids.append(target_id)

        by_id = {
            str(target.id): target
            for target in Target.objects.filter(id__in=ids).select_related("tenant")
        }
        return [by_id[target_id] for target_id in ids if target_id in by_id]

    # ------------------------------------------------------------------
    # Single target pipeline
    # ------------------------------------------------------------------

    async def process_target(self, target: Target, manual: bool = False) -> TargetOutcome:
        """
        Run the full pipeline for one target under its lease.

        Args:
            target: Target to process
            manual: Manual check (bypasses "checked today" and the
                scheduled-only guardrails)

        Returns:
            TargetOutcome describing what happened
        """
        token = await _db(claim_lease)(target, owner=self.owner)
        if token is None:
            return TargetOutcome(
                target_id=str(target.id),
                status=STATUS_SKIPPED,
                reason="Target is being processed by another worker",
            )

        stage = "eligibility"
        strategy = None

        try:
            plan = await _db(self._prepare)(target, manual)
            if isinstance(plan, TargetOutcome):
                return plan

            stage = "fetch"
            result = await self.fetcher.fetch(
                target.url,
                plan.context,
                plan.last_snapshot,
                plan.proven_best,
            )
            strategy = result.strategy

            if not result.success:
                return await _db(self._record_fetch_failure)(target, result, plan.prior_failure_count)

            stage = "normalize"
            normalized = create_normalized_snapshot(result.content)
            validate_snapshot_input(normalized.normalized_text, normalized.fingerprint)

            stage = "persist"
            outcome = await _db(self._persist)(target, normalized, result)
            outcome.flag = plan.flag
            return outcome

        except ClassificationError as e:
            await _db(self._record_error)(target, e, stage, strategy, count_failure=True)
            return TargetOutcome(
                target_id=str(target.id),
                status=STATUS_ERROR,
                reason=str(e),
                strategy=strategy,
            )

        except Exception as e:
            await _db(self._record_error)(target, e, stage, strategy)
            return TargetOutcome(
                target_id=str(target.id),
                status=STATUS_ERROR,
                reason=str(e),
                strategy=strategy,
            )

        finally:
            await _db(release_lease)(target, token)

    def _prepare(self, target: Target, manual: bool) -> Union[_FetchPlan, TargetOutcome]:
        """Gate the target and gather what the fetch needs. Runs in the DB thread."""
        target.refresh_from_db()
        target_id = str(target.id)
        now = timezone.now()

        skip_rules = ("checked_today",) if manual else ()
        verdict = eligibility.evaluate(target, now=now, skip_rules=skip_rules)
        if not verdict.eligible:
            return TargetOutcome(target_id=target_id, status=STATUS_SKIPPED, reason=verdict.reason)

        flag = None
        if not manual:
            flagged = abuse_checks.run_target_checks(target)
            if flagged is not None:
                flag = flagged.flag
                if flagged.action == ACTION_WARN:
                    logger.info(f"Target {target_id} flagged {flagged.flag}: {flagged.message}")
                elif flagged.action == ACTION_THROTTLE and not self._throttle_window_elapsed(target, now):
                    return TargetOutcome(
                        target_id=target_id,
                        status=STATUS_THROTTLED,
                        reason=flagged.message,
                        flag=flagged.flag,
                    )

            if not should_check_by_frequency(get_last_meaningful_change(target), now, self.rand):
                return TargetOutcome(
                    target_id=target_id,
                    status=STATUS_SKIPPED,
                    reason="Skipped by frequency decay",
                    flag=flag,
                )

            tenant = target.tenant
            tenant.refresh_from_db()
            quota_manager.ensure_quota_reset(tenant, now)
            quota = quota_manager.can_scheduled_crawl(tenant)
            if not quota.allowed:
                return TargetOutcome(
                    target_id=target_id,
                    status=STATUS_SKIPPED,
                    reason=quota.reason,
                    flag=flag,
                )
            quota_manager.increment_crawls(tenant)

        self.volume_counter.increment()

        recent = list(
            Snapshot.objects.filter(target=target).order_by("-created_at")[
                : ScraperSelector.PROVEN_WINDOW
            ]
        )

        context = get_pricing_context(target.pricing_context)
        if target.requires_browser and not context.requires_browser:
            context = replace(context, requires_browser=True)

        return _FetchPlan(
            context=context,
            last_snapshot=recent[0] if recent else None,
            proven_best=target.best_scraper or ScraperSelector.determine_best_scraper(recent),
            prior_failure_count=target.failure_count,
            flag=flag,
        )

    def _throttle_window_elapsed(self, target: Target, now) -> bool:
        """Throttled targets are still checked once per throttle window."""
        days = getattr(settings, "PAGEWATCH_THROTTLED_CHECK_DAYS", DEFAULT_THROTTLED_CHECK_DAYS)
        if target.last_checked_at is None:
            return True
        return now - target.last_checked_at >= timedelta(days=days)

    def _record_fetch_failure(self, target: Target, result, prior_failure_count: int) -> TargetOutcome:
        failure = eligibility.record_failure(target, prior_failure_count)
        error = FetchError(
            result.error_code or FetchErrorCode.UNKNOWN,
            result.error or "Fetch failed",
            strategy=result.strategy,
        )
        log_error_with_context(error, target=target, stage="fetch", strategy=result.strategy)

        if failure.paused:
            capture_alert(
                f"Target {target.id} paused after {failure.failure_count} consecutive failures",
                alert_type="target_paused",
                extra_data={"target_id": str(target.id), "url": target.url},
            )

        return TargetOutcome(
            target_id=str(target.id),
            status=STATUS_FAILED,
            reason=str(error),
            strategy=result.strategy,
            escalated=result.escalated,
            paused=failure.paused,
            flag=FLAG_FAILURE_LOOP if failure.paused else None,
        )

    def _record_error(
        self,
        target: Target,
        error: Exception,
        stage: str,
        strategy: Optional[str],
        count_failure: bool = False,
    ):
        logger.error(f"Target {target.id} run aborted at {stage}: {error}")
        log_error_with_context(error, target=target, stage=stage, strategy=strategy)
        if count_failure:
            eligibility.record_failure(target)

    def _persist(self, target: Target, normalized, result) -> TargetOutcome:
        """
        Store the snapshot, decide on an alert and record success atomically.

        Raises:
            PersistenceError: If any write fails (nothing is kept)
            ClassificationError: If the stored snapshot cannot be diffed
        """
        now = timezone.now()
        outcome = TargetOutcome(
            target_id=str(target.id),
            status=STATUS_PROCESSED,
            strategy=result.strategy,
            escalated=result.escalated,
        )

        try:
            with transaction.atomic():
                previous = Snapshot.objects.filter(target=target).order_by("-created_at").first()

                if previous is not None and previous.fingerprint == normalized.fingerprint:
                    outcome.reason = "No changes detected"

                elif previous is not None and eligibility.is_hash_seen_recently(
                    target, normalized.fingerprint, now
                ):
                    self._create_snapshot(target, normalized, result, now)
                    outcome.revert = True
                    outcome.reason = "Content reverted to a recently seen version"

                else:
                    snapshot = self._create_snapshot(target, normalized, result, now)
                    if previous is None:
                        outcome.reason = "Baseline snapshot recorded"
                    else:
                        self._classify_change(target, previous, snapshot, result, outcome)

                self._update_best_scraper(target)
                eligibility.record_success(target, now)

        except DatabaseError as e:
            raise PersistenceError(f"Failed to persist snapshot for target {target.id}: {e}") from e

        return outcome

    def _classify_change(self, target, previous, snapshot, result, outcome: TargetOutcome):
        validate_snapshot_input(previous.normalized_text, previous.fingerprint)

        diff = compute_diff(
            previous.normalized_text,
            snapshot.normalized_text,
            previous.fingerprint,
            snapshot.fingerprint,
        )
        classification = classify(diff)

        outcome.severity = classification.severity
        outcome.summary = classification.summary
        outcome.reason = classification.reason

        alert_minor = classification.severity == SEVERITY_MINOR and self.alert_on_minor
        if not classification.is_meaningful and not alert_minor:
            return

        Alert.objects.create(
            target=target,
            previous_snapshot=previous,
            current_snapshot=snapshot,
            severity=classification.severity,
            summary=classification.summary,
            reason_codes=classification.reason_codes,
            details={
                "changed_items": classification.changed_items,
                "diff_summary": summarize_diff(diff),
                "reason": classification.reason,
                "strategy": result.strategy,
                "escalated": result.escalated,
                "pricing_context": target.pricing_context,
            },
            is_meaningful=classification.is_meaningful,
        )
        outcome.alert_created = True

        logger.info(
            f"Alert created for target {target.id} ({classification.severity}): "
            f"{classification.summary}"
        )

    def _create_snapshot(self, target, normalized, result, now) -> Snapshot:
        return Snapshot.objects.create(
            target=target,
            normalized_text=normalized.normalized_text,
            fingerprint=normalized.fingerprint,
            source=result.strategy,
            created_at=now,
        )

    def _update_best_scraper(self, target: Target):
        recent = list(
            Snapshot.objects.filter(target=target).order_by("-created_at")[
                : ScraperSelector.PROVEN_WINDOW
            ]
        )
        best = ScraperSelector.determine_best_scraper(recent)
        if best and best != target.best_scraper:
            target.best_scraper = best
            target.save(update_fields=["best_scraper"])

    # ------------------------------------------------------------------
    # Manual check
    # ------------------------------------------------------------------

    async def check_now(self, target_id) -> ManualCheckResult:
        """
        Run a manual check for one target.

        Guardrails and the manual quota are applied first; the target is then
        processed bypassing only the "already checked today" rule.

        Args:
            target_id: Target primary key

        Returns:
            ManualCheckResult with a display-ready reason

        Raises:
            Target.DoesNotExist: If the target does not exist
        """
        run = await _db(self._start_run)(CrawlTrigger.MANUAL)
        summary = BatchSummary()

        try:
            target = await _db(Target.objects.select_related("tenant").get)(id=target_id)
            run.targets_total = 1

            result = await _db(self._gate_manual_check)(target)
            if result is None:
                outcome = await self.process_target(target, manual=True)
                summary.record(outcome)
                result = self._to_manual_result(outcome)

        except Exception as e:
            logger.exception(f"Manual check run {run.id} for target {target_id} aborted: {e}")
            await _db(self._finish_run)(run, summary, success=False, error_message=str(e))
            raise

        finally:
            await self.close()

        await _db(self._finish_run)(run, summary, success=True)
        return result

    def _gate_manual_check(self, target: Target) -> Optional[ManualCheckResult]:
        """Apply guardrails, quota and eligibility; count the check if allowed."""
        tenant = target.tenant
        quota_manager.ensure_quota_reset(tenant)

        flagged = abuse_checks.run_manual_checks(target, self.volume_counter)
        if flagged is not None and flagged.action != ACTION_WARN:
            return ManualCheckResult(
                success=False,
                status="denied",
                reason=flagged.message,
                flag=flagged.flag,
                action=flagged.action,
            )

        quota = quota_manager.can_manual_check(tenant)
        if not quota.allowed:
            return ManualCheckResult(
                success=False,
                status="denied",
                reason=quota.reason,
                flag="quota",
                action="soft_block",
                upgrade_prompt=quota.upgrade_prompt,
            )

        verdict = eligibility.evaluate(target, skip_rules=("checked_today",))
        if not verdict.eligible:
            return ManualCheckResult(success=False, status="ineligible", reason=verdict.reason)

        quota_manager.increment_manual_checks(tenant)
        return None

    def _to_manual_result(self, outcome: TargetOutcome) -> ManualCheckResult:
        if outcome.status == STATUS_PROCESSED:
            return ManualCheckResult(
                success=True,
                status="completed",
                reason=outcome.summary or outcome.reason,
                outcome=outcome,
            )
        if outcome.status == STATUS_SKIPPED:
            return ManualCheckResult(
                success=False, status="ineligible", reason=outcome.reason, outcome=outcome
            )
        if outcome.status == STATUS_FAILED:
            reason = (
                "Paused due to repeated failures" if outcome.paused else "We couldn't fetch this page"
            )
            return ManualCheckResult(success=False, status="failed", reason=reason, outcome=outcome)
        return ManualCheckResult(
            success=False,
            status="error",
            reason="Something went wrong while checking this page",
            outcome=outcome,
        )
