"""
Eligibility gate for crawl attempts.

Decides whether a target may be checked right now and records the outcome
of each attempt on the target row.

Decision order (first matching rule wins):
1. Status is not active
2. failure_count has reached the failure threshold
3. last failure is inside the cooldown window
4. already checked on the current UTC calendar day

The rule table is data: ELIGIBILITY_RULES is evaluated top to bottom.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Any, Callable, Iterable, Optional, Tuple
from urllib.parse import urlparse

from django.conf import settings
from django.db import DatabaseError
from django.utils import timezone

from pagewatch.exceptions import PersistenceError
from pagewatch.models import Snapshot, TargetStatus

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_COOLDOWN_HOURS = 24
DEFAULT_HASH_DEDUP_DAYS = 7
DEFAULT_HASH_DEDUP_SNAPSHOTS = 10

# Path segments worth monitoring; the homepage is always eligible
ELIGIBLE_PATH_SEGMENTS = frozenset({"pricing", "plans", "features"})


def get_failure_threshold() -> int:
    return getattr(settings, "PAGEWATCH_FAILURE_THRESHOLD", DEFAULT_FAILURE_THRESHOLD)


def get_cooldown_window() -> timedelta:
    hours = getattr(settings, "PAGEWATCH_FAILURE_COOLDOWN_HOURS", DEFAULT_COOLDOWN_HOURS)
    return timedelta(hours=hours)


@dataclass
class EligibilityResult:
    """Outcome of the eligibility gate. Never raised as an error."""

    eligible: bool
    reason: Optional[str] = None
    rule: Optional[str] = None


@dataclass(frozen=True)
class EligibilityRule:
    """One guard condition of the eligibility decision table."""

    name: str
    blocks: Callable[[Any, datetime], bool]
    reason: Callable[[Any], str]


@dataclass
class FailureRecord:
    """Result of recording a failed attempt."""

    paused: bool
    failure_count: int


def _is_inactive(target, now: datetime) -> bool:
    return target.status != TargetStatus.ACTIVE


def _over_failure_threshold(target, now: datetime) -> bool:
    return (target.failure_count or 0) >= get_failure_threshold()


def _in_failure_cooldown(target, now: datetime) -> bool:
    if target.last_failure_at is None:
        return False
    return now < target.last_failure_at + get_cooldown_window()


def _checked_today(target, now: datetime) -> bool:
    if target.last_checked_at is None:
        return False
    utc = dt_timezone.utc
    return target.last_checked_at.astimezone(utc).date() == now.astimezone(utc).date()


ELIGIBILITY_RULES: Tuple[EligibilityRule, ...] = (
    EligibilityRule(
        name="status",
        blocks=_is_inactive,
        reason=lambda target: f"Status is {target.status}",
    ),
    EligibilityRule(
        name="failure_threshold",
        blocks=_over_failure_threshold,
        reason=lambda target: "Paused due to repeated failures",
    ),
    EligibilityRule(
        name="failure_cooldown",
        blocks=_in_failure_cooldown,
        reason=lambda target: "In failure cooldown period",
    ),
    EligibilityRule(
        name="checked_today",
        blocks=_checked_today,
        reason=lambda target: "Already checked today",
    ),
)


def evaluate(
    target,
    now: Optional[datetime] = None,
    skip_rules: Iterable[str] = (),
) -> EligibilityResult:
    """
    Decide whether a crawl attempt is allowed right now.

    Args:
        target: Target (or any object with the same fields)
        now: Evaluation time (defaults to timezone.now())
        skip_rules: Rule names to bypass, e.g. "checked_today" for manual checks

    Returns:
        EligibilityResult with the first blocking rule's reason
    """
    now = now or timezone.now()
    skipped = set(skip_rules)

    for rule in ELIGIBILITY_RULES:
        if rule.name in skipped:
            continue
        if rule.blocks(target, now):
            reason = rule.reason(target)
            logger.debug("Target %s ineligible (%s): %s", target.id, rule.name, reason)
            return EligibilityResult(eligible=False, reason=reason, rule=rule.name)

    return EligibilityResult(eligible=True)


def is_eligible_url(url: str) -> bool:
    """
    Check whether a URL points at a page worth monitoring.

    The homepage and any path with a pricing, plans or features segment
    qualifies. Query string and fragment are ignored; malformed URLs never
    qualify.
    """
    try:
        parsed = urlparse(url)
    except (TypeError, ValueError):
        return False

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False

    path = parsed.path.lower()
    segments = {segment for segment in path.split("/") if segment}
    if not segments:
        return True

    return bool(segments & ELIGIBLE_PATH_SEGMENTS)


def record_success(target, now: Optional[datetime] = None):
    """
    Record a successful attempt.

    Zeroes failure_count, clears last_failure_at and stamps last_checked_at.

    Raises:
        PersistenceError: If the target row cannot be updated
    """
    target.failure_count = 0
    target.last_failure_at = None
    target.last_checked_at = now or timezone.now()

    try:
        target.save(update_fields=["failure_count", "last_failure_at", "last_checked_at"])
    except DatabaseError as e:
        raise PersistenceError(f"Failed to record success for target {target.id}: {e}") from e

    return target


def record_failure(
    target,
    prior_failure_count: Optional[int] = None,
    now: Optional[datetime] = None,
) -> FailureRecord:
    """
    Record a failed attempt.

    Increments failure_count and stamps last_failure_at. When the new count
    reaches the failure threshold the target moves to error status and the
    caller is told it was paused.

    Args:
        target: Target that failed
        prior_failure_count: Count read before the attempt (defaults to the
            target's current value)
        now: Failure time

    Returns:
        FailureRecord with paused flag and new failure count

    Raises:
        PersistenceError: If the target row cannot be updated
    """
    prior = target.failure_count if prior_failure_count is None else prior_failure_count
    new_count = (prior or 0) + 1
    paused = new_count >= get_failure_threshold()

    target.failure_count = new_count
    target.last_failure_at = now or timezone.now()
    update_fields = ["failure_count", "last_failure_at"]

    if paused:
        target.status = TargetStatus.ERROR
        update_fields.append("status")
        logger.warning(
            "Target %s paused after %d consecutive failures", target.id, new_count
        )

    try:
        target.save(update_fields=update_fields)
    except DatabaseError as e:
        raise PersistenceError(f"Failed to record failure for target {target.id}: {e}") from e

    return FailureRecord(paused=paused, failure_count=new_count)


def is_hash_seen_recently(target, fingerprint_value: str, now: Optional[datetime] = None) -> bool:
    """
    Check whether a fingerprint already appears in the target's recent history.

    History is the last PAGEWATCH_HASH_DEDUP_SNAPSHOTS snapshots plus any
    snapshot from the last PAGEWATCH_HASH_DEDUP_DAYS days. A match means the
    page reverted to earlier content rather than changing.
    """
    now = now or timezone.now()
    depth = getattr(settings, "PAGEWATCH_HASH_DEDUP_SNAPSHOTS", DEFAULT_HASH_DEDUP_SNAPSHOTS)
    days = getattr(settings, "PAGEWATCH_HASH_DEDUP_DAYS", DEFAULT_HASH_DEDUP_DAYS)

    snapshots = Snapshot.objects.filter(target=target)

    recent = snapshots.order_by("-created_at").values_list("fingerprint", flat=True)[:depth]
    if fingerprint_value in set(recent):
        return True

    return snapshots.filter(
        fingerprint=fingerprint_value,
        created_at__gte=now - timedelta(days=days),
    ).exists()
