"""
Abuse and throttle guardrails.

Stateless predicates over aggregate counts supplied by the caller. Each
returns an AbuseDetectionResult; a flag is a deliberate policy outcome, not
an error. Failure loops are handled by the eligibility gate's failure
threshold and cooldown rules; the orchestrator tags the pausing run with
the failure_loop flag.

Checks:
- manual_spam: daily manual-check counter already at the plan limit
- page_hoarding: >20 targets added in 24h with <1% meaningful-alert rate
- volatile_page: >70% fingerprint churn with <2% meaningful-alert rate
- global_throttle: today's crawl volume above 1.5x the expected baseline
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from django.conf import settings

logger = logging.getLogger(__name__)

FLAG_MANUAL_SPAM = "manual_spam"
FLAG_PAGE_HOARDING = "page_hoarding"
FLAG_VOLATILE_PAGE = "volatile_page"
FLAG_FAILURE_LOOP = "failure_loop"
FLAG_GLOBAL_THROTTLE = "global_throttle"

ACTION_WARN = "warn"
ACTION_THROTTLE = "throttle"
ACTION_SOFT_BLOCK = "soft_block"
ACTION_PAUSE = "pause"

# Higher ranks are more restrictive
ACTION_RANK = {
    ACTION_WARN: 1,
    ACTION_THROTTLE: 2,
    ACTION_SOFT_BLOCK: 3,
    ACTION_PAUSE: 4,
}

MANUAL_CHECK_LIMITS = {
    "free": 1,
    "pro": 5,
}

HOARDING_TARGET_THRESHOLD = 20
HOARDING_ALERT_RATE = 0.01

VOLATILE_WINDOW = 10
VOLATILE_MIN_SNAPSHOTS = 5
VOLATILE_CHANGE_RATE = 0.7
VOLATILE_MEANINGFUL_RATE = 0.02

DEFAULT_EXPECTED_DAILY_CRAWLS = 10000
DEFAULT_THROTTLE_MULTIPLIER = 1.5


@dataclass
class AbuseDetectionResult:
    """Outcome of one guardrail check."""

    flagged: bool
    flag: Optional[str] = None
    message: Optional[str] = None
    action: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "flagged": self.flagged,
            "flag": self.flag,
            "message": self.message,
            "action": self.action,
        }


NOT_FLAGGED = AbuseDetectionResult(flagged=False)


def detect_manual_spam(manual_checks_today: int, plan: str) -> AbuseDetectionResult:
    """Flag a tenant whose manual checks for today already hit the plan limit."""
    limit = MANUAL_CHECK_LIMITS.get(plan, MANUAL_CHECK_LIMITS["free"])

    if manual_checks_today >= limit:
        return AbuseDetectionResult(
            flagged=True,
            flag=FLAG_MANUAL_SPAM,
            message="Manual checks are temporarily limited to keep things reliable.",
            action=ACTION_SOFT_BLOCK,
        )

    return NOT_FLAGGED


def detect_page_hoarding(
    targets_added_24h: int,
    meaningful_alerts: int,
    total_targets: int,
) -> AbuseDetectionResult:
    """Flag a tenant adding many targets that never produce meaningful alerts."""
    if targets_added_24h <= HOARDING_TARGET_THRESHOLD:
        return NOT_FLAGGED

    alert_rate = meaningful_alerts / max(total_targets, 1)
    if alert_rate < HOARDING_ALERT_RATE:
        return AbuseDetectionResult(
            flagged=True,
            flag=FLAG_PAGE_HOARDING,
            message="We noticed many low-signal pages. Consider focusing on pricing or key pages.",
            action=ACTION_WARN,
        )

    return NOT_FLAGGED


def detect_volatile_page(
    recent_fingerprints: Sequence[str],
    meaningful_alerts: int,
) -> AbuseDetectionResult:
    """
    Flag a target that churns constantly without ever mattering.

    Args:
        recent_fingerprints: Fingerprints of the most recent snapshots,
            newest first; only the first VOLATILE_WINDOW are considered
        meaningful_alerts: Meaningful alerts raised over the same window
    """
    window = list(recent_fingerprints)[:VOLATILE_WINDOW]
    if len(window) < VOLATILE_MIN_SNAPSHOTS:
        return NOT_FLAGGED

    change_rate = len(set(window)) / len(window)
    meaningful_rate = meaningful_alerts / len(window)

    if change_rate > VOLATILE_CHANGE_RATE and meaningful_rate < VOLATILE_MEANINGFUL_RATE:
        return AbuseDetectionResult(
            flagged=True,
            flag=FLAG_VOLATILE_PAGE,
            message="This page changes frequently but rarely has meaningful updates.",
            action=ACTION_THROTTLE,
        )

    return NOT_FLAGGED


def check_global_throttle(
    crawls_today: int,
    expected_daily_crawls: Optional[int] = None,
    multiplier: Optional[float] = None,
) -> AbuseDetectionResult:
    """Circuit breaker against runaway scheduling across all tenants."""
    if expected_daily_crawls is None:
        expected_daily_crawls = getattr(
            settings, "PAGEWATCH_EXPECTED_DAILY_CRAWLS", DEFAULT_EXPECTED_DAILY_CRAWLS
        )
    if multiplier is None:
        multiplier = getattr(
            settings, "PAGEWATCH_THROTTLE_MULTIPLIER", DEFAULT_THROTTLE_MULTIPLIER
        )

    threshold = expected_daily_crawls * multiplier
    if crawls_today > threshold:
        logger.warning(
            "Global crawl volume %d exceeds threshold %.0f", crawls_today, threshold
        )
        return AbuseDetectionResult(
            flagged=True,
            flag=FLAG_GLOBAL_THROTTLE,
            message="System temporarily throttled for reliability. Please try again later.",
            action=ACTION_THROTTLE,
        )

    return NOT_FLAGGED


def most_restrictive(
    results: Iterable[AbuseDetectionResult],
) -> Optional[AbuseDetectionResult]:
    """Pick the flagged result with the most restrictive action, if any."""
    flagged = [result for result in results if result.flagged]
    if not flagged:
        return None
    return max(flagged, key=lambda result: ACTION_RANK.get(result.action, 0))
