"""
Scraper selection and mid-run escalation.

Picks the fetch strategy for the next run of a target:
- cheap: httpx + BeautifulSoup (fast, no JavaScript)
- accurate: Playwright headless browser (locale/timezone aware rendering)

Decision priority (first match wins):
1. Context requires a browser -> accurate (overrides all history)
2. No previous snapshot -> cheap
3. Previous snapshot used accurate -> accurate (sticky)
4. A strategy is proven best for the target -> that strategy
5. Default -> cheap
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from django.conf import settings

from pagewatch.models import ScraperSource

logger = logging.getLogger(__name__)

CHEAP = ScraperSource.CHEAP.value
ACCURATE = ScraperSource.ACCURATE.value


@dataclass
class EscalationResult:
    """Result of the post-fetch escalation check."""

    should_escalate: bool
    reason: Optional[str] = None


class ScraperSelector:
    """Pure decision rules for choosing between the cheap and accurate fetchers."""

    # Default number of recent snapshots that must agree to prove a strategy
    PROVEN_WINDOW = 2

    # Shorter content is treated as a JavaScript shell page
    MIN_CONTENT_LENGTH = 500

    PRICING_NUMBER_PATTERN = re.compile(
        r"\$[\d,]+|€[\d,]+|₹[\d,]+|£[\d,]+|\d+\s*/\s*(?:mo|month|year|yr)",
        re.IGNORECASE,
    )

    @classmethod
    def decide(
        cls,
        context,
        last_snapshot=None,
        proven_best: Optional[str] = None,
    ) -> str:
        """
        Decide which strategy to use for the next fetch.

        Args:
            context: Object with a requires_browser flag (PricingContext)
            last_snapshot: Most recent Snapshot for the target, or None
            proven_best: Strategy proven best for the target, if any

        Returns:
            "cheap" or "accurate"
        """
        if getattr(context, "requires_browser", False):
            return ACCURATE

        if last_snapshot is None:
            return CHEAP

        if last_snapshot.source == ACCURATE:
            return ACCURATE

        if proven_best in (CHEAP, ACCURATE):
            return proven_best

        return CHEAP

    @classmethod
    def determine_best_scraper(
        cls,
        snapshots: Sequence,
        window: Optional[int] = None,
    ) -> Optional[str]:
        """
        Derive the proven strategy from recent history.

        Args:
            snapshots: Snapshots ordered newest first; anything beyond the
                window is ignored
            window: Number of snapshots that must agree (default 2)

        Returns:
            The shared strategy, or None when the window is short or mixed
        """
        window = window or cls.PROVEN_WINDOW
        recent = list(snapshots)[:window]

        if len(recent) < window:
            return None

        sources = {snapshot.source for snapshot in recent}
        if len(sources) == 1:
            return sources.pop()

        return None

    @classmethod
    def should_escalate(
        cls,
        content: str,
        expected_symbols: Iterable[str],
    ) -> EscalationResult:
        """
        Check whether a cheap fetch result looks unreliable.

        Any one trigger escalates:
        - content shorter than PAGEWATCH_MIN_CONTENT_LENGTH (default 500)
        - no pricing-like number anywhere
        - none of the expected currency symbols present (wrong geo-variant)

        Args:
            content: Text returned by the cheap fetcher
            expected_symbols: Currency symbols expected for the page's region

        Returns:
            EscalationResult with reason when escalation is needed
        """
        content = content or ""
        min_length = getattr(settings, "PAGEWATCH_MIN_CONTENT_LENGTH", cls.MIN_CONTENT_LENGTH)

        if len(content) < min_length:
            return EscalationResult(
                should_escalate=True,
                reason=f"Content too short ({len(content)} chars)",
            )

        if not cls.PRICING_NUMBER_PATTERN.search(content):
            return EscalationResult(
                should_escalate=True,
                reason="No pricing numbers detected",
            )

        symbols = [symbol for symbol in expected_symbols if symbol]
        if not any(symbol in content for symbol in symbols):
            return EscalationResult(
                should_escalate=True,
                reason=f"Expected currency not found ({', '.join(symbols) or 'none given'})",
            )

        return EscalationResult(should_escalate=False)


def should_upgrade_to_accurate(content: str, expected_symbols: Iterable[str]) -> bool:
    return ScraperSelector.should_escalate(content, expected_symbols).should_escalate
