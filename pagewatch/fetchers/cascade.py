"""
Cascade Fetcher - cheap-first fetching with one escalation.

Orchestrates the two fetch strategies for a single target:
- Strategy chosen by ScraperSelector from context and snapshot history
- Every backend call waits on that backend's rate limiter
- Every backend call runs under asyncio.wait_for with the backend timeout
- A cheap result that fails, or looks unreliable, escalates to accurate once

Retries and backoff beyond the single escalation are not done here.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from django.conf import settings

from pagewatch.exceptions import FetchErrorCode
from pagewatch.monitoring.sentry_integration import add_pipeline_breadcrumb

from .accurate_playwright import AccuratePlaywrightFetcher
from .cheap_httpx import CheapHttpxFetcher, FetchResponse
from .geo_context import GLOBAL_CONTEXT, PricingContext
from .rate_limiter import AsyncRateLimiter, build_rate_limiters
from .scraper_selector import ACCURATE, CHEAP, ScraperSelector

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Result of a cascade fetch."""

    success: bool
    strategy: str
    content: str = ""
    status_code: int = 0
    error: Optional[str] = None
    error_code: Optional[FetchErrorCode] = None
    escalated: bool = False
    escalation_reason: Optional[str] = None


class CascadeFetcher:
    """
    Two-tier fetcher with automatic escalation.

    1. cheap (httpx) - first attempt unless the selector says otherwise
    2. accurate (Playwright) - on cheap failure, short content, missing
       pricing numbers or missing regional currency

    If the accurate attempt fails after a successful but suspicious cheap
    fetch, the cheap content is kept.
    """

    def __init__(
        self,
        cheap_fetcher=None,
        accurate_fetcher=None,
        rate_limiters: Optional[Dict[str, AsyncRateLimiter]] = None,
    ):
        """
        Initialize the cascade.

        Args:
            cheap_fetcher: Backend for the cheap strategy (default httpx)
            accurate_fetcher: Backend for the accurate strategy (default Playwright)
            rate_limiters: Limiters keyed by strategy (default from settings)
        """
        self._cheap_fetcher = cheap_fetcher
        self._accurate_fetcher = accurate_fetcher
        self.rate_limiters = rate_limiters or build_rate_limiters()

    def _get_fetcher(self, strategy: str):
        if strategy == ACCURATE:
            if self._accurate_fetcher is None:
                self._accurate_fetcher = AccuratePlaywrightFetcher()
            return self._accurate_fetcher

        if self._cheap_fetcher is None:
            self._cheap_fetcher = CheapHttpxFetcher()
        return self._cheap_fetcher

    def _get_timeout(self, strategy: str) -> float:
        if strategy == ACCURATE:
            return getattr(settings, "PAGEWATCH_ACCURATE_TIMEOUT", 60)
        return getattr(settings, "PAGEWATCH_CHEAP_TIMEOUT", 30)

    async def close(self):
        """Close all backend connections."""
        if self._cheap_fetcher is not None:
            await self._cheap_fetcher.close()
        if self._accurate_fetcher is not None:
            await self._accurate_fetcher.close()

    async def fetch_with_strategy(
        self,
        url: str,
        strategy: str,
        context: PricingContext = GLOBAL_CONTEXT,
    ) -> FetchResponse:
        """
        Fetch once with a single backend.

        Waits on the backend's rate limiter, then bounds the call by the
        backend timeout so it can never hang.
        """
        limiter = self.rate_limiters.get(strategy)
        if limiter is not None:
            await limiter.acquire()

        timeout = self._get_timeout(strategy)
        fetcher = self._get_fetcher(strategy)

        try:
            return await asyncio.wait_for(fetcher.fetch(url, context), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{strategy} fetch exceeded {timeout}s for {url}")
            return FetchResponse(
                success=False,
                error=f"Timed out after {timeout}s",
                error_code=FetchErrorCode.TIMEOUT,
                strategy=strategy,
            )

    async def fetch(
        self,
        url: str,
        context: PricingContext = GLOBAL_CONTEXT,
        last_snapshot=None,
        proven_best: Optional[str] = None,
    ) -> FetchResult:
        """
        Fetch a target page with cheap-first escalation.

        Args:
            url: Page URL
            context: Pricing region (requires_browser forces accurate)
            last_snapshot: Most recent Snapshot for the target
            proven_best: Strategy proven best for the target

        Returns:
            FetchResult recording the strategy used and any escalation
        """
        strategy = ScraperSelector.decide(context, last_snapshot, proven_best)
        add_pipeline_breadcrumb("fetch", f"Fetching {url}", strategy=strategy, context=context.key)

        response = await self.fetch_with_strategy(url, strategy, context)

        if strategy == ACCURATE:
            return self._to_result(response)

        if response.success:
            check = ScraperSelector.should_escalate(response.content, context.currency_symbols)
            if not check.should_escalate:
                return self._to_result(response)
            reason = check.reason
        else:
            reason = f"cheap fetch failed: {response.error}"

        logger.info(f"Escalating {url} to accurate fetcher: {reason}")
        escalated = await self.fetch_with_strategy(url, ACCURATE, context)

        if not escalated.success and response.success:
            logger.warning(
                f"Accurate fetch failed for {url} ({escalated.error}), keeping cheap content"
            )
            return self._to_result(response, escalated=True, reason=reason)

        return self._to_result(escalated, escalated=True, reason=reason)

    def _to_result(
        self,
        response: FetchResponse,
        escalated: bool = False,
        reason: Optional[str] = None,
    ) -> FetchResult:
        return FetchResult(
            success=response.success,
            strategy=response.strategy,
            content=response.content,
            status_code=response.status_code,
            error=response.error,
            error_code=response.error_code,
            escalated=escalated,
            escalation_reason=reason,
        )
