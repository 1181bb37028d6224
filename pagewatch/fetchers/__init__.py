"""
Content fetchers for monitored pages.

- cheap: httpx + BeautifulSoup
- accurate: Playwright headless browser with regional context
- cascade: strategy selection, rate limiting, timeouts and one escalation
"""

from .cascade import CascadeFetcher, FetchResult
from .cheap_httpx import CheapHttpxFetcher, FetchResponse
from .accurate_playwright import AccuratePlaywrightFetcher
from .geo_context import PRICING_CONTEXTS, PricingContext, get_pricing_context
from .rate_limiter import AsyncRateLimiter, build_rate_limiters
from .scraper_selector import EscalationResult, ScraperSelector

__all__ = [
    "CascadeFetcher",
    "FetchResult",
    "CheapHttpxFetcher",
    "FetchResponse",
    "AccuratePlaywrightFetcher",
    "PRICING_CONTEXTS",
    "PricingContext",
    "get_pricing_context",
    "AsyncRateLimiter",
    "build_rate_limiters",
    "EscalationResult",
    "ScraperSelector",
]
