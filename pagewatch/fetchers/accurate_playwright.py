"""
Accurate Content Fetcher - Playwright headless browser.

Used when the page needs JavaScript rendering or a region-specific browser
context (locale, timezone, geolocation). Rendered HTML goes through the same
text extraction as the cheap fetcher so snapshots from both strategies
compare cleanly.
"""

import logging
from typing import Optional

from django.conf import settings

from pagewatch.exceptions import FetchErrorCode
from pagewatch.models import ScraperSource

from .cheap_httpx import BLOCKED_STATUS_CODES, MIN_TEXT_LENGTH, FetchResponse, html_to_text
from .geo_context import GLOBAL_CONTEXT, PricingContext, get_browser_context_options

logger = logging.getLogger(__name__)

# Playwright is imported lazily to avoid startup overhead
_playwright = None
_browser = None


class AccuratePlaywrightFetcher:
    """
    Accurate fetcher using a shared Playwright Chromium instance.

    Features:
    - Lazy Playwright initialization (import on first use)
    - One browser context per fetch, configured for the pricing region
    - JavaScript-rendered content capture
    """

    strategy = ScraperSource.ACCURATE.value

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize accurate fetcher.

        Args:
            timeout: Page load timeout in seconds (default from settings)
        """
        self.timeout = timeout or getattr(settings, "PAGEWATCH_ACCURATE_TIMEOUT", 60)
        self._playwright = None
        self._browser = None

    async def __aenter__(self):
        await self._init_playwright()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _init_playwright(self):
        """Initialize Playwright browser (lazy loading)."""
        global _playwright, _browser

        if _browser is not None and _browser.is_connected():
            self._playwright = _playwright
            self._browser = _browser
            return

        from playwright.async_api import async_playwright

        _playwright = await async_playwright().start()
        _browser = await _playwright.chromium.launch(
            headless=True,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--no-sandbox",
                "--disable-dev-shm-usage",
            ],
        )
        self._playwright = _playwright
        self._browser = _browser
        logger.info("Playwright browser initialized for accurate fetching")

    async def close(self):
        """Close browser and Playwright instance."""
        global _playwright, _browser

        if _browser:
            await _browser.close()
            _browser = None

        if _playwright:
            await _playwright.stop()
            _playwright = None

        self._browser = None
        self._playwright = None

    def _failure(self, code: FetchErrorCode, error: str, status_code: int = 0) -> FetchResponse:
        return FetchResponse(
            success=False,
            status_code=status_code,
            error=error,
            error_code=code,
            strategy=self.strategy,
        )

    async def fetch(
        self,
        url: str,
        context: PricingContext = GLOBAL_CONTEXT,
    ) -> FetchResponse:
        """
        Render a URL in a headless browser and extract its text.

        Args:
            url: URL to fetch
            context: Region to simulate

        Returns:
            FetchResponse with extracted text or a typed error
        """
        from playwright.async_api import Error as PlaywrightError
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        if self._browser is None:
            await self._init_playwright()

        browser_context = await self._browser.new_context(**get_browser_context_options(context))

        try:
            page = await browser_context.new_page()
            response = await page.goto(
                url,
                wait_until="networkidle",
                timeout=self.timeout * 1000,
            )
            status_code = response.status if response else 200

            if status_code in BLOCKED_STATUS_CODES:
                return self._failure(
                    FetchErrorCode.BLOCKED, f"Page blocked ({status_code})", status_code
                )
            if status_code >= 400:
                return self._failure(FetchErrorCode.UNKNOWN, f"HTTP {status_code}", status_code)

            text = html_to_text(await page.content())
            if len(text) < MIN_TEXT_LENGTH:
                return self._failure(
                    FetchErrorCode.EMPTY,
                    "Could not extract meaningful content",
                    status_code,
                )

            return FetchResponse(
                success=True,
                content=text,
                status_code=status_code,
                strategy=self.strategy,
            )

        except PlaywrightTimeoutError as e:
            logger.warning(f"Accurate fetch timeout for {url}: {e}")
            return self._failure(FetchErrorCode.TIMEOUT, "Page load timed out")

        except PlaywrightError as e:
            logger.error(f"Accurate fetch error for {url}: {e}")
            return self._failure(FetchErrorCode.UNKNOWN, str(e))

        finally:
            await browser_context.close()
