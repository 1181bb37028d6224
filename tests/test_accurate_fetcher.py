"""
Tests for the Playwright fetcher with a mocked browser.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest


RENDERED_HTML = """
<html><body>
  <h1>Pricing built for global teams</h1>
  <div class="plan-card">Pro plan €49 per month, billed annually</div>
  <p>All plans include unlimited dashboards and email support.</p>
</body></html>
"""


def make_fetcher(status=200, html=RENDERED_HTML, goto_error=None):
    """AccuratePlaywrightFetcher wired to a fake browser."""
    from pagewatch.fetchers import AccuratePlaywrightFetcher

    page = MagicMock()
    page.goto = AsyncMock(return_value=MagicMock(status=status), side_effect=goto_error)
    page.content = AsyncMock(return_value=html)

    browser_context = MagicMock()
    browser_context.new_page = AsyncMock(return_value=page)
    browser_context.close = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=browser_context)

    fetcher = AccuratePlaywrightFetcher(timeout=5)
    fetcher._browser = browser
    return fetcher, browser, browser_context, page


class TestAccuratePlaywrightFetcher:
    """Tests for AccuratePlaywrightFetcher.fetch()."""

    @pytest.mark.asyncio
    async def test_renders_with_regional_context(self):
        from pagewatch.fetchers import get_pricing_context

        fetcher, browser, browser_context, page = make_fetcher()

        response = await fetcher.fetch("https://acme.com/pricing", get_pricing_context("eu"))

        assert response.success is True
        assert response.strategy == "accurate"
        assert "Pro plan €49 per month, billed annually" in response.content

        options = browser.new_context.await_args.kwargs
        assert options["locale"] == "en-DE"
        assert options["timezone_id"] == "Europe/Berlin"

        assert page.goto.await_args.kwargs["timeout"] == 5000
        browser_context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_blocked(self):
        from pagewatch.exceptions import FetchErrorCode

        fetcher, _, browser_context, _ = make_fetcher(status=403)

        response = await fetcher.fetch("https://acme.com/pricing")

        assert response.success is False
        assert response.error_code == FetchErrorCode.BLOCKED
        browser_context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_http_error(self):
        from pagewatch.exceptions import FetchErrorCode

        fetcher, _, _, _ = make_fetcher(status=502)

        response = await fetcher.fetch("https://acme.com/pricing")

        assert response.error_code == FetchErrorCode.UNKNOWN
        assert response.error == "HTTP 502"

    @pytest.mark.asyncio
    async def test_empty_render(self):
        from pagewatch.exceptions import FetchErrorCode

        fetcher, _, _, _ = make_fetcher(html="<html><body><div id='app'></div></body></html>")

        response = await fetcher.fetch("https://acme.com/pricing")

        assert response.error_code == FetchErrorCode.EMPTY

    @pytest.mark.asyncio
    async def test_page_load_timeout(self):
        from playwright.async_api import TimeoutError as PlaywrightTimeoutError

        from pagewatch.exceptions import FetchErrorCode

        fetcher, _, browser_context, _ = make_fetcher(
            goto_error=PlaywrightTimeoutError("Timeout 5000ms exceeded")
        )

        response = await fetcher.fetch("https://acme.com/pricing")

        assert response.error_code == FetchErrorCode.TIMEOUT
        assert response.error == "Page load timed out"
        browser_context.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_browser_error(self):
        from playwright.async_api import Error as PlaywrightError

        from pagewatch.exceptions import FetchErrorCode

        fetcher, _, _, _ = make_fetcher(goto_error=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))

        response = await fetcher.fetch("https://acme.com/pricing")

        assert response.error_code == FetchErrorCode.UNKNOWN
        assert "ERR_NAME_NOT_RESOLVED" in response.error
