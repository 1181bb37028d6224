"""
Tests for the cascade fetcher: strategy choice, escalation and timeouts.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest


GOOD_CONTENT = "Pro plan $49/mo billed annually with unlimited projects. " * 12


def make_backend(response):
    backend = MagicMock()
    backend.fetch = AsyncMock(return_value=response)
    backend.close = AsyncMock()
    return backend


def ok(content=GOOD_CONTENT, strategy="cheap"):
    from pagewatch.fetchers import FetchResponse

    return FetchResponse(success=True, content=content, status_code=200, strategy=strategy)


def failed(code, error, strategy="cheap", status_code=0):
    from pagewatch.fetchers import FetchResponse

    return FetchResponse(
        success=False,
        error=error,
        error_code=code,
        status_code=status_code,
        strategy=strategy,
    )


def make_cascade(cheap_response, accurate_response):
    from pagewatch.fetchers import CascadeFetcher, build_rate_limiters

    cheap = make_backend(cheap_response)
    accurate = make_backend(accurate_response)
    cascade = CascadeFetcher(
        cheap_fetcher=cheap,
        accurate_fetcher=accurate,
        rate_limiters=build_rate_limiters({"cheap": 0, "accurate": 0}),
    )
    return cascade, cheap, accurate


class TestCascadeFetcher:
    """Tests for CascadeFetcher.fetch()."""

    @pytest.mark.asyncio
    async def test_cheap_success_is_kept(self):
        cascade, cheap, accurate = make_cascade(ok(), ok(strategy="accurate"))

        result = await cascade.fetch("https://acme.com/pricing")

        assert result.success is True
        assert result.strategy == "cheap"
        assert result.escalated is False
        accurate.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_short_content_escalates(self):
        cascade, _, accurate = make_cascade(
            ok(content="Loading..."),
            ok(strategy="accurate"),
        )

        result = await cascade.fetch("https://acme.com/pricing")

        assert result.success is True
        assert result.strategy == "accurate"
        assert result.escalated is True
        assert result.escalation_reason == "Content too short (10 chars)"
        accurate.fetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cheap_failure_escalates(self):
        from pagewatch.exceptions import FetchErrorCode

        cascade, _, _ = make_cascade(
            failed(FetchErrorCode.BLOCKED, "Page blocked (403)", status_code=403),
            ok(strategy="accurate"),
        )

        result = await cascade.fetch("https://acme.com/pricing")

        assert result.success is True
        assert result.strategy == "accurate"
        assert result.escalation_reason == "cheap fetch failed: Page blocked (403)"

    @pytest.mark.asyncio
    async def test_suspicious_cheap_content_kept_when_accurate_fails(self):
        from pagewatch.exceptions import FetchErrorCode

        suspicious = "Contact our team to hear about plans for organisations. " * 12
        cascade, _, _ = make_cascade(
            ok(content=suspicious),
            failed(FetchErrorCode.TIMEOUT, "Page load timed out", strategy="accurate"),
        )

        result = await cascade.fetch("https://acme.com/pricing")

        assert result.success is True
        assert result.strategy == "cheap"
        assert result.content == suspicious
        assert result.escalated is True
        assert result.escalation_reason == "No pricing numbers detected"

    @pytest.mark.asyncio
    async def test_both_backends_fail(self):
        from pagewatch.exceptions import FetchErrorCode

        cascade, _, _ = make_cascade(
            failed(FetchErrorCode.UNKNOWN, "HTTP 500"),
            failed(FetchErrorCode.BLOCKED, "Page blocked (429)", strategy="accurate"),
        )

        result = await cascade.fetch("https://acme.com/pricing")

        assert result.success is False
        assert result.strategy == "accurate"
        assert result.error_code == FetchErrorCode.BLOCKED
        assert result.escalated is True

    @pytest.mark.asyncio
    async def test_regional_context_goes_straight_to_browser(self):
        from pagewatch.fetchers import get_pricing_context

        cascade, cheap, accurate = make_cascade(ok(), ok(strategy="accurate"))

        result = await cascade.fetch("https://acme.com/pricing", get_pricing_context("us"))

        assert result.strategy == "accurate"
        assert result.escalated is False
        cheap.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_accurate_history_is_sticky(self):
        cascade, cheap, _ = make_cascade(ok(), ok(strategy="accurate"))

        result = await cascade.fetch(
            "https://acme.com/pricing",
            last_snapshot=SimpleNamespace(source="accurate"),
        )

        assert result.strategy == "accurate"
        cheap.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_accurate_failure_is_not_escalated_again(self):
        from pagewatch.exceptions import FetchErrorCode
        from pagewatch.fetchers import get_pricing_context

        cascade, cheap, accurate = make_cascade(
            ok(),
            failed(FetchErrorCode.TIMEOUT, "Page load timed out", strategy="accurate"),
        )

        result = await cascade.fetch("https://acme.com/pricing", get_pricing_context("in"))

        assert result.success is False
        assert result.escalated is False
        accurate.fetch.assert_awaited_once()
        cheap.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rate_limiter_is_awaited_per_backend_call(self):
        from pagewatch.fetchers import CascadeFetcher

        cheap = make_backend(ok(content="tiny"))
        accurate = make_backend(ok(strategy="accurate"))
        limiters = {"cheap": MagicMock(acquire=AsyncMock()), "accurate": MagicMock(acquire=AsyncMock())}
        cascade = CascadeFetcher(cheap_fetcher=cheap, accurate_fetcher=accurate, rate_limiters=limiters)

        await cascade.fetch("https://acme.com/pricing")

        limiters["cheap"].acquire.assert_awaited_once()
        limiters["accurate"].acquire.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_hanging_backend_times_out(self, settings):
        from pagewatch.exceptions import FetchErrorCode

        settings.PAGEWATCH_CHEAP_TIMEOUT = 0.05

        async def hang(url, context):
            await asyncio.sleep(5)

        cascade, cheap, _ = make_cascade(ok(), ok(strategy="accurate"))
        cheap.fetch = hang

        response = await cascade.fetch_with_strategy("https://acme.com/pricing", "cheap")

        assert response.success is False
        assert response.error_code == FetchErrorCode.TIMEOUT
        assert response.strategy == "cheap"

    @pytest.mark.asyncio
    async def test_close_closes_backends(self):
        cascade, cheap, accurate = make_cascade(ok(), ok(strategy="accurate"))

        await cascade.close()

        cheap.close.assert_awaited_once()
        accurate.close.assert_awaited_once()
