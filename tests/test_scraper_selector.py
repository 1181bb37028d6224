"""
Tests for scraper selection, escalation triggers and regional contexts.
"""

from types import SimpleNamespace

import pytest


def snap(source):
    return SimpleNamespace(source=source)


PRICING_COPY = "Our pricing starts at $99/mo for small teams. "


class TestDecide:
    """Tests for ScraperSelector.decide()."""

    def test_browser_context_overrides_history(self):
        from pagewatch.fetchers import ScraperSelector

        context = SimpleNamespace(requires_browser=True)

        assert ScraperSelector.decide(context, snap("cheap"), proven_best="cheap") == "accurate"

    def test_first_fetch_is_cheap(self):
        from pagewatch.fetchers import ScraperSelector

        context = SimpleNamespace(requires_browser=False)

        assert ScraperSelector.decide(context, None, proven_best="accurate") == "cheap"

    def test_accurate_is_sticky(self):
        from pagewatch.fetchers import ScraperSelector

        context = SimpleNamespace(requires_browser=False)

        assert ScraperSelector.decide(context, snap("accurate"), proven_best="cheap") == "accurate"

    def test_proven_best_applies(self):
        from pagewatch.fetchers import ScraperSelector

        context = SimpleNamespace(requires_browser=False)

        assert ScraperSelector.decide(context, snap("cheap"), proven_best="accurate") == "accurate"

    def test_default_cheap(self):
        from pagewatch.fetchers import ScraperSelector

        context = SimpleNamespace(requires_browser=False)

        assert ScraperSelector.decide(context, snap("cheap")) == "cheap"
        assert ScraperSelector.decide(context, snap("cheap"), proven_best="bogus") == "cheap"


class TestDetermineBestScraper:
    """Tests for ScraperSelector.determine_best_scraper()."""

    def test_agreeing_window(self):
        from pagewatch.fetchers import ScraperSelector

        assert ScraperSelector.determine_best_scraper([snap("cheap"), snap("cheap")]) == "cheap"

    def test_short_history(self):
        from pagewatch.fetchers import ScraperSelector

        assert ScraperSelector.determine_best_scraper([snap("cheap")]) is None
        assert ScraperSelector.determine_best_scraper([]) is None

    def test_mixed_window(self):
        from pagewatch.fetchers import ScraperSelector

        assert ScraperSelector.determine_best_scraper([snap("accurate"), snap("cheap")]) is None

    def test_history_beyond_window_is_ignored(self):
        from pagewatch.fetchers import ScraperSelector

        history = [snap("accurate"), snap("accurate"), snap("cheap"), snap("cheap")]

        assert ScraperSelector.determine_best_scraper(history) == "accurate"

    def test_custom_window(self):
        from pagewatch.fetchers import ScraperSelector

        history = [snap("cheap"), snap("cheap"), snap("accurate")]

        assert ScraperSelector.determine_best_scraper(history, window=3) is None
        assert ScraperSelector.determine_best_scraper(history[:2] * 2, window=3) == "cheap"


class TestShouldEscalate:
    """Tests for ScraperSelector.should_escalate()."""

    def test_short_content(self):
        from pagewatch.fetchers import ScraperSelector

        result = ScraperSelector.should_escalate("Pro $49/mo", ["$"])

        assert result.should_escalate is True
        assert result.reason == "Content too short (10 chars)"

    def test_no_pricing_numbers(self):
        from pagewatch.fetchers import ScraperSelector

        result = ScraperSelector.should_escalate("Contact us to learn more. " * 30, ["$"])

        assert result.should_escalate is True
        assert result.reason == "No pricing numbers detected"

    def test_expected_currency_present(self):
        from pagewatch.fetchers import ScraperSelector

        content = PRICING_COPY * 12

        assert len(content) > 500
        assert ScraperSelector.should_escalate(content, ["$"]).should_escalate is False

    def test_wrong_currency_variant(self):
        from pagewatch.fetchers import ScraperSelector

        result = ScraperSelector.should_escalate(PRICING_COPY * 12, ["€"])

        assert result.should_escalate is True
        assert result.reason == "Expected currency not found (€)"

    def test_no_expected_symbols_escalates(self):
        from pagewatch.fetchers import ScraperSelector
        from pagewatch.fetchers.scraper_selector import should_upgrade_to_accurate

        result = ScraperSelector.should_escalate(PRICING_COPY * 12, [])

        assert result.should_escalate is True
        assert result.reason == "Expected currency not found (none given)"
        assert should_upgrade_to_accurate("Our pricing starts at $99/mo " * 30, []) is True

    def test_minimum_length_setting(self, settings):
        from pagewatch.fetchers import ScraperSelector

        settings.PAGEWATCH_MIN_CONTENT_LENGTH = 20

        assert ScraperSelector.should_escalate(PRICING_COPY, ["$"]).should_escalate is False

    def test_should_upgrade_helper(self):
        from pagewatch.fetchers.scraper_selector import should_upgrade_to_accurate

        assert should_upgrade_to_accurate("", ["$"]) is True
        assert should_upgrade_to_accurate(None, ["$"]) is True


class TestPricingContexts:
    """Tests for the regional pricing contexts."""

    def test_unknown_key_falls_back_to_global(self):
        from pagewatch.fetchers import get_pricing_context

        context = get_pricing_context("mars")

        assert context.key == "global"
        assert context.requires_browser is False

    @pytest.mark.parametrize("key, symbol", [("us", "$"), ("in", "₹"), ("eu", "€")])
    def test_regional_contexts_need_browser(self, key, symbol):
        from pagewatch.fetchers import get_pricing_context

        context = get_pricing_context(key.upper())

        assert context.requires_browser is True
        assert symbol in context.currency_symbols

    def test_request_headers(self):
        from pagewatch.fetchers.geo_context import get_pricing_context, get_request_headers

        headers = get_request_headers(get_pricing_context("in"))

        assert headers["Accept-Language"].startswith("en-IN")
        assert "Mozilla" in headers["User-Agent"]

    def test_browser_context_options(self):
        from pagewatch.fetchers.geo_context import get_browser_context_options, get_pricing_context

        options = get_browser_context_options(get_pricing_context("eu"))

        assert options["locale"] == "en-DE"
        assert options["timezone_id"] == "Europe/Berlin"
        assert options["geolocation"] == {"latitude": 52.52, "longitude": 13.405}
        assert options["permissions"] == ["geolocation"]
        assert options["extra_http_headers"]["Accept-Language"].startswith("en-DE")
