"""
Regional pricing contexts.

A pricing context simulates a visitor from one region: locale, timezone,
geolocation, user agent and Accept-Language. Regional contexts need a real
browser to render the right geo-variant of a page; the global context does
not.
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class PricingContext:
    """Region a page is fetched for."""

    key: str
    locale: str
    timezone: str
    currency: str
    currency_symbols: Tuple[str, ...]
    accept_language: str
    latitude: float
    longitude: float
    requires_browser: bool = False


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

USER_AGENTS = {
    "us": DEFAULT_USER_AGENT,
    "in": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "eu": (
        "Mozilla/5.0 (X11; Linux x86_64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/120.0.0.0 Safari/537.36"
    ),
    "global": DEFAULT_USER_AGENT,
}

PRICING_CONTEXTS: Dict[str, PricingContext] = {
    "us": PricingContext(
        key="us",
        locale="en-US",
        timezone="America/New_York",
        currency="USD",
        currency_symbols=("$", "USD"),
        accept_language="en-US,en;q=0.9",
        latitude=40.7128,
        longitude=-74.006,
        requires_browser=True,
    ),
    "in": PricingContext(
        key="in",
        locale="en-IN",
        timezone="Asia/Kolkata",
        currency="INR",
        currency_symbols=("₹", "INR", "Rs"),
        accept_language="en-IN,en;q=0.9,hi;q=0.8",
        latitude=19.076,
        longitude=72.8777,
        requires_browser=True,
    ),
    "eu": PricingContext(
        key="eu",
        locale="en-DE",
        timezone="Europe/Berlin",
        currency="EUR",
        currency_symbols=("€", "EUR"),
        accept_language="en-DE,en;q=0.9,de;q=0.8",
        latitude=52.52,
        longitude=13.405,
        requires_browser=True,
    ),
    "global": PricingContext(
        key="global",
        locale="en-US",
        timezone="UTC",
        currency="USD",
        currency_symbols=("$", "€", "₹", "£"),
        accept_language="en-US,en;q=0.9",
        latitude=0.0,
        longitude=0.0,
    ),
}

GLOBAL_CONTEXT = PRICING_CONTEXTS["global"]


def get_pricing_context(key: str) -> PricingContext:
    """Look up a context by key, falling back to global."""
    return PRICING_CONTEXTS.get((key or "").lower(), GLOBAL_CONTEXT)


def get_request_headers(context: PricingContext) -> Dict[str, str]:
    """Headers the cheap fetcher sends for a context."""
    return {
        "User-Agent": USER_AGENTS.get(context.key, DEFAULT_USER_AGENT),
        "Accept-Language": context.accept_language,
    }


def get_browser_context_options(context: PricingContext) -> Dict[str, Any]:
    """
    Keyword arguments for Playwright's browser.new_context().

    Args:
        context: Region to simulate

    Returns:
        Dict with locale, timezone, geolocation, user agent and headers
    """
    return {
        "locale": context.locale,
        "timezone_id": context.timezone,
        "geolocation": {"latitude": context.latitude, "longitude": context.longitude},
        "permissions": ["geolocation"],
        "user_agent": USER_AGENTS.get(context.key, DEFAULT_USER_AGENT),
        "extra_http_headers": {"Accept-Language": context.accept_language},
        "viewport": {"width": 1440, "height": 900},
    }
