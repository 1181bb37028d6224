"""
Cheap Content Fetcher - httpx with BeautifulSoup text extraction.

The fastest and lowest cost strategy. No JavaScript execution; the HTML is
reduced to readable text focused on headings, pricing cards, paragraphs,
list items and table rows.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
from bs4 import BeautifulSoup
from django.conf import settings

from pagewatch.exceptions import FetchErrorCode
from pagewatch.models import ScraperSource

from .geo_context import GLOBAL_CONTEXT, PricingContext, get_request_headers

logger = logging.getLogger(__name__)

# Responses shorter than this are treated as empty
MIN_HTML_LENGTH = 100

# Extracted text shorter than this carries no usable content
MIN_TEXT_LENGTH = 50

# Lines at or below this length are dropped during extraction
MIN_LINE_LENGTH = 10

BLOCKED_STATUS_CODES = {403, 429}

NOISE_SELECTORS = [
    "script",
    "style",
    "noscript",
    "iframe",
    "nav",
    "footer",
    "header",
    "aside",
    "[class*='cookie']",
    "[class*='banner']",
    "[class*='popup']",
    "[id*='cookie']",
    "[aria-hidden='true']",
    ".sr-only",
    ".visually-hidden",
]

PRICING_SELECTORS = "[class*='price'], [class*='plan'], [class*='tier'], [data-plan]"

PRICE_TEXT_PATTERN = re.compile(r"\$[\d,]+|\d+\s*/\s*mo|free|enterprise|contact", re.IGNORECASE)
WHITESPACE_PATTERN = re.compile(r"\s+")


@dataclass
class FetchResponse:
    """Response from a single backend fetch."""

    success: bool
    content: str = ""
    status_code: int = 0
    error: Optional[str] = None
    error_code: Optional[FetchErrorCode] = None
    strategy: str = ScraperSource.CHEAP.value


def html_to_text(html: str) -> str:
    """
    Reduce an HTML document to deduplicated readable lines.

    Args:
        html: Raw HTML markup

    Returns:
        Extracted text, one block per line
    """
    soup = BeautifulSoup(html, "html.parser")

    for selector in NOISE_SELECTORS:
        for element in soup.select(selector):
            element.decompose()

    lines: List[str] = []
    seen = set()

    def add_line(text: str, prefix: str = ""):
        clean = WHITESPACE_PATTERN.sub(" ", text).strip()
        if clean and len(clean) > MIN_LINE_LENGTH and clean not in seen:
            seen.add(clean)
            lines.append(f"{prefix} {clean}" if prefix else clean)

    for heading in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
        add_line(heading.get_text(" "), "#" * int(heading.name[1]))

    for element in soup.select(PRICING_SELECTORS):
        add_line(element.get_text(" "))

    for element in soup.find_all(["p", "li"]):
        text = element.get_text(" ").strip()
        if len(text) > 20:
            add_line(text)

    for row in soup.find_all("tr"):
        cells = [cell.get_text(" ").strip() for cell in row.find_all(["td", "th"])]
        if cells:
            add_line(" | ".join(cells))

    # Leaf nodes mentioning prices that the structural passes missed
    for element in soup.find_all(True):
        if element.find(True) is None:
            text = element.get_text(" ").strip()
            if PRICE_TEXT_PATTERN.search(text):
                add_line(text)

    return "\n".join(lines)


class CheapHttpxFetcher:
    """
    Cheap fetcher using async httpx.

    Features:
    - Async HTTP client with connection pooling
    - Region-specific User-Agent and Accept-Language headers
    - HTML to text extraction with BeautifulSoup
    - Typed error codes (TIMEOUT, BLOCKED, EMPTY, UNKNOWN)
    """

    strategy = ScraperSource.CHEAP.value

    DEFAULT_HEADERS = {
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Encoding": "gzip, deflate",
        "Connection": "keep-alive",
    }

    def __init__(self, timeout: Optional[float] = None):
        """
        Initialize cheap fetcher.

        Args:
            timeout: Request timeout in seconds (default from settings)
        """
        self.timeout = timeout or getattr(settings, "PAGEWATCH_CHEAP_TIMEOUT", 30)
        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self._init_http_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def _init_http_client(self):
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=self.DEFAULT_HEADERS,
                follow_redirects=True,
            )

    async def close(self):
        """Close HTTP client connection."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

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
        Fetch a URL and extract its text.

        Args:
            url: URL to fetch
            context: Region whose headers are sent

        Returns:
            FetchResponse with extracted text or a typed error
        """
        if self._http_client is None:
            await self._init_http_client()

        headers: Dict[str, str] = get_request_headers(context)

        try:
            response = await self._http_client.get(url, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning(f"Cheap fetch timeout for {url}: {e}")
            return self._failure(FetchErrorCode.TIMEOUT, "Request timed out")
        except httpx.HTTPError as e:
            logger.warning(f"Cheap fetch error for {url}: {e}")
            return self._failure(FetchErrorCode.UNKNOWN, str(e))

        if response.status_code in BLOCKED_STATUS_CODES:
            logger.info(f"Cheap fetch blocked for {url} (HTTP {response.status_code})")
            return self._failure(
                FetchErrorCode.BLOCKED,
                f"Page blocked ({response.status_code})",
                response.status_code,
            )

        if not 200 <= response.status_code < 300:
            return self._failure(
                FetchErrorCode.UNKNOWN,
                f"HTTP {response.status_code}",
                response.status_code,
            )

        html = response.text
        if not html or len(html) < MIN_HTML_LENGTH:
            return self._failure(FetchErrorCode.EMPTY, "Empty response", response.status_code)

        text = html_to_text(html)
        if len(text) < MIN_TEXT_LENGTH:
            return self._failure(
                FetchErrorCode.EMPTY,
                "Could not extract meaningful content",
                response.status_code,
            )

        return FetchResponse(
            success=True,
            content=text,
            status_code=response.status_code,
            strategy=self.strategy,
        )
