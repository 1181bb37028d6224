"""
Tests for the cheap httpx fetcher and HTML text extraction.

HTTP is served by httpx.MockTransport; no network access is needed.
"""

import httpx
import pytest


PRICING_HTML = """
<html>
  <head><title>Pricing</title><style>.x { color: red; }</style></head>
  <body>
    <nav>Home Pricing Blog Login Careers</nav>
    <h1>Simple pricing for teams</h1>
    <div class="price-card"><h3>Pro plan</h3><span>$49/mo</span></div>
    <p>Includes unlimited projects and priority support.</p>
    <footer>Copyright 2024 Acme Inc. All rights reserved.</footer>
    <script>var tracking = true;</script>
  </body>
</html>
"""


def make_fetcher(handler):
    from pagewatch.fetchers import CheapHttpxFetcher

    fetcher = CheapHttpxFetcher(timeout=5)
    fetcher._http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return fetcher


class TestHtmlToText:
    """Tests for html_to_text()."""

    def test_extracts_headings_pricing_and_paragraphs(self):
        from pagewatch.fetchers.cheap_httpx import html_to_text

        text = html_to_text(PRICING_HTML)

        assert text.split("\n") == [
            "# Simple pricing for teams",
            "Pro plan $49/mo",
            "Includes unlimited projects and priority support.",
        ]

    def test_drops_navigation_footer_and_scripts(self):
        from pagewatch.fetchers.cheap_httpx import html_to_text

        text = html_to_text(PRICING_HTML)

        assert "Careers" not in text
        assert "Copyright" not in text
        assert "tracking" not in text

    def test_table_rows(self):
        from pagewatch.fetchers.cheap_httpx import html_to_text

        html = "<table><tr><th>Plan</th><th>Price</th></tr><tr><td>Team</td><td>$99/mo</td></tr></table>"

        assert "Team | $99/mo" in html_to_text(html).split("\n")

    def test_duplicates_collapsed(self):
        from pagewatch.fetchers.cheap_httpx import html_to_text

        html = "<p>Every plan includes SSO and audit logs.</p>" * 3

        assert html_to_text(html) == "Every plan includes SSO and audit logs."


class TestCheapHttpxFetcher:
    """Tests for CheapHttpxFetcher.fetch()."""

    @pytest.mark.asyncio
    async def test_success(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text=PRICING_HTML))

        response = await fetcher.fetch("https://acme.com/pricing")
        await fetcher.close()

        assert response.success is True
        assert response.status_code == 200
        assert response.strategy == "cheap"
        assert "Pro plan $49/mo" in response.content

    @pytest.mark.asyncio
    async def test_sends_regional_headers(self):
        from pagewatch.fetchers import get_pricing_context

        seen = {}

        def handler(request):
            seen["accept_language"] = request.headers.get("accept-language")
            return httpx.Response(200, text=PRICING_HTML)

        fetcher = make_fetcher(handler)
        await fetcher.fetch("https://acme.com/pricing", get_pricing_context("in"))
        await fetcher.close()

        assert seen["accept_language"].startswith("en-IN")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [403, 429])
    async def test_blocked(self, status_code):
        from pagewatch.exceptions import FetchErrorCode

        fetcher = make_fetcher(lambda request: httpx.Response(status_code, text=PRICING_HTML))

        response = await fetcher.fetch("https://acme.com/pricing")
        await fetcher.close()

        assert response.success is False
        assert response.error_code == FetchErrorCode.BLOCKED
        assert response.error == f"Page blocked ({status_code})"
        assert response.status_code == status_code

    @pytest.mark.asyncio
    async def test_server_error(self):
        from pagewatch.exceptions import FetchErrorCode

        fetcher = make_fetcher(lambda request: httpx.Response(500, text="oops"))

        response = await fetcher.fetch("https://acme.com/pricing")
        await fetcher.close()

        assert response.error_code == FetchErrorCode.UNKNOWN
        assert response.error == "HTTP 500"

    @pytest.mark.asyncio
    async def test_empty_body(self):
        from pagewatch.exceptions import FetchErrorCode

        fetcher = make_fetcher(lambda request: httpx.Response(200, text="<html></html>"))

        response = await fetcher.fetch("https://acme.com/pricing")
        await fetcher.close()

        assert response.error_code == FetchErrorCode.EMPTY
        assert response.error == "Empty response"

    @pytest.mark.asyncio
    async def test_javascript_shell(self):
        """Long markup with no readable text is reported as empty."""
        from pagewatch.exceptions import FetchErrorCode

        shell = "<html><body><div id='root'></div><script>" + "x" * 500 + "</script></body></html>"
        fetcher = make_fetcher(lambda request: httpx.Response(200, text=shell))

        response = await fetcher.fetch("https://acme.com/pricing")
        await fetcher.close()

        assert response.error_code == FetchErrorCode.EMPTY
        assert response.error == "Could not extract meaningful content"

    @pytest.mark.asyncio
    async def test_timeout(self):
        from pagewatch.exceptions import FetchErrorCode

        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        fetcher = make_fetcher(handler)

        response = await fetcher.fetch("https://acme.com/pricing")
        await fetcher.close()

        assert response.error_code == FetchErrorCode.TIMEOUT
        assert response.error == "Request timed out"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        from pagewatch.exceptions import FetchErrorCode

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = make_fetcher(handler)

        response = await fetcher.fetch("https://acme.com/pricing")
        await fetcher.close()

        assert response.error_code == FetchErrorCode.UNKNOWN
        assert "connection refused" in response.error

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        fetcher = make_fetcher(lambda request: httpx.Response(200, text=PRICING_HTML))

        await fetcher.close()

        assert fetcher._http_client is None
