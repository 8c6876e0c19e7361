"""
Plain-HTTP page extraction: fetch the page, then hand the HTML to a parser.
"""

from __future__ import annotations

import structlog

from noteferry.crawler.http_client import HttpFetcher

from .models import ExtractedContent, ExtractionOptions
from .protocols import HtmlExtractor

logger = structlog.get_logger(__name__)


class FetchExtractor:
    """Fetches a URL over HTTP and parses it with ``parser``."""

    def __init__(self, fetcher: HttpFetcher, parser: HtmlExtractor) -> None:
        self.fetcher = fetcher
        self.parser = parser
        self.name = f"fetch:{parser.name}"

    async def fetch_html(self, url: str, options: ExtractionOptions) -> tuple[str, str]:
        """Return the page HTML and the URL it resolved to after redirects."""
        policy = self.parser.page_policy
        headers = {**policy.headers, **options.headers}
        response = await self.fetcher.fetch(
            url,
            headers=headers,
            profile=policy.profile,
            timeout=options.timeout,
        )
        if response.final_url != url:
            logger.debug("Resolved redirect", url=url, final_url=response.final_url)
        return response.text, response.final_url

    async def extract_with_html(self, url: str, options: ExtractionOptions) -> tuple[ExtractedContent, str]:
        """Like ``extract`` but also returns the fetched HTML for later strategies."""
        html, final_url = await self.fetch_html(url, options)
        return await self.parser.extract(html, final_url), html

    async def extract(self, url: str, options: ExtractionOptions) -> ExtractedContent:
        content, _ = await self.extract_with_html(url, options)
        return content
