"""
Platform-agnostic extraction using common article markup.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

import structlog

from .dom import TEXT, Document, SelectorRule
from .fields import (
    collect_images,
    extract_author,
    extract_body,
    extract_date,
    extract_title,
    page_text_fallback,
    run_parser,
)
from .image_filter import ImageFilter
from .models import MAX_IMAGES, ExtractedContent, Platform
from .protocols import PagePolicy

logger = structlog.get_logger(__name__)

TITLE_PLACEHOLDER = "Untitled"
BODY_PLACEHOLDER = "Could not extract content."

TITLE_RULES = (
    SelectorRule.meta("og:title"),
    SelectorRule.meta("twitter:title"),
    SelectorRule.text("title"),
    SelectorRule.text("h1"),
    SelectorRule.text(".title"),
    SelectorRule.text(".post-title"),
    SelectorRule.text(".article-title"),
)

BODY_STRIP = ("script", "style", "noscript", "nav", "header", "footer", "aside", ".ads", ".advertisement")
BODY_RULES = (
    SelectorRule.text(".content"),
    SelectorRule.text(".post-content"),
    SelectorRule.text(".article-content"),
    SelectorRule.text(".entry-content"),
    SelectorRule.text(".main-content"),
    SelectorRule.text("article"),
    SelectorRule.text(".post-body"),
    SelectorRule.text(".text-content"),
    SelectorRule.text("main"),
)

IMAGE_RULES = (
    SelectorRule.meta("twitter:image"),
    SelectorRule.attr("img", "src", "data-src"),
)

AUTHOR_RULES = (
    SelectorRule.attr('meta[name="author"]', "content"),
    SelectorRule.meta("article:author"),
    SelectorRule.text(".author"),
    SelectorRule.text(".byline"),
    SelectorRule.text(".post-author"),
    SelectorRule.text(".author-name"),
)

DATE_RULES = (
    SelectorRule.meta("article:published_time"),
    SelectorRule.attr('meta[name="publish_date"]', "content"),
    SelectorRule.attr("time[datetime]", "datetime", TEXT),
    SelectorRule.text(".publish-date"),
    SelectorRule.text(".post-date"),
    SelectorRule.text(".date"),
)


def _origin(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme}://{parsed.netloc}"
    return ""


class GenericExtractor:
    """Extractor for any page, tagged with the detected platform when there is one."""

    name = "generic"
    page_policy = PagePolicy()

    def __init__(
        self,
        platform: Platform = Platform.UNKNOWN,
        *,
        sufficient_images: int = 3,
        max_images: int = MAX_IMAGES,
        body_fallback_chars: int = 2000,
    ) -> None:
        self.platform = platform
        self.sufficient_images = sufficient_images
        self.max_images = max_images
        self.body_fallback_chars = body_fallback_chars

    def for_platform(self, platform: Platform) -> GenericExtractor:
        return GenericExtractor(
            platform,
            sufficient_images=self.sufficient_images,
            max_images=self.max_images,
            body_fallback_chars=self.body_fallback_chars,
        )

    def can_handle(self, url: str) -> bool:
        return True

    async def extract(self, html: str, source_url: str) -> ExtractedContent:
        return await run_parser(self.parse, html, source_url)

    def parse(self, html: str, source_url: str, image_filter: Optional[ImageFilter] = None) -> ExtractedContent:
        doc = Document(html)
        image_filter = image_filter or ImageFilter(_origin(source_url))

        title = extract_title(doc, TITLE_RULES, placeholder=TITLE_PLACEHOLDER, max_length=200)
        images = collect_images(
            doc,
            image_filter,
            extra_rules=IMAGE_RULES,
            sufficient=self.sufficient_images,
            capacity=self.max_images,
        )
        author = extract_author(doc, AUTHOR_RULES, max_length=100)
        published_at = extract_date(doc, DATE_RULES)

        doc.remove(BODY_STRIP)
        body = (
            extract_body(doc, BODY_RULES, min_length=50)
            or page_text_fallback(doc, min_length=100, max_length=self.body_fallback_chars)
            or BODY_PLACEHOLDER
        )

        logger.debug("Parsed page generically", url=source_url, platform=self.platform.value, images=len(images))
        return ExtractedContent(
            title=title,
            body=body,
            images=images,
            platform=self.platform,
            source_url=source_url,
            author=author,
            published_at=published_at,
        )
