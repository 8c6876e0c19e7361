"""
Bilibili video page extraction.
"""

from __future__ import annotations

import re

import structlog

from noteferry.crawler.user_agents import MAC_CHROME

from .dom import TEXT, Document, SelectorRule
from .fields import (
    BRACKET_PREFIX,
    collect_images,
    extract_author,
    extract_body,
    extract_date,
    extract_title,
    page_text_fallback,
    run_parser,
)
from .image_filter import ImageFilter, ImageRules
from .models import MAX_IMAGES, ExtractedContent, Platform
from .protocols import PagePolicy

logger = structlog.get_logger(__name__)

TITLE_PLACEHOLDER = "Bilibili Video"
BODY_PLACEHOLDER = "No description available"

TITLE_RULES = (
    SelectorRule.attr("h1[title]", "title", TEXT),
    SelectorRule.text(".video-title"),
    SelectorRule.meta("og:title"),
    SelectorRule.attr('meta[name="title"]', "content"),
    SelectorRule.text("title"),
    SelectorRule.text(".m-video-info .title"),
)
TITLE_CLEANUP = (
    BRACKET_PREFIX,
    re.compile(r"\s*_哔哩哔哩.*$"),
    re.compile(r"\s*-\s*bilibili.*$", re.IGNORECASE),
)

BODY_STRIP = ("script", "style", "nav", "header", "footer")
BODY_RULES = (
    SelectorRule.text(".video-desc .desc-info"),
    SelectorRule.text(".video-info .desc"),
    SelectorRule.meta("og:description"),
    SelectorRule.attr('meta[name="description"]', "content"),
    SelectorRule.text(".m-video-info .desc"),
    SelectorRule.text(".bili-dyn-content__desc"),
    SelectorRule.text(".desc-info-text"),
    SelectorRule.text(".intro"),
)

IMAGE_RULES = (
    SelectorRule.attr(".video-cover img, .bili-video-card__cover img", "src", "data-src"),
    SelectorRule.attr('img[src*="bfs.biliimg.com"], img[src*="bilibili.com"], img[src*="hdslb.com"]', "src"),
)
BILIBILI_IMAGES = ImageRules(rejected_markers=("avatar", "face", "icon", "logo"))

AUTHOR_RULES = (
    SelectorRule.text(".up-info .up-name"),
    SelectorRule.text(".video-info .up-name"),
    SelectorRule.text(".username"),
    SelectorRule.text(".author-name"),
    SelectorRule.text(".m-video-info .up-name"),
    SelectorRule.text(".bili-dyn-author__name"),
    SelectorRule.attr('meta[name="author"]', "content"),
)

DATE_RULES = tuple(
    SelectorRule.attr(selector, TEXT, "data-ts", "datetime")
    for selector in (
        ".video-info .pubdate",
        ".video-data .pubdate",
        ".pubdate-text",
        ".time",
        ".publish-time",
        ".m-video-info .time",
        ".bili-dyn-time",
    )
) + (
    SelectorRule.meta("article:published_time"),
    SelectorRule.attr('meta[itemprop="uploadDate"]', "content"),
)

HOST_PATTERN = re.compile(r"(bilibili\.com|b23\.tv|bili\.com)", re.IGNORECASE)


class BilibiliExtractor:
    """Extractor for Bilibili video pages and dynamics."""

    name = "bilibili"
    platform = Platform.BILIBILI
    page_policy = PagePolicy(profile=MAC_CHROME, browser_fallback=True)

    def __init__(
        self,
        *,
        sufficient_images: int = 3,
        max_images: int = MAX_IMAGES,
        body_fallback_chars: int = 2000,
    ) -> None:
        self.image_filter = ImageFilter("https://www.bilibili.com", BILIBILI_IMAGES)
        self.sufficient_images = sufficient_images
        self.max_images = max_images
        self.body_fallback_chars = body_fallback_chars

    def can_handle(self, url: str) -> bool:
        return bool(HOST_PATTERN.search(url or ""))

    async def extract(self, html: str, source_url: str) -> ExtractedContent:
        return await run_parser(self.parse, html, source_url)

    def parse(self, html: str, source_url: str) -> ExtractedContent:
        doc = Document(html)

        title = extract_title(doc, TITLE_RULES, placeholder=TITLE_PLACEHOLDER, cleanup=TITLE_CLEANUP, min_length=5)
        images = collect_images(
            doc,
            self.image_filter,
            extra_rules=IMAGE_RULES,
            sufficient=self.sufficient_images,
            capacity=self.max_images,
        )
        author = extract_author(doc, AUTHOR_RULES, max_length=50)
        published_at = extract_date(doc, DATE_RULES)

        doc.remove(BODY_STRIP)
        body = (
            extract_body(doc, BODY_RULES, min_length=10, max_length=300)
            or page_text_fallback(doc, min_length=100, max_length=self.body_fallback_chars)
            or BODY_PLACEHOLDER
        )

        logger.debug("Parsed video page", url=source_url, title=title[:30], images=len(images))
        return ExtractedContent(
            title=title,
            body=body,
            images=images,
            platform=self.platform,
            source_url=source_url,
            author=author,
            published_at=published_at,
        )
