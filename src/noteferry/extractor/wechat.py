"""
WeChat public-account article extraction.
"""

from __future__ import annotations

import re

import structlog

from noteferry.crawler.user_agents import WECHAT_IPHONE

from .dom import Document, SelectorRule
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

TITLE_PLACEHOLDER = "WeChat Article"
BODY_PLACEHOLDER = "Could not extract the article content."

TITLE_RULES = (
    SelectorRule.text("#activity-name"),
    SelectorRule.text(".rich_media_title"),
    SelectorRule.text("h1.rich_media_title"),
    SelectorRule.meta("og:title"),
    SelectorRule.meta("twitter:title"),
    SelectorRule.text("title"),
)

BODY_STRIP = ("script", "style", ".rich_media_tool", ".qr_code_pc_outer", ".reward_qrcode_area")
BODY_RULES = (
    SelectorRule.text("#js_content"),
    SelectorRule.text(".rich_media_content"),
    SelectorRule.text(".rich_media_area_primary"),
    SelectorRule.text(".main-content"),
    SelectorRule.text(".article-content"),
)
# Calls to action run to the end of their sentence.
BODY_CLEANUP = (
    re.compile(r"(长按|扫描|扫码)二维码关注[^。！!？?]*[。！!？?]?"),
    re.compile(r"点击上方[^。！!？?]*?关注我们[。！!]?"),
    re.compile(r"关注我们获取更多[^。！!？?]*[。！!？?]?"),
)

IMAGE_RULES = (SelectorRule.attr("#js_content img, .rich_media_content img", "data-src", "src", "data-w-src"),)
WECHAT_IMAGES = ImageRules(rejected_markers=("avatar", "icon", "logo", "qr_code", "qrcode"))

AUTHOR_RULES = (
    SelectorRule.text(".rich_media_meta_nickname"),
    SelectorRule.text("#js_name"),
    SelectorRule.text(".account_nickname"),
    SelectorRule.text(".rich_media_meta .rich_media_meta_text"),
    SelectorRule.attr('meta[name="author"]', "content"),
)

DATE_RULES = (
    SelectorRule.text("#publish_time"),
    SelectorRule.text(".rich_media_meta_text"),
    SelectorRule.text(".time"),
    SelectorRule.meta("article:published_time"),
)
DATE_PATTERN = re.compile(r"(\d{4}-\d{2}-\d{2}(?:[ T]\d{2}:\d{2}(?::\d{2})?)?|\d{4}年\d{1,2}月\d{1,2}日|\d{10})")

HOST_PATTERN = re.compile(r"mp\.weixin\.qq\.com", re.IGNORECASE)


class WechatExtractor:
    """Extractor for mp.weixin.qq.com articles."""

    name = "wechat"
    platform = Platform.WECHAT
    page_policy = PagePolicy(profile=WECHAT_IPHONE, browser_fallback=True)

    def __init__(
        self,
        *,
        sufficient_images: int = 3,
        max_images: int = MAX_IMAGES,
        body_fallback_chars: int = 2000,
    ) -> None:
        self.image_filter = ImageFilter("https://mp.weixin.qq.com", WECHAT_IMAGES)
        self.sufficient_images = sufficient_images
        self.max_images = max_images
        self.body_fallback_chars = body_fallback_chars

    def can_handle(self, url: str) -> bool:
        return bool(HOST_PATTERN.search(url or ""))

    async def extract(self, html: str, source_url: str) -> ExtractedContent:
        return await run_parser(self.parse, html, source_url)

    def parse(self, html: str, source_url: str) -> ExtractedContent:
        doc = Document(html)

        title = extract_title(
            doc, TITLE_RULES, placeholder=TITLE_PLACEHOLDER, cleanup=(BRACKET_PREFIX,), min_length=5
        )
        images = collect_images(
            doc,
            self.image_filter,
            extra_rules=IMAGE_RULES,
            sufficient=self.sufficient_images,
            capacity=self.max_images,
        )
        author = extract_author(doc, AUTHOR_RULES, max_length=100)
        published_at = extract_date(doc, DATE_RULES, pattern=DATE_PATTERN)

        doc.remove(BODY_STRIP)
        body = (
            extract_body(doc, BODY_RULES, min_length=50, cleanup=BODY_CLEANUP, max_length=self.body_fallback_chars)
            or page_text_fallback(doc, min_length=100, max_length=self.body_fallback_chars, cleanup=BODY_CLEANUP)
            or BODY_PLACEHOLDER
        )

        logger.debug("Parsed article", url=source_url, title=title[:30], images=len(images))
        return ExtractedContent(
            title=title,
            body=body,
            images=images,
            platform=self.platform,
            source_url=source_url,
            author=author,
            published_at=published_at,
        )
