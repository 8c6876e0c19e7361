"""
Xiaohongshu (RED) note extraction.

Notes are rendered client-side and most of them sit behind a login wall, so
the extractor prefers the headless browser and recognizes deleted, login-only
and region-restricted pages, replacing their text with an explanatory body.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from noteferry.crawler.user_agents import IPHONE_SAFARI

from .dom import Document, SelectorRule
from .fields import (
    collect_images,
    extract_author,
    extract_body,
    extract_title,
    page_text_fallback,
    run_parser,
)
from .image_filter import ImageFilter, ImageRules
from .models import MAX_IMAGES, ExtractedContent, Platform
from .protocols import PagePolicy

logger = structlog.get_logger(__name__)

TITLE_PLACEHOLDER = "Xiaohongshu Note"
DELETED_MESSAGE = (
    "This Xiaohongshu note no longer exists or has been deleted. "
    "The link may have expired or the author removed the note."
)
LOGIN_MESSAGE = (
    "This note can only be viewed after logging in to Xiaohongshu. "
    "Share the link directly from the Xiaohongshu app, make sure the note is public, "
    "or provide pre-fetched HTML."
)
RESTRICTED_MESSAGE = "This note is access-restricted, possibly by region or another access control."
FALLBACK_MESSAGE = (
    "Could not extract the Xiaohongshu note. The page may require login or its layout has changed."
)

DELETED_MARKERS = (
    "你访问的页面不见了",
    "页面不存在",
    "内容已删除",
    "笔记已删除",
    "content has been deleted",
    "note has been deleted",
    "page not found",
)
LOGIN_MARKERS = (
    "请先登录",
    "需要登录",
    "登录小红书",
    "登录后推荐",
    "微信扫码",
    "新用户可直接登录",
    "用户协议",
    "please log in",
    "log in to continue",
)
RESTRICTED_MARKERS = (
    "访问受限",
    "地区限制",
    "不在服务区域",
    "access restricted",
    "not available in your region",
)

TITLE_RULES = (
    SelectorRule.meta("og:title"),
    SelectorRule.text("title"),
    SelectorRule.text(".note-title"),
    SelectorRule.text(".title"),
    SelectorRule.text(".desc"),
    SelectorRule.text(".content"),
    SelectorRule.text(".note-content"),
)
TITLE_CLEANUP = (re.compile(r"\s*[-_|]\s*小红书.*$"),)

BODY_STRIP = ("script", "style", "nav", "header", "footer", ".sidebar", ".related")
BODY_RULES = (
    SelectorRule.text(".note-content"),
    SelectorRule.text(".content"),
    SelectorRule.text(".desc"),
    SelectorRule.text(".text-content"),
    SelectorRule.text("[data-v-] .content"),
    SelectorRule.text("[data-v-] .desc"),
    SelectorRule.text(".post-content"),
    SelectorRule.text(".article-content"),
)
BODY_CLEANUP = (re.compile(r"分享图片|分享视频|小红书|App|点赞|收藏|评论|关注"),)
PAGE_CLEANUP = (re.compile(r"分享图片|分享视频|小红书|App|点赞|收藏|评论|关注|返回上一页|你还可以"),)

IMAGE_RULES = (
    SelectorRule.attr(".swiper-slide img", "src", "data-src", "data-original", "data-lazy-src"),
    SelectorRule.attr(".note-slider-img", "src", "data-src"),
    SelectorRule.attr(".img-container img", "src", "data-src"),
    SelectorRule.attr('img[src*="sns-webpic"], img[src*="webpic-qc"]', "src"),
    SelectorRule.attr("img", "src", "data-src"),
)
XHS_IMAGES = ImageRules(required_markers=("xiaohongshu", "xhscdn", "sns-webpic", "picasso-static"))

AUTHOR_RULES = (
    SelectorRule.text(".author-name"),
    SelectorRule.text(".username"),
    SelectorRule.text(".user-name"),
    SelectorRule.text(".nickname"),
    SelectorRule.text("[data-v-] .author"),
    SelectorRule.text("[data-v-] .username"),
    SelectorRule.attr('meta[name="author"]', "content"),
)

HOST_PATTERN = re.compile(r"(xiaohongshu\.com|xhslink\.com|xhscdn\.com)", re.IGNORECASE)


def detect_page_state(page_text: str) -> Optional[str]:
    """Placeholder body for deleted, login-only or restricted pages; None for normal pages."""
    lowered = page_text.lower()
    if any(marker in lowered for marker in DELETED_MARKERS):
        return DELETED_MESSAGE
    if any(marker in lowered for marker in LOGIN_MARKERS):
        return LOGIN_MESSAGE
    if any(marker in lowered for marker in RESTRICTED_MARKERS):
        return RESTRICTED_MESSAGE
    return None


class XiaohongshuExtractor:
    """Extractor for Xiaohongshu notes."""

    name = "xiaohongshu"
    platform = Platform.XIAOHONGSHU
    page_policy = PagePolicy(profile=IPHONE_SAFARI, prefer_browser=True)

    def __init__(
        self,
        *,
        sufficient_images: int = 3,
        max_images: int = MAX_IMAGES,
        stamp_unknown_dates: bool = False,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.image_filter = ImageFilter("https://www.xiaohongshu.com", XHS_IMAGES)
        self.sufficient_images = sufficient_images
        self.max_images = max_images
        self.stamp_unknown_dates = stamp_unknown_dates
        self.clock = clock

    def can_handle(self, url: str) -> bool:
        return bool(HOST_PATTERN.search(url or ""))

    async def extract(self, html: str, source_url: str) -> ExtractedContent:
        return await run_parser(self.parse, html, source_url)

    def parse(self, html: str, source_url: str) -> ExtractedContent:
        doc = Document(html)

        title = extract_title(
            doc,
            TITLE_RULES,
            placeholder=TITLE_PLACEHOLDER,
            cleanup=TITLE_CLEANUP,
            max_length=50,
            accept=lambda t: "小红书" not in t or len(t) > 10,
        )
        images = collect_images(
            doc,
            self.image_filter,
            extra_rules=IMAGE_RULES,
            sufficient=self.sufficient_images,
            capacity=self.max_images,
        )
        author = extract_author(doc, AUTHOR_RULES, max_length=50, stoplist=("用户",), reject_containing=("小红书",))
        body = self._body(doc)

        logger.debug("Parsed note", url=source_url, title=title[:30], images=len(images), has_author=bool(author))
        return ExtractedContent(
            title=title,
            body=body,
            images=images,
            platform=self.platform,
            source_url=source_url,
            author=author,
            # Notes carry no reliable machine-readable date.
            published_at=self.clock() if self.stamp_unknown_dates else None,
        )

    def _body(self, doc: Document) -> str:
        doc.remove(BODY_STRIP)
        body = extract_body(doc, BODY_RULES, min_length=20, cleanup=BODY_CLEANUP)
        if body:
            return body

        state_message = detect_page_state(doc.body_text())
        if state_message:
            logger.info("Note page is not readable", state=state_message[:40])
            return state_message

        return page_text_fallback(doc, min_length=20, max_length=500, cleanup=PAGE_CLEANUP) or FALLBACK_MESSAGE
