"""
Unit tests for the Xiaohongshu note extractor.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from noteferry.extractor.models import Platform
from noteferry.extractor.xiaohongshu import (
    DELETED_MESSAGE,
    FALLBACK_MESSAGE,
    LOGIN_MESSAGE,
    RESTRICTED_MESSAGE,
    TITLE_PLACEHOLDER,
    XiaohongshuExtractor,
    detect_page_state,
)

NOTE_URL = "https://www.xiaohongshu.com/explore/64f0c0a1000000001f03a1b2"

OG_IMAGES = [
    "https://sns-webpic-qc.xhscdn.com/202401/og_1.jpg",
    "https://sns-webpic-qc.xhscdn.com/202401/og_2.jpg",
    "https://sns-webpic-qc.xhscdn.com/202401/og_3.jpg",
    "https://sns-webpic-qc.xhscdn.com/202401/og_4.jpg",
]


@pytest.fixture
def extractor():
    return XiaohongshuExtractor()


class TestXiaohongshuParsing:
    """Field extraction from note pages."""

    def test_parses_regular_note(self, extractor, xhs_note_html):
        content = extractor.parse(xhs_note_html, NOTE_URL)

        assert content.platform is Platform.XIAOHONGSHU
        assert content.title == "周末去杭州西湖一日游攻略"
        assert content.author == "旅行小达人"
        assert content.body.startswith("西湖边的早晨特别安静")
        assert content.source_url == NOTE_URL

    def test_avatar_images_are_rejected(self, extractor, xhs_note_html):
        content = extractor.parse(xhs_note_html, NOTE_URL)

        assert content.images == (
            "https://sns-webpic-qc.xhscdn.com/202401/note_a1.jpg",
            "https://sns-webpic-qc.xhscdn.com/202401/note_a2.jpg",
        )
        assert not any("avatar" in url for url in content.images)

    def test_four_og_images_kept_in_document_order(self, extractor):
        meta = "".join(f'<meta property="og:image" content="{url}">' for url in OG_IMAGES)
        duplicate = f'<meta property="og:image" content="{OG_IMAGES[1]}">'
        html = f"<html><head>{meta}{duplicate}</head><body><p>short</p></body></html>"

        content = extractor.parse(html, NOTE_URL)

        assert list(content.images) == OG_IMAGES

    def test_title_suffix_is_stripped(self, extractor):
        html = "<html><head><title>春日野餐清单分享给大家 - 小红书</title></head><body></body></html>"

        content = extractor.parse(html, NOTE_URL)

        assert content.title == "春日野餐清单分享给大家"

    def test_missing_title_uses_placeholder(self, extractor):
        content = extractor.parse("<html><body></body></html>", NOTE_URL)

        assert content.title == TITLE_PLACEHOLDER
        assert content.body == FALLBACK_MESSAGE

    def test_published_date_left_unset_by_default(self, extractor, xhs_note_html):
        assert extractor.parse(xhs_note_html, NOTE_URL).published_at is None

    def test_published_date_stamped_when_enabled(self, xhs_note_html):
        fixed = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
        extractor = XiaohongshuExtractor(stamp_unknown_dates=True, clock=lambda: fixed)

        assert extractor.parse(xhs_note_html, NOTE_URL).published_at == fixed

    def test_parsing_is_deterministic(self, extractor, xhs_note_html):
        assert extractor.parse(xhs_note_html, NOTE_URL) == extractor.parse(xhs_note_html, NOTE_URL)

    @pytest.mark.asyncio
    async def test_async_extract_matches_parse(self, extractor, xhs_note_html):
        content = await extractor.extract(xhs_note_html, NOTE_URL)

        assert content == extractor.parse(xhs_note_html, NOTE_URL)


class TestPageStates:
    """Deleted, login-only and restricted notes become explanatory bodies."""

    def test_deleted_marker_replaced_by_placeholder(self, extractor):
        html = "<html><body><div class='error'>Sorry, this content has been deleted.</div></body></html>"

        content = extractor.parse(html, NOTE_URL)

        assert content.body == DELETED_MESSAGE
        assert "content has been deleted" not in content.body

    def test_chinese_deleted_marker(self, extractor):
        html = "<html><body><p>你访问的页面不见了</p><a>返回首页</a></body></html>"

        assert extractor.parse(html, NOTE_URL).body == DELETED_MESSAGE

    def test_login_wall(self, extractor):
        html = "<html><body><div>登录后推荐更懂你的笔记</div><div>微信扫码</div></body></html>"

        assert extractor.parse(html, NOTE_URL).body == LOGIN_MESSAGE

    def test_restricted(self, extractor):
        html = "<html><body><div>该内容访问受限</div></body></html>"

        assert extractor.parse(html, NOTE_URL).body == RESTRICTED_MESSAGE

    def test_regular_text_has_no_state(self):
        assert detect_page_state("今天分享一个超好用的收纳技巧") is None

    def test_deleted_wins_over_login(self):
        assert detect_page_state("页面不存在 请先登录") == DELETED_MESSAGE


class TestUrlHandling:
    @pytest.mark.parametrize(
        "url",
        [
            NOTE_URL,
            "http://xhslink.com/a/AbCdEf",
            "https://www.xiaohongshu.com/discovery/item/64f0c0a1",
        ],
    )
    def test_can_handle_note_urls(self, extractor, url):
        assert extractor.can_handle(url)

    def test_rejects_other_hosts(self, extractor):
        assert not extractor.can_handle("https://www.bilibili.com/video/BV1xx411c7mD")

    def test_prefers_browser(self, extractor):
        assert extractor.page_policy.prefer_browser
        assert extractor.page_policy.profile is not None
        assert extractor.page_policy.profile.is_mobile
