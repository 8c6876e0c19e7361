"""
Integration tests for the extraction pipeline.

A real container (HTTP fetcher, platform extractors, orchestrator) runs
against pages served by aioresponses, and results go through the formatter.
"""

from __future__ import annotations

import json
from datetime import datetime
from urllib.parse import parse_qs, urlparse

import pytest
import pytest_asyncio
from aioresponses import aioresponses

from noteferry.container import NoteFerryContainer
from noteferry.errors import ErrorCategory, ExtractionFailed
from noteferry.extractor.models import ExtractionOptions, Platform
from noteferry.extractor.xiaohongshu import DELETED_MESSAGE
from noteferry.output.formatter import format_output

NOW = datetime(2024, 6, 1, 12, 0)
SHORT_LINK = "http://xhslink.com/a/AbCdEf"
NOTE_URL = "https://www.xiaohongshu.com/explore/64f0c0a1000000001f03a1b2"
VIDEO_URL = "https://www.bilibili.com/video/BV1GJ411x7h7"
ARTICLE_URL = "https://mp.weixin.qq.com/s/AbCdEfGhIjKlMnOp"
BLOG_URL = "https://blog.example.com/posts/static-sites"


@pytest_asyncio.fixture
async def container(test_config):
    container = NoteFerryContainer(test_config, env={})
    async with container.lifecycle():
        yield container


@pytest.mark.integration
class TestExtractionPipeline:
    @pytest.mark.asyncio
    async def test_short_link_to_flomo(self, container, xhs_note_html):
        with aioresponses() as m:
            m.get(SHORT_LINK, status=302, headers={"Location": NOTE_URL})
            m.get(NOTE_URL, status=200, body=xhs_note_html, content_type="text/html")

            content = await container.orchestrator.extract(SHORT_LINK)

        assert content.platform is Platform.XIAOHONGSHU
        assert content.source_url == NOTE_URL

        link = format_output(content, "flomo", NOW)
        params = parse_qs(urlparse(link).query)
        assert json.loads(params["image_urls"][0]) == list(content.images)
        assert params["content"][0].startswith("## 周末去杭州西湖一日游攻略")

    @pytest.mark.asyncio
    async def test_video_page_to_notes(self, container, bilibili_video_html):
        with aioresponses() as m:
            m.get(VIDEO_URL, status=200, body=bilibili_video_html, content_type="text/html")

            report = await container.orchestrator.run(VIDEO_URL)

        assert report.strategy == "fetch:bilibili"
        note = parse_qs(urlparse(format_output(report.content, "notes", NOW)).query)["note"][0]
        assert note.startswith("用三分钟看懂傅里叶变换")
        assert "1. https://i0.hdslb.com/bfs/archive/cover123.jpg" in note
        assert "Author: 数学可视化" in note

    @pytest.mark.asyncio
    async def test_article_to_raw(self, container, wechat_article_html):
        with aioresponses() as m:
            m.get(ARTICLE_URL, status=200, body=wechat_article_html, content_type="text/html")

            content = await container.orchestrator.extract(ARTICLE_URL)

        raw = format_output(content, "raw")
        assert raw["platform"] == "wechat"
        assert raw["published_at"] == "2024-05-20T00:00:00"
        assert "二维码" not in raw["body"]

    @pytest.mark.asyncio
    async def test_unknown_site_uses_generic_extraction(self, container, generic_article_html):
        with aioresponses() as m:
            m.get(BLOG_URL, status=200, body=generic_article_html, content_type="text/html")

            report = await container.orchestrator.run(BLOG_URL)

        assert report.succeeded
        assert report.strategy == "fetch:generic"
        assert report.content.images == ("https://blog.example.com/images/diagram.png",)
        assert [f.strategy for f in report.failures] == ["platform"]

    @pytest.mark.asyncio
    async def test_deleted_note_is_content_not_error(self, container):
        html = "<html><body><div>Sorry, this content has been deleted.</div></body></html>"
        with aioresponses() as m:
            m.get(NOTE_URL, status=200, body=html, content_type="text/html")

            content = await container.orchestrator.extract(NOTE_URL)

        assert content.body == DELETED_MESSAGE

    @pytest.mark.asyncio
    async def test_preloaded_html_makes_no_request(self, container, wechat_article_html):
        with aioresponses() as m:
            content = await container.orchestrator.extract(
                ARTICLE_URL, ExtractionOptions(preloaded_html=wechat_article_html)
            )

            assert not m.requests

        assert content.title == "城市更新的下一步"

    @pytest.mark.asyncio
    async def test_unreachable_page_names_every_failed_layer(self, container):
        with aioresponses() as m:
            m.get(ARTICLE_URL, status=503, repeat=True)

            with pytest.raises(ExtractionFailed) as exc_info:
                await container.orchestrator.extract(ARTICLE_URL)

        error = exc_info.value
        assert error.category is ErrorCategory.NETWORK
        assert [f.strategy for f in error.failures] == ["fetch:wechat", "fetch:generic"]
        assert "503" in str(error)
