"""
Shared fixtures for the NoteFerry test suite.

Everything here runs without network access: HTTP is served by fakes or
aioresponses, the browser by fake Playwright objects and the model by a
scripted capability.
"""

import asyncio
import time
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio

from noteferry.ai.schemas import AIResult, Categorization, RawExtraction
from noteferry.config import Config
from noteferry.config.config import LazyConfig
from noteferry.crawler.http_client import FetchResponse
from noteferry.errors import NetworkFailure
from noteferry.extractor.models import ContentType, ExtractedContent, Platform

ENV_VARS = (
    "LLM_API_KEY",
    "OPENAI_API_KEY",
    "LLM_API_BASE_URL",
    "LLM_MODEL",
    "ENABLE_AI",
    "VERCEL",
    "VERCEL_ENV",
    "NETLIFY",
    "NETLIFY_DEV",
    "AWS_LAMBDA_FUNCTION_NAME",
    "FUNCTIONS_RUNTIME",
    "PLAYWRIGHT_SKIP_BROWSER_DOWNLOAD",
)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host credentials and serverless markers out of every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    LazyConfig.reset()
    yield
    LazyConfig.reset()


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel tasks a test left behind so they cannot leak into the next one."""
    tasks_before = asyncio.all_tasks()
    yield
    for task in asyncio.all_tasks() - tasks_before:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# ============================================================================
# Configuration
# ============================================================================


@pytest.fixture
def test_config() -> Config:
    """Config with zero delays and the headless browser disabled."""
    config = Config()
    config.fetch.retry_delay = 0
    config.fetch.retries = 0
    config.browser.profile_pause_ms = 0
    config.extraction.retry_base_delay = 0
    config.ai.retry_base_delay = 0
    config.ai.enabled = False
    config.environment.headless_browser = False
    return config


# ============================================================================
# Sample pages
# ============================================================================

XHS_IMAGE_1 = "https://sns-webpic-qc.xhscdn.com/202401/note_a1.jpg"
XHS_IMAGE_2 = "https://sns-webpic-qc.xhscdn.com/202401/note_a2.jpg"
XHS_IMAGE_3 = "https://sns-webpic-qc.xhscdn.com/202401/note_a3.jpg"
XHS_IMAGE_4 = "https://sns-webpic-qc.xhscdn.com/202401/note_a4.jpg"


@pytest.fixture
def xhs_note_html() -> str:
    return f"""
    <html>
    <head>
        <title>周末去杭州西湖一日游 - 小红书</title>
        <meta property="og:title" content="周末去杭州西湖一日游攻略">
        <meta property="og:image" content="{XHS_IMAGE_1}">
    </head>
    <body>
        <div class="author-name">旅行小达人</div>
        <div class="note-content">西湖边的早晨特别安静，推荐早上七点前到断桥，人少光线也好。中午去知味观吃小笼包。</div>
        <div class="swiper-slide"><img src="{XHS_IMAGE_2}"></div>
        <div class="swiper-slide"><img src="https://sns-avatar-qc.xhscdn.com/avatar/user.jpg"></div>
    </body>
    </html>
    """


@pytest.fixture
def bilibili_video_html() -> str:
    return """
    <html>
    <head>
        <title>【4K】用三分钟看懂傅里叶变换_哔哩哔哩_bilibili</title>
        <meta property="og:image" content="https://i0.hdslb.com/bfs/archive/cover123.jpg">
        <meta name="author" content="数学可视化">
    </head>
    <body>
        <h1 class="video-title">【4K】用三分钟看懂傅里叶变换</h1>
        <div class="up-name">数学可视化</div>
        <div class="desc-info-text">这期视频用动画讲解傅里叶变换的直观含义，适合入门。</div>
        <span class="pubdate-text">2024-03-15 18:30:00</span>
        <img src="https://i1.hdslb.com/bfs/face/avatar_small.jpg">
    </body>
    </html>
    """


@pytest.fixture
def wechat_article_html() -> str:
    paragraph = "城市更新不是简单的拆旧建新，而是要在保留街区记忆的同时改善居住条件。" * 3
    return f"""
    <html>
    <head><meta property="og:title" content="城市更新的下一步"></head>
    <body>
        <h1 class="rich_media_title" id="activity-name">城市更新的下一步</h1>
        <a id="js_name">城市观察</a>
        <em id="publish_time">2024-05-20</em>
        <div id="js_content">
            <p>{paragraph}</p>
            <p>长按二维码关注我们，获取更多城市资讯。</p>
            <img data-src="https://mmbiz.qpic.cn/mmbiz_jpg/abc/640?wx_fmt=jpeg">
            <img data-src="https://mmbiz.qpic.cn/mmbiz_png/qrcode/640?wx_fmt=png">
        </div>
    </body>
    </html>
    """


@pytest.fixture
def generic_article_html() -> str:
    body = "Static site generators turn plain text files into complete websites. " * 3
    return f"""
    <html>
    <head>
        <title>Why static sites are back</title>
        <meta property="og:title" content="Why static sites are back">
        <meta property="article:published_time" content="2024-02-01T09:00:00Z">
        <meta name="author" content="Dana Writer">
    </head>
    <body>
        <nav>Home About Archive</nav>
        <article><p>{body}</p><img src="/images/diagram.png"></article>
        <footer>Copyright</footer>
    </body>
    </html>
    """


# ============================================================================
# Collaborator fakes
# ============================================================================


class FakeFetcher:
    """Stands in for HttpFetcher; serves canned HTML per URL."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, error: Optional[Exception] = None) -> None:
        self.pages = pages or {}
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def fetch(self, url: str, **kwargs: Any) -> FetchResponse:
        self.calls.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        if url not in self.pages:
            raise NetworkFailure(f"no page for {url}", url=url)
        now = time.time()
        return FetchResponse(
            status=200,
            headers={"Content-Type": "text/html"},
            text=self.pages[url],
            url=url,
            final_url=url,
            attempts=1,
            start_ts=now,
            end_ts=now,
        )


class ScriptedAI:
    """AICapability whose answers are fixed per capability."""

    def __init__(self, available: bool = True, **results: AIResult[Any]) -> None:
        self.available = available
        self.results = results
        self.calls: List[str] = []

    def is_available(self) -> bool:
        return self.available

    async def _answer(self, name: str) -> AIResult[Any]:
        self.calls.append(name)
        return self.results.get(name, AIResult.failure(f"{name} not scripted"))

    async def summarize(self, text: str) -> AIResult[str]:
        return await self._answer("summarize")

    async def optimize_title(self, title: str, text: str) -> AIResult[str]:
        return await self._answer("optimize_title")

    async def categorize(self, text: str) -> AIResult[Categorization]:
        return await self._answer("categorize")

    async def extract_structured(self, html: str, url: str) -> AIResult[RawExtraction]:
        return await self._answer("extract_structured")


@pytest.fixture
def fake_fetcher_factory():
    return FakeFetcher


@pytest.fixture
def scripted_ai_factory():
    return ScriptedAI


@pytest.fixture
def sample_content() -> ExtractedContent:
    return ExtractedContent(
        title="周末去杭州西湖一日游攻略",
        body="西湖边的早晨特别安静，推荐早上七点前到断桥。",
        images=(XHS_IMAGE_1, XHS_IMAGE_2),
        platform=Platform.XIAOHONGSHU,
        source_url="https://www.xiaohongshu.com/explore/64f0c0a1000000001f03a1b2",
        author="旅行小达人",
    )


@pytest.fixture
def sample_categorization() -> Categorization:
    return Categorization(content_type=ContentType.TRAVEL, categories=["旅行"], tags=["杭州", "西湖"])
