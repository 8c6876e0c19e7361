"""
Composition root: builds the orchestrator and its collaborators from a Config.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Mapping, Optional
from uuid import uuid4

import structlog

from noteferry.ai.cache import AIResultCache
from noteferry.ai.client import LLMClient
from noteferry.config import Config
from noteferry.crawler.http_client import HttpFetcher
from noteferry.environment import detect_environment, headless_browser_available
from noteferry.extractor.ai_extractor import AIExtractor
from noteferry.extractor.bilibili import BilibiliExtractor
from noteferry.extractor.browser_extractor import HeadlessBrowserExtractor
from noteferry.extractor.manager import ExtractionOrchestrator
from noteferry.extractor.models import Platform
from noteferry.extractor.protocols import HtmlExtractor
from noteferry.extractor.wechat import WechatExtractor
from noteferry.extractor.xiaohongshu import XiaohongshuExtractor
from noteferry.security.validation import URLValidator


def build_platform_extractors(config: Config) -> Dict[Platform, HtmlExtractor]:
    extraction = config.extraction
    return {
        Platform.XIAOHONGSHU: XiaohongshuExtractor(
            sufficient_images=extraction.sufficient_images,
            max_images=extraction.max_images,
            stamp_unknown_dates=extraction.stamp_unknown_dates,
        ),
        Platform.BILIBILI: BilibiliExtractor(
            sufficient_images=extraction.sufficient_images,
            max_images=extraction.max_images,
            body_fallback_chars=extraction.body_fallback_chars,
        ),
        Platform.WECHAT: WechatExtractor(
            sufficient_images=extraction.sufficient_images,
            max_images=extraction.max_images,
            body_fallback_chars=extraction.body_fallback_chars,
        ),
    }


class NoteFerryContainer:
    """
    Owns the long-lived collaborators of one process: the HTTP session, the
    model client and the AI result cache. Browsers are never owned here; each
    extraction launches and closes its own.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        config_path: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.config_path = config_path
        self.config = config
        self.env = env
        self.logger = structlog.get_logger(self.__class__.__name__)
        self.container_id = str(uuid4())
        self.is_running = False

        self.fetcher: Optional[HttpFetcher] = None
        self.cache: Optional[AIResultCache] = None
        self.llm_client: Optional[LLMClient] = None
        self._orchestrator: Optional[ExtractionOrchestrator] = None

    def load_config(self) -> Config:
        if self.config is None:
            if self.config_path and self.config_path.exists():
                self.config = Config.from_yaml(self.config_path)
            else:
                self.config = Config()
        return self.config

    async def initialize(self) -> None:
        if self.is_running:
            return
        config = self.load_config()

        self.fetcher = HttpFetcher(config)
        await self.fetcher.initialize()

        self.llm_client = LLMClient(config.ai)
        self.cache = (
            AIResultCache(max_entries=config.cache.max_entries, ttl_hours=config.cache.ttl_hours)
            if config.cache.enabled
            else None
        )

        headless = headless_browser_available(config, self.env)

        def browser_factory(parser: HtmlExtractor) -> HeadlessBrowserExtractor:
            return HeadlessBrowserExtractor(parser, config.browser)

        self._orchestrator = ExtractionOrchestrator(
            platform_extractors=build_platform_extractors(config),
            fetcher=self.fetcher,
            browser_factory=browser_factory,
            ai_extractor=AIExtractor(self.llm_client, config.ai, max_images=config.extraction.max_images),
            cache=self.cache,
            url_validator=URLValidator(),
            headless_available=headless,
            settings=config.extraction,
        )
        self.is_running = True

        self.logger.info(
            "Container initialized",
            container_id=self.container_id,
            headless_browser=headless,
            ai_available=self._orchestrator.ai_available,
            config_path=str(self.config_path) if self.config_path else "default",
        )

    @property
    def orchestrator(self) -> ExtractionOrchestrator:
        if self._orchestrator is None:
            raise RuntimeError("Container not initialized. Call initialize() first.")
        return self._orchestrator

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[NoteFerryContainer]:
        try:
            await self.initialize()
            yield self
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        if not self.is_running:
            return
        self.logger.info("Shutting down container", container_id=self.container_id)
        if self.fetcher is not None:
            await self.fetcher.close()
        self._orchestrator = None
        self.is_running = False

    def get_health_status(self) -> Dict[str, Any]:
        config = self.load_config()
        environment = detect_environment(self.env)
        return {
            "container_id": self.container_id,
            "is_running": self.is_running,
            "environment": environment.to_dict(),
            "headless_browser": headless_browser_available(config, self.env),
            "ai_available": self._orchestrator.ai_available if self._orchestrator else False,
            "cache": self.cache.stats() if self.cache is not None else None,
        }
