"""
Language-model extraction and enrichment.

``extract_from_html`` is the last resort of the extraction chain: the model
reads raw HTML and returns the fields a selector-based parser could not find.
``enhance`` adds a summary, a shorter title and categories to content that
was already extracted.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, TypeVar
from urllib.parse import urlparse

import structlog
from tenacity import retry, retry_if_result, stop_after_attempt, wait_random_exponential

from noteferry.ai.schemas import AIResult, Categorization
from noteferry.config.config import AIConfig
from noteferry.errors import ExtractionError, ValidationFailure
from noteferry.utils.text import clean_text

from .fields import parse_date
from .image_filter import ImageFilter
from .models import MAX_IMAGES, AIEnhancedContent, AIOptions, ExtractedContent
from .platform_detector import detect_platform
from .protocols import AICapability

logger = structlog.get_logger(__name__)

T = TypeVar("T")

TITLE_PLACEHOLDER = "Untitled"
BODY_PLACEHOLDER = "No content could be extracted"


def _needs_retry(result: AIResult[Any]) -> bool:
    return not result.ok and result.transient


def _last_result(retry_state: Any) -> AIResult[Any]:
    return retry_state.outcome.result()


class AIExtractor:
    """Wraps an ``AICapability`` with retries, defaults and concurrency."""

    name = "ai"

    def __init__(
        self,
        client: AICapability,
        config: Optional[AIConfig] = None,
        *,
        max_images: int = MAX_IMAGES,
    ) -> None:
        self.client = client
        self.config = config or AIConfig()
        self.max_images = max_images

    def is_available(self) -> bool:
        return self.client.is_available()

    async def _call(self, operation: Callable[[], Awaitable[AIResult[T]]]) -> AIResult[T]:
        """Run one capability call, retrying only transient failures."""

        @retry(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_random_exponential(multiplier=self.config.retry_base_delay, max=10),
            retry=retry_if_result(_needs_retry),
            retry_error_callback=_last_result,
        )
        async def call_model() -> AIResult[T]:
            return await operation()

        return await call_model()

    async def extract_from_html(self, html: str, url: str) -> ExtractedContent:
        """Ask the model for structured fields; raises when it cannot provide them."""
        truncated = html[: self.config.html_char_limit]
        result = await self._call(lambda: self.client.extract_structured(truncated, url))
        if not result.ok or result.value is None:
            message = f"AI extraction failed: {result.error}"
            if result.transient:
                raise ExtractionError(message, url=url)
            raise ValidationFailure(message, url=url)

        raw = result.value
        parsed = urlparse(url)
        origin = f"{parsed.scheme}://{parsed.netloc}" if parsed.scheme and parsed.netloc else ""
        images = ImageFilter(origin).dedupe_and_cap(raw.images, capacity=self.max_images)

        logger.info("AI extraction succeeded", url=url, images=len(images))
        return ExtractedContent(
            title=clean_text(raw.title) or TITLE_PLACEHOLDER,
            body=(raw.content or "").strip() or BODY_PLACEHOLDER,
            images=images,
            platform=detect_platform(url),
            source_url=url,
            author=clean_text(raw.author) or None,
            published_at=parse_date(raw.published_at),
        )

    async def enhance(self, content: ExtractedContent, options: Optional[AIOptions] = None) -> AIEnhancedContent:
        """Run the requested enrichment sub-tasks concurrently.

        A failing sub-task only leaves its own fields unset.
        """
        options = options or AIOptions()
        if not self.is_available():
            return AIEnhancedContent.from_content(content, enhanced=False)

        tasks: Dict[str, Awaitable[AIResult[Any]]] = {}
        if options.summarize:
            tasks["summary"] = self._call(lambda: self.client.summarize(content.body))
        if options.optimize_title:
            tasks["optimized_title"] = self._call(lambda: self.client.optimize_title(content.title, content.body))
        if options.categorize:
            tasks["categorization"] = self._call(
                lambda: self.client.categorize(f"{content.title}\n\n{content.body}")
            )
        if not tasks:
            return AIEnhancedContent.from_content(content, enhanced=False)

        outcomes = await asyncio.gather(*tasks.values(), return_exceptions=True)

        enrichment: Dict[str, Any] = {}
        for task_name, outcome in zip(tasks, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Enhancement task raised", task=task_name, error=str(outcome))
                continue
            if not outcome.ok:
                logger.warning("Enhancement task failed", task=task_name, error=outcome.error)
                continue
            if task_name == "categorization":
                categorization: Categorization = outcome.value
                enrichment["content_type"] = categorization.content_type
                enrichment["categories"] = tuple(categorization.categories)
                enrichment["tags"] = tuple(categorization.tags)
            else:
                enrichment[task_name] = outcome.value

        logger.info("Content enhanced", url=content.source_url, fields=sorted(enrichment))
        return AIEnhancedContent.from_content(content, enhanced=True, **enrichment)

    async def batch_enhance(
        self,
        contents: Sequence[ExtractedContent],
        options: Optional[AIOptions] = None,
        *,
        concurrency: int = 3,
    ) -> list[AIEnhancedContent]:
        """Enhance several results; an item that fails comes back with ``enhanced=False``."""
        semaphore = asyncio.Semaphore(concurrency)

        async def enhance_one(item: ExtractedContent) -> AIEnhancedContent:
            async with semaphore:
                try:
                    return await self.enhance(item, options)
                except Exception as e:
                    logger.error("Batch enhancement failed", url=item.source_url, error=str(e))
                    return AIEnhancedContent.from_content(item, enhanced=False)

        return list(await asyncio.gather(*(enhance_one(item) for item in contents)))
