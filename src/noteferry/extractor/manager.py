"""
Extraction orchestrator.

Runs one URL through the strategy chain as an explicit state machine:

    NOT_STARTED -> PLATFORM_EXTRACTION -> GENERIC_FALLBACK -> AI_FALLBACK -> DONE | FAILED

``next_state`` is the whole transition table and has no I/O, so the chain's
routing can be tested without fetching anything. Each strategy is retried
for transient failure categories only; every failed attempt is kept so the
final error names the layer that broke.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, TypeVar, Union

import structlog
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_random_exponential

from noteferry.config.config import ExtractionSettings
from noteferry.crawler.http_client import HttpFetcher
from noteferry.errors import ErrorCategory, ExtractionError, ExtractionFailed, StrategyFailure, is_transient
from noteferry.security.validation import URLValidationError, URLValidator, sanitize_url

from .ai_extractor import AIExtractor
from .browser_extractor import HeadlessBrowserExtractor
from .fetch_extractor import FetchExtractor
from .generic import GenericExtractor
from .models import AIEnhancedContent, AIOptions, ExtractedContent, ExtractionOptions, Platform
from .platform_detector import detect_platform
from .protocols import ContentCache, HtmlExtractor

logger = structlog.get_logger(__name__)

T = TypeVar("T")

BrowserFactory = Callable[[HtmlExtractor], HeadlessBrowserExtractor]
GenericFactory = Callable[[Platform], HtmlExtractor]


class ExtractionState(str, Enum):
    NOT_STARTED = "not_started"
    PLATFORM_EXTRACTION = "platform_extraction"
    GENERIC_FALLBACK = "generic_fallback"
    AI_FALLBACK = "ai_fallback"
    DONE = "done"
    FAILED = "failed"


class StageOutcome(str, Enum):
    MATCHED = "matched"  # a platform extractor exists for the URL
    UNMATCHED = "unmatched"
    REJECTED = "rejected"  # the URL gate refused the input
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({ExtractionState.DONE, ExtractionState.FAILED})


def next_state(state: ExtractionState, outcome: StageOutcome, *, ai_available: bool) -> ExtractionState:
    """Transition function of the extraction chain."""
    if state is ExtractionState.NOT_STARTED:
        if outcome is StageOutcome.MATCHED:
            return ExtractionState.PLATFORM_EXTRACTION
        if outcome is StageOutcome.UNMATCHED:
            return ExtractionState.GENERIC_FALLBACK
        if outcome is StageOutcome.REJECTED:
            return ExtractionState.FAILED
    elif state is ExtractionState.PLATFORM_EXTRACTION:
        if outcome is StageOutcome.SUCCEEDED:
            return ExtractionState.DONE
        if outcome is StageOutcome.FAILED:
            return ExtractionState.GENERIC_FALLBACK
    elif state is ExtractionState.GENERIC_FALLBACK:
        if outcome is StageOutcome.SUCCEEDED:
            return ExtractionState.DONE
        if outcome is StageOutcome.FAILED:
            return ExtractionState.AI_FALLBACK if ai_available else ExtractionState.FAILED
    elif state is ExtractionState.AI_FALLBACK:
        if outcome is StageOutcome.SUCCEEDED:
            return ExtractionState.DONE
        if outcome is StageOutcome.FAILED:
            return ExtractionState.FAILED
    raise ValueError(f"No transition from {state.value} on {outcome.value}")


@dataclass(frozen=True)
class ExtractionReport:
    """Final state of one run plus every failed attempt along the way."""

    url: str
    state: ExtractionState
    content: Optional[ExtractedContent]
    failures: tuple[StrategyFailure, ...]
    platform: Platform = Platform.UNKNOWN
    strategy: Optional[str] = None
    headless_available: bool = True

    @property
    def succeeded(self) -> bool:
        return self.state is ExtractionState.DONE and self.content is not None

    def error(self) -> ExtractionFailed:
        return ExtractionFailed(self.url, self.failures, headless_available=self.headless_available)


@dataclass
class _RunContext:
    url: str
    options: ExtractionOptions
    platform: Platform = Platform.UNKNOWN
    parser: Optional[HtmlExtractor] = None
    html: Optional[str] = None
    final_url: Optional[str] = None
    strategy: Optional[str] = None
    failures: List[StrategyFailure] = field(default_factory=list)

    def remember(self, html: str, final_url: str) -> None:
        self.html = html
        self.final_url = final_url

    @property
    def page_url(self) -> str:
        return self.final_url or self.url


class ExtractionOrchestrator:
    """Drives one URL through the platform, generic and AI strategies.

    All collaborators are injected; ``headless_available`` is the capability
    flag deciding whether a browser may ever be launched.
    """

    def __init__(
        self,
        *,
        platform_extractors: Mapping[Platform, HtmlExtractor],
        fetcher: HttpFetcher,
        generic_factory: Optional[GenericFactory] = None,
        browser_factory: Optional[BrowserFactory] = None,
        ai_extractor: Optional[AIExtractor] = None,
        cache: Optional[ContentCache] = None,
        url_validator: Optional[URLValidator] = None,
        headless_available: bool = False,
        settings: Optional[ExtractionSettings] = None,
    ) -> None:
        self.settings = settings or ExtractionSettings()
        self.platform_extractors: Dict[Platform, HtmlExtractor] = dict(platform_extractors)
        self.fetcher = fetcher
        self.generic_factory = generic_factory or GenericExtractor(
            sufficient_images=self.settings.sufficient_images,
            max_images=self.settings.max_images,
            body_fallback_chars=self.settings.body_fallback_chars,
        ).for_platform
        self.browser_factory = browser_factory
        self.ai_extractor = ai_extractor
        self.cache = cache
        self.url_validator = url_validator or URLValidator()
        self.headless_available = headless_available and browser_factory is not None

    # -- capabilities -------------------------------------------------------

    @property
    def ai_available(self) -> bool:
        return self.ai_extractor is not None and self.ai_extractor.is_available()

    def supported_platforms(self) -> list[Platform]:
        return list(self.platform_extractors)

    def is_supported(self, url: str) -> bool:
        return detect_platform(url) in self.platform_extractors

    # -- retry wrapper ------------------------------------------------------

    async def _attempt(
        self,
        ctx: _RunContext,
        strategy: str,
        operation: Callable[[], Awaitable[T]],
        *,
        max_attempts: Optional[int] = None,
    ) -> Optional[T]:
        """Run one strategy; record and swallow its failure so the chain can advance."""

        @retry(
            stop=stop_after_attempt(max_attempts or self.settings.max_attempts),
            wait=wait_random_exponential(multiplier=self.settings.retry_base_delay, max=10),
            retry=retry_if_exception(is_transient),
            reraise=True,
        )
        async def run_strategy() -> T:
            return await operation()

        try:
            result = await run_strategy()
        except Exception as e:
            failure = StrategyFailure.from_exception(strategy, e)
            ctx.failures.append(failure)
            logger.warning(
                "Strategy failed",
                url=ctx.url,
                strategy=strategy,
                category=failure.category.value,
                error=failure.message,
            )
            return None
        ctx.strategy = strategy
        return result

    # -- page acquisition ---------------------------------------------------

    async def _fetch_and_parse(self, ctx: _RunContext, parser: HtmlExtractor) -> ExtractedContent:
        html, final_url = await FetchExtractor(self.fetcher, parser).fetch_html(ctx.url, ctx.options)
        ctx.remember(html, final_url)
        return await parser.extract(html, final_url)

    async def _render_and_parse(self, ctx: _RunContext, parser: HtmlExtractor) -> ExtractedContent:
        assert self.browser_factory is not None
        browser = self.browser_factory(parser)
        try:
            html, final_url = await browser.render(ctx.url, ctx.options)
        finally:
            await browser.close()
        ctx.remember(html, final_url)
        return await parser.extract(html, final_url)

    async def _parse_preloaded(self, ctx: _RunContext, parser: HtmlExtractor) -> ExtractedContent:
        html = ctx.options.preloaded_html or ""
        ctx.remember(html, ctx.url)
        return await parser.extract(html, ctx.url)

    async def _obtain(self, ctx: _RunContext, parser: HtmlExtractor) -> Optional[ExtractedContent]:
        """Try the acquisition routes the parser's page policy and the capabilities allow."""
        if ctx.options.preloaded_html is not None:
            return await self._attempt(ctx, f"{parser.name}:preloaded", lambda: self._parse_preloaded(ctx, parser))

        policy = parser.page_policy
        wants_browser = policy.prefer_browser or ctx.options.force_headless_browser
        if self.headless_available and wants_browser:
            content = await self._attempt(ctx, f"browser:{parser.name}", lambda: self._render_and_parse(ctx, parser))
            if content is not None:
                return content

        content = await self._attempt(ctx, f"fetch:{parser.name}", lambda: self._fetch_and_parse(ctx, parser))
        if content is not None:
            return content

        if self.headless_available and policy.browser_fallback and not wants_browser:
            return await self._attempt(ctx, f"browser:{parser.name}", lambda: self._render_and_parse(ctx, parser))
        return None

    # -- stages -------------------------------------------------------------

    def _start(self, ctx: _RunContext, raw_url: str) -> StageOutcome:
        try:
            ctx.url = self.url_validator.validate_url(sanitize_url(raw_url or ""))
        except URLValidationError as e:
            ctx.failures.append(StrategyFailure("url_gate", ErrorCategory.VALIDATION, str(e)))
            logger.warning("URL rejected", url=(raw_url or "")[:200], reason=str(e))
            return StageOutcome.REJECTED

        ctx.platform = detect_platform(ctx.url)
        ctx.parser = self.platform_extractors.get(ctx.platform)
        if ctx.parser is None or not ctx.parser.can_handle(ctx.url):
            ctx.parser = None
            ctx.failures.append(
                StrategyFailure(
                    "platform",
                    ErrorCategory.UNKNOWN,
                    f"No dedicated extractor for platform '{ctx.platform.value}'",
                )
            )
            return StageOutcome.UNMATCHED
        return StageOutcome.MATCHED

    async def _platform_stage(self, ctx: _RunContext) -> Optional[ExtractedContent]:
        assert ctx.parser is not None
        return await self._obtain(ctx, ctx.parser)

    async def _generic_stage(self, ctx: _RunContext) -> Optional[ExtractedContent]:
        parser = self.generic_factory(ctx.platform)
        if ctx.html is not None:
            html, page_url = ctx.html, ctx.page_url
            return await self._attempt(ctx, parser.name, lambda: parser.extract(html, page_url))
        return await self._obtain(ctx, parser)

    async def _ai_stage(self, ctx: _RunContext) -> Optional[ExtractedContent]:
        assert self.ai_extractor is not None
        ai_extractor = self.ai_extractor

        async def extract_with_model() -> ExtractedContent:
            if ctx.html is None:
                html, final_url = await FetchExtractor(self.fetcher, self.generic_factory(ctx.platform)).fetch_html(
                    ctx.url, ctx.options
                )
                ctx.remember(html, final_url)
            return await ai_extractor.extract_from_html(ctx.html or "", ctx.page_url)

        # AIExtractor already retries transient model failures.
        return await self._attempt(ctx, ai_extractor.name, extract_with_model, max_attempts=1)

    # -- public API ---------------------------------------------------------

    async def run(self, url: str, options: Optional[ExtractionOptions] = None) -> ExtractionReport:
        """Run the chain to a terminal state. Never raises for strategy failures."""
        ctx = _RunContext(url=url, options=options or ExtractionOptions())
        ai_available = self.ai_available
        stages = {
            ExtractionState.PLATFORM_EXTRACTION: self._platform_stage,
            ExtractionState.GENERIC_FALLBACK: self._generic_stage,
            ExtractionState.AI_FALLBACK: self._ai_stage,
        }

        content: Optional[ExtractedContent] = None
        state = next_state(ExtractionState.NOT_STARTED, self._start(ctx, url), ai_available=ai_available)
        while state not in TERMINAL_STATES:
            logger.debug("Entering stage", url=ctx.url, state=state.value)
            content = await stages[state](ctx)
            outcome = StageOutcome.SUCCEEDED if content is not None else StageOutcome.FAILED
            state = next_state(state, outcome, ai_available=ai_available)

        if state is ExtractionState.DONE:
            logger.info(
                "Extraction succeeded",
                url=ctx.url,
                platform=ctx.platform.value,
                strategy=ctx.strategy,
                failed_attempts=len(ctx.failures),
            )
        else:
            content = None
            logger.error("Extraction failed", url=ctx.url, attempts=[f.describe() for f in ctx.failures])

        return ExtractionReport(
            url=ctx.url,
            state=state,
            content=content,
            failures=tuple(ctx.failures),
            platform=ctx.platform,
            strategy=ctx.strategy if state is ExtractionState.DONE else None,
            headless_available=self.headless_available,
        )

    async def extract(self, url: str, options: Optional[ExtractionOptions] = None) -> ExtractedContent:
        """Extract content or raise ``ExtractionFailed`` naming every failed strategy."""
        report = await self.run(url, options)
        if not report.succeeded or report.content is None:
            raise report.error()
        return report.content

    async def enhance(self, content: ExtractedContent, ai_options: Optional[AIOptions] = None) -> AIEnhancedContent:
        """Enrich already-extracted content, going through the cache when enabled."""
        ai_options = ai_options or AIOptions()
        if not self.ai_available or self.ai_extractor is None:
            return AIEnhancedContent.from_content(content, enhanced=False)

        key: Optional[str] = None
        if self.cache is not None and ai_options.use_cache:
            key = self.cache.key_for(content.source_url, content.body)
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("AI cache hit", url=content.source_url)
                return cached

        enhanced = await self.ai_extractor.enhance(content, ai_options)
        if key is not None and self.cache is not None and enhanced.has_enrichment:
            self.cache.set(key, enhanced)
        return enhanced

    async def extract_with_ai(
        self,
        url: str,
        options: Optional[ExtractionOptions] = None,
        ai_options: Optional[AIOptions] = None,
    ) -> AIEnhancedContent:
        content = await self.extract(url, options)
        return await self.enhance(content, ai_options)

    async def smart_extract(
        self, url: str, options: Optional[ExtractionOptions] = None
    ) -> Union[ExtractedContent, AIEnhancedContent]:
        """Enhance with AI first for allow-listed platforms; otherwise the plain chain."""
        content = await self.extract(url, options)
        if content.platform.value not in self.settings.ai_first_platforms or not self.ai_available:
            return content
        try:
            return await self.enhance(content)
        except ExtractionError as e:
            logger.warning("AI-first enhancement failed, returning plain content", url=url, error=e.message)
            return content

    async def batch_enhance(
        self, contents: Sequence[ExtractedContent], ai_options: Optional[AIOptions] = None
    ) -> list[AIEnhancedContent]:
        if not self.ai_available or self.ai_extractor is None:
            return [AIEnhancedContent.from_content(item, enhanced=False) for item in contents]
        return await self.ai_extractor.batch_enhance(contents, ai_options)
