"""
Protocols for pluggable extraction strategies and their collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Mapping, Optional, Protocol, runtime_checkable

from .models import AIEnhancedContent, ExtractedContent, ExtractionOptions, Platform

if TYPE_CHECKING:
    from noteferry.ai.schemas import AIResult, Categorization, RawExtraction
    from noteferry.crawler.user_agents import DeviceProfile


@dataclass(frozen=True)
class PagePolicy:
    """How pages of one platform should be obtained.

    ``prefer_browser``: render in the headless browser first when allowed.
    ``browser_fallback``: fall back to the browser when the plain fetch fails.
    """

    profile: Optional["DeviceProfile"] = None
    prefer_browser: bool = False
    browser_fallback: bool = False
    headers: Mapping[str, str] = field(default_factory=dict)


@runtime_checkable
class HtmlExtractor(Protocol):
    """Turns one HTML document into ExtractedContent."""

    name: str
    platform: Platform
    page_policy: PagePolicy

    def can_handle(self, url: str) -> bool:
        ...

    async def extract(self, html: str, source_url: str) -> ExtractedContent:
        """Extract content from an HTML string.

        Never raises for missing fields; those degrade to placeholders.
        """
        ...


@runtime_checkable
class PageExtractor(Protocol):
    """Obtains a page for a URL and extracts it."""

    name: str

    async def extract(self, url: str, options: ExtractionOptions) -> ExtractedContent:
        ...


class AICapability(Protocol):
    """The language-model operations the extraction core depends on."""

    def is_available(self) -> bool:
        ...

    async def summarize(self, text: str) -> AIResult[str]:
        ...

    async def optimize_title(self, title: str, text: str) -> AIResult[str]:
        ...

    async def categorize(self, text: str) -> AIResult[Categorization]:
        ...

    async def extract_structured(self, html: str, url: str) -> AIResult[RawExtraction]:
        ...


class ContentCache(Protocol):
    """Storage for enriched results. A miss returns None and is never an error."""

    def key_for(self, url: str, content: Optional[str] = None) -> str:
        ...

    def get(self, key: str) -> Optional[AIEnhancedContent]:
        ...

    def set(self, key: str, value: AIEnhancedContent) -> None:
        ...
