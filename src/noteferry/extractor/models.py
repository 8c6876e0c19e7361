"""
Data models for extraction results.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

MAX_IMAGES = 9


class Platform(str, Enum):
    """Source platforms with dedicated extraction rules."""

    XIAOHONGSHU = "xiaohongshu"
    BILIBILI = "bilibili"
    WECHAT = "wechat"
    UNKNOWN = "unknown"


class ContentType(str, Enum):
    """Closed set of content types the categorizer may assign."""

    ARTICLE = "article"
    VIDEO = "video"
    IMAGE = "image"
    TUTORIAL = "tutorial"
    REVIEW = "review"
    NEWS = "news"
    RECIPE = "recipe"
    TRAVEL = "travel"
    LIFESTYLE = "lifestyle"
    TECHNOLOGY = "technology"
    ENTERTAINMENT = "entertainment"
    OTHER = "other"


@dataclass(slots=True, frozen=True)
class ExtractedContent:
    """Structured content extracted from one page."""

    title: str
    body: str
    images: tuple[str, ...]
    platform: Platform
    source_url: str
    author: str | None = None
    published_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate the result."""
        if not isinstance(self.images, tuple):
            object.__setattr__(self, "images", tuple(self.images))
        if not self.title or not self.title.strip():
            raise ValueError("title must be a non-empty string")
        if not self.body or not self.body.strip():
            raise ValueError("body must be a non-empty string")
        if len(self.images) > MAX_IMAGES:
            raise ValueError(f"at most {MAX_IMAGES} images allowed, got {len(self.images)}")
        if len(set(self.images)) != len(self.images):
            raise ValueError("images must not contain duplicates")

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "images": list(self.images),
            "author": self.author,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "platform": self.platform.value,
            "source_url": self.source_url,
        }


@dataclass(slots=True, frozen=True, kw_only=True)
class AIEnhancedContent(ExtractedContent):
    """ExtractedContent plus language-model enrichment.

    A field left as ``None`` means the sub-task producing it failed or was
    not requested. ``enhanced`` is False when no enrichment ran at all.
    """

    enhanced: bool
    summary: str | None = None
    optimized_title: str | None = None
    categories: tuple[str, ...] | None = None
    tags: tuple[str, ...] | None = None
    content_type: ContentType | None = None

    def __post_init__(self) -> None:
        ExtractedContent.__post_init__(self)
        if self.categories is not None:
            object.__setattr__(self, "categories", tuple(self.categories)[:2])
        if self.tags is not None:
            object.__setattr__(self, "tags", tuple(self.tags)[:5])

    @classmethod
    def from_content(cls, content: ExtractedContent, *, enhanced: bool, **enrichment: Any) -> AIEnhancedContent:
        base = {f.name: getattr(content, f.name) for f in fields(ExtractedContent)}
        return cls(**base, enhanced=enhanced, **enrichment)

    @property
    def has_enrichment(self) -> bool:
        """True when at least one sub-task produced a value."""
        return any(
            value is not None for value in (self.summary, self.optimized_title, self.categories, self.content_type)
        )

    def to_dict(self) -> dict[str, Any]:
        data = ExtractedContent.to_dict(self)
        data.update(
            {
                "enhanced": self.enhanced,
                "summary": self.summary,
                "optimized_title": self.optimized_title,
                "categories": list(self.categories) if self.categories is not None else None,
                "tags": list(self.tags) if self.tags is not None else None,
                "content_type": self.content_type.value if self.content_type else None,
            }
        )
        return data


@dataclass(frozen=True)
class ExtractionOptions:
    """Per-request knobs for one extraction."""

    timeout_ms: int = 10000
    headers: Mapping[str, str] = field(default_factory=dict)
    preloaded_html: str | None = None
    force_headless_browser: bool = False

    @property
    def timeout(self) -> float:
        return self.timeout_ms / 1000


@dataclass(frozen=True)
class AIOptions:
    """Which enrichment sub-tasks to run."""

    summarize: bool = True
    optimize_title: bool = True
    categorize: bool = True
    use_cache: bool = True
