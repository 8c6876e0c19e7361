"""
Response schemas and result wrapper for language-model calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, field_validator

from noteferry.extractor.models import ContentType

T = TypeVar("T")


@dataclass(frozen=True)
class AIResult(Generic[T]):
    """Tagged outcome of one model call.

    ``transient`` marks failures worth retrying (timeouts, throttling,
    connection errors); a declined or malformed answer is not transient.
    """

    value: Optional[T] = None
    error: Optional[str] = None
    transient: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None

    @classmethod
    def success(cls, value: T) -> AIResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: str, *, transient: bool = False) -> AIResult[T]:
        return cls(error=error, transient=transient)


class RawExtraction(BaseModel):
    """Structured page extraction returned by the model. Everything but images may be null."""

    title: Optional[str] = None
    content: Optional[str] = None
    images: List[str]
    author: Optional[str] = None
    published_at: Optional[str] = Field(default=None, alias="publishedAt")

    model_config = {"populate_by_name": True}

    @field_validator("images", mode="before")
    @classmethod
    def drop_non_strings(cls, v: object) -> object:
        if isinstance(v, list):
            return [item for item in v if isinstance(item, str)]
        return v


class Categorization(BaseModel):
    """Content type, categories and tags assigned by the model."""

    content_type: ContentType = Field(default=ContentType.OTHER, alias="contentType")
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @field_validator("content_type", mode="before")
    @classmethod
    def unknown_type_is_other(cls, v: object) -> object:
        if isinstance(v, str) and v.lower() in {t.value for t in ContentType}:
            return v.lower()
        return ContentType.OTHER

    @field_validator("categories")
    @classmethod
    def cap_categories(cls, v: List[str]) -> List[str]:
        return [c.strip() for c in v if c and c.strip()][:2]

    @field_validator("tags")
    @classmethod
    def cap_tags(cls, v: List[str]) -> List[str]:
        return [t.strip().lstrip("#") for t in v if t and t.strip()][:5]
