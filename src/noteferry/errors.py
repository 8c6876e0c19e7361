"""
Error taxonomy for extraction failures.

Every failure that leaves an extractor is classified into an ``ErrorCategory``.
The category drives two decisions: whether the orchestrator retries the same
strategy (transient categories only) and which actionable hint reaches the
user. Content that is deleted or restricted is not an error; extractors return
it as a placeholder body.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, Optional, Sequence

import aiohttp
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from pydantic import ValidationError


class ErrorCategory(str, Enum):
    """Failure categories surfaced to callers."""

    NETWORK = "network"
    TIMEOUT = "timeout"
    RENDERING = "rendering"
    AUTH_WALL = "auth_wall"
    CONTENT_UNAVAILABLE = "content_unavailable"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


TRANSIENT_CATEGORIES = frozenset(
    {ErrorCategory.NETWORK, ErrorCategory.TIMEOUT, ErrorCategory.RATE_LIMITED, ErrorCategory.UNKNOWN}
)


class ExtractionError(Exception):
    """Base class for infrastructure failures raised by extractors."""

    category: ClassVar[ErrorCategory] = ErrorCategory.UNKNOWN

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.url = url


class NetworkFailure(ExtractionError):
    """Connection, DNS or HTTP-level failure."""

    category = ErrorCategory.NETWORK


class ExtractionTimeout(ExtractionError):
    """A fetch, navigation or model call exceeded its bound."""

    category = ErrorCategory.TIMEOUT


class RenderingFailure(ExtractionError):
    """The headless browser could not launch or render the page."""

    category = ErrorCategory.RENDERING


class AuthWall(ExtractionError):
    """Redirected to a login page or access denied."""

    category = ErrorCategory.AUTH_WALL


class ValidationFailure(ExtractionError):
    """Malformed or unsafe input URL, or a model response that fails the schema."""

    category = ErrorCategory.VALIDATION


class RateLimited(ExtractionError):
    """The target or the model provider throttled the request."""

    category = ErrorCategory.RATE_LIMITED


_KEYWORD_CATEGORIES = (
    (("timeout", "timed out"), ErrorCategory.TIMEOUT),
    (("rate limit", "too many requests", "429"), ErrorCategory.RATE_LIMITED),
    (("unauthorized", "forbidden", "401", "403", "login"), ErrorCategory.AUTH_WALL),
    (("playwright", "browser", "target page"), ErrorCategory.RENDERING),
    (("network", "connection", "econnreset", "enotfound", "dns"), ErrorCategory.NETWORK),
)


def classify_error(exc: BaseException) -> ErrorCategory:
    """Map any exception raised during extraction onto an ErrorCategory."""
    if isinstance(exc, ExtractionError):
        return exc.category
    if isinstance(exc, PlaywrightTimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, PlaywrightError):
        return ErrorCategory.RENDERING
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, aiohttp.ClientResponseError):
        return category_for_status(exc.status)
    if isinstance(exc, (aiohttp.ClientError, ConnectionError)):
        return ErrorCategory.NETWORK
    if isinstance(exc, (ValidationError, json.JSONDecodeError)):
        return ErrorCategory.VALIDATION

    message = str(exc).lower()
    for keywords, category in _KEYWORD_CATEGORIES:
        if any(keyword in message for keyword in keywords):
            return category
    return ErrorCategory.UNKNOWN


def category_for_status(status: int) -> ErrorCategory:
    if status == 429:
        return ErrorCategory.RATE_LIMITED
    if status in (401, 403):
        return ErrorCategory.AUTH_WALL
    if status in (408, 504):
        return ErrorCategory.TIMEOUT
    return ErrorCategory.NETWORK


def is_transient(exc: BaseException) -> bool:
    return classify_error(exc) in TRANSIENT_CATEGORIES


def user_message(category: ErrorCategory, *, headless_available: bool = True) -> str:
    """Return an actionable hint for a failure category."""
    preload_hint = "Provide pre-fetched HTML (preloaded_html) to skip fetching on this host."
    if category is ErrorCategory.NETWORK:
        message = "Could not reach the page. Check the connection and retry shortly."
        return message if headless_available else f"{message} {preload_hint}"
    if category is ErrorCategory.TIMEOUT:
        return "The page responded too slowly. Retry later or provide pre-fetched HTML."
    if category is ErrorCategory.RENDERING:
        if not headless_available:
            return (
                "Browser rendering is not available in this environment. "
                "Provide pre-fetched HTML or run the service locally."
            )
        return "The page could not be rendered in the headless browser. Provide pre-fetched HTML."
    if category is ErrorCategory.AUTH_WALL:
        return (
            "The site requires login or denied access. Share a public link from the app "
            "or provide pre-fetched HTML."
        )
    if category is ErrorCategory.CONTENT_UNAVAILABLE:
        return "The content was deleted or is restricted by the platform."
    if category is ErrorCategory.VALIDATION:
        return "The URL was rejected. Use a public http(s) link from a supported platform."
    if category is ErrorCategory.RATE_LIMITED:
        return "Too many requests to the site. Wait a moment before retrying."
    return "Extraction failed for an unknown reason. Check the URL or provide pre-fetched HTML."


@dataclass(frozen=True)
class StrategyFailure:
    """One failed strategy inside an extraction run."""

    strategy: str
    category: ErrorCategory
    message: str

    @classmethod
    def from_exception(cls, strategy: str, exc: BaseException) -> StrategyFailure:
        message = exc.message if isinstance(exc, ExtractionError) else str(exc)
        return cls(strategy=strategy, category=classify_error(exc), message=message or type(exc).__name__)

    def describe(self) -> str:
        return f"{self.strategy} [{self.category.value}]: {self.message}"


class ExtractionFailed(ExtractionError):
    """Every strategy of the chain failed; carries all attempted failures."""

    def __init__(
        self,
        url: str,
        failures: Sequence[StrategyFailure],
        *,
        headless_available: bool = True,
    ) -> None:
        self.failures = tuple(failures)
        self.category = self._dominant_category(self.failures)  # type: ignore[misc]
        self.hint = user_message(self.category, headless_available=headless_available)
        details = "; ".join(f.describe() for f in self.failures) or "no strategy was attempted"
        super().__init__(f"All extraction strategies failed. {details}", url=url)

    @staticmethod
    def _dominant_category(failures: Sequence[StrategyFailure]) -> ErrorCategory:
        if not failures:
            return ErrorCategory.UNKNOWN
        if any(f.category is ErrorCategory.VALIDATION and f.strategy == "url_gate" for f in failures):
            return ErrorCategory.VALIDATION
        return failures[-1].category

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "message": self.hint,
            "attempts": [
                {"strategy": f.strategy, "category": f.category.value, "message": f.message} for f in self.failures
            ],
        }
