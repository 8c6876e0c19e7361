"""Small text helpers shared by the extractors and the formatter."""

from __future__ import annotations

import re
from typing import Iterable, Pattern

_WHITESPACE = re.compile(r"\s+")

ELLIPSIS = "..."


def clean_text(text: str | None) -> str:
    """Collapse runs of whitespace into single spaces and strip the ends."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def truncate(text: str, limit: int, ellipsis: str = ELLIPSIS) -> str:
    """Cut ``text`` to ``limit`` characters, appending ``ellipsis`` when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + ellipsis


def strip_patterns(text: str, patterns: Iterable[Pattern[str]]) -> str:
    for pattern in patterns:
        text = pattern.sub("", text)
    return clean_text(text)
