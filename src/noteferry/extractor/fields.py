"""
Field extraction steps shared by every HTML extractor.

Each step walks an ordered selector list and applies length bounds, cleanup
patterns and stoplists; none of them raises for missing data.
"""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional, Pattern, Sequence, TypeVar

from dateutil import parser as dateutil_parser

from noteferry.utils.text import strip_patterns, truncate

from .dom import Document, SelectorRule
from .image_filter import ImageFilter
from .models import MAX_IMAGES

T = TypeVar("T")

BRACKET_PREFIX = re.compile(r"^\s*【.*?】\s*")
UNIX_SECONDS = re.compile(r"^\d{10}$")
HAS_YEAR = re.compile(r"\d{4}")
CJK_DATE = re.compile(r"(\d{4})年(\d{1,2})月(\d{1,2})日")
DATE_IN_TEXT = re.compile(r"\d{4}[-/.]\d{1,2}[-/.]\d{1,2}(?:[ T]\d{1,2}:\d{2}(?::\d{2})?)?")

OG_IMAGE = SelectorRule.meta("og:image")

# Missing time parts are filled from a fixed default, never from "today".
_DATE_DEFAULT = datetime(2000, 1, 1)
# Parsing twice with different defaults reveals values lacking a month or day.
_SECOND_DEFAULT = datetime(2001, 2, 2)


def extract_title(
    doc: Document,
    rules: Sequence[SelectorRule],
    *,
    placeholder: str,
    cleanup: Iterable[Pattern[str]] = (),
    min_length: int = 0,
    max_length: Optional[int] = None,
    accept: Optional[Callable[[str], bool]] = None,
) -> str:
    patterns = tuple(cleanup)

    def acceptable(value: str) -> bool:
        return len(value) > min_length and (accept is None or accept(value))

    title = doc.first_of(rules, accept=acceptable, transform=lambda v: strip_patterns(v, patterns))
    if title is None:
        return placeholder
    return truncate(title, max_length) if max_length else title


def extract_body(
    doc: Document,
    rules: Sequence[SelectorRule],
    *,
    min_length: int,
    cleanup: Iterable[Pattern[str]] = (),
    max_length: Optional[int] = None,
) -> Optional[str]:
    """First container whose cleaned text is longer than ``min_length``."""
    patterns = tuple(cleanup)
    for rule in rules:
        value = doc.first(rule)
        if not value or len(value) <= min_length:
            continue
        value = strip_patterns(value, patterns)
        if len(value) <= min_length:
            continue
        return truncate(value, max_length) if max_length else value
    return None


def page_text_fallback(
    doc: Document,
    *,
    min_length: int,
    max_length: int,
    cleanup: Iterable[Pattern[str]] = (),
) -> Optional[str]:
    text = strip_patterns(doc.body_text(), cleanup)
    if len(text) <= min_length:
        return None
    return truncate(text, max_length)


def collect_images(
    doc: Document,
    image_filter: ImageFilter,
    *,
    extra_rules: Sequence[SelectorRule] = (),
    sufficient: int = 3,
    capacity: int = MAX_IMAGES,
) -> tuple[str, ...]:
    """Meta-tag images first; other sources only while fewer than ``sufficient`` were found."""
    images = image_filter.dedupe_and_cap(doc.values(OG_IMAGE), capacity)
    if len(images) >= sufficient or not extra_rules:
        return images
    candidates = [*images, *doc.all_values(extra_rules)]
    return image_filter.dedupe_and_cap(candidates, capacity)


def extract_author(
    doc: Document,
    rules: Sequence[SelectorRule],
    *,
    max_length: int = 50,
    stoplist: Iterable[str] = (),
    reject_containing: Iterable[str] = (),
) -> Optional[str]:
    stop = frozenset(stoplist)
    fragments = tuple(reject_containing)

    def acceptable(value: str) -> bool:
        if not 0 < len(value) < max_length:
            return False
        return value not in stop and not any(f in value for f in fragments)

    return doc.first_of(rules, accept=acceptable)


def _parse_complete_date(text: str) -> Optional[datetime]:
    """dateutil parse that rejects values without year, month and day (e.g. a bare "1234")."""
    parsed = dateutil_parser.parse(text, default=_DATE_DEFAULT)
    other = dateutil_parser.parse(text, default=_SECOND_DEFAULT)
    if (parsed.year, parsed.month, parsed.day) != (other.year, other.month, other.day):
        return None
    return parsed


def parse_date(value: str | None) -> Optional[datetime]:
    """Parse Unix seconds, ISO-8601 or ``YYYY年M月D日`` strings; None when invalid."""
    if not value:
        return None
    value = value.strip()
    if UNIX_SECONDS.match(value):
        try:
            return datetime.fromtimestamp(int(value), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    value = CJK_DATE.sub(lambda m: "-".join(m.groups()), value)
    if not HAS_YEAR.search(value):
        return None
    try:
        parsed = _parse_complete_date(value)
    except (ValueError, OverflowError):
        parsed = None
    if parsed is not None:
        return parsed
    # Free text such as "发布于 2024-01-15 10:30": parse the embedded date only.
    embedded = DATE_IN_TEXT.search(value)
    if embedded is None:
        return None
    try:
        return _parse_complete_date(embedded.group(0))
    except (ValueError, OverflowError):
        return None


def extract_date(
    doc: Document,
    rules: Sequence[SelectorRule],
    *,
    pattern: Optional[Pattern[str]] = None,
) -> Optional[datetime]:
    """First rule whose value parses as a date; ``pattern`` narrows free text to its first group."""
    for rule in rules:
        value = doc.first(rule)
        if not value:
            continue
        if pattern is not None:
            match = pattern.search(value)
            if not match:
                continue
            value = match.group(1)
        parsed = parse_date(value)
        if parsed is not None:
            return parsed
    return None


async def run_parser(parse: Callable[[str, str], T], html: str, source_url: str) -> T:
    """Run a synchronous DOM parse in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, parse, html, source_url)
