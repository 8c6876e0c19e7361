"""
Deep-link formatting for note-taking apps.

Both formats build a human-readable text block from the extracted content
and percent-encode it into the app's URL scheme. flomo additionally takes
the images as a percent-encoded JSON array; a comma-joined list is rejected
by the app.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union
from urllib.parse import quote, urlparse

from noteferry.extractor.image_filter import looks_like_image_url
from noteferry.extractor.models import AIEnhancedContent, ExtractedContent

FLOMO_SCHEME = "flomo://create"
NOTES_SCHEME = "mobilenotes://create"

# Characters left unescaped, matching JavaScript's encodeURIComponent.
_URI_COMPONENT_SAFE = "-_.!~*'()"
_MARKUP_PATH = re.compile(r"\.(js|css|json|xml|txt|html?|php|asp)$", re.IGNORECASE)
_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M"


class OutputFormat(str, Enum):
    FLOMO = "flomo"
    NOTES = "notes"
    RAW = "raw"


def encode_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


def is_linkable_image(url: str) -> bool:
    """Images handed to another app must be http(s), not markup, and look like an image."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return False
    if _MARKUP_PATH.search(parsed.path):
        return False
    return looks_like_image_url(url)


def linkable_images(images: Iterable[str]) -> List[str]:
    return [url for url in images if is_linkable_image(url)]


def _display_fields(content: ExtractedContent) -> tuple[str, str, Optional[AIEnhancedContent]]:
    if isinstance(content, AIEnhancedContent) and content.enhanced:
        return content.optimized_title or content.title, content.summary or content.body, content
    return content.title, content.body, None


def _flomo_text(content: ExtractedContent, now: datetime) -> str:
    title, body, enhanced = _display_fields(content)
    lines = [f"## {title}", "", body, ""]
    if enhanced is not None and enhanced.categories:
        lines.append(f"🏷️ {' · '.join(enhanced.categories)}")
    if enhanced is not None and enhanced.tags:
        lines.append(" ".join(f"#{tag}" for tag in enhanced.tags))
        lines.append("")
    if content.author:
        lines.append(f"👤 {content.author}")
    lines.append(f"🔗 {content.source_url}")
    lines.append(f"⏰ {now.strftime(_TIMESTAMP_FORMAT)}")
    if enhanced is not None:
        lines.append("✨ AI enhanced")
    return "\n".join(lines)


def _notes_text(content: ExtractedContent, images: List[str], now: datetime) -> str:
    title, body, enhanced = _display_fields(content)
    lines = [title, "", body, ""]
    if enhanced is not None and enhanced.categories:
        lines.append(f"Categories: {', '.join(enhanced.categories)}")
    if enhanced is not None and enhanced.tags:
        lines.append(f"Tags: {', '.join(enhanced.tags)}")
        lines.append("")
    if images:
        lines.append("📷 Images:")
        lines.extend(f"{index}. {url}" for index, url in enumerate(images, start=1))
        lines.append("")
    if content.author:
        lines.append(f"Author: {content.author}")
    lines.append(f"Link: {content.source_url}")
    lines.append(f"Time: {now.strftime(_TIMESTAMP_FORMAT)}")
    if enhanced is not None:
        lines.append("AI enhanced content")
    return "\n".join(lines)


def to_flomo_url(content: ExtractedContent, now: Optional[datetime] = None) -> str:
    """Build a ``flomo://create`` link; ``image_urls`` is omitted when there are no images."""
    text = _flomo_text(content, now or datetime.now())
    url = f"{FLOMO_SCHEME}?content={encode_component(text)}"
    images = linkable_images(content.images)
    if images:
        url += f"&image_urls={encode_component(json.dumps(images, ensure_ascii=False, separators=(',', ':')))}"
    return url


def to_notes_url(content: ExtractedContent, now: Optional[datetime] = None) -> str:
    """Build a ``mobilenotes://create`` link with numbered image links in the text."""
    text = _notes_text(content, linkable_images(content.images), now or datetime.now())
    return f"{NOTES_SCHEME}?note={encode_component(text)}"


def format_output(
    content: ExtractedContent,
    output_format: Union[OutputFormat, str] = OutputFormat.RAW,
    now: Optional[datetime] = None,
) -> Union[str, Dict[str, Any]]:
    output_format = OutputFormat(output_format)
    if output_format is OutputFormat.FLOMO:
        return to_flomo_url(content, now)
    if output_format is OutputFormat.NOTES:
        return to_notes_url(content, now)
    return content.to_dict()
