"""
Image URL filtering.

Each platform supplies an ``ImageRules`` strategy; ``ImageFilter`` applies it
together with the shared notion of "looks like an image URL".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlparse

from .models import MAX_IMAGES

IMAGE_EXTENSION = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg)$", re.IGNORECASE)
FORMAT_HINT = re.compile(r"[?&/](format|wx_fmt)[=/](jpg|jpeg|png|gif|webp|svg)", re.IGNORECASE)
SMALL_SQUARE = re.compile(r"/(16|24|32|40|48)x\1")
SMALL_SEGMENT = re.compile(r"/(16|24|32|40|48)/")

IMAGE_CDN_HOSTS = (
    "xhscdn.com",
    "hdslb.com",
    "biliimg.com",
    "sinaimg.cn",
    "qpic.cn",
    "alicdn.com",
    "xiaohongshu.com",
)


@dataclass(frozen=True)
class ImageRules:
    """Per-platform image acceptance rules.

    ``required_markers``: when non-empty, a URL must contain one of them.
    ``rejected_markers``: substrings identifying UI assets rather than content.
    """

    required_markers: tuple[str, ...] = ()
    rejected_markers: tuple[str, ...] = ("avatar", "icon", "logo")
    reject_small_sizes: bool = True


def looks_like_image_url(url: str) -> bool:
    """Extension, explicit format parameter or a known image CDN host."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        return False
    if IMAGE_EXTENSION.search(parsed.path):
        return True
    if FORMAT_HINT.search(url):
        return True
    host = parsed.hostname.lower()
    return any(cdn in host for cdn in IMAGE_CDN_HOSTS)


class ImageFilter:
    """Normalizes, validates and deduplicates candidate image URLs."""

    def __init__(self, origin: str, rules: Optional[ImageRules] = None) -> None:
        self.origin = origin.rstrip("/")
        self.rules = rules or ImageRules()

    def normalize(self, url: str) -> str:
        url = (url or "").strip()
        if url.startswith("//"):
            return "https:" + url
        if url.startswith("/"):
            return self.origin + url
        return url

    def is_content_image(self, url: str) -> bool:
        if not url or not isinstance(url, str):
            return False
        lowered = url.lower()
        if any(marker in lowered for marker in self.rules.rejected_markers):
            return False
        if self.rules.reject_small_sizes and (SMALL_SEGMENT.search(lowered) or SMALL_SQUARE.search(lowered)):
            return False
        if self.rules.required_markers and not any(m in lowered for m in self.rules.required_markers):
            return False
        return looks_like_image_url(url)

    def dedupe_and_cap(self, urls: Iterable[str], capacity: int = MAX_IMAGES) -> tuple[str, ...]:
        """Normalize and filter ``urls`` keeping first-seen order, then truncate."""
        capacity = min(capacity, MAX_IMAGES)
        kept: list[str] = []
        seen: set[str] = set()
        for raw in urls:
            url = self.normalize(raw)
            if url in seen or not self.is_content_image(url):
                continue
            seen.add(url)
            kept.append(url)
            if len(kept) >= capacity:
                break
        return tuple(kept)
