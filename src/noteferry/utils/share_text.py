"""
Pull a supported-platform URL out of text pasted from a share sheet.

Share sheets wrap the link in promotional text, e.g.
``"62 某某发布了一篇小红书笔记，快来看吧！ 😆 abc 😆 http://xhslink.com/a/AbC，复制本条信息，打开【小红书】App查看精彩内容！"``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from noteferry.extractor.models import Platform
from noteferry.extractor.platform_detector import detect_platform

logger = structlog.get_logger(__name__)

# URLs end at whitespace, CJK punctuation or full-width forms.
URL_PATTERN = re.compile(r"https?://[^\s\u3000-\u303f\uff00-\uffef]+")
MAX_INPUT_LENGTH = 5000


@dataclass(frozen=True)
class ShareTextResult:
    url: Optional[str]
    method: str  # "passthrough", "regex" or "none"
    urls_found: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.url is not None


def _is_clean_url(text: str) -> bool:
    if not text.startswith(("http://", "https://")):
        return False
    return not re.search(r"[\s\u3000-\u303f\uff00-\uffef]", text)


def extract_share_url(text: str) -> ShareTextResult:
    """Return the first supported-platform URL found in ``text``."""
    if not text or not text.strip():
        return ShareTextResult(url=None, method="none", error="no_url_found")
    if len(text) > MAX_INPUT_LENGTH:
        return ShareTextResult(url=None, method="none", error="input_too_long")

    stripped = text.strip()
    if _is_clean_url(stripped):
        return ShareTextResult(url=stripped, method="passthrough", urls_found=1)

    urls = URL_PATTERN.findall(text)
    supported = [u for u in urls if detect_platform(u) is not Platform.UNKNOWN]
    if not supported:
        error = "unsupported_url" if urls else "no_url_found"
        logger.debug("No supported URL in share text", urls_found=len(urls), error=error)
        return ShareTextResult(url=None, method="none", urls_found=len(urls), error=error)

    return ShareTextResult(url=supported[0], method="regex", urls_found=len(urls))
