"""
Maps a URL onto the platform whose extraction rules apply.
"""

from __future__ import annotations

import re
from typing import Any, Pattern
from urllib.parse import urlparse

import structlog

from .models import Platform

logger = structlog.get_logger(__name__)

# Ordered: the first platform with a matching pattern wins.
PLATFORM_PATTERNS: dict[Platform, tuple[Pattern[str], ...]] = {
    Platform.XIAOHONGSHU: (
        re.compile(r"xiaohongshu\.com"),
        re.compile(r"xhslink\.com"),
        re.compile(r"xhscdn\.com"),
    ),
    Platform.BILIBILI: (
        re.compile(r"bilibili\.com"),
        re.compile(r"b23\.tv"),
        re.compile(r"bili\.com"),
    ),
    Platform.WECHAT: (re.compile(r"mp\.weixin\.qq\.com"),),
}


def detect_platform(url: Any) -> Platform:
    """Return the platform for ``url``, or ``Platform.UNKNOWN``. Never raises."""
    if not isinstance(url, str) or not url.strip():
        return Platform.UNKNOWN
    try:
        hostname = (urlparse(url.strip()).hostname or "").lower()
    except ValueError:
        logger.warning("Malformed URL passed to platform detection", url=url[:200])
        return Platform.UNKNOWN

    lowered = url.lower()
    for platform, patterns in PLATFORM_PATTERNS.items():
        for pattern in patterns:
            if (hostname and pattern.search(hostname)) or pattern.search(lowered):
                return platform
    return Platform.UNKNOWN


def is_supported(url: Any) -> bool:
    return detect_platform(url) is not Platform.UNKNOWN


def supported_platforms() -> list[Platform]:
    return list(PLATFORM_PATTERNS)
