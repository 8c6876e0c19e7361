"""
In-memory cache for AI-enhanced results.
"""

from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import structlog

from noteferry.extractor.models import AIEnhancedContent

logger = structlog.get_logger(__name__)


def _short_md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()[:8]


@dataclass
class _Entry:
    url: str
    value: AIEnhancedContent
    expires_at: float


class AIResultCache:
    """TTL cache bounded by entry count; the oldest entry is evicted first.

    Keys combine a hash of the URL and a hash of the extracted body, so a
    page whose content changed misses the cache.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        ttl_hours: float = 24.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_entries = max_entries
        self.ttl_seconds = ttl_hours * 3600
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def key_for(self, url: str, content: Optional[str] = None) -> str:
        return f"{_short_md5(url)}_{_short_md5(content or '')}"

    def get(self, key: str) -> Optional[AIEnhancedContent]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() >= entry.expires_at:
                del self._entries[key]
                self._misses += 1
                return None
            self._hits += 1
            return entry.value

    def set(self, key: str, value: AIEnhancedContent) -> None:
        with self._lock:
            self._entries.pop(key, None)
            while len(self._entries) >= self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cache entry", key=evicted)
            self._entries[key] = _Entry(
                url=value.source_url,
                value=value,
                expires_at=self._clock() + self.ttl_seconds,
            )

    def delete_by_prefix(self, url_prefix: str) -> int:
        """Drop every entry whose source URL starts with ``url_prefix``."""
        with self._lock:
            doomed = [key for key, entry in self._entries.items() if entry.url.startswith(url_prefix)]
            for key in doomed:
                del self._entries[key]
        if doomed:
            logger.info("Cleared cache entries", prefix=url_prefix, count=len(doomed))
        return len(doomed)

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now >= entry.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> Dict[str, int]:
        now = self._clock()
        with self._lock:
            expired = sum(1 for entry in self._entries.values() if now >= entry.expires_at)
            total = len(self._entries)
            return {
                "total_entries": total,
                "valid_entries": total - expired,
                "expired_entries": expired,
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
            }

    def __len__(self) -> int:
        return len(self._entries)
