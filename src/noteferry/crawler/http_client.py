"""
HTTP fetching with bounded timeouts, a small fixed-backoff retry budget and
browser-like headers.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import aiohttp
import structlog

from noteferry.config.config import Config
from noteferry.errors import (
    AuthWall,
    ExtractionError,
    ExtractionTimeout,
    NetworkFailure,
    RateLimited,
    ValidationFailure,
)

from .user_agents import IPHONE_SAFARI, DeviceProfile

logger = structlog.get_logger(__name__)

RETRYABLE_STATUSES = frozenset({429, 502, 503, 504})


@dataclass
class FetchResponse:
    """A successful HTML fetch."""

    status: int
    headers: Dict[str, str]
    text: str
    url: str
    final_url: str
    attempts: int
    start_ts: float
    end_ts: float

    @property
    def duration_ms(self) -> float:
        return (self.end_ts - self.start_ts) * 1000


def _error_for_status(status: int, url: str) -> ExtractionError:
    if status == 429:
        return RateLimited(f"HTTP 429 from {urlparse(url).hostname}", url=url)
    if status in (401, 403):
        return AuthWall(f"HTTP {status}: access denied", url=url)
    if status in (408, 504):
        return ExtractionTimeout(f"HTTP {status}: upstream timed out", url=url)
    return NetworkFailure(f"HTTP {status}", url=url)


class HttpFetcher:
    """aiohttp-based page fetcher used by every non-browser strategy."""

    def __init__(self, config: Config, profile: DeviceProfile = IPHONE_SAFARI):
        self.config = config
        self.fetch_config = config.fetch
        self.profile = profile
        self.session: Optional[aiohttp.ClientSession] = None
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            connector = aiohttp.TCPConnector(
                limit=0,
                ttl_dns_cache=30,
                use_dns_cache=True,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.fetch_config.timeout),
            )
            self._is_initialized = True
            logger.debug("HTTP fetcher session initialized")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None
        self._is_initialized = False

    async def __aenter__(self) -> "HttpFetcher":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def build_headers(
        self, headers: Optional[Mapping[str, str]] = None, profile: Optional[DeviceProfile] = None
    ) -> Dict[str, str]:
        merged = (profile or self.profile).request_headers(headers)
        if self.fetch_config.user_agent:
            merged["User-Agent"] = self.fetch_config.user_agent
        return merged

    async def _perform_request(
        self, url: str, headers: Dict[str, str], timeout: float
    ) -> tuple[int, Dict[str, str], str, str]:
        """Perform one GET, following redirects. Returns status, headers, body and final URL."""
        if not self._is_initialized or self.session is None:
            raise RuntimeError("HTTP fetcher not initialized. Call initialize() first.")

        async with asyncio.timeout(timeout):
            async with self.session.get(
                url,
                headers=headers,
                allow_redirects=True,
                max_redirects=self.fetch_config.max_redirects,
            ) as response:
                body = await response.text(errors="replace")
                return response.status, dict(response.headers), body, str(response.url)

    async def fetch(
        self,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        profile: Optional[DeviceProfile] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> FetchResponse:
        """
        Fetch an HTML page.

        Retries timeouts, connection errors and statuses 429/502/503/504 with a
        fixed delay. Raises an ``ExtractionError`` subclass once the budget is
        spent or on a non-retryable status.
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValidationFailure(f"Not an absolute http(s) URL: {url[:200]}", url=url)

        timeout = timeout or self.fetch_config.timeout
        max_retries = self.fetch_config.retries if max_retries is None else max_retries
        request_headers = self.build_headers(headers, profile)

        start_time = time.time()
        last_error: ExtractionError = NetworkFailure("request was not attempted", url=url)
        attempt = 0

        while attempt < max_retries + 1:
            attempt += 1
            try:
                status, response_headers, body, final_url = await self._perform_request(
                    url, request_headers, timeout
                )
            except (asyncio.TimeoutError, TimeoutError):
                last_error = ExtractionTimeout(f"Request timed out after {timeout}s", url=url)
                logger.warning("Request timed out", url=url, attempt=attempt, timeout=timeout)
            except aiohttp.TooManyRedirects as e:
                raise NetworkFailure(f"Too many redirects: {e}", url=url) from e
            except aiohttp.ClientError as e:
                last_error = NetworkFailure(f"{type(e).__name__}: {e}", url=url)
                logger.warning("Request failed", url=url, attempt=attempt, error=str(e))
            else:
                if status < 400:
                    logger.debug("Fetched page", url=url, final_url=final_url, status=status, attempt=attempt)
                    return FetchResponse(
                        status=status,
                        headers=response_headers,
                        text=body,
                        url=url,
                        final_url=final_url,
                        attempts=attempt,
                        start_ts=start_time,
                        end_ts=time.time(),
                    )
                last_error = _error_for_status(status, url)
                if status not in RETRYABLE_STATUSES:
                    logger.info("Non-retryable status", url=url, status=status)
                    raise last_error
                logger.info("Retrying request", url=url, status=status, attempt=attempt, max_retries=max_retries)

            if attempt < max_retries + 1:
                await asyncio.sleep(self.fetch_config.retry_delay)

        logger.warning("All fetch attempts failed", url=url, attempts=attempt, error=last_error.message)
        raise last_error
