"""
URL validation for NoteFerry.

Every URL passes through ``is_safe_url`` before an extractor runs, so no
request is ever made to loopback, private or metadata addresses.
"""

from __future__ import annotations

import ipaddress
import re
from typing import List, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

TRACKING_PARAMS = ("utm_source", "utm_medium", "utm_campaign", "utm_content", "utm_term")


class URLValidationError(ValueError):
    """Raised when URL validation fails."""

    pass


class URLValidationRules(BaseModel):
    """Rules for URL validation."""

    allowed_schemes: List[str] = Field(default=["http", "https"])
    allowed_domains: Optional[List[str]] = None
    blocked_domains: List[str] = Field(
        default_factory=lambda: [
            "localhost",
            "127.0.0.1",
            "0.0.0.0",
            "::1",
            "169.254.169.254",  # cloud metadata endpoint
            "metadata.google.internal",
        ]
    )
    max_url_length: int = 2048
    allow_private_ips: bool = False


class URLValidator:
    """Scheme, host and length checks for user-supplied URLs."""

    def __init__(self, rules: Optional[URLValidationRules] = None):
        self.rules = rules or URLValidationRules()
        self.xss_patterns = [
            r"javascript:",
            r"<script",
            r"onerror\s*=",
            r"onload\s*=",
        ]

    def validate_url(self, url: str) -> str:
        """
        Validate a URL.

        Returns:
            The stripped URL

        Raises:
            URLValidationError: If the URL is malformed or targets a forbidden host
        """
        url = (url or "").strip()
        if not url:
            raise URLValidationError("URL is empty")
        if len(url) > self.rules.max_url_length:
            raise URLValidationError(f"URL exceeds maximum length of {self.rules.max_url_length}")

        try:
            parsed = urlparse(url)
            hostname = parsed.hostname
        except ValueError as e:
            raise URLValidationError(f"Invalid URL format: {e}") from e

        if parsed.scheme.lower() not in self.rules.allowed_schemes:
            raise URLValidationError(f"Invalid URL scheme: {parsed.scheme or '(none)'}")
        if not hostname:
            raise URLValidationError("URL has no host")

        if not self.rules.allow_private_ips:
            if self._is_blocked_domain(hostname):
                raise URLValidationError(f"Blocked domain: {hostname}")
            if self._is_private_ip(hostname):
                raise URLValidationError(f"Private IP addresses not allowed: {hostname}")

        if self.rules.allowed_domains:
            if not any(
                hostname == domain or hostname.endswith("." + domain) for domain in self.rules.allowed_domains
            ):
                raise URLValidationError(f"Domain not in allowlist: {hostname}")

        if any(re.search(pattern, url, re.IGNORECASE) for pattern in self.xss_patterns):
            raise URLValidationError("Potential XSS payload detected")

        return url

    def is_safe(self, url: str) -> bool:
        try:
            self.validate_url(url)
        except URLValidationError as e:
            logger.info("URL rejected", url=url[:200], reason=str(e))
            return False
        return True

    def _is_blocked_domain(self, hostname: str) -> bool:
        hostname = hostname.lower()
        return any(hostname == blocked or hostname.endswith("." + blocked) for blocked in self.rules.blocked_domains)

    def _is_private_ip(self, hostname: str) -> bool:
        """Check if hostname is a private IP address."""
        try:
            ip = ipaddress.ip_address(hostname)
        except ValueError:
            # Not an IP address
            return False
        return ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified or ip.is_reserved


def sanitize_url(url: str) -> str:
    """Drop the fragment and utm_* tracking parameters; other parameters keep their order."""
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return url
    if not parsed.scheme or not parsed.netloc:
        return url
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k not in TRACKING_PARAMS]
    return urlunparse(parsed._replace(query=urlencode(query), fragment=""))


_default_validator = URLValidator()


def is_safe_url(url: str) -> bool:
    """Boolean URL-safety gate used before any network access."""
    return _default_validator.is_safe(url)


def validate_url(url: str) -> str:
    return _default_validator.validate_url(url)
