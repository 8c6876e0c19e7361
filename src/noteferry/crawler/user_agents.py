"""
Device profiles with realistic browser fingerprints.

A profile bundles the User-Agent with the viewport and client-hint headers a
real device of that kind sends, so plain HTTP fetches and headless browser
contexts present a consistent fingerprint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping

ACCEPT_HTML = (
    "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8"
)


@dataclass(frozen=True)
class DeviceProfile:
    """Fingerprint used for one navigation or fetch."""

    name: str
    user_agent: str
    viewport: tuple[int, int]
    device_scale_factor: float = 1.0
    is_mobile: bool = False
    has_touch: bool = False
    headers: Mapping[str, str] = field(default_factory=dict)

    def request_headers(self, extra: Mapping[str, str] | None = None) -> Dict[str, str]:
        """Headers for a plain HTTP request; ``extra`` wins on conflicts."""
        headers = {
            "User-Agent": self.user_agent,
            "Accept": ACCEPT_HTML,
            "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8",
            "Cache-Control": "no-cache",
            "Pragma": "no-cache",
            "Upgrade-Insecure-Requests": "1",
            "DNT": "1",
        }
        headers.update(self.headers)
        if extra:
            headers.update(extra)
        return headers

    def context_options(self, extra_headers: Mapping[str, str] | None = None) -> Dict[str, Any]:
        """Keyword arguments for ``Browser.new_context``."""
        headers = {"Accept": ACCEPT_HTML, "Accept-Language": "zh-CN,zh;q=0.9,en;q=0.8"}
        headers.update(self.headers)
        if extra_headers:
            headers.update({k: v for k, v in extra_headers.items() if k.lower() != "user-agent"})
        width, height = self.viewport
        return {
            "user_agent": self.user_agent,
            "viewport": {"width": width, "height": height},
            "device_scale_factor": self.device_scale_factor,
            "is_mobile": self.is_mobile,
            "has_touch": self.has_touch,
            "locale": "zh-CN",
            "extra_http_headers": headers,
        }


IPHONE_SAFARI = DeviceProfile(
    name="iphone_safari",
    user_agent=(
        "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
        "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
    ),
    viewport=(375, 812),
    device_scale_factor=3,
    is_mobile=True,
    has_touch=True,
    headers={
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
    },
)

ANDROID_CHROME = DeviceProfile(
    name="android_chrome",
    user_agent=(
        "Mozilla/5.0 (Linux; Android 13; SM-G991B) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/118.0.0.0 Mobile Safari/537.36"
    ),
    viewport=(412, 915),
    device_scale_factor=2.625,
    is_mobile=True,
    has_touch=True,
    headers={
        "Sec-Ch-Ua": '"Chromium";v="118", "Google Chrome";v="118", "Not=A?Brand";v="99"',
        "Sec-Ch-Ua-Mobile": "?1",
        "Sec-Ch-Ua-Platform": '"Android"',
    },
)

DESKTOP_CHROME = DeviceProfile(
    name="desktop_chrome",
    user_agent=(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36"
    ),
    viewport=(1920, 1080),
    headers={
        "Sec-Ch-Ua": '"Chromium";v="118", "Google Chrome";v="118", "Not=A?Brand";v="99"',
        "Sec-Ch-Ua-Mobile": "?0",
        "Sec-Ch-Ua-Platform": '"Windows"',
    },
)

MAC_CHROME = DeviceProfile(
    name="mac_chrome",
    user_agent=(
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    viewport=(1440, 900),
    headers={
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
    },
)

WECHAT_IPHONE = DeviceProfile(
    name="wechat_iphone",
    user_agent=IPHONE_SAFARI.user_agent + " MicroMessenger/8.0.42",
    viewport=(375, 812),
    device_scale_factor=3,
    is_mobile=True,
    has_touch=True,
)

# Headless navigation order: mobile first, desktop last.
BROWSER_PROFILES: tuple[DeviceProfile, ...] = (IPHONE_SAFARI, ANDROID_CHROME, DESKTOP_CHROME)
