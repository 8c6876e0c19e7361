"""
Headless-browser rendering for JavaScript-dependent and bot-gated pages.

Every call launches its own browser and walks the device profiles in order,
one isolated context per profile. A login redirect or non-2xx response moves
on to the next profile; once profiles run out, whatever DOM the last page
holds is parsed anyway.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Callable, Mapping, Optional, Sequence

import structlog
from playwright.async_api import Browser, BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from noteferry.config.config import BrowserConfig
from noteferry.crawler.user_agents import BROWSER_PROFILES, DeviceProfile
from noteferry.errors import ExtractionTimeout, NetworkFailure, RenderingFailure

from .models import ExtractedContent, ExtractionOptions
from .protocols import HtmlExtractor

logger = structlog.get_logger(__name__)

LOGIN_URL_MARKERS = ("/login", "/signin", "passport.")

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['zh-CN', 'zh', 'en'] });
window.chrome = window.chrome || { runtime: {} };
if (window.navigator.permissions && window.navigator.permissions.query) {
  const originalQuery = window.navigator.permissions.query.bind(window.navigator.permissions);
  window.navigator.permissions.query = (parameters) => (
    parameters.name === 'notifications'
      ? Promise.resolve({ state: Notification.permission })
      : originalQuery(parameters)
  );
}
"""

BrowserLauncher = Callable[[], AsyncContextManager[Browser]]


async def close_quietly(resource: Any, label: str) -> None:
    """Close a browser, context or page, tolerating one that is already gone."""
    try:
        await resource.close()
    except PlaywrightError as e:
        logger.debug("Ignoring close error", resource=label, error=str(e))


def chromium_launcher(settings: BrowserConfig) -> BrowserLauncher:
    @asynccontextmanager
    async def launch() -> AsyncIterator[Browser]:
        async with async_playwright() as playwright:
            try:
                browser = await playwright.chromium.launch(headless=settings.headless, args=settings.launch_args)
            except PlaywrightError as e:
                raise RenderingFailure(f"Browser launch failed: {e}") from e
            try:
                yield browser
            finally:
                await close_quietly(browser, "browser")

    return launch


def is_login_redirect(url: str) -> bool:
    lowered = (url or "").lower()
    return any(marker in lowered for marker in LOGIN_URL_MARKERS)


class HeadlessBrowserExtractor:
    """Renders a page in Chromium and parses the resulting DOM with ``parser``."""

    name = "headless_browser"

    def __init__(
        self,
        parser: HtmlExtractor,
        settings: Optional[BrowserConfig] = None,
        *,
        profiles: Sequence[DeviceProfile] = BROWSER_PROFILES,
        launcher: Optional[BrowserLauncher] = None,
    ) -> None:
        self.parser = parser
        self.settings = settings or BrowserConfig()
        self.profiles = tuple(profiles)
        self._launcher = launcher or chromium_launcher(self.settings)
        self._active: set[Any] = set()
        self._closed = False

    async def extract(self, url: str, options: ExtractionOptions) -> ExtractedContent:
        content, _ = await self.extract_with_html(url, options)
        return content

    async def extract_with_html(self, url: str, options: ExtractionOptions) -> tuple[ExtractedContent, str]:
        html, final_url = await self.render(url, options)
        return await self.parser.extract(html, final_url), html

    async def render(self, url: str, options: ExtractionOptions) -> tuple[str, str]:
        """Return the rendered HTML and the final page URL."""
        if self._closed:
            raise RenderingFailure("Headless browser extractor is closed", url=url)

        async with self._launcher() as browser:
            self._active.add(browser)
            try:
                return await self._walk_profiles(browser, url, options)
            finally:
                self._active.discard(browser)

    async def _walk_profiles(self, browser: Browser, url: str, options: ExtractionOptions) -> tuple[str, str]:
        any_response = False
        last_error: Optional[BaseException] = None
        extra_headers = {**self.parser.page_policy.headers, **options.headers}

        for index, profile in enumerate(self.profiles):
            is_last = index == len(self.profiles) - 1
            if index and self.settings.profile_pause_ms:
                await asyncio.sleep(self.settings.profile_pause_ms / 1000)

            async with self._context(browser, profile, extra_headers) as context:
                page = await context.new_page()
                try:
                    response = await page.goto(
                        url, wait_until="domcontentloaded", timeout=self.settings.navigation_timeout_ms
                    )
                except PlaywrightError as e:
                    last_error = e
                    logger.warning("Navigation failed", url=url, profile=profile.name, error=str(e))
                    if not (is_last and any_response):
                        continue
                    response = None

                status = response.status if response is not None else None
                any_response = any_response or response is not None
                final_url = page.url or url

                if is_login_redirect(final_url) or status is None or not 200 <= status < 300:
                    logger.info(
                        "Profile rejected", url=url, profile=profile.name, status=status, final_url=final_url
                    )
                    if not is_last:
                        continue
                    logger.info("Profiles exhausted, parsing the last page as is", url=url)
                else:
                    logger.info("Page rendered", url=url, profile=profile.name, status=status)

                await self._settle(page)
                return await page.content(), final_url

        raise self._no_response_error(url, last_error)

    @asynccontextmanager
    async def _context(
        self, browser: Browser, profile: DeviceProfile, extra_headers: Mapping[str, str]
    ) -> AsyncIterator[BrowserContext]:
        context = await browser.new_context(**profile.context_options(extra_headers))
        try:
            await context.add_init_script(STEALTH_SCRIPT)
            yield context
        finally:
            await close_quietly(context, f"context:{profile.name}")

    async def _settle(self, page: Page) -> None:
        """Wait for network idle, bounded by the settle timeout."""
        if not self.settings.settle_timeout_ms:
            return
        try:
            await page.wait_for_load_state("networkidle", timeout=self.settings.settle_timeout_ms)
        except PlaywrightTimeoutError:
            logger.debug("Network did not go idle, reading DOM anyway")

    @staticmethod
    def _no_response_error(url: str, last_error: Optional[BaseException]) -> Exception:
        if isinstance(last_error, PlaywrightTimeoutError):
            return ExtractionTimeout(f"Navigation timed out under every profile: {last_error}", url=url)
        if last_error is not None and "net::" in str(last_error):
            return NetworkFailure(f"Navigation failed under every profile: {last_error}", url=url)
        return RenderingFailure(f"No profile produced a response: {last_error}", url=url)

    async def close(self) -> None:
        """Release any browser still running. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for browser in list(self._active):
            await close_quietly(browser, "browser")
        self._active.clear()
