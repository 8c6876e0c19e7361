"""Detection of the hosting environment and the capabilities it allows."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

if TYPE_CHECKING:
    from noteferry.config.config import Config

SERVERLESS_MARKERS = ("AWS_LAMBDA_FUNCTION_NAME", "FUNCTIONS_RUNTIME")


@dataclass(frozen=True)
class EnvironmentInfo:
    kind: str
    serverless: bool
    skip_browser_download: bool
    headless_browser_available: bool

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _is_vercel(env: Mapping[str, str]) -> bool:
    return env.get("VERCEL") == "1" or "VERCEL_ENV" in env


def _is_netlify(env: Mapping[str, str]) -> bool:
    return env.get("NETLIFY") == "true" or env.get("NETLIFY_DEV") == "true"


def detect_environment(env: Optional[Mapping[str, str]] = None) -> EnvironmentInfo:
    """Inspect environment variables once and describe the host."""
    env = os.environ if env is None else env

    if _is_vercel(env):
        kind = "vercel"
    elif _is_netlify(env):
        kind = "netlify"
    elif any(marker in env for marker in SERVERLESS_MARKERS):
        kind = "serverless"
    else:
        kind = "local"

    serverless = kind != "local"
    skip_download = env.get("PLAYWRIGHT_SKIP_BROWSER_DOWNLOAD") == "1" or serverless
    return EnvironmentInfo(
        kind=kind,
        serverless=serverless,
        skip_browser_download=skip_download,
        headless_browser_available=not skip_download,
    )


def headless_browser_available(config: Config, env: Optional[Mapping[str, str]] = None) -> bool:
    """Resolve the headless-browser capability flag for the composition root.

    An explicit ``environment.headless_browser`` setting wins over detection;
    ``browser.enabled = false`` always disables the capability.
    """
    if not config.browser.enabled:
        return False
    if config.environment.headless_browser is not None:
        return config.environment.headless_browser
    return detect_environment(env).headless_browser_available
