"""Page fetching: HTTP client and device fingerprints."""

from .http_client import FetchResponse, HttpFetcher
from .user_agents import BROWSER_PROFILES, DeviceProfile

__all__ = ["BROWSER_PROFILES", "DeviceProfile", "FetchResponse", "HttpFetcher"]
