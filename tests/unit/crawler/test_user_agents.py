"""
Tests for device profiles.
"""

import pytest

from noteferry.crawler.user_agents import BROWSER_PROFILES, DESKTOP_CHROME, IPHONE_SAFARI


@pytest.mark.unit
class TestDeviceProfiles:
    def test_browser_profile_order(self):
        assert [p.name for p in BROWSER_PROFILES][0] == IPHONE_SAFARI.name
        assert BROWSER_PROFILES[-1] is DESKTOP_CHROME
        assert len({p.user_agent for p in BROWSER_PROFILES}) == len(BROWSER_PROFILES)

    def test_context_options_match_profile(self):
        options = IPHONE_SAFARI.context_options({"Referer": "https://example.com/"})

        assert options["user_agent"] == IPHONE_SAFARI.user_agent
        assert options["viewport"] == {"width": 375, "height": 812}
        assert options["is_mobile"] is True
        assert options["extra_http_headers"]["Referer"] == "https://example.com/"
        assert options["locale"] == "zh-CN"

    def test_context_options_never_override_user_agent(self):
        options = DESKTOP_CHROME.context_options({"user-agent": "spoofed"})

        assert "user-agent" not in options["extra_http_headers"]
        assert options["user_agent"] == DESKTOP_CHROME.user_agent

    def test_request_headers_extra_wins(self):
        headers = IPHONE_SAFARI.request_headers({"Cache-Control": "max-age=0"})

        assert headers["Cache-Control"] == "max-age=0"
        assert headers["User-Agent"] == IPHONE_SAFARI.user_agent
