"""
Unit tests for URL platform detection.
"""

from __future__ import annotations

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from noteferry.extractor.models import Platform
from noteferry.extractor.platform_detector import detect_platform, is_supported, supported_platforms


class TestDetectPlatform:
    @pytest.mark.parametrize(
        "url, platform",
        [
            ("https://www.xiaohongshu.com/explore/64f0c0a1", Platform.XIAOHONGSHU),
            ("http://xhslink.com/a/AbCd", Platform.XIAOHONGSHU),
            ("https://WWW.XIAOHONGSHU.COM/explore/1", Platform.XIAOHONGSHU),
            ("https://www.bilibili.com/video/BV1xx411c7mD", Platform.BILIBILI),
            ("https://b23.tv/abc", Platform.BILIBILI),
            ("https://m.bilibili.com/video/BV1xx", Platform.BILIBILI),
            ("https://mp.weixin.qq.com/s/abcdef", Platform.WECHAT),
            ("https://example.com/post", Platform.UNKNOWN),
            ("https://weixin.qq.com/", Platform.UNKNOWN),
        ],
    )
    def test_known_urls(self, url, platform):
        assert detect_platform(url) is platform

    @pytest.mark.parametrize("value", [None, "", "   ", 42, "http://[::1", object()])
    def test_junk_input_is_unknown(self, value):
        assert detect_platform(value) is Platform.UNKNOWN

    @given(st.one_of(st.text(), st.none(), st.integers(), st.binary()))
    @settings(max_examples=200, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_never_raises(self, value):
        assert isinstance(detect_platform(value), Platform)

    def test_helpers(self):
        assert is_supported("https://mp.weixin.qq.com/s/x")
        assert not is_supported("https://example.com/")
        assert Platform.UNKNOWN not in supported_platforms()
        assert supported_platforms()[0] is Platform.XIAOHONGSHU
