"""
Tests for the error taxonomy.
"""

import asyncio
import json

import aiohttp
import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from noteferry.errors import (
    AuthWall,
    ErrorCategory,
    ExtractionFailed,
    NetworkFailure,
    RenderingFailure,
    StrategyFailure,
    ValidationFailure,
    category_for_status,
    classify_error,
    is_transient,
    user_message,
)


@pytest.mark.unit
class TestClassification:
    @pytest.mark.parametrize(
        "exc, category",
        [
            (NetworkFailure("x"), ErrorCategory.NETWORK),
            (AuthWall("x"), ErrorCategory.AUTH_WALL),
            (PlaywrightTimeoutError("Timeout 30000ms exceeded"), ErrorCategory.TIMEOUT),
            (PlaywrightError("Target closed"), ErrorCategory.RENDERING),
            (asyncio.TimeoutError(), ErrorCategory.TIMEOUT),
            (aiohttp.ClientConnectionError("reset"), ErrorCategory.NETWORK),
            (ConnectionResetError(), ErrorCategory.NETWORK),
            (json.JSONDecodeError("bad", "doc", 0), ErrorCategory.VALIDATION),
            (RuntimeError("Too Many Requests"), ErrorCategory.RATE_LIMITED),
            (RuntimeError("browser has disconnected"), ErrorCategory.RENDERING),
            (RuntimeError("ECONNRESET while reading"), ErrorCategory.NETWORK),
            (RuntimeError("something odd"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_classify(self, exc, category):
        assert classify_error(exc) is category

    @pytest.mark.parametrize(
        "status, category",
        [
            (429, ErrorCategory.RATE_LIMITED),
            (401, ErrorCategory.AUTH_WALL),
            (403, ErrorCategory.AUTH_WALL),
            (504, ErrorCategory.TIMEOUT),
            (500, ErrorCategory.NETWORK),
        ],
    )
    def test_status_categories(self, status, category):
        assert category_for_status(status) is category

    def test_transient_categories(self):
        assert is_transient(NetworkFailure("x"))
        assert is_transient(RuntimeError("odd"))
        assert not is_transient(ValidationFailure("x"))
        assert not is_transient(AuthWall("x"))
        assert not is_transient(RenderingFailure("x"))


@pytest.mark.unit
class TestUserMessages:
    @pytest.mark.parametrize("category", list(ErrorCategory))
    def test_every_category_has_a_hint(self, category):
        assert user_message(category)

    def test_rendering_hint_depends_on_capability(self):
        local = user_message(ErrorCategory.RENDERING, headless_available=True)
        hosted = user_message(ErrorCategory.RENDERING, headless_available=False)

        assert local != hosted
        assert "not available" in hosted

    def test_network_hint_suggests_preloaded_html_without_browser(self):
        assert "preloaded_html" in user_message(ErrorCategory.NETWORK, headless_available=False)
        assert "preloaded_html" not in user_message(ErrorCategory.NETWORK)


@pytest.mark.unit
class TestExtractionFailed:
    def test_carries_every_attempt(self):
        failures = [
            StrategyFailure("platform", ErrorCategory.UNKNOWN, "No dedicated extractor"),
            StrategyFailure("fetch:generic", ErrorCategory.NETWORK, "HTTP 502"),
        ]

        error = ExtractionFailed("https://a.example/", failures)

        assert error.category is ErrorCategory.NETWORK
        assert "fetch:generic [network]: HTTP 502" in str(error)
        assert [a["strategy"] for a in error.to_dict()["attempts"]] == ["platform", "fetch:generic"]
        assert error.to_dict()["message"] == error.hint

    def test_url_gate_rejection_dominates(self):
        failures = [StrategyFailure("url_gate", ErrorCategory.VALIDATION, "Blocked domain: localhost")]

        assert ExtractionFailed("http://localhost/", failures).category is ErrorCategory.VALIDATION

    def test_no_failures(self):
        error = ExtractionFailed("https://a.example/", [])

        assert error.category is ErrorCategory.UNKNOWN
        assert "no strategy was attempted" in str(error)

    def test_strategy_failure_from_exception(self):
        failure = StrategyFailure.from_exception("fetch:wechat", NetworkFailure("HTTP 502", url="u"))

        assert failure.category is ErrorCategory.NETWORK
        assert failure.message == "HTTP 502"
        assert StrategyFailure.from_exception("x", asyncio.TimeoutError()).message == "TimeoutError"
