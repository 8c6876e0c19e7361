"""
Tests for model response schemas.
"""

import pytest
from pydantic import ValidationError

from noteferry.ai.schemas import AIResult, Categorization, RawExtraction
from noteferry.extractor.models import ContentType


@pytest.mark.unit
class TestAIResult:
    def test_success(self):
        result = AIResult.success("value")

        assert result.ok
        assert result.error is None

    def test_failure_flags(self):
        assert not AIResult.failure("x").transient
        assert AIResult.failure("x", transient=True).transient
        assert not AIResult.failure("x").ok

    def test_none_value_is_not_ok(self):
        assert not AIResult(value=None).ok


@pytest.mark.unit
class TestRawExtraction:
    def test_camel_case_alias(self):
        raw = RawExtraction.model_validate({"images": [], "publishedAt": "2024-01-01"})

        assert raw.published_at == "2024-01-01"
        assert raw.title is None

    def test_images_required(self):
        with pytest.raises(ValidationError):
            RawExtraction.model_validate({"title": "T"})

    def test_non_string_images_dropped(self):
        raw = RawExtraction.model_validate({"images": ["https://a/1.jpg", None, 5, {"src": "x"}]})

        assert raw.images == ["https://a/1.jpg"]


@pytest.mark.unit
class TestCategorization:
    @pytest.mark.parametrize(
        "value, expected",
        [("recipe", ContentType.RECIPE), ("TECHNOLOGY", ContentType.TECHNOLOGY), ("poetry", ContentType.OTHER)],
    )
    def test_content_type_closed_set(self, value, expected):
        assert Categorization.model_validate({"contentType": value}).content_type is expected

    def test_caps_and_cleanup(self):
        categorization = Categorization.model_validate(
            {"categories": ["a", " ", "b", "c"], "tags": ["#1", "2", "3", "4", "5", "6", ""]}
        )

        assert categorization.categories == ["a", "b"]
        assert categorization.tags == ["1", "2", "3", "4", "5"]

    def test_defaults(self):
        categorization = Categorization()

        assert categorization.content_type is ContentType.OTHER
        assert categorization.categories == []
