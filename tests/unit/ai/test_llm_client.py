"""
Tests for the OpenAI-compatible language-model client.

The AsyncOpenAI client is replaced by a mock so no request leaves the test.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from noteferry.ai.client import LLMClient, parse_json_reply
from noteferry.ai.schemas import Categorization, RawExtraction
from noteferry.config.config import AIConfig
from noteferry.extractor.models import ContentType

REQUEST = httpx.Request("POST", "https://llm.example.com/v1/chat/completions")


def reply(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def make_client(*, side_effect=None, content=None, **config):
    mock = MagicMock()
    mock.chat.completions.create = AsyncMock(side_effect=side_effect, return_value=reply(content))
    settings = AIConfig(enabled=True, api_key="test-key", **config)
    return LLMClient(settings, client=mock), mock.chat.completions.create


@pytest.mark.unit
class TestAvailability:
    def test_requires_key_or_injected_client(self):
        assert not LLMClient(AIConfig(enabled=True, api_key=None)).is_available()
        assert LLMClient(AIConfig(enabled=True, api_key="k")).is_available()
        assert LLMClient(AIConfig(enabled=True, api_key=None), client=MagicMock()).is_available()

    def test_disabled_switch_wins(self):
        assert not LLMClient(AIConfig(enabled=False, api_key="k")).is_available()

    def test_environment_key_is_read(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "from-env")

        assert LLMClient(AIConfig()).is_available()

    def test_blank_key_is_treated_as_missing(self):
        assert AIConfig(api_key="   ").api_key is None

    @pytest.mark.asyncio
    async def test_unavailable_client_fails_without_calling(self):
        client = LLMClient(AIConfig(enabled=False))

        result = await client.summarize("text")

        assert not result.ok
        assert not result.transient


@pytest.mark.unit
class TestCapabilities:
    @pytest.mark.asyncio
    async def test_summarize(self):
        client, create = make_client(content="  两句话的摘要。  ", summary_input_chars=10)

        result = await client.summarize("很长的正文" * 10)

        assert result.ok
        assert result.value == "两句话的摘要。"
        prompt = create.await_args.kwargs["messages"][1]["content"]
        assert "很长的正文很长的正文" in prompt
        assert "很长的正文" * 3 not in prompt

    @pytest.mark.asyncio
    async def test_optimize_title_strips_quotes(self):
        client, _ = make_client(content="“西湖一日游”")

        result = await client.optimize_title("周末去杭州西湖一日游攻略", "正文")

        assert result.value == "西湖一日游"

    @pytest.mark.asyncio
    async def test_categorize_uses_json_mode(self):
        payload = {"contentType": "Travel", "categories": ["旅行", "攻略", "多余"], "tags": ["#杭州"]}
        client, create = make_client(content=json.dumps(payload, ensure_ascii=False))

        result = await client.categorize("西湖")

        assert result.value.content_type is ContentType.TRAVEL
        assert result.value.categories == ["旅行", "攻略"]
        assert result.value.tags == ["杭州"]
        assert create.await_args.kwargs["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_extract_structured_accepts_fenced_json(self):
        content = '```json\n{"title": "T", "content": "B", "images": ["https://a.example/1.jpg", 3]}\n```'
        client, create = make_client(content=content, html_char_limit=20)

        result = await client.extract_structured("<html>" + "x" * 100, "https://a.example/")

        assert result.value.images == ["https://a.example/1.jpg"]
        assert "x" * 30 not in create.await_args.kwargs["messages"][1]["content"]


@pytest.mark.unit
class TestFailureTagging:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            openai.APITimeoutError(request=REQUEST),
            openai.APIConnectionError(request=REQUEST),
            openai.RateLimitError("slow down", response=httpx.Response(429, request=REQUEST), body=None),
            openai.InternalServerError("oops", response=httpx.Response(500, request=REQUEST), body=None),
        ],
    )
    async def test_transient_provider_errors(self, error):
        client, _ = make_client(side_effect=error)

        result = await client.summarize("text")

        assert not result.ok
        assert result.transient

    @pytest.mark.asyncio
    async def test_auth_error_is_final(self):
        error = openai.AuthenticationError("bad key", response=httpx.Response(401, request=REQUEST), body=None)
        client, _ = make_client(side_effect=error)

        result = await client.summarize("text")

        assert not result.ok
        assert not result.transient

    @pytest.mark.asyncio
    async def test_empty_reply_is_failure(self):
        client, _ = make_client(content="   ")

        assert not (await client.summarize("text")).ok

    @pytest.mark.asyncio
    async def test_schema_violation_is_final(self):
        client, _ = make_client(content='{"title": "no images key"}')

        result = await client.extract_structured("<html></html>", "https://a.example/")

        assert not result.ok
        assert not result.transient
        assert "RawExtraction" in result.error

    @pytest.mark.asyncio
    async def test_non_json_reply_is_final(self):
        client, _ = make_client(content="I cannot help with that.")

        result = await client.categorize("text")

        assert not result.ok
        assert not result.transient


@pytest.mark.unit
class TestParseJsonReply:
    def test_plain_and_fenced(self):
        assert parse_json_reply('{"images": []}', RawExtraction).images == []
        assert parse_json_reply('```\n{"categories": ["a"]}\n```', Categorization).categories == ["a"]

    def test_invalid_json_raises(self):
        with pytest.raises(json.JSONDecodeError):
            parse_json_reply("not json", RawExtraction)
