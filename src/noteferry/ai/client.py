"""
Client for an OpenAI-compatible chat-completions endpoint.

Each capability makes exactly one model call and returns an ``AIResult``.
Provider failures become tagged failures instead of exceptions; retrying is
left to the caller, which can tell transient failures from final ones.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Type, TypeVar

import openai
import structlog
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from noteferry.config.config import AIConfig
from noteferry.utils.text import truncate

from . import prompts
from .schemas import AIResult, Categorization, RawExtraction

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

TRANSIENT_ERRORS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
    TimeoutError,
)


def parse_json_reply(text: str, model: Type[M]) -> M:
    """Validate a JSON reply, tolerating a surrounding markdown code fence."""
    cleaned = CODE_FENCE.sub("", text.strip())
    return model.model_validate(json.loads(cleaned))


class LLMClient:
    """Language-model capabilities used by the AI extractor."""

    def __init__(self, config: Optional[AIConfig] = None, client: Optional[AsyncOpenAI] = None) -> None:
        self.config = config or AIConfig()
        self._client = client

    def is_available(self) -> bool:
        return bool(self.config.enabled and (self._client is not None or self.config.api_key))

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.request_timeout,
                max_retries=0,
            )
        return self._client

    async def _complete(self, prompt: str, *, json_mode: bool = False) -> AIResult[str]:
        if not self.is_available():
            return AIResult.failure("AI is not configured")

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": prompts.SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]
        kwargs: Dict[str, Any] = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(
                model=self.config.model,
                temperature=self.config.temperature,
                messages=messages,  # type: ignore[arg-type]
                **kwargs,
            )
        except TRANSIENT_ERRORS as e:
            logger.warning("Model call failed, transient", error=str(e), error_type=type(e).__name__)
            return AIResult.failure(str(e) or type(e).__name__, transient=True)
        except openai.OpenAIError as e:
            logger.error("Model call failed", error=str(e), error_type=type(e).__name__)
            return AIResult.failure(str(e) or type(e).__name__)

        text = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not text:
            return AIResult.failure("Model returned an empty reply")
        return AIResult.success(text)

    async def _complete_json(self, prompt: str, model: Type[M]) -> AIResult[M]:
        reply = await self._complete(prompt, json_mode=True)
        if not reply.ok:
            return AIResult.failure(reply.error or "no reply", transient=reply.transient)
        try:
            return AIResult.success(parse_json_reply(reply.value or "", model))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Model reply failed schema validation", schema=model.__name__, error=str(e))
            return AIResult.failure(f"Invalid {model.__name__} reply: {e}")

    async def summarize(self, text: str) -> AIResult[str]:
        prompt = prompts.SUMMARIZE.format(content=truncate(text, self.config.summary_input_chars, ellipsis=""))
        return await self._complete(prompt)

    async def optimize_title(self, title: str, text: str) -> AIResult[str]:
        prompt = prompts.OPTIMIZE_TITLE.format(
            title=title, content=truncate(text, self.config.title_input_chars, ellipsis="")
        )
        result = await self._complete(prompt)
        if result.ok:
            cleaned = (result.value or "").strip().strip("\"'“”《》")
            return AIResult.success(cleaned) if cleaned else AIResult.failure("Model returned an empty title")
        return result

    async def categorize(self, text: str) -> AIResult[Categorization]:
        prompt = prompts.CATEGORIZE.format(content=truncate(text, self.config.categorize_input_chars, ellipsis=""))
        return await self._complete_json(prompt, Categorization)

    async def extract_structured(self, html: str, url: str) -> AIResult[RawExtraction]:
        prompt = prompts.EXTRACT_HTML.format(html=html[: self.config.html_char_limit], url=url)
        return await self._complete_json(prompt, RawExtraction)
