"""OpenAI Chat Completions backend."""

from __future__ import annotations

import logging
import os
from typing import Any

from openai import AsyncOpenAI

from ..models import Message, ProviderNotConfigured
from .base import LLMProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    def __init__(
        self,
        default_model: str = "gpt-4o-mini",
        api_key: str | None = None,
        base_url: str | None = None,
    ) -> None:
        self.default_model = default_model
        self.api_key = api_key or os.getenv("OPENAI_API_KEY") or ""
        self.base_url = base_url or os.getenv("OPENAI_BASE_URL")
        self._client: AsyncOpenAI | None = None

    @property
    def client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise ProviderNotConfigured("OPENAI_API_KEY is not set")
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key, base_url=self.base_url)
        return self._client

    async def chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        sampling: dict[str, Any] = {}
        if temperature is not None:
            sampling["temperature"] = temperature
        if max_tokens is not None:
            sampling["max_tokens"] = max_tokens

        completion = await self.client.chat.completions.create(
            model=model or self.default_model,
            messages=[m.to_chat_dict() for m in messages],
            **sampling,
        )
        usage = getattr(completion, "usage", None)
        if usage is not None:
            logger.debug(
                "OpenAI usage: prompt=%s completion=%s",
                usage.prompt_tokens,
                usage.completion_tokens,
            )
        if not completion.choices:
            logger.warning("OpenAI returned no choices for model %s", model or self.default_model)
            return ""
        return completion.choices[0].message.content or ""
