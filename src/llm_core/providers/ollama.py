"""Local Ollama backend."""

from __future__ import annotations

from typing import Any

from ollama import AsyncClient

from ..models import Message, ProviderNotConfigured
from .base import LLMProvider


class OllamaProvider(LLMProvider):
    def __init__(self, default_model: str = "llama3.2", base_url: str | None = None) -> None:
        if not base_url:
            raise ProviderNotConfigured("Ollama host is not set")
        self.default_model = default_model
        self.base_url = base_url
        self._client = AsyncClient(host=base_url)

    async def chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        options: dict[str, Any] = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            # Ollama's name for the completion length cap.
            options["num_predict"] = max_tokens
        response = await self._client.chat(
            model=model or self.default_model,
            messages=[m.to_chat_dict() for m in messages],
            options=options or None,
        )
        return response.message.content or ""
