"""Provider interface for grounded reply generation."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import Message


class LLMProvider(ABC):
    """A chat backend. Replies are plain text; citations are parsed by the caller."""

    default_model: str

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        ...
