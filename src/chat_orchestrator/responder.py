"""LLM collaborator: grounded reply generation and citation extraction."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Protocol, Sequence

from src.llm_core import LLMProvider, Message
from src.llm_core import chat as llm_chat
from src.memory_core.models import Memory

from .config import DEFAULT_MAX_TOKENS, DEFAULT_MODEL, DEFAULT_TEMPERATURE
from .prompts import build_grounded_messages
from .system_prompt_loader import get_default_system_prompt

CITATION_PATTERN = re.compile(r"\[memory:([^\]]+)\]")


def extract_citations(content: str) -> List[str]:
    """Memory ids cited as ``[memory:<id>]``, unique, in order of first appearance."""
    seen: List[str] = []
    for match in CITATION_PATTERN.finditer(content or ""):
        memory_id = match.group(1).strip()
        if memory_id and memory_id not in seen:
            seen.append(memory_id)
    return seen


@dataclass
class LLMReply:
    content: str
    cited_memory_ids: List[str] = field(default_factory=list)


class Responder(Protocol):
    async def generate(self, history: Sequence[Message], memories: Sequence[Memory]) -> LLMReply:
        ...


class ChatResponder:
    """Calls the configured LLM with the conversation and retrieved memories."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        provider: LLMProvider | None = None,
        system_prompt: str | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._provider = provider
        self._system_prompt = system_prompt

    async def generate(self, history: Sequence[Message], memories: Sequence[Memory]) -> LLMReply:
        messages = build_grounded_messages(
            self._system_prompt or get_default_system_prompt(),
            history,
            memories,
        )
        content = await llm_chat(
            messages,
            model=self.model,
            provider=self._provider,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return LLMReply(content=content, cited_memory_ids=extract_citations(content))


__all__ = ["ChatResponder", "LLMReply", "Responder", "extract_citations", "CITATION_PATTERN"]
