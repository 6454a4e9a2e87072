from __future__ import annotations

from typing import List, Sequence

from src.llm_core import Message
from src.memory_core.models import Memory

FALLBACK_SYSTEM_PROMPT = (
    "You are a helpful AI assistant with access to the user's memories. "
    "Use the provided memories as context when relevant, and cite a memory you "
    "rely on by writing its ID in square brackets like [memory:<id>]."
)


def format_memory_context(memories: Sequence[Memory]) -> str:
    """Render retrieved memories as a numbered block for the system prompt."""
    if not memories:
        return ""
    lines = [f"[{i}] {m.text} (ID: {m.id})" for i, m in enumerate(memories, start=1)]
    return "Relevant memories:\n" + "\n".join(lines)


def build_grounded_messages(
    base_prompt: str,
    history: Sequence[Message],
    memories: Sequence[Memory],
) -> List[Message]:
    """System prompt with memory context, followed by the conversation so far."""
    system_content = base_prompt.strip()
    context = format_memory_context(memories)
    if context:
        system_content = f"{system_content}\n\n{context}"
    return [Message(role="system", content=system_content), *history]


__all__ = ["FALLBACK_SYSTEM_PROMPT", "build_grounded_messages", "format_memory_context"]
