from __future__ import annotations

from typing import Literal

from pydantic import BaseModel

ChatRole = Literal["system", "user", "assistant"]


class Message(BaseModel):
    """One turn of the prompt handed to a provider."""

    role: ChatRole
    content: str = ""

    def to_chat_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content or ""}


class ProviderNotConfigured(RuntimeError):
    """The selected LLM backend is missing credentials or a host."""


__all__ = ["ChatRole", "Message", "ProviderNotConfigured"]
