from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass
class LLMCoreConfig:
    """Configuration for shared LLM usage."""

    model: str = field(default_factory=lambda: os.getenv("CHAT_MODEL", "openai:gpt-4o-mini"))
    ollama_base_url: str = field(
        default_factory=lambda: os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    )


DEFAULT_LLM_CORE_CONFIG = LLMCoreConfig()
