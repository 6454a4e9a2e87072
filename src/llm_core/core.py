from __future__ import annotations

from .config import DEFAULT_LLM_CORE_CONFIG, LLMCoreConfig
from .models import Message
from .providers import LLMProvider, OllamaProvider, OpenAIProvider

_providers: dict[str, LLMProvider] = {}


def split_model(model: str) -> tuple[str, str]:
    """``"openai:gpt-4o-mini"`` -> ``("openai", "gpt-4o-mini")``; bare names are Ollama models."""
    backend, sep, name = model.partition(":")
    if not sep:
        return "ollama", model.strip()
    return backend.strip().lower(), name.strip()


def resolve_provider(model: str | None, config: LLMCoreConfig) -> tuple[LLMProvider, str]:
    backend, name = split_model(model or config.model)
    if backend not in _providers:
        if backend == "openai":
            _providers[backend] = OpenAIProvider(default_model=name)
        else:
            _providers[backend] = OllamaProvider(default_model=name, base_url=config.ollama_base_url)
    return _providers[backend], name or _providers[backend].default_model


async def chat(
    messages: list[Message],
    *,
    model: str | None = None,
    config: LLMCoreConfig | None = None,
    provider: LLMProvider | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> str:
    """One non-streaming completion; ``provider`` overrides the one implied by ``model``."""
    if provider is None:
        provider, name = resolve_provider(model, config or DEFAULT_LLM_CORE_CONFIG)
    else:
        name = split_model(model)[1] if model else None
    return await provider.chat(
        messages,
        model=name or None,
        temperature=temperature,
        max_tokens=max_tokens,
    )
