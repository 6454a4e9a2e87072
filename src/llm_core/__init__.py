"""Shared LLM models and providers used across the backend."""

from .config import LLMCoreConfig, DEFAULT_LLM_CORE_CONFIG
from .core import chat
from .models import Message, ProviderNotConfigured
from .providers import LLMProvider

__all__ = [
    "Message",
    "ProviderNotConfigured",
    "LLMCoreConfig",
    "LLMProvider",
    "DEFAULT_LLM_CORE_CONFIG",
    "chat",
]
