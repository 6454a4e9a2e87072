"""Orchestrator configuration: paths and defaults."""

from __future__ import annotations

import os
from pathlib import Path

from main_config import DEFAULT_SYSTEM_PROMPT_PATH as _DEFAULT_SYSTEM_PROMPT_PATH

DEFAULT_SYSTEM_PROMPT_PATH = Path(_DEFAULT_SYSTEM_PROMPT_PATH)

DEFAULT_MODEL = os.getenv("CHAT_MODEL", "openai:gpt-4o-mini")
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 1000
DEFAULT_MEMORY_LIMIT = 5

APOLOGY_REPLY = (
    "I apologize, but I am currently unable to generate a response. "
    "Please try again in a moment."
)
