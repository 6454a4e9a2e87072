from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from main_config import DATABASE_PATH as _DATABASE_PATH_STR

DATABASE_PATH = Path(_DATABASE_PATH_STR)


class CacheConfig(BaseModel):
    """Time-to-live settings for the three cache partitions."""

    search_ttl_seconds: float = Field(
        default=300,
        description="Lifetime of cached search results.",
    )
    all_ttl_seconds: float = Field(
        default=600,
        description="Lifetime of cached full memory listings.",
    )
    misc_ttl_seconds: float = Field(
        default=1800,
        description="Lifetime of miscellaneous user-scoped payloads.",
    )
    search_check_period_seconds: float = Field(
        default=60,
        description="Minimum interval between sweeps of expired search entries.",
    )
    all_check_period_seconds: float = Field(
        default=120,
        description="Minimum interval between sweeps of expired listings.",
    )
    misc_check_period_seconds: float = Field(
        default=300,
        description="Minimum interval between sweeps of expired miscellaneous entries.",
    )


class ReconcilerConfig(BaseModel):
    """Tuning for the re-linking of out-of-band memory operations."""

    window_hours: float = Field(
        default=24,
        description="Only operations newer than this are considered.",
    )
    relevance_threshold: float = Field(
        default=0.2,
        description="Token overlap ratio that must be exceeded to link.",
    )
    min_token_length: int = Field(
        default=4,
        description="Tokens shorter than this are ignored by the overlap heuristic.",
    )
    fallback_search_limit: int = Field(
        default=10,
        description="Search size used when an update snapshot cannot be read.",
    )


class Mem0Config(BaseModel):
    """Credentials for the hosted mem0 memory platform."""

    api_key: Optional[str] = Field(default_factory=lambda: os.getenv("MEM0_API_KEY"))
    org_id: Optional[str] = Field(default_factory=lambda: os.getenv("MEM0_ORG_ID"))
    project_id: Optional[str] = Field(default_factory=lambda: os.getenv("MEM0_PROJECT_ID"))
    host: Optional[str] = Field(default_factory=lambda: os.getenv("MEM0_HOST"))


class MemoryCoreConfig(BaseModel):
    """Top-level configuration for the memory-consistency layer."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    reconciler: ReconcilerConfig = Field(default_factory=ReconcilerConfig)
    mem0: Mem0Config = Field(default_factory=Mem0Config)
    database_path: Path = Field(
        default=DATABASE_PATH,
        description="Path to the SQLite database holding conversations and the ledger.",
    )
    search_limit: int = Field(
        default=5,
        description="Number of memories retrieved to ground each chat turn.",
    )
    listing_limit: int = Field(
        default=1000,
        description="Memories fetched from the remote store to build a listing.",
    )
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def ensure_directories(self) -> None:
        """Create required directories if they do not exist."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)
