from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

Role = Literal["user", "assistant", "system"]
Operation = Literal["add", "update", "delete"]


class Memory(BaseModel):
    """A memory as seen past the gateway boundary."""

    id: str
    text: str = ""
    hash: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)
    score: Optional[float] = None
    created_at: str
    updated_at: str


class MemorySearchResult(BaseModel):
    results: List[Memory] = Field(default_factory=list)
    total: int = 0
    # False when the remote listing was cut off at the fetch size.
    complete: bool = True


class ConversationRecord(BaseModel):
    id: str
    user_id: str
    title: str
    created_at: str
    updated_at: str


class MessageRecord(BaseModel):
    id: str
    conversation_id: str
    role: Role
    content: str
    created_at: str


class MemoryLink(BaseModel):
    """One ledger entry: an operation on a remote memory anchored to a message."""

    id: str
    message_id: str
    mem0_id: str
    operation: Operation
    old_content: Optional[str] = None
    new_content: Optional[str] = None
    created_at: str


class MemoryActivity(BaseModel):
    added: int = 0
    updated: int = 0
    deleted: int = 0
    details: List[MemoryLink] = Field(default_factory=list)


class MemoryReference(BaseModel):
    """Snapshot of a memory as cited by an assistant message."""

    id: str
    message_id: str
    memory_id: str
    memory_text: str
    relevance_score: float = 0.0
    reference_order: int
    memory_metadata: Dict[str, Any] = Field(default_factory=dict)
    memory_created_at: Optional[str] = None
    memory_updated_at: Optional[str] = None
    created_at: str


class DeletionRecord(BaseModel):
    memory_id: str
    old_content: str
    anchor_message_id: str
    created_at: str


class LedgerCandidate(BaseModel):
    """A ledger entry anchored to a synthetic message, awaiting re-linking."""

    link: MemoryLink
    anchor_role: Role
    anchor_content: str = ""


class PartitionStats(BaseModel):
    keys: int = 0
    hits: int = 0
    misses: int = 0


class CacheStats(BaseModel):
    search: PartitionStats = Field(default_factory=PartitionStats)
    all: PartitionStats = Field(default_factory=PartitionStats)
    misc: PartitionStats = Field(default_factory=PartitionStats)
