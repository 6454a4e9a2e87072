"""Remote memory store contract and the mem0 platform adapter.

Nothing shaped like a raw remote payload travels past this module and the
gateway: ``normalize_memory`` is the single mapping into ``Memory``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from mem0 import AsyncMemoryClient

from .config import Mem0Config
from .errors import MemoryStoreError
from .models import Memory

logger = logging.getLogger(__name__)


class RemoteMemoryStore(Protocol):
    """Operations the memory core needs from the remote store. All may raise."""

    async def add(self, text: str, *, user_id: str, metadata: Dict[str, Any]) -> List[Dict[str, Any]]:
        ...

    async def search(self, query: str, *, user_id: str, limit: int) -> List[Dict[str, Any]]:
        ...

    async def get_all(self, *, user_id: str, limit: int) -> List[Dict[str, Any]]:
        ...

    async def get(self, memory_id: str, *, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def update(self, memory_id: str, text: str, *, user_id: Optional[str] = None) -> None:
        ...

    async def delete(self, memory_id: str, *, user_id: Optional[str] = None) -> None:
        ...


def to_iso(value: Any) -> str:
    """Render a remote timestamp (string, datetime, date or missing) as ISO-8601."""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return datetime.now(timezone.utc).isoformat()


def normalize_memory(raw: Any) -> Optional[Memory]:
    """Map one remote record to ``Memory``; ``None`` when it carries no id."""
    if not isinstance(raw, dict):
        return None
    memory_id = raw.get("id")
    if not memory_id:
        return None
    metadata = raw.get("metadata")
    score = raw.get("score")
    return Memory(
        id=str(memory_id),
        text=raw.get("memory") or "",
        hash=raw.get("hash") or "",
        metadata=metadata if isinstance(metadata, dict) else {},
        score=float(score) if isinstance(score, (int, float)) else None,
        created_at=to_iso(raw.get("created_at")),
        updated_at=to_iso(raw.get("updated_at")),
    )


def normalize_memories(payload: Any) -> List[Memory]:
    out: List[Memory] = []
    for item in unwrap_results(payload):
        memory = normalize_memory(item)
        if memory is not None:
            out.append(memory)
    return out


def unwrap_results(payload: Any) -> List[Any]:
    """Accept both the bare-list and ``{"results": [...]}`` response formats."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        results = payload.get("results")
        if isinstance(results, list):
            return results
    return []


class Mem0RemoteStore:
    """``RemoteMemoryStore`` backed by the hosted mem0 platform."""

    def __init__(self, config: Optional[Mem0Config] = None) -> None:
        self.config = config or Mem0Config()
        self._client: Optional[AsyncMemoryClient] = None

    def _get_client(self) -> AsyncMemoryClient:
        if not self.config.api_key:
            raise MemoryStoreError("MEM0_API_KEY is not configured")
        if self._client is None:
            kwargs: Dict[str, Any] = {"api_key": self.config.api_key}
            if self.config.org_id:
                kwargs["org_id"] = self.config.org_id
            if self.config.project_id:
                kwargs["project_id"] = self.config.project_id
            if self.config.host:
                kwargs["host"] = self.config.host
            self._client = AsyncMemoryClient(**kwargs)
        return self._client

    async def add(self, text: str, *, user_id: str, metadata: Dict[str, Any]) -> List[Dict[str, Any]]:
        client = self._get_client()
        result = await client.add(
            [{"role": "user", "content": text}],
            user_id=user_id,
            metadata=metadata or {},
        )
        return [r for r in unwrap_results(result) if isinstance(r, dict)]

    async def search(self, query: str, *, user_id: str, limit: int) -> List[Dict[str, Any]]:
        client = self._get_client()
        result = await client.search(query, user_id=user_id, limit=limit)
        return [r for r in unwrap_results(result) if isinstance(r, dict)]

    async def get_all(self, *, user_id: str, limit: int) -> List[Dict[str, Any]]:
        client = self._get_client()
        result = await client.get_all(user_id=user_id, limit=limit)
        return [r for r in unwrap_results(result) if isinstance(r, dict)]

    async def get(self, memory_id: str, *, user_id: str) -> Optional[Dict[str, Any]]:
        client = self._get_client()
        result = await client.get(memory_id)
        if not isinstance(result, dict) or not result.get("id"):
            return None
        owner = result.get("user_id")
        if owner and owner != user_id:
            logger.warning("Memory %s belongs to another user", memory_id)
            return None
        return result

    async def update(self, memory_id: str, text: str, *, user_id: Optional[str] = None) -> None:
        client = self._get_client()
        await client.update(memory_id, text=text)

    async def delete(self, memory_id: str, *, user_id: Optional[str] = None) -> None:
        client = self._get_client()
        await client.delete(memory_id)


__all__ = [
    "RemoteMemoryStore",
    "Mem0RemoteStore",
    "normalize_memory",
    "normalize_memories",
    "to_iso",
    "unwrap_results",
]
