"""In-memory stand-ins for the remote memory store and the LLM."""
from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from src.chat_orchestrator.container import Services, build_services
from src.chat_orchestrator.responder import LLMReply
from src.llm_core import Message
from src.memory_core.config import MemoryCoreConfig
from src.memory_core.models import Memory


class FakeRemoteStore:
    """Dict-backed remote store. Search returns the user's memories in insertion order."""

    def __init__(self) -> None:
        self.memories: Dict[str, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.fail: set[str] = set()
        self._next_id = 0

    def _enter(self, op: str) -> None:
        self.calls.append(op)
        if op in self.fail:
            raise RuntimeError(f"remote {op} unavailable")

    def seed(self, user_id: str, memory_id: str, text: str, **extra: Any) -> None:
        self.memories[memory_id] = {
            "id": memory_id,
            "memory": text,
            "user_id": user_id,
            "metadata": {},
            "created_at": "2026-01-01T00:00:00+00:00",
            "updated_at": "2026-01-01T00:00:00+00:00",
            **extra,
        }

    def _owned(self, user_id: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(m) for m in self.memories.values() if m["user_id"] == user_id]

    async def add(self, text: str, *, user_id: str, metadata: Dict[str, Any]) -> List[Dict[str, Any]]:
        self._enter("add")
        if not user_id:
            raise ValueError("user_id is required")
        self._next_id += 1
        memory_id = f"mem-{self._next_id}"
        self.memories[memory_id] = {
            "id": memory_id,
            "memory": text,
            "user_id": user_id,
            "metadata": dict(metadata),
            "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
            "updated_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        }
        return [{"id": memory_id, "memory": text, "event": "ADD"}]

    async def search(self, query: str, *, user_id: str, limit: int) -> List[Dict[str, Any]]:
        self._enter("search")
        results = self._owned(user_id)[:limit]
        for rank, item in enumerate(results):
            item["score"] = round(0.9 - 0.1 * rank, 2)
        return results

    async def get_all(self, *, user_id: str, limit: int) -> List[Dict[str, Any]]:
        self._enter("get_all")
        return self._owned(user_id)[:limit]

    async def get(self, memory_id: str, *, user_id: str) -> Optional[Dict[str, Any]]:
        self._enter("get")
        memory = self.memories.get(memory_id)
        if memory is None or memory["user_id"] != user_id:
            return None
        return copy.deepcopy(memory)

    async def update(self, memory_id: str, text: str, *, user_id: Optional[str] = None) -> None:
        self._enter("update")
        if memory_id not in self.memories:
            raise KeyError(memory_id)
        self.memories[memory_id]["memory"] = text
        self.memories[memory_id]["updated_at"] = "2026-02-01T00:00:00+00:00"

    async def delete(self, memory_id: str, *, user_id: Optional[str] = None) -> None:
        self._enter("delete")
        if memory_id not in self.memories:
            raise KeyError(memory_id)
        del self.memories[memory_id]


class FakeResponder:
    """Returns ``reply(history, memories)``; defaults to citing the first memory."""

    def __init__(
        self,
        reply: Optional[Callable[[Sequence[Message], Sequence[Memory]], str]] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._reply = reply
        self._error = error
        self.calls: List[tuple] = []

    async def generate(self, history: Sequence[Message], memories: Sequence[Memory]) -> LLMReply:
        self.calls.append((list(history), list(memories)))
        if self._error is not None:
            raise self._error
        if self._reply is not None:
            return LLMReply(content=self._reply(history, memories))
        if memories:
            return LLMReply(content=f"From what I remember: {memories[0].text} [memory:{memories[0].id}]")
        return LLMReply(content="I don't know that yet.")


class FakeClock:
    """Monotonic-style clock for TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateClock:
    """Wall clock for ledger tests."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime.now(timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_memory(memory_id: str, text: str = "", score: Optional[float] = None) -> Memory:
    return Memory(
        id=memory_id,
        text=text,
        score=score,
        created_at="2026-01-01T00:00:00+00:00",
        updated_at="2026-01-01T00:00:00+00:00",
    )


def make_services(
    tmp: str,
    remote: Optional[FakeRemoteStore] = None,
    responder: Optional[FakeResponder] = None,
) -> Services:
    config = MemoryCoreConfig(database_path=Path(tmp) / "chat.db")
    return build_services(
        config,
        remote=remote or FakeRemoteStore(),
        responder=responder or FakeResponder(),
    )
