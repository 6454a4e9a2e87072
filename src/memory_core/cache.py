"""Partitioned TTL cache in front of the remote memory store.

Three partitions with independent lifetimes:

- ``search``: ``(user_id, query, limit)`` -> list of memories, relevance order.
- ``all``: ``(user_id,)`` -> ``MemorySearchResult``.
- ``misc``: ``(user_id, kind)`` -> arbitrary payload.

Every key starts with the user id, which is what ``invalidate_user`` matches on.
``invalidate_memory`` is the slow path for callers that do not know the user:
it scans every serialized value for the memory id.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Any, Callable, Dict, Hashable, List, Optional, Tuple

from pydantic import BaseModel, ValidationError

from .config import CacheConfig
from .models import CacheStats, Memory, MemorySearchResult, PartitionStats

logger = logging.getLogger(__name__)

Key = Tuple[Hashable, ...]


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    return str(value)


def _serialize(value: Any) -> str:
    try:
        return json.dumps(value, default=_json_default)
    except (TypeError, ValueError):
        return repr(value)


class TTLPartition:
    """One key->value store with a fixed time-to-live and hit/miss counters.

    Expired entries are dropped when read, and swept from the whole partition
    on the first write after each ``check_period_seconds``.
    """

    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
        check_period_seconds: float = 60,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.check_period_seconds = check_period_seconds
        self._clock = clock
        self._next_sweep = clock() + check_period_seconds
        self._data: Dict[Key, Tuple[Any, float]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Key) -> Optional[Any]:
        with self._lock:
            item = self._data.get(key)
            if item is not None:
                value, expires_at = item
                if self._clock() < expires_at:
                    self.hits += 1
                    return value
                del self._data[key]
            self.misses += 1
            return None

    def set(self, key: Key, value: Any) -> None:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._drop_expired(now)
                self._next_sweep = now + self.check_period_seconds
            self._data[key] = (value, now + self.ttl_seconds)

    def delete(self, key: Key) -> None:
        with self._lock:
            self._data.pop(key, None)

    def delete_where(self, predicate: Callable[[Key, Any], bool]) -> int:
        with self._lock:
            doomed = [k for k, (v, _) in self._data.items() if predicate(k, v)]
            for k in doomed:
                del self._data[k]
            return len(doomed)

    def _drop_expired(self, now: float) -> int:
        expired = [k for k, (_, exp) in self._data.items() if exp <= now]
        for k in expired:
            del self._data[k]
        return len(expired)

    def purge_expired(self) -> None:
        now = self._clock()
        with self._lock:
            removed = self._drop_expired(now)
        if removed:
            logger.debug("Swept %d expired %s entries", removed, self.name)

    def keys(self) -> List[Key]:
        self.purge_expired()
        with self._lock:
            return list(self._data)

    def stats(self) -> PartitionStats:
        keys = len(self.keys())
        return PartitionStats(keys=keys, hits=self.hits, misses=self.misses)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class MemoryCache:
    """Read-through cache used by the memory gateway."""

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or CacheConfig()
        self.search = TTLPartition(
            "search", self.config.search_ttl_seconds, clock, self.config.search_check_period_seconds
        )
        self.all = TTLPartition(
            "all", self.config.all_ttl_seconds, clock, self.config.all_check_period_seconds
        )
        self.misc = TTLPartition(
            "misc", self.config.misc_ttl_seconds, clock, self.config.misc_check_period_seconds
        )

    @property
    def partitions(self) -> List[TTLPartition]:
        return [self.search, self.all, self.misc]

    # ------------------------------------------------------------------
    # Search results
    # ------------------------------------------------------------------

    def get_search_results(self, user_id: str, query: str, limit: int = 5) -> Optional[List[Memory]]:
        value = self.search.get((user_id, query, limit))
        if not isinstance(value, list):
            return None
        return list(value)

    def set_search_results(self, user_id: str, query: str, results: Any, limit: int = 5) -> None:
        key = (user_id, query, limit)
        if not isinstance(results, list):
            self.search.delete(key)
            return
        try:
            memories = [
                m if isinstance(m, Memory) else Memory.model_validate(m)
                for m in results
            ]
        except ValidationError:
            logger.warning("Refusing to cache malformed search results for user %r", user_id)
            self.search.delete(key)
            return
        self.search.set(key, memories)

    # ------------------------------------------------------------------
    # All memories
    # ------------------------------------------------------------------

    def get_all_memories(self, user_id: str) -> Optional[MemorySearchResult]:
        value = self.all.get((user_id,))
        if not isinstance(value, MemorySearchResult):
            return None
        return value.model_copy()

    def set_all_memories(self, user_id: str, result: Any) -> None:
        key = (user_id,)
        if not isinstance(result, MemorySearchResult):
            self.all.delete(key)
            return
        self.all.set(key, result.model_copy())

    # ------------------------------------------------------------------
    # Miscellaneous user data
    # ------------------------------------------------------------------

    def get_user_data(self, user_id: str, kind: str) -> Optional[Any]:
        return self.misc.get((user_id, kind))

    def set_user_data(self, user_id: str, kind: str, data: Any) -> None:
        key = (user_id, kind)
        if data is None:
            self.misc.delete(key)
            return
        self.misc.set(key, data)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate_user(self, user_id: str) -> None:
        """Drop every entry, in every partition, belonging to ``user_id``."""
        removed = sum(
            p.delete_where(lambda key, _value: key[0] == user_id)
            for p in self.partitions
        )
        logger.debug("Invalidated %d cache entries for user %r", removed, user_id)

    def invalidate_memory(self, memory_id: str) -> None:
        """Drop every entry whose serialized value mentions ``memory_id``.

        Full scan across all users and partitions; use ``invalidate_user``
        whenever the owning user is known.
        """
        if not memory_id:
            return
        removed = sum(
            p.delete_where(lambda _key, value: memory_id in _serialize(value))
            for p in self.partitions
        )
        logger.debug("Invalidated %d cache entries mentioning memory %r", removed, memory_id)

    def stats(self) -> CacheStats:
        return CacheStats(
            search=self.search.stats(),
            all=self.all.stats(),
            misc=self.misc.stats(),
        )

    def clear_all(self) -> None:
        for p in self.partitions:
            p.clear()
        logger.info("Cleared all memory cache partitions")


__all__ = ["TTLPartition", "MemoryCache"]
