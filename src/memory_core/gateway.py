"""Single entry point for memory reads and writes.

Reads go cache -> remote, and every result, cached or fresh, passes through
``filter_deleted_memories`` so a memory with a ``delete`` ledger entry is never
returned to a caller. Writes invalidate the cache only after the remote call
succeeded.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from .cache import MemoryCache
from .errors import AddFailed, MemoryStoreError
from .ledger import ProvenanceLedger
from .models import Memory, MemorySearchResult
from .remote import RemoteMemoryStore, normalize_memories, normalize_memory

logger = logging.getLogger(__name__)


class MemoryGateway:
    def __init__(
        self,
        remote: RemoteMemoryStore,
        cache: MemoryCache,
        ledger: ProvenanceLedger,
        listing_limit: int = 1000,
    ) -> None:
        self._remote = remote
        self._cache = cache
        self._ledger = ledger
        self.listing_limit = listing_limit

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add(
        self,
        user_id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> List[str]:
        """Add a memory and return the ids the remote store created.

        Raises ``AddFailed``; the caller owns the ledger entry because only it
        knows the anchoring message.
        """
        try:
            created = await self._remote.add(text, user_id=user_id, metadata=metadata or {})
        except Exception as exc:
            logger.exception("Remote add failed for user %r", user_id)
            raise AddFailed("Failed to add memory") from exc

        memory_ids = [str(r["id"]) for r in created if isinstance(r, dict) and r.get("id")]
        self._cache.invalidate_user(user_id)
        logger.info("Added %d memories for user %r", len(memory_ids), user_id)
        return memory_ids

    async def update(self, memory_id: str, text: str, user_id: Optional[str] = None) -> bool:
        try:
            await self._remote.update(memory_id, text, user_id=user_id)
        except Exception:
            logger.warning("Remote update of memory %s failed", memory_id, exc_info=True)
            return False
        # Any user's search results may hold this memory; scan by content.
        self._cache.invalidate_memory(memory_id)
        return True

    async def delete(self, memory_id: str, user_id: Optional[str] = None) -> bool:
        try:
            await self._remote.delete(memory_id, user_id=user_id)
        except Exception:
            logger.warning("Remote delete of memory %s failed", memory_id, exc_info=True)
            return False
        if user_id is not None:
            self._cache.invalidate_user(user_id)
        else:
            self._cache.invalidate_memory(memory_id)
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self,
        user_id: str,
        query: str,
        limit: int = 5,
        *,
        strict: bool = False,
    ) -> List[Memory]:
        """Relevance-ordered memories for ``query``.

        Remote failures degrade to an empty list unless ``strict`` is set, in
        which case ``MemoryStoreError`` is raised.
        """
        cached = self._cache.get_search_results(user_id, query, limit)
        if cached is not None:
            return self.filter_deleted_memories(cached, user_id)

        try:
            raw = await self._remote.search(query, user_id=user_id, limit=limit)
        except Exception as exc:
            if strict:
                raise MemoryStoreError("Memory search failed") from exc
            logger.warning("Memory search failed for user %r", user_id, exc_info=True)
            return []

        results = self.filter_deleted_memories(normalize_memories(raw), user_id)
        self._cache.set_search_results(user_id, query, results, limit)
        return results

    async def get_all_memories(
        self,
        user_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> MemorySearchResult:
        """Page over every visible memory; the full filtered listing is what gets cached."""
        start = max(offset, 0)
        cached = self._cache.get_all_memories(user_id)
        if cached is not None and (
            cached.complete or 0 < start + limit <= len(cached.results)
        ):
            visible = self.filter_deleted_memories(cached.results, user_id)
            return self._page(visible, limit, offset, cached.complete)

        fetch = max(self.listing_limit, start + limit)
        try:
            raw = await self._remote.get_all(user_id=user_id, limit=fetch)
        except Exception:
            logger.warning("Listing memories failed for user %r", user_id, exc_info=True)
            return MemorySearchResult(results=[], total=0)

        memories = normalize_memories(raw)
        complete = len(memories) < fetch
        visible = self.filter_deleted_memories(memories, user_id)
        self._cache.set_all_memories(
            user_id,
            MemorySearchResult(results=visible, total=len(visible), complete=complete),
        )
        return self._page(visible, limit, offset, complete)

    async def get_by_id(self, user_id: str, memory_id: str) -> Optional[Memory]:
        """Current remote state of one memory; uncached, ``None`` on miss or error."""
        try:
            raw = await self._remote.get(memory_id, user_id=user_id)
        except Exception:
            logger.warning("Fetching memory %s failed", memory_id, exc_info=True)
            return None
        return normalize_memory(raw)

    # ------------------------------------------------------------------
    # Delete filter
    # ------------------------------------------------------------------

    def filter_deleted_memories(self, memories: Iterable[Memory], user_id: str) -> List[Memory]:
        """Drop every memory that has a ``delete`` entry in the user's ledger."""
        memories = list(memories)
        if not memories:
            return memories
        try:
            deleted = self._ledger.deleted_memory_ids_for_user(user_id)
        except Exception:
            logger.exception("Could not read deleted memory ids for user %r", user_id)
            return memories
        if not deleted:
            return memories
        visible = [m for m in memories if m.id not in deleted]
        if len(visible) < len(memories):
            logger.debug(
                "Filtered %d deleted memories for user %r",
                len(memories) - len(visible),
                user_id,
            )
        return visible

    @staticmethod
    def _page(
        memories: List[Memory], limit: int, offset: int, complete: bool = True
    ) -> MemorySearchResult:
        start = max(offset, 0)
        page = memories[start : start + limit] if limit > 0 else memories[start:]
        return MemorySearchResult(results=page, total=len(memories), complete=complete)


__all__ = ["MemoryGateway"]
