"""Re-link out-of-band memory operations to the chat turn they concern.

When a memory is edited or deleted from the library, its ledger entry hangs
off a synthetic system message. After each user message, recent such entries
are compared with the message text; relevant ones get a second entry anchored
to the real message so the UI badge lands on the right turn. The original
entry is left untouched.

Relevance is keyword overlap: ``|query tokens found in content| / max(|query tokens|, 1)``
must exceed the configured threshold. Unreadable snapshots favour linking.
"""

from __future__ import annotations

import json
import logging
import string
from datetime import timedelta
from typing import List, Optional

from .config import ReconcilerConfig
from .errors import MemoryStoreError
from .gateway import MemoryGateway
from .ledger import ProvenanceLedger
from .models import LedgerCandidate, MessageRecord

logger = logging.getLogger(__name__)


def tokenize(text: str, min_token_length: int = 4) -> List[str]:
    tokens = (t.strip(string.punctuation) for t in (text or "").lower().split())
    return [t for t in tokens if len(t) >= min_token_length]


def content_overlap(query: str, content: str, min_token_length: int = 4) -> float:
    """Share of the query's tokens that also occur in ``content``."""
    query_tokens = tokenize(query, min_token_length)
    content_tokens = set(tokenize(content, min_token_length))
    common = [t for t in query_tokens if t in content_tokens]
    return len(common) / max(len(query_tokens), 1)


def _anchor_payload(candidate: LedgerCandidate) -> Optional[dict]:
    try:
        payload = json.loads(candidate.anchor_content)
    except (TypeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def candidate_texts(candidate: LedgerCandidate) -> Optional[List[str]]:
    """Stored content to compare against, or ``None`` when none can be read."""
    link = candidate.link
    if link.operation == "delete":
        if link.old_content:
            return [link.old_content]
        payload = _anchor_payload(candidate)
        if payload is None:
            return None
        text = payload.get("memoryContent") or payload.get("oldContent")
        return [text] if isinstance(text, str) and text else None

    texts = [t for t in (link.old_content, link.new_content) if t]
    if texts:
        return texts
    payload = _anchor_payload(candidate)
    if payload is None:
        return None
    texts = [
        t for t in (payload.get("oldContent"), payload.get("newContent"))
        if isinstance(t, str) and t
    ]
    return texts or None


class Reconciler:
    def __init__(
        self,
        ledger: ProvenanceLedger,
        gateway: MemoryGateway,
        config: Optional[ReconcilerConfig] = None,
    ) -> None:
        self._ledger = ledger
        self._gateway = gateway
        self.config = config or ReconcilerConfig()

    async def reconcile(self, user_id: str, message: MessageRecord) -> List[str]:
        """Link relevant pending operations to ``message``; returns new entry ids."""
        candidates = self._ledger.reconciliation_candidates(
            user_id,
            window=timedelta(hours=self.config.window_hours),
            until=message.created_at,
        )
        if not candidates:
            return []

        linked: List[str] = []
        for candidate in candidates:
            try:
                if await self.is_relevant(user_id, message.content, candidate):
                    linked.append(self._ledger.relink(candidate.link, message.id))
            except Exception:
                logger.exception(
                    "Could not reconcile %s of memory %s",
                    candidate.link.operation,
                    candidate.link.mem0_id,
                )
        if linked:
            logger.info("Linked %d memory operations to message %s", len(linked), message.id)
        return linked

    async def is_relevant(self, user_id: str, content: str, candidate: LedgerCandidate) -> bool:
        texts = candidate_texts(candidate)
        if texts is None:
            if candidate.link.operation == "delete":
                return True
            return await self._found_by_search(user_id, content, candidate.link.mem0_id)

        threshold = self.config.relevance_threshold
        return any(
            content_overlap(content, text, self.config.min_token_length) > threshold
            for text in texts
        )

    async def _found_by_search(self, user_id: str, content: str, mem0_id: str) -> bool:
        try:
            results = await self._gateway.search(
                user_id,
                content,
                self.config.fallback_search_limit,
                strict=True,
            )
        except MemoryStoreError:
            return True
        return any(m.id == mem0_id for m in results)


__all__ = ["Reconciler", "content_overlap", "tokenize", "candidate_texts"]
