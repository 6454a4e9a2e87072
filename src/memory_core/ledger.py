"""Append-only provenance ledger of memory operations.

Each entry ties an add/update/delete on a remote memory to the message that
caused it (a real chat message or a synthetic system anchor). Entries are
never mutated or removed; a restore is recorded as a fresh ``add``.

Content invariants:
- ``add``: ``new_content`` set, ``old_content`` null.
- ``update``: both set.
- ``delete``: ``old_content`` set (snapshot taken before deletion), ``new_content`` null.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Set

from .errors import LedgerError
from .models import DeletionRecord, LedgerCandidate, MemoryActivity, MemoryLink
from .persistence.sqlite import SQLiteConversationStore

logger = logging.getLogger(__name__)

OPERATIONS = ("add", "update", "delete")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _check_contents(operation: str, old_content: Optional[str], new_content: Optional[str]) -> None:
    if operation not in OPERATIONS:
        raise LedgerError(f"Unknown ledger operation: {operation!r}")
    if operation == "add" and (new_content is None or old_content is not None):
        raise LedgerError("add entries carry new_content only")
    if operation == "update" and (new_content is None or old_content is None):
        raise LedgerError("update entries carry both old_content and new_content")
    if operation == "delete" and (old_content is None or new_content is not None):
        raise LedgerError("delete entries carry old_content only")


class ProvenanceLedger:
    """Queryable history of memory operations, backed by the conversation store."""

    def __init__(
        self,
        store: SQLiteConversationStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    def append(
        self,
        message_id: str,
        mem0_id: str,
        operation: str,
        old_content: Optional[str] = None,
        new_content: Optional[str] = None,
    ) -> str:
        """Append one entry anchored to ``message_id`` and return its id."""
        _check_contents(operation, old_content, new_content)
        try:
            link = self._store.insert_link(
                message_id=message_id,
                mem0_id=mem0_id,
                operation=operation,
                old_content=old_content,
                new_content=new_content,
                created_at=self._clock().isoformat(),
            )
        except sqlite3.IntegrityError as exc:
            raise LedgerError(f"Cannot anchor {operation} of {mem0_id!r} to message {message_id!r}") from exc
        logger.debug("Ledger %s %s -> message %s", operation, mem0_id, message_id)
        return link.id

    def activity_for_message(self, message_id: str, user_id: Optional[str] = None) -> MemoryActivity:
        """Counts and details of every entry anchored to ``message_id``, oldest first."""
        links = self._store.list_links_for_message(message_id, user_id=user_id)
        return MemoryActivity(
            added=sum(1 for link in links if link.operation == "add"),
            updated=sum(1 for link in links if link.operation == "update"),
            deleted=sum(1 for link in links if link.operation == "delete"),
            details=links,
        )

    def deleted_memory_ids_for_user(self, user_id: str) -> Set[str]:
        return self._store.deleted_memory_ids(user_id)

    def latest_deletion_record(self, mem0_id: str, user_id: str) -> Optional[DeletionRecord]:
        return self._store.latest_deletion(mem0_id, user_id)

    def reconciliation_candidates(
        self,
        user_id: str,
        window: timedelta,
        until: Optional[str] = None,
    ) -> List[LedgerCandidate]:
        """Update/delete entries on synthetic anchors not yet re-linked to a real message."""
        since = (self._clock() - window).isoformat()
        return self._store.unlinked_system_operations(user_id, since=since, until=until)

    def relink(self, candidate: MemoryLink, message_id: str) -> str:
        """Record ``candidate``'s operation again, anchored to ``message_id``."""
        return self.append(
            message_id=message_id,
            mem0_id=candidate.mem0_id,
            operation=candidate.operation,
            old_content=candidate.old_content,
            new_content=candidate.new_content,
        )


__all__ = ["ProvenanceLedger", "OPERATIONS"]
