"""Memory mutations made outside a chat turn (the memory library).

These have no real conversational trigger, so each one is anchored to a
synthetic system message in a per-user bookkeeping conversation. The message
content is a JSON payload describing the change; the reconciler later reads
it when deciding which chat turn the change belongs to.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from .errors import DeletionRecordNotFound
from .gateway import MemoryGateway
from .ledger import ProvenanceLedger
from .models import MessageRecord
from .persistence.sqlite import SQLiteConversationStore

logger = logging.getLogger(__name__)

UPDATES_CONVERSATION_TITLE = "[System] Memory Updates"
DELETIONS_CONVERSATION_TITLE = "[System] Memory Deletions"
SYSTEM_CONVERSATION_TITLES = frozenset(
    {UPDATES_CONVERSATION_TITLE, DELETIONS_CONVERSATION_TITLE}
)


class MemoryLibrary:
    def __init__(
        self,
        store: SQLiteConversationStore,
        gateway: MemoryGateway,
        ledger: ProvenanceLedger,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._ledger = ledger

    def _system_anchor(self, user_id: str, title: str, payload: Dict[str, Any]) -> MessageRecord:
        conversation = self._store.find_conversation_by_title(user_id, title)
        if conversation is None:
            conversation = self._store.create_conversation(user_id, title)
        return self._store.insert_message(
            conversation.id,
            "system",
            json.dumps(payload, ensure_ascii=False),
        )

    async def update_memory(self, user_id: str, memory_id: str, text: str) -> bool:
        """Rewrite a memory's text; ``False`` when the remote update failed."""
        before = await self._gateway.get_by_id(user_id, memory_id)
        old_content = before.text if before is not None else ""

        if not await self._gateway.update(memory_id, text, user_id=user_id):
            return False

        try:
            anchor = self._system_anchor(
                user_id,
                UPDATES_CONVERSATION_TITLE,
                {
                    "type": "memory_update",
                    "memoryId": memory_id,
                    "oldContent": old_content,
                    "newContent": text,
                },
            )
            self._ledger.append(anchor.id, memory_id, "update", old_content=old_content, new_content=text)
        except Exception:
            logger.exception("Memory %s updated but its ledger entry was not recorded", memory_id)
        return True

    async def delete_memory(self, user_id: str, memory_id: str) -> bool:
        """Delete a memory, keeping its last text in the ledger for restore."""
        before = await self._gateway.get_by_id(user_id, memory_id)
        old_content = before.text if before is not None else ""

        if not await self._gateway.delete(memory_id, user_id=user_id):
            return False

        try:
            anchor = self._system_anchor(
                user_id,
                DELETIONS_CONVERSATION_TITLE,
                {
                    "type": "memory_deletion",
                    "memoryId": memory_id,
                    "memoryContent": old_content,
                },
            )
            self._ledger.append(anchor.id, memory_id, "delete", old_content=old_content)
        except Exception:
            logger.exception("Memory %s deleted but its ledger entry was not recorded", memory_id)
        return True

    async def restore_memory(self, user_id: str, memory_id: str) -> List[str]:
        """Re-add a deleted memory's last known text and return the new ids.

        The old id stays in the deleted set forever; the restored content
        comes back under whatever id the remote store assigns.
        """
        record = self._ledger.latest_deletion_record(memory_id, user_id)
        if record is None or not record.old_content:
            raise DeletionRecordNotFound(f"No restorable deletion of memory {memory_id!r}")

        new_ids = await self._gateway.add(
            user_id,
            record.old_content,
            {"restoredFrom": memory_id},
        )
        for new_id in new_ids:
            try:
                self._ledger.append(record.anchor_message_id, new_id, "add", new_content=record.old_content)
            except Exception:
                logger.exception("Restored memory %s has no ledger entry", new_id)
        return new_ids


__all__ = [
    "MemoryLibrary",
    "UPDATES_CONVERSATION_TITLE",
    "DELETIONS_CONVERSATION_TITLE",
    "SYSTEM_CONVERSATION_TITLES",
]
