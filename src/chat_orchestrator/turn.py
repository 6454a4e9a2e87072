"""Per-message chat pipeline.

persist user message -> retrieve memories -> LLM -> persist reply and
citations -> (background) add memory + ledger entries, reconcile.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Coroutine, List, Optional, Sequence

from src.llm_core import Message
from src.memory_core.errors import (
    AddFailed,
    ConversationNotFound,
    ConversationReadOnly,
    NotFound,
)
from src.memory_core.gateway import MemoryGateway
from src.memory_core.ledger import ProvenanceLedger
from src.memory_core.library import SYSTEM_CONVERSATION_TITLES
from src.memory_core.models import (
    ConversationRecord,
    Memory,
    MemoryActivity,
    MemoryReference,
    MessageRecord,
)
from src.memory_core.persistence.sqlite import SQLiteConversationStore
from src.memory_core.reconciler import Reconciler

from .config import APOLOGY_REPLY, DEFAULT_MEMORY_LIMIT
from .responder import LLMReply, Responder, extract_citations

logger = logging.getLogger(__name__)


@dataclass
class TurnOptions:
    """Options for a chat turn."""

    memory_limit: int = DEFAULT_MEMORY_LIMIT
    default_title: str = "New Conversation"


@dataclass
class TurnResult:
    user_message: MessageRecord
    assistant_message: MessageRecord
    cited_memory_ids: List[str] = field(default_factory=list)
    references: List[MemoryReference] = field(default_factory=list)


class TurnOrchestrator:
    def __init__(
        self,
        store: SQLiteConversationStore,
        gateway: MemoryGateway,
        ledger: ProvenanceLedger,
        reconciler: Reconciler,
        responder: Responder,
        options: Optional[TurnOptions] = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._ledger = ledger
        self._reconciler = reconciler
        self._responder = responder
        self.options = options or TurnOptions()
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create_conversation(self, user_id: str, title: Optional[str] = None) -> ConversationRecord:
        return self._store.create_conversation(user_id, title or self.options.default_title)

    def list_conversations(self, user_id: str) -> List[ConversationRecord]:
        return self._store.list_conversations(user_id)

    def get_conversation(
        self, user_id: str, conversation_id: str
    ) -> tuple[ConversationRecord, List[MessageRecord]]:
        conversation = self._require_conversation(user_id, conversation_id)
        return conversation, self._store.list_messages(conversation.id)

    def rename_conversation(self, user_id: str, conversation_id: str, title: str) -> ConversationRecord:
        conversation = self._store.rename_conversation(conversation_id, user_id, title)
        if conversation is None:
            raise ConversationNotFound(f"Conversation {conversation_id!r} not found")
        return conversation

    def message_activity(self, user_id: str, message_id: str) -> MemoryActivity:
        return self._ledger.activity_for_message(message_id, user_id=user_id)

    def message_references(self, user_id: str, message_id: str) -> List[MemoryReference]:
        if self._store.get_message(message_id, user_id=user_id) is None:
            raise NotFound(f"Message {message_id!r} not found")
        return self._store.list_references(message_id)

    # ------------------------------------------------------------------
    # The turn
    # ------------------------------------------------------------------

    async def handle_message(self, user_id: str, conversation_id: str, content: str) -> TurnResult:
        """Run one chat turn. The user message is persisted before anything can fail."""
        conversation = self._require_conversation(user_id, conversation_id)
        if conversation.title in SYSTEM_CONVERSATION_TITLES:
            raise ConversationReadOnly(f"Conversation {conversation_id!r} is read-only")

        user_message = self._store.insert_message(conversation.id, "user", content)
        # System rows are ledger anchors, not dialogue.
        history = [
            Message(role=m.role, content=m.content)
            for m in self._store.list_messages(conversation.id)
            if m.role != "system"
        ]

        memories = await self._retrieve(user_id, content)
        reply = await self._generate(history, memories)
        cited = list(dict.fromkeys(reply.cited_memory_ids)) or extract_citations(reply.content)

        assistant_message = self._store.insert_message(conversation.id, "assistant", reply.content)
        references = self._record_references(assistant_message.id, cited, memories)

        self._spawn(self.remember(user_id, conversation.id, user_message))
        self._spawn(self._reconcile(user_id, user_message))

        self._store.touch_conversation(conversation.id)
        return TurnResult(
            user_message=user_message,
            assistant_message=assistant_message,
            cited_memory_ids=cited,
            references=references,
        )

    async def remember(self, user_id: str, conversation_id: str, message: MessageRecord) -> List[str]:
        """Add ``message`` to long-term memory and anchor each new id to it.

        Run in the background after a turn; also the retry path for a turn
        whose add failed. Never raises.
        """
        try:
            memory_ids = await self._gateway.add(
                user_id,
                message.content,
                {"conversationId": conversation_id, "messageId": message.id},
            )
        except AddFailed:
            logger.warning("Memory add failed for message %s", message.id)
            return []
        except Exception:
            logger.exception("Unexpected error adding memory for message %s", message.id)
            return []

        for memory_id in memory_ids:
            try:
                self._ledger.append(message.id, memory_id, "add", new_content=message.content)
            except Exception:
                logger.exception("Memory %s added but not recorded in the ledger", memory_id)
        return memory_ids

    async def retry_remember(self, user_id: str, message_id: str) -> List[str]:
        message = self._store.get_message(message_id, user_id=user_id)
        if message is None or message.role != "user":
            raise NotFound(f"Message {message_id!r} not found")
        return await self.remember(user_id, message.conversation_id, message)

    async def wait_for_background(self) -> None:
        """Await every background task started so far (tests, shutdown)."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_conversation(self, user_id: str, conversation_id: str) -> ConversationRecord:
        conversation = self._store.get_conversation(conversation_id, user_id)
        if conversation is None:
            raise ConversationNotFound(f"Conversation {conversation_id!r} not found")
        return conversation

    async def _retrieve(self, user_id: str, content: str) -> List[Memory]:
        try:
            return await self._gateway.search(user_id, content, self.options.memory_limit)
        except Exception:
            logger.exception("Memory retrieval failed; answering without memories")
            return []

    async def _generate(self, history: Sequence[Message], memories: Sequence[Memory]) -> LLMReply:
        try:
            return await self._responder.generate(history, memories)
        except Exception:
            logger.exception("Reply generation failed")
            return LLMReply(content=APOLOGY_REPLY, cited_memory_ids=[])

    def _record_references(
        self,
        message_id: str,
        cited: Sequence[str],
        memories: Sequence[Memory],
    ) -> List[MemoryReference]:
        by_id = {m.id: m for m in memories}
        references: List[MemoryReference] = []
        try:
            for memory_id in cited:
                memory = by_id.get(memory_id)
                if memory is None:
                    continue
                references.append(
                    self._store.insert_reference(
                        message_id=message_id,
                        memory_id=memory.id,
                        memory_text=memory.text,
                        relevance_score=memory.score or 0.0,
                        reference_order=len(references) + 1,
                        memory_metadata=memory.metadata,
                        memory_created_at=memory.created_at,
                        memory_updated_at=memory.updated_at,
                    )
                )
        except Exception:
            logger.exception("Could not store memory references for message %s", message_id)
        return references

    async def _reconcile(self, user_id: str, message: MessageRecord) -> None:
        try:
            await self._reconciler.reconcile(user_id, message)
        except Exception:
            logger.exception("Reconciling memory operations for message %s failed", message.id)

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)


__all__ = ["TurnOrchestrator", "TurnOptions", "TurnResult"]
