from __future__ import annotations

import json
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from ..models import (
    ConversationRecord,
    DeletionRecord,
    LedgerCandidate,
    MemoryLink,
    MemoryReference,
    MessageRecord,
)


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteConversationStore:
    """SQLite-backed store for conversations, messages and memory provenance.

    Tables:
    - conversations (owned by a user id)
    - messages (user, assistant, or synthetic system anchors)
    - memory_links (the append-only provenance ledger)
    - message_memory_references (citation snapshots per assistant message)

    Ordering ties on ``created_at`` are broken by rowid, i.e. insertion order.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = str(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute("PRAGMA foreign_keys=ON;")
        self._create_schema()

    def _create_schema(self) -> None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS conversations (
                    id          TEXT PRIMARY KEY,
                    user_id     TEXT NOT NULL,
                    title       TEXT NOT NULL,
                    created_at  TEXT NOT NULL,
                    updated_at  TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS messages (
                    id              TEXT PRIMARY KEY,
                    conversation_id TEXT NOT NULL,
                    role            TEXT NOT NULL CHECK (role IN ('user', 'assistant', 'system')),
                    content         TEXT NOT NULL,
                    created_at      TEXT NOT NULL,
                    FOREIGN KEY (conversation_id) REFERENCES conversations (id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS memory_links (
                    id          TEXT PRIMARY KEY,
                    message_id  TEXT NOT NULL,
                    mem0_id     TEXT NOT NULL,
                    operation   TEXT NOT NULL CHECK (operation IN ('add', 'update', 'delete')),
                    old_content TEXT,
                    new_content TEXT,
                    created_at  TEXT NOT NULL,
                    FOREIGN KEY (message_id) REFERENCES messages (id)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS message_memory_references (
                    id                TEXT PRIMARY KEY,
                    message_id        TEXT NOT NULL,
                    memory_id         TEXT NOT NULL,
                    memory_text       TEXT NOT NULL,
                    relevance_score   REAL NOT NULL DEFAULT 0,
                    reference_order   INTEGER NOT NULL,
                    memory_metadata   TEXT,
                    memory_created_at TEXT,
                    memory_updated_at TEXT,
                    created_at        TEXT NOT NULL,
                    FOREIGN KEY (message_id) REFERENCES messages (id),
                    UNIQUE (message_id, reference_order)
                )
                """
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_user_id ON conversations (user_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_conversation_id ON messages (conversation_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_memory_links_message_id ON memory_links (message_id)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_memory_links_mem0_id ON memory_links (mem0_id, operation)"
            )
            cur.execute(
                """
                CREATE INDEX IF NOT EXISTS idx_references_message_id
                ON message_memory_references (message_id)
                """
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_conversation(row: sqlite3.Row) -> ConversationRecord:
        return ConversationRecord(
            id=row["id"],
            user_id=row["user_id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> MessageRecord:
        return MessageRecord(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_link(row: sqlite3.Row) -> MemoryLink:
        return MemoryLink(
            id=row["id"],
            message_id=row["message_id"],
            mem0_id=row["mem0_id"],
            operation=row["operation"],
            old_content=row["old_content"],
            new_content=row["new_content"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_reference(row: sqlite3.Row) -> MemoryReference:
        try:
            metadata = json.loads(row["memory_metadata"]) if row["memory_metadata"] else {}
        except ValueError:
            metadata = {}
        return MemoryReference(
            id=row["id"],
            message_id=row["message_id"],
            memory_id=row["memory_id"],
            memory_text=row["memory_text"],
            relevance_score=row["relevance_score"],
            reference_order=row["reference_order"],
            memory_metadata=metadata if isinstance(metadata, dict) else {},
            memory_created_at=row["memory_created_at"],
            memory_updated_at=row["memory_updated_at"],
            created_at=row["created_at"],
        )

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    def create_conversation(self, user_id: str, title: str) -> ConversationRecord:
        now = _iso_now()
        conversation_id = str(uuid.uuid4())
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO conversations (id, user_id, title, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (conversation_id, user_id, title, now, now),
            )
            self._conn.commit()
        return ConversationRecord(
            id=conversation_id,
            user_id=user_id,
            title=title,
            created_at=now,
            updated_at=now,
        )

    def get_conversation(self, conversation_id: str, user_id: str) -> Optional[ConversationRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id),
            ).fetchone()
        return self._row_to_conversation(row) if row else None

    def find_conversation_by_title(self, user_id: str, title: str) -> Optional[ConversationRecord]:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT * FROM conversations
                WHERE user_id = ? AND title = ?
                ORDER BY created_at ASC, rowid ASC
                LIMIT 1
                """,
                (user_id, title),
            ).fetchone()
        return self._row_to_conversation(row) if row else None

    def list_conversations(self, user_id: str) -> List[ConversationRecord]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM conversations
                WHERE user_id = ?
                ORDER BY updated_at DESC, rowid DESC
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_conversation(r) for r in rows]

    def rename_conversation(
        self, conversation_id: str, user_id: str, title: str
    ) -> Optional[ConversationRecord]:
        with self._lock:
            cur = self._conn.execute(
                """
                UPDATE conversations SET title = ?, updated_at = ?
                WHERE id = ? AND user_id = ?
                """,
                (title, _iso_now(), conversation_id, user_id),
            )
            self._conn.commit()
            if cur.rowcount == 0:
                return None
        return self.get_conversation(conversation_id, user_id)

    def touch_conversation(self, conversation_id: str) -> None:
        with self._lock:
            self._conn.execute(
                "UPDATE conversations SET updated_at = ? WHERE id = ?",
                (_iso_now(), conversation_id),
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def insert_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        created_at: Optional[str] = None,
    ) -> MessageRecord:
        message_id = str(uuid.uuid4())
        created_at = created_at or _iso_now()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO messages (id, conversation_id, role, content, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (message_id, conversation_id, role, content, created_at),
            )
            self._conn.commit()
        return MessageRecord(
            id=message_id,
            conversation_id=conversation_id,
            role=role,
            content=content,
            created_at=created_at,
        )

    def get_message(self, message_id: str, user_id: Optional[str] = None) -> Optional[MessageRecord]:
        with self._lock:
            if user_id is None:
                row = self._conn.execute(
                    "SELECT * FROM messages WHERE id = ?",
                    (message_id,),
                ).fetchone()
            else:
                row = self._conn.execute(
                    """
                    SELECT m.* FROM messages m
                    JOIN conversations c ON m.conversation_id = c.id
                    WHERE m.id = ? AND c.user_id = ?
                    """,
                    (message_id, user_id),
                ).fetchone()
        return self._row_to_message(row) if row else None

    def list_messages(self, conversation_id: str) -> List[MessageRecord]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM messages
                WHERE conversation_id = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (conversation_id,),
            ).fetchall()
        return [self._row_to_message(r) for r in rows]

    # ------------------------------------------------------------------
    # Memory links (ledger rows)
    # ------------------------------------------------------------------

    def insert_link(
        self,
        message_id: str,
        mem0_id: str,
        operation: str,
        old_content: Optional[str],
        new_content: Optional[str],
        created_at: Optional[str] = None,
    ) -> MemoryLink:
        link_id = str(uuid.uuid4())
        created_at = created_at or _iso_now()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO memory_links (
                    id, message_id, mem0_id, operation,
                    old_content, new_content, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (link_id, message_id, mem0_id, operation, old_content, new_content, created_at),
            )
            self._conn.commit()
        return MemoryLink(
            id=link_id,
            message_id=message_id,
            mem0_id=mem0_id,
            operation=operation,
            old_content=old_content,
            new_content=new_content,
            created_at=created_at,
        )

    def list_links_for_message(self, message_id: str, user_id: Optional[str] = None) -> List[MemoryLink]:
        with self._lock:
            if user_id is None:
                rows = self._conn.execute(
                    """
                    SELECT * FROM memory_links
                    WHERE message_id = ?
                    ORDER BY created_at ASC, rowid ASC
                    """,
                    (message_id,),
                ).fetchall()
            else:
                rows = self._conn.execute(
                    """
                    SELECT ml.* FROM memory_links ml
                    JOIN messages m ON ml.message_id = m.id
                    JOIN conversations c ON m.conversation_id = c.id
                    WHERE ml.message_id = ? AND c.user_id = ?
                    ORDER BY ml.created_at ASC, ml.rowid ASC
                    """,
                    (message_id, user_id),
                ).fetchall()
        return [self._row_to_link(r) for r in rows]

    def deleted_memory_ids(self, user_id: str) -> Set[str]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT DISTINCT ml.mem0_id
                FROM memory_links ml
                JOIN messages m ON ml.message_id = m.id
                JOIN conversations c ON m.conversation_id = c.id
                WHERE ml.operation = 'delete' AND c.user_id = ?
                """,
                (user_id,),
            ).fetchall()
        return {r["mem0_id"] for r in rows}

    def latest_deletion(self, mem0_id: str, user_id: str) -> Optional[DeletionRecord]:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT ml.mem0_id, ml.old_content, ml.message_id, ml.created_at
                FROM memory_links ml
                JOIN messages m ON ml.message_id = m.id
                JOIN conversations c ON m.conversation_id = c.id
                WHERE ml.operation = 'delete' AND ml.mem0_id = ? AND c.user_id = ?
                ORDER BY ml.created_at DESC, ml.rowid DESC
                LIMIT 1
                """,
                (mem0_id, user_id),
            ).fetchone()
        if row is None:
            return None
        return DeletionRecord(
            memory_id=row["mem0_id"],
            old_content=row["old_content"] or "",
            anchor_message_id=row["message_id"],
            created_at=row["created_at"],
        )

    def unlinked_system_operations(
        self,
        user_id: str,
        since: str,
        until: Optional[str] = None,
    ) -> List[LedgerCandidate]:
        """Update/delete rows anchored to system messages with no later real-message twin."""
        params: List[Any] = [user_id, since]
        until_clause = ""
        if until is not None:
            until_clause = "AND ml.created_at <= ?"
            params.append(until)
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT ml.*, m.role AS anchor_role, m.content AS anchor_content
                FROM memory_links ml
                JOIN messages m ON ml.message_id = m.id
                JOIN conversations c ON m.conversation_id = c.id
                WHERE c.user_id = ?
                  AND ml.operation IN ('update', 'delete')
                  AND m.role = 'system'
                  AND ml.created_at > ?
                  {until_clause}
                  AND NOT EXISTS (
                      SELECT 1
                      FROM memory_links ml2
                      JOIN messages m2 ON ml2.message_id = m2.id
                      WHERE ml2.operation = ml.operation
                        AND ml2.mem0_id = ml.mem0_id
                        AND m2.role != 'system'
                        AND ml2.created_at > ml.created_at
                  )
                ORDER BY ml.created_at DESC, ml.rowid DESC
                """,
                params,
            ).fetchall()
        return [
            LedgerCandidate(
                link=self._row_to_link(r),
                anchor_role=r["anchor_role"],
                anchor_content=r["anchor_content"] or "",
            )
            for r in rows
        ]

    # ------------------------------------------------------------------
    # Message memory references
    # ------------------------------------------------------------------

    def insert_reference(
        self,
        message_id: str,
        memory_id: str,
        memory_text: str,
        relevance_score: float,
        reference_order: int,
        memory_metadata: Optional[Dict[str, Any]],
        memory_created_at: Optional[str],
        memory_updated_at: Optional[str],
    ) -> MemoryReference:
        reference_id = str(uuid.uuid4())
        now = _iso_now()
        metadata_json = json.dumps(memory_metadata or {}, default=str)
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO message_memory_references (
                    id, message_id, memory_id, memory_text, relevance_score,
                    reference_order, memory_metadata, memory_created_at,
                    memory_updated_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    reference_id,
                    message_id,
                    memory_id,
                    memory_text,
                    relevance_score,
                    reference_order,
                    metadata_json,
                    memory_created_at,
                    memory_updated_at,
                    now,
                ),
            )
            self._conn.commit()
        return MemoryReference(
            id=reference_id,
            message_id=message_id,
            memory_id=memory_id,
            memory_text=memory_text,
            relevance_score=relevance_score,
            reference_order=reference_order,
            memory_metadata=memory_metadata or {},
            memory_created_at=memory_created_at,
            memory_updated_at=memory_updated_at,
            created_at=now,
        )

    def list_references(self, message_id: str) -> List[MemoryReference]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM message_memory_references
                WHERE message_id = ?
                ORDER BY reference_order ASC
                """,
                (message_id,),
            ).fetchall()
        return [self._row_to_reference(r) for r in rows]

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def __del__(self) -> None:
        self.close()
