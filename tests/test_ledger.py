"""Tests for the SQLite conversation store and the provenance ledger."""
from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from src.memory_core.errors import LedgerError
from src.memory_core.ledger import ProvenanceLedger
from src.memory_core.persistence.sqlite import SQLiteConversationStore


class LedgerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = SQLiteConversationStore(Path(self._tmp.name) / "chat.db")
        self.ledger = ProvenanceLedger(self.store)
        self.conversation = self.store.create_conversation("u1", "Chat")
        self.message = self.store.insert_message(self.conversation.id, "user", "I live in Paris")

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()


class TestConversationStore(LedgerTestCase):
    def test_conversations_are_scoped_to_user(self) -> None:
        self.assertIsNotNone(self.store.get_conversation(self.conversation.id, "u1"))
        self.assertIsNone(self.store.get_conversation(self.conversation.id, "u2"))
        self.assertEqual(self.store.list_conversations("u2"), [])

    def test_messages_keep_insertion_order_on_equal_timestamps(self) -> None:
        stamp = "2026-01-01T00:00:00+00:00"
        first = self.store.insert_message(self.conversation.id, "user", "a", created_at=stamp)
        second = self.store.insert_message(self.conversation.id, "assistant", "b", created_at=stamp)
        ids = [m.id for m in self.store.list_messages(self.conversation.id)]
        self.assertLess(ids.index(first.id), ids.index(second.id))

    def test_rename_unknown_conversation_returns_none(self) -> None:
        self.assertIsNone(self.store.rename_conversation("missing", "u1", "x"))
        renamed = self.store.rename_conversation(self.conversation.id, "u1", "Trips")
        self.assertEqual(renamed.title, "Trips")

    def test_get_message_checks_owner(self) -> None:
        self.assertIsNotNone(self.store.get_message(self.message.id, user_id="u1"))
        self.assertIsNone(self.store.get_message(self.message.id, user_id="u2"))


class TestProvenanceLedger(LedgerTestCase):
    def test_activity_counts_and_order(self) -> None:
        self.ledger.append(self.message.id, "m1", "add", new_content="lives in Paris")
        self.ledger.append(self.message.id, "m2", "add", new_content="likes croissants")
        self.ledger.append(self.message.id, "m1", "update", old_content="lives in Paris", new_content="lives in Lyon")
        self.ledger.append(self.message.id, "m2", "delete", old_content="likes croissants")

        activity = self.ledger.activity_for_message(self.message.id)

        self.assertEqual((activity.added, activity.updated, activity.deleted), (2, 1, 1))
        self.assertEqual(
            [d.operation for d in activity.details],
            ["add", "add", "update", "delete"],
        )
        self.assertEqual(activity.details[2].old_content, "lives in Paris")
        self.assertEqual(activity.details[2].new_content, "lives in Lyon")

    def test_activity_for_message_without_entries(self) -> None:
        activity = self.ledger.activity_for_message(self.message.id)
        self.assertEqual((activity.added, activity.updated, activity.deleted), (0, 0, 0))
        self.assertEqual(activity.details, [])

    def test_activity_hidden_from_other_users(self) -> None:
        self.ledger.append(self.message.id, "m1", "add", new_content="x")
        self.assertEqual(self.ledger.activity_for_message(self.message.id, user_id="u2").details, [])

    def test_content_invariants(self) -> None:
        bad = [
            ("add", None, None),
            ("add", "old", "new"),
            ("update", None, "new"),
            ("update", "old", None),
            ("delete", None, None),
            ("delete", "old", "new"),
            ("rename", "old", "new"),
        ]
        for operation, old, new in bad:
            with self.subTest(operation=operation, old=old, new=new):
                with self.assertRaises(LedgerError):
                    self.ledger.append(self.message.id, "m1", operation, old_content=old, new_content=new)
        self.assertEqual(self.ledger.activity_for_message(self.message.id).details, [])

    def test_unknown_message_is_rejected(self) -> None:
        with self.assertRaises(LedgerError):
            self.ledger.append("no-such-message", "m1", "add", new_content="x")

    def test_deleted_ids_are_scoped_by_user(self) -> None:
        other = self.store.create_conversation("u2", "Other")
        other_message = self.store.insert_message(other.id, "user", "hello")
        self.ledger.append(self.message.id, "m1", "delete", old_content="a")
        self.ledger.append(other_message.id, "m2", "delete", old_content="b")

        self.assertEqual(self.ledger.deleted_memory_ids_for_user("u1"), {"m1"})
        self.assertEqual(self.ledger.deleted_memory_ids_for_user("u2"), {"m2"})
        self.assertEqual(self.ledger.deleted_memory_ids_for_user("u3"), set())

    def test_latest_deletion_record(self) -> None:
        self.ledger.append(self.message.id, "m1", "delete", old_content="first")
        later = self.store.insert_message(self.conversation.id, "system", "{}")
        self.ledger.append(later.id, "m1", "delete", old_content="second")

        record = self.ledger.latest_deletion_record("m1", "u1")

        self.assertEqual(record.old_content, "second")
        self.assertEqual(record.anchor_message_id, later.id)
        self.assertIsNone(self.ledger.latest_deletion_record("m1", "u2"))
        self.assertIsNone(self.ledger.latest_deletion_record("m9", "u1"))

    def test_entries_are_never_rewritten(self) -> None:
        first = self.ledger.append(self.message.id, "m1", "add", new_content="x")
        self.ledger.append(self.message.id, "m1", "delete", old_content="x")
        details = self.ledger.activity_for_message(self.message.id).details
        self.assertEqual(details[0].id, first)
        self.assertEqual(details[0].new_content, "x")


if __name__ == "__main__":
    unittest.main()
