"""Tests for the memory gateway: read-through caching, delete filter, invalidation."""
from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from helpers import FakeClock, FakeRemoteStore

from src.memory_core.cache import MemoryCache
from src.memory_core.errors import AddFailed, MemoryStoreError
from src.memory_core.gateway import MemoryGateway
from src.memory_core.ledger import ProvenanceLedger
from src.memory_core.persistence.sqlite import SQLiteConversationStore


class GatewayTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.store = SQLiteConversationStore(Path(self._tmp.name) / "chat.db")
        self.ledger = ProvenanceLedger(self.store)
        self.cache = MemoryCache(clock=FakeClock())
        self.remote = FakeRemoteStore()
        self.gateway = MemoryGateway(self.remote, self.cache, self.ledger)
        conversation = self.store.create_conversation("u1", "Chat")
        self.anchor = self.store.insert_message(conversation.id, "system", "{}")

    def tearDown(self) -> None:
        self.store.close()
        self._tmp.cleanup()

    def mark_deleted(self, memory_id: str, text: str = "gone") -> None:
        self.ledger.append(self.anchor.id, memory_id, "delete", old_content=text)


class TestSearch(GatewayTestCase):
    async def test_second_search_is_served_from_cache(self) -> None:
        self.remote.seed("u1", "m1", "likes coffee")
        first = await self.gateway.search("u1", "coffee")
        second = await self.gateway.search("u1", "coffee")
        self.assertEqual([m.id for m in first], ["m1"])
        self.assertEqual([m.id for m in second], ["m1"])
        self.assertEqual(self.remote.calls.count("search"), 1)

    async def test_deleted_memories_filtered_from_fresh_results(self) -> None:
        self.remote.seed("u1", "m1", "likes coffee")
        self.remote.seed("u1", "m2", "likes tea")
        self.mark_deleted("m1")
        results = await self.gateway.search("u1", "drinks")
        self.assertEqual([m.id for m in results], ["m2"])

    async def test_deleted_memories_filtered_from_cached_results(self) -> None:
        self.remote.seed("u1", "m1", "likes coffee")
        await self.gateway.search("u1", "coffee")
        self.mark_deleted("m1")
        self.assertEqual(await self.gateway.search("u1", "coffee"), [])
        self.assertEqual(self.remote.calls.count("search"), 1)

    async def test_remote_failure_degrades_to_empty(self) -> None:
        self.remote.fail.add("search")
        self.assertEqual(await self.gateway.search("u1", "anything"), [])

    async def test_strict_search_raises(self) -> None:
        self.remote.fail.add("search")
        with self.assertRaises(MemoryStoreError):
            await self.gateway.search("u1", "anything", strict=True)

    async def test_timestamps_are_normalized(self) -> None:
        await self.remote.add("born in 1990", user_id="u1", metadata={})
        memory = (await self.gateway.search("u1", "born"))[0]
        self.assertIsInstance(memory.created_at, str)
        self.assertTrue(memory.created_at.startswith("2026-01-01"))


class TestWrites(GatewayTestCase):
    async def test_add_returns_ids_and_invalidates_user(self) -> None:
        await self.gateway.search("u1", "coffee")
        ids = await self.gateway.add("u1", "likes coffee", {"messageId": "x"})
        self.assertEqual(ids, ["mem-1"])
        results = await self.gateway.search("u1", "coffee")
        self.assertEqual([m.id for m in results], ["mem-1"])

    async def test_add_failure_raises_and_keeps_cache(self) -> None:
        self.remote.seed("u1", "m1", "likes coffee")
        await self.gateway.search("u1", "coffee")
        self.remote.fail.add("add")
        with self.assertRaises(AddFailed):
            await self.gateway.add("u1", "likes tea")
        self.assertIsNotNone(self.cache.get_search_results("u1", "coffee"))

    async def test_search_after_update_sees_new_text(self) -> None:
        self.remote.seed("u1", "m1", "lives in Paris")
        await self.gateway.search("u1", "live")
        self.assertTrue(await self.gateway.update("m1", "lives in Lyon", user_id="u1"))
        results = await self.gateway.search("u1", "live")
        self.assertEqual(results[0].text, "lives in Lyon")

    async def test_update_invalidates_other_users_entries_mentioning_memory(self) -> None:
        self.remote.seed("u1", "m1", "shared fact")
        self.cache.set_search_results("u2", "q", [(await self.gateway.search("u1", "fact"))[0]])
        await self.gateway.update("m1", "changed", user_id="u1")
        self.assertIsNone(self.cache.get_search_results("u2", "q"))

    async def test_failed_update_leaves_cache_alone(self) -> None:
        self.remote.seed("u1", "m1", "lives in Paris")
        await self.gateway.search("u1", "live")
        self.assertFalse(await self.gateway.update("missing", "x", user_id="u1"))
        self.assertIsNotNone(self.cache.get_search_results("u1", "live"))

    async def test_delete_reports_failure(self) -> None:
        self.assertFalse(await self.gateway.delete("missing", user_id="u1"))
        self.remote.seed("u1", "m1", "x")
        self.assertTrue(await self.gateway.delete("m1", user_id="u1"))


class TestListing(GatewayTestCase):
    async def test_total_counts_visible_memories(self) -> None:
        for i in range(5):
            self.remote.seed("u1", f"m{i}", f"fact {i}")
        self.mark_deleted("m0")
        page = await self.gateway.get_all_memories("u1", limit=2, offset=1)
        self.assertEqual(page.total, 4)
        self.assertEqual([m.id for m in page.results], ["m2", "m3"])

    async def test_listing_is_cached_and_filtered_on_read(self) -> None:
        self.remote.seed("u1", "m1", "a")
        self.remote.seed("u1", "m2", "b")
        await self.gateway.get_all_memories("u1")
        self.mark_deleted("m2")
        page = await self.gateway.get_all_memories("u1")
        self.assertEqual([m.id for m in page.results], ["m1"])
        self.assertEqual(page.total, 1)
        self.assertEqual(self.remote.calls.count("get_all"), 1)

    async def test_pages_past_a_truncated_listing_are_fetched(self) -> None:
        gateway = MemoryGateway(self.remote, self.cache, self.ledger, listing_limit=10)
        for i in range(30):
            self.remote.seed("u1", f"m{i}", f"fact {i}")
        first = await gateway.get_all_memories("u1", limit=5, offset=0)
        self.assertEqual([m.id for m in first.results], [f"m{i}" for i in range(5)])
        self.assertFalse(first.complete)

        later = await gateway.get_all_memories("u1", limit=5, offset=20)
        self.assertEqual([m.id for m in later.results], [f"m{i}" for i in range(20, 25)])
        self.assertEqual(self.remote.calls.count("get_all"), 2)

        again = await gateway.get_all_memories("u1", limit=5, offset=5)
        self.assertEqual([m.id for m in again.results], [f"m{i}" for i in range(5, 10)])
        self.assertEqual(self.remote.calls.count("get_all"), 2)

    async def test_short_listing_is_complete(self) -> None:
        gateway = MemoryGateway(self.remote, self.cache, self.ledger, listing_limit=10)
        for i in range(3):
            self.remote.seed("u1", f"m{i}", f"fact {i}")
        await gateway.get_all_memories("u1", limit=2)
        page = await gateway.get_all_memories("u1", limit=5, offset=2)
        self.assertTrue(page.complete)
        self.assertEqual((len(page.results), page.total), (1, 3))
        self.assertEqual(self.remote.calls.count("get_all"), 1)

    async def test_listing_failure_is_empty(self) -> None:
        self.remote.fail.add("get_all")
        page = await self.gateway.get_all_memories("u1")
        self.assertEqual((page.results, page.total), ([], 0))

    async def test_empty_user_and_unknown_memory_are_tolerated(self) -> None:
        self.cache.set_search_results("", "", [])
        self.cache.invalidate_memory("nonexistent")
        page = await self.gateway.get_all_memories("")
        self.assertEqual(page.total, 0)

    async def test_get_by_id_miss_and_error_are_none(self) -> None:
        self.remote.seed("u1", "m1", "a")
        self.assertEqual((await self.gateway.get_by_id("u1", "m1")).text, "a")
        self.assertIsNone(await self.gateway.get_by_id("u2", "m1"))
        self.remote.fail.add("get")
        self.assertIsNone(await self.gateway.get_by_id("u1", "m1"))

    async def test_filter_tolerates_ledger_failure(self) -> None:
        self.remote.seed("u1", "m1", "a")
        self.store.close()
        memories = await self.gateway.search("u1", "a")
        self.assertEqual([m.id for m in memories], ["m1"])


if __name__ == "__main__":
    unittest.main()
