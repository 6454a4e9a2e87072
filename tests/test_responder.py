"""Tests for prompt assembly and the LLM-backed responder (mocked provider)."""
from __future__ import annotations

import unittest
from unittest.mock import AsyncMock, MagicMock

from helpers import make_memory

from src.chat_orchestrator.prompts import build_grounded_messages, format_memory_context
from src.chat_orchestrator.responder import ChatResponder
from src.llm_core import Message


class TestPrompts(unittest.TestCase):
    def test_memory_context_is_numbered_with_ids(self) -> None:
        context = format_memory_context([make_memory("m1", "likes tea"), make_memory("m2", "owns a cat")])
        self.assertIn("[1] likes tea (ID: m1)", context)
        self.assertIn("[2] owns a cat (ID: m2)", context)

    def test_no_memories_no_context(self) -> None:
        self.assertEqual(format_memory_context([]), "")
        messages = build_grounded_messages("Base prompt", [Message(role="user", content="hi")], [])
        self.assertEqual(messages[0].content, "Base prompt")

    def test_system_message_comes_first(self) -> None:
        history = [Message(role="user", content="hi"), Message(role="assistant", content="hello")]
        messages = build_grounded_messages("Base", history, [make_memory("m1", "likes tea")])
        self.assertEqual([m.role for m in messages], ["system", "user", "assistant"])
        self.assertIn("likes tea", messages[0].content)


class TestChatResponder(unittest.IsolatedAsyncioTestCase):
    async def test_generate_parses_citations(self) -> None:
        provider = MagicMock()
        provider.chat = AsyncMock(return_value="You like tea [memory:m1].")
        responder = ChatResponder(
            model="openai:gpt-4o-mini",
            provider=provider,
            system_prompt="Be brief.",
        )

        reply = await responder.generate(
            [Message(role="user", content="What do I drink?")],
            [make_memory("m1", "likes tea")],
        )

        self.assertEqual(reply.cited_memory_ids, ["m1"])
        args, kwargs = provider.chat.call_args
        self.assertEqual(kwargs["model"], "gpt-4o-mini")
        self.assertEqual(kwargs["temperature"], 0.7)
        self.assertEqual(kwargs["max_tokens"], 1000)
        self.assertTrue(args[0][0].content.startswith("Be brief."))

    async def test_provider_errors_propagate(self) -> None:
        provider = MagicMock()
        provider.chat = AsyncMock(side_effect=RuntimeError("boom"))
        responder = ChatResponder(provider=provider, system_prompt="x")
        with self.assertRaises(RuntimeError):
            await responder.generate([Message(role="user", content="hi")], [])


if __name__ == "__main__":
    unittest.main()
