"""Tests for the in-process document store."""

from __future__ import annotations

import pytest

from gemini_chat.domain.models import Query
from gemini_chat.services.memory_store import InMemoryDocumentStore


@pytest.fixture()
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


class TestWrites:
    async def test_replace_and_merge(self, memory_store):
        await memory_store.upsert("users/u1", {"email": "a@b.com", "displayName": "a"})
        await memory_store.upsert("users/u1", {"displayName": "Alice"}, merge=True)

        doc = await memory_store.get("users/u1")
        assert doc.data == {"email": "a@b.com", "displayName": "Alice"}

        await memory_store.upsert("users/u1", {"displayName": "Bob"})
        doc = await memory_store.get("users/u1")
        assert doc.data == {"displayName": "Bob"}

    async def test_merge_creates_missing(self, memory_store):
        await memory_store.upsert("users/u2", {"lastLogin": 1}, merge=True)
        assert (await memory_store.get("users/u2")).data == {"lastLogin": 1}

    async def test_delete_missing_is_noop(self, memory_store):
        await memory_store.delete("users/nobody")
        assert await memory_store.get("users/nobody") is None

    async def test_returned_data_is_a_copy(self, memory_store):
        await memory_store.upsert("users/u1", {"tags": ["a"]})
        doc = await memory_store.get("users/u1")
        doc.data["tags"].append("b")

        assert (await memory_store.get("users/u1")).data == {"tags": ["a"]}


class TestQueries:
    async def test_direct_children_only(self, memory_store):
        await memory_store.upsert("users/u1/chats/c1", {"title": "x"})
        await memory_store.upsert("users/u1/chats/c1/messages/m1", {"text": "hi"})

        chats = await memory_store.list(Query("users/u1/chats"))

        assert [d.id for d in chats] == ["c1"]

    async def test_order_by_is_stable_and_limited(self, memory_store):
        col = "users/u1/chats/c1/messages"
        await memory_store.upsert(f"{col}/b", {"timestamp": 2})
        await memory_store.upsert(f"{col}/a1", {"timestamp": 1})
        await memory_store.upsert(f"{col}/a2", {"timestamp": 1})

        ordered = await memory_store.list(Query(col, order_by="timestamp"))
        limited = await memory_store.list(Query(col, order_by="timestamp", limit=2))

        assert [d.id for d in ordered] == ["a1", "a2", "b"]
        assert [d.id for d in limited] == ["a1", "a2"]


class TestSubscribe:
    async def test_receives_current_and_changes(self, memory_store):
        col = "users/u1/chats"
        await memory_store.upsert(f"{col}/c1", {"title": "one"})
        snapshots = []

        sub = memory_store.subscribe(Query(col), snapshots.append)
        await memory_store.upsert(f"{col}/c2", {"title": "two"})
        await memory_store.upsert("users/u1", {"email": "x"})
        await memory_store.delete(f"{col}/c1")

        assert [[d.id for d in snap] for snap in snapshots] == [["c1"], ["c1", "c2"], ["c2"]]

        sub.cancel()
        await memory_store.upsert(f"{col}/c3", {})
        assert len(snapshots) == 3
