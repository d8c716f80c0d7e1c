"""Tests for the in-memory conversation store and document registry."""

import uuid

import pytest

from backend.app.db.inmemory import InMemoryConversationStore, InMemoryDocumentRegistry
from backend.app.db.repositories import MonotonicClock, UploadStatus


@pytest.mark.asyncio
async def test_recent_window_returns_latest_oldest_first() -> None:
    store = InMemoryConversationStore()
    doc_id = uuid.uuid4()
    for i in range(10):
        await store.append(doc_id, "u1", i % 2 == 0, f"m{i}")

    window = await store.recent_window(doc_id, 6)

    assert [m.text for m in window] == ["m4", "m5", "m6", "m7", "m8", "m9"]


@pytest.mark.asyncio
async def test_recent_window_is_scoped_to_document() -> None:
    store = InMemoryConversationStore()
    doc_a, doc_b = uuid.uuid4(), uuid.uuid4()
    await store.append(doc_a, "u1", True, "a")
    await store.append(doc_b, "u1", True, "b")

    assert [m.text for m in await store.recent_window(doc_a, 6)] == ["a"]
    assert await store.recent_window(uuid.uuid4(), 6) == []
    assert await store.recent_window(doc_a, 0) == []


@pytest.mark.asyncio
async def test_page_walks_history_newest_first() -> None:
    store = InMemoryConversationStore()
    doc_id = uuid.uuid4()
    for i in range(5):
        await store.append(doc_id, "u1", True, f"m{i}")

    first = await store.page(doc_id, 2)
    second = await store.page(doc_id, 2, first.next_cursor)
    third = await store.page(doc_id, 2, second.next_cursor)

    assert [m.text for m in first.messages] == ["m4", "m3"]
    assert [m.text for m in second.messages] == ["m2", "m1"]
    assert [m.text for m in third.messages] == ["m0"]
    assert third.next_cursor is None


@pytest.mark.asyncio
async def test_page_with_unknown_cursor_is_empty() -> None:
    store = InMemoryConversationStore()
    doc_id = uuid.uuid4()
    await store.append(doc_id, "u1", True, "m0")

    page = await store.page(doc_id, 10, uuid.uuid4())

    assert page.messages == []
    assert page.next_cursor is None


def test_monotonic_clock_never_repeats() -> None:
    clock = MonotonicClock()
    stamps = [clock.now() for _ in range(1000)]

    assert all(a < b for a, b in zip(stamps, stamps[1:]))
    assert stamps[0].tzinfo is not None


@pytest.mark.asyncio
async def test_registry_enforces_ownership() -> None:
    registry = InMemoryDocumentRegistry()
    doc = await registry.register_document(user_id="u1", name="a.pdf", key="k", url="https://x/a.pdf")

    assert await registry.find_owned_document(doc.id, "u1") == doc
    assert await registry.find_owned_document(doc.id, "u2") is None
    assert doc.upload_status == UploadStatus.SUCCESS


@pytest.mark.asyncio
async def test_registry_lists_newest_first() -> None:
    registry = InMemoryDocumentRegistry()
    older = await registry.register_document(user_id="u1", name="a.pdf", key="k1", url="https://x/a")
    newer = await registry.register_document(user_id="u1", name="b.pdf", key="k2", url="https://x/b")
    await registry.register_document(user_id="u2", name="c.pdf", key="k3", url="https://x/c")

    listed = await registry.list_documents("u1")

    assert [d.id for d in listed] == [newer.id, older.id]
