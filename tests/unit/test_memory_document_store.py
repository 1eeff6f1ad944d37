"""Tests for InMemoryDocumentStore (merge semantics, subscriptions, failure injection)."""

import asyncio

from fieldservice.infrastructure.memory.document_store import (
    InMemoryDocumentStore,
    deep_merge,
)


def test_deep_merge_keeps_siblings() -> None:
    target = {"flags": {"a": {"enabled": False, "targetedUsers": ["x"]}}, "other": 1}
    deep_merge(target, {"flags": {"a": {"enabled": True}, "b": {"enabled": True}}})
    assert target == {
        "flags": {"a": {"enabled": True, "targetedUsers": ["x"]}, "b": {"enabled": True}},
        "other": 1,
    }


async def test_get_returns_copies() -> None:
    store = InMemoryDocumentStore({"c/d": {"v": [1]}})
    doc = await store.get("c/d")
    doc["v"].append(2)
    assert await store.get("c/d") == {"v": [1]}
    assert await store.get("c/missing") is None


async def test_subscribe_delivers_initial_then_changes() -> None:
    store = InMemoryDocumentStore()
    received: list = []

    async def on_snapshot(data):
        received.append(data)

    async def on_error(exc):
        raise AssertionError("unexpected error")

    subscription = store.subscribe("c/d", on_snapshot, on_error)
    await asyncio.sleep(0)
    await store.set_merge("c/d", {"a": 1})
    await store.delete("c/d")
    subscription.unsubscribe()
    subscription.unsubscribe()
    await store.set("c/d", {"a": 2})

    assert received == [None, {"a": 1}, None]
    assert store.watcher_count("c/d") == 0


async def test_unsubscribe_before_initial_delivery() -> None:
    store = InMemoryDocumentStore({"c/d": {"a": 1}})
    received: list = []

    async def on_snapshot(data):
        received.append(data)

    async def on_error(exc):
        pass

    store.subscribe("c/d", on_snapshot, on_error).unsubscribe()
    await asyncio.sleep(0)
    assert received == []


async def test_fail_calls_on_error_once_and_kills_listener() -> None:
    store = InMemoryDocumentStore()
    errors: list[Exception] = []
    snapshots: list = []

    async def on_snapshot(data):
        snapshots.append(data)

    async def on_error(exc):
        errors.append(exc)

    store.subscribe("c/d", on_snapshot, on_error)
    await asyncio.sleep(0)
    boom = RuntimeError("boom")
    await store.fail("c/d", boom)
    await store.set("c/d", {"a": 1})

    assert errors == [boom]
    assert snapshots == [None]


async def test_add_and_collection() -> None:
    store = InMemoryDocumentStore()
    first = await store.add("audit/t1/logs", {"n": 1})
    second = await store.add("audit/t1/logs", {"n": 2})
    await store.add("audit/t2/logs", {"n": 3})

    assert first != second
    assert store.collection("audit/t1/logs") == [{"n": 1}, {"n": 2}]
