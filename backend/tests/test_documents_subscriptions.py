"""
Scoped subscriptions and the permission-error channel.

The subscription helpers must release the underlying listener on every exit
path; the channel must keep a bounded history and survive failing listeners.
"""
from __future__ import annotations

import asyncio

import pytest

from documents.memory import MemoryDocumentStore, seed_documents
from documents.ports import PermissionDeniedError, Query
from documents.signals import PermissionDeniedEvent, PermissionErrorChannel
from documents.subscriptions import first_snapshot, watch

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio
async def test_watch_streams_snapshots_in_order_and_releases_listener():
    store = MemoryDocumentStore()
    async with watch(store, Query("users")) as stream:
        first = await stream.__anext__()
        assert first == ()
        await store.set("users/u1", {"name": "علي"})
        second = await stream.__anext__()
        assert [d.id for d in second] == ["u1"]
        assert store.listener_count() == 1
    assert store.listener_count() == 0


@pytest.mark.anyio
async def test_watch_releases_listener_when_consumer_fails():
    store = MemoryDocumentStore()
    with pytest.raises(RuntimeError):
        async with watch(store, Query("users")):
            raise RuntimeError("consumer failed")
    assert store.listener_count() == 0


@pytest.mark.anyio
async def test_error_item_terminates_stream():
    store = MemoryDocumentStore(policy=lambda op, path: False)
    async with watch(store, Query("users")) as stream:
        items = [item async for item in stream]
    assert len(items) == 1
    assert isinstance(items[0], PermissionDeniedError)


@pytest.mark.anyio
async def test_first_snapshot_returns_current_data():
    store = MemoryDocumentStore()
    seed_documents(store, "users", {"u1": {"role": "student"}})
    snap = await first_snapshot(store, Query("users"))
    assert [d.id for d in snap] == ["u1"]
    assert store.listener_count() == 0


@pytest.mark.anyio
async def test_first_snapshot_raises_backend_error():
    store = MemoryDocumentStore(policy=lambda op, path: False)
    with pytest.raises(PermissionDeniedError):
        await first_snapshot(store, Query("users"))


class SilentStore(MemoryDocumentStore):
    """Never delivers anything; models a backend that does not answer."""

    def subscribe(self, query, on_snapshot, on_error=None):
        return super().subscribe(query, lambda snap: None, on_error)


@pytest.mark.anyio
async def test_first_snapshot_times_out_and_releases():
    store = SilentStore()
    with pytest.raises(asyncio.TimeoutError):
        await first_snapshot(store, Query("users"), timeout=0.05)
    assert store.listener_count() == 0


def test_channel_keeps_bounded_history_and_notifies_listeners():
    channel = PermissionErrorChannel(history=2)
    received = []
    unsubscribe = channel.subscribe(received.append)
    for i in range(3):
        channel.emit(PermissionDeniedEvent(path=f"users/u{i}", operation="update", payload={"approved": True}))
    assert [e.path for e in channel.recent()] == ["users/u1", "users/u2"]
    assert len(received) == 3

    unsubscribe()
    unsubscribe()
    channel.emit(PermissionDeniedEvent(path="users/x", operation="get"))
    assert len(received) == 3


def test_channel_survives_failing_listener():
    channel = PermissionErrorChannel()

    def broken(event):
        raise RuntimeError("listener bug")

    seen = []
    channel.subscribe(broken)
    channel.subscribe(seen.append)
    channel.emit(PermissionDeniedEvent(path="users/u1", operation="delete"))
    assert len(seen) == 1


def test_event_as_dict_is_json_ready():
    event = PermissionDeniedEvent(path="users/u1", operation="update", payload={"approved": False})
    data = event.as_dict()
    assert data["path"] == "users/u1"
    assert data["payload"] == {"approved": False}
    assert isinstance(data["occurred_at"], str)
