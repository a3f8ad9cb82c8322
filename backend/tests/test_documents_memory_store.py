"""
In-memory document store: partial writes, sentinels, ordered snapshots,
access policy and the subscribe/unsubscribe contract.
"""
from __future__ import annotations

from datetime import datetime

import pytest

from documents.memory import MemoryDocumentStore, seed_documents
from documents.ports import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    DocumentNotFoundError,
    PermissionDeniedError,
    Query,
)

pytestmark = pytest.mark.anyio("asyncio")


@pytest.mark.anyio
async def test_set_update_delete_roundtrip():
    store = MemoryDocumentStore()
    await store.set("users/u1", {"name": "علي", "createdAt": SERVER_TIMESTAMP, "year": None})
    doc = await store.get("users/u1")
    assert doc["name"] == "علي"
    assert isinstance(doc["createdAt"], datetime)

    await store.update("users/u1", {"year": "first", "name": DELETE_FIELD})
    doc = await store.get("users/u1")
    assert doc["year"] == "first"
    assert "name" not in doc

    await store.delete("users/u1")
    assert await store.get("users/u1") is None


@pytest.mark.anyio
async def test_update_of_missing_document_raises():
    store = MemoryDocumentStore()
    with pytest.raises(DocumentNotFoundError):
        await store.update("users/missing", {"approved": True})


@pytest.mark.anyio
async def test_get_returns_a_copy():
    store = MemoryDocumentStore()
    await store.set("users/u1", {"name": "علي"})
    doc = await store.get("users/u1")
    doc["name"] = "changed"
    assert (await store.get("users/u1"))["name"] == "علي"


def test_query_filters_and_ordering():
    store = MemoryDocumentStore()
    seed_documents(store, "users", {
        "a": {"role": "student", "createdAt": 1},
        "b": {"role": "admin", "createdAt": 2},
        "c": {"role": "student", "createdAt": 3},
        "d": {"role": "student"},
    })
    snap = store.snapshot(Query("users", order_by="createdAt", descending=True).where("role", "==", "student"))
    # Documents without the order field come last.
    assert [d.id for d in snap] == ["c", "a", "d"]


def test_invalid_filter_operator_is_rejected():
    with pytest.raises(ValueError):
        Query("users").where("role", "~=", "student")


@pytest.mark.anyio
async def test_subscribe_delivers_initial_and_subsequent_snapshots():
    store = MemoryDocumentStore()
    seen = []
    sub = store.subscribe(Query("users", document_id="u1"), lambda snap: seen.append(snap))
    assert seen == [()]

    await store.set("users/u1", {"name": "علي"})
    assert seen[-1][0].get("name") == "علي"

    sub.unsubscribe()
    sub.unsubscribe()  # idempotent
    await store.update("users/u1", {"name": "عمر"})
    assert len(seen) == 2
    assert store.listener_count() == 0


def test_snapshot_documents_are_read_only():
    store = MemoryDocumentStore()
    seed_documents(store, "users", {"u1": {"name": "علي"}})
    (doc,) = store.snapshot(Query("users"))
    with pytest.raises(TypeError):
        doc.data["name"] = "x"  # type: ignore[index]


@pytest.mark.anyio
async def test_policy_rejects_operations_and_subscriptions():
    store = MemoryDocumentStore(policy=lambda op, path: op in ("get", "create"))
    await store.set("users/u1", {"approved": False})
    with pytest.raises(PermissionDeniedError) as exc:
        await store.update("users/u1", {"approved": True})
    assert exc.value.operation == "update"
    assert exc.value.path == "users/u1"

    errors = []
    snaps = []
    store.subscribe(Query("users"), snaps.append, errors.append)
    assert snaps == []
    assert isinstance(errors[0], PermissionDeniedError)
    assert store.listener_count() == 0


@pytest.mark.anyio
async def test_nested_collections_are_independent():
    store = MemoryDocumentStore()
    await store.set("subjects/s1", {"name": "قواعد"})
    await store.set("subjects/s1/lectures/l1", {"title": "الدرس الأول"})
    assert [d.id for d in store.snapshot(Query("subjects"))] == ["s1"]
    assert [d.id for d in store.snapshot(Query("subjects/s1/lectures"))] == ["l1"]
