"""
Server-side session registry: opaque ids, sliding expiry, and controller
cleanup on delete/expiry.
"""
from __future__ import annotations

import pytest

from documents.memory import MemoryDocumentStore
from identity_access import stores
from identity_access.domain import Unauthenticated
from identity_access.provider_memory import InMemoryIdentityDirectory, InMemoryIdentityProvider
from identity_access.session import SessionController
from identity_access.stores import SessionRegistry

pytestmark = pytest.mark.anyio("asyncio")


def _factory(created):
    directory = InMemoryIdentityDirectory()
    store = MemoryDocumentStore()

    async def factory():
        controller = SessionController(InMemoryIdentityProvider(directory), store)
        created.append(controller)
        return controller

    return factory


@pytest.mark.anyio
async def test_create_starts_controller_and_issues_opaque_id():
    created = []
    registry = SessionRegistry(_factory(created), ttl_seconds=60)
    a = await registry.create()
    b = await registry.create()
    assert a.session_id != b.session_id
    assert len(a.session_id) >= 32
    assert a.controller.state == Unauthenticated()
    assert registry.get(a.session_id) is a
    assert len(registry) == 2


@pytest.mark.anyio
async def test_unknown_and_empty_ids_return_none():
    registry = SessionRegistry(_factory([]))
    assert registry.get(None) is None
    assert registry.get("") is None
    assert registry.get("missing") is None


@pytest.mark.anyio
async def test_expired_sessions_are_closed(monkeypatch: pytest.MonkeyPatch):
    now = [1_000]
    monkeypatch.setattr(stores, "_now", lambda: now[0])
    created = []
    registry = SessionRegistry(_factory(created), ttl_seconds=60)
    rec = await registry.create()

    now[0] += 30
    assert registry.get(rec.session_id) is rec  # sliding: expiry moves to 1090
    now[0] += 61
    assert registry.get(rec.session_id) is None
    assert created[0]._closed is True
    assert len(registry) == 0


@pytest.mark.anyio
async def test_prune_and_close_all(monkeypatch: pytest.MonkeyPatch):
    now = [1_000]
    monkeypatch.setattr(stores, "_now", lambda: now[0])
    registry = SessionRegistry(_factory([]), ttl_seconds=60)
    await registry.create()
    now[0] += 120
    fresh = await registry.create()
    assert registry.prune() == 1
    assert len(registry) == 1

    registry.close_all()
    assert len(registry) == 0
    assert registry.get(fresh.session_id) is None
