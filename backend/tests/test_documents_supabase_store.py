"""
Supabase document store against a fake PostgREST/realtime client.

Every fake round trip yields to the event loop once, so overlapping writers
interleave the way they do over the network. No SDK or network is needed.
"""
from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from documents.ports import DELETE_FIELD, DocumentNotFoundError, PermissionDeniedError, Query
from documents.supabase_store import SupabaseDocumentStore

pytestmark = pytest.mark.anyio("asyncio")


class FakeAPIError(Exception):
    def __init__(self, message, code):
        super().__init__(message)
        self.message = message
        self.code = code


def _text(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    return None if value is None else str(value)


class FakeDatabase:
    def __init__(self):
        self.rows = {}
        self.calls = []
        self.hidden_from_updates = set()
        self.error = None

    def column(self, key, row, name):
        if name == "collection":
            return key[0]
        if name == "id":
            return key[1]
        return _text(row.get(name.split("->>", 1)[1]))


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.filters = []
        self.payload = None
        self.order_field = None
        self.desc = False

    def select(self, _columns):
        return self

    def upsert(self, row, on_conflict=None):
        self.action = "upsert"
        self.payload = row
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def limit(self, _n):
        return self

    def order(self, column, desc=False, nullsfirst=False):
        self.order_field = column.split("->>", 1)[1]
        self.desc = desc
        return self

    def _matching(self):
        return [
            key for key, row in self.db.rows.items()
            if all(self.db.column(key, row, col) == value for col, value in self.filters)
        ]

    async def execute(self):
        await asyncio.sleep(0)
        self.db.calls.append(self.action)
        if self.db.error is not None:
            raise self.db.error
        if self.action == "upsert":
            key = (self.payload["collection"], self.payload["id"])
            self.db.rows[key] = dict(self.payload["data"])
            return SimpleNamespace(data=[self.payload])
        if self.action == "delete":
            for key in self._matching():
                del self.db.rows[key]
            return SimpleNamespace(data=[])
        keys = self._matching()
        if self.order_field:
            keys.sort(key=lambda k: self.db.rows[k].get(self.order_field) or "", reverse=self.desc)
        return SimpleNamespace(data=[{"id": k[1], "data": dict(self.db.rows[k])} for k in keys])


class FakeRpc:
    def __init__(self, db, name, params):
        self.db = db
        self.name = name
        self.params = params

    async def execute(self):
        await asyncio.sleep(0)
        self.db.calls.append(("rpc", self.name, self.params))
        key = (self.params["p_collection"], self.params["p_id"])
        if key not in self.db.rows or key in self.db.hidden_from_updates:
            return SimpleNamespace(data=False)
        merged = {**self.db.rows[key], **self.params["p_patch"]}
        for name in self.params["p_remove"]:
            merged.pop(name, None)
        self.db.rows[key] = merged
        return SimpleNamespace(data=True)


class FakeChannel:
    def __init__(self, name, fail=None):
        self.name = name
        self.callback = None
        self.filter = None
        self.fail = fail

    def on_postgres_changes(self, event, callback, table, schema, filter):
        self.callback = callback
        self.filter = filter
        return self

    async def subscribe(self):
        if self.fail is not None:
            raise self.fail
        return self


class FakeClient:
    def __init__(self, db=None):
        self.db = db or FakeDatabase()
        self.channels = []
        self.removed = []
        self.channel_error = None

    def table(self, name):
        return FakeQuery(self.db, name)

    def rpc(self, name, params):
        return FakeRpc(self.db, name, params)

    def channel(self, name):
        ch = FakeChannel(name, fail=self.channel_error)
        self.channels.append(ch)
        return ch

    async def remove_channel(self, channel):
        self.removed.append(channel)


async def _drain():
    for _ in range(10):
        await asyncio.sleep(0)


def _student(**extra):
    return {"role": "student", "approved": False, "year": None, "photoURL": None, **extra}


@pytest.mark.anyio
async def test_overlapping_partial_updates_keep_both_writers_fields():
    db = FakeDatabase()
    db.rows[("users", "u1")] = _student()
    admin = SupabaseDocumentStore(FakeClient(db))
    student = SupabaseDocumentStore(FakeClient(db))

    await asyncio.gather(
        admin.update("users/u1", {"approved": True}),
        student.update("users/u1", {"year": "first", "photoURL": "x"}),
    )
    assert db.rows[("users", "u1")] == _student(approved=True, year="first", photoURL="x")
    assert "upsert" not in db.calls


@pytest.mark.anyio
async def test_update_of_missing_document_never_recreates_it():
    db = FakeDatabase()
    store = SupabaseDocumentStore(FakeClient(db))
    with pytest.raises(DocumentNotFoundError):
        await store.update("users/gone", {"approved": True})
    assert db.rows == {}


@pytest.mark.anyio
async def test_update_racing_a_deletion_does_not_bring_the_document_back():
    db = FakeDatabase()
    db.rows[("users", "u1")] = _student()
    store = SupabaseDocumentStore(FakeClient(db))

    await store.delete("users/u1")
    with pytest.raises(DocumentNotFoundError):
        await store.update("users/u1", {"approved": True})
    assert ("users", "u1") not in db.rows


@pytest.mark.anyio
async def test_delete_field_is_sent_as_a_removed_key():
    db = FakeDatabase()
    db.rows[("subjects/s1/lectures", "l1")] = {"title": "الدرس", "quiz": [{"question": "?"}]}
    store = SupabaseDocumentStore(FakeClient(db))

    await store.update("subjects/s1/lectures/l1", {"quiz": DELETE_FIELD})
    assert db.rows[("subjects/s1/lectures", "l1")] == {"title": "الدرس"}
    _, name, params = db.calls[-1]
    assert name == "documents_patch"
    assert params["p_remove"] == ["quiz"]
    assert params["p_patch"] == {}


@pytest.mark.anyio
async def test_update_hidden_by_policy_is_permission_denied():
    db = FakeDatabase()
    db.rows[("users", "u1")] = _student()
    db.hidden_from_updates.add(("users", "u1"))
    store = SupabaseDocumentStore(FakeClient(db))
    with pytest.raises(PermissionDeniedError) as exc:
        await store.update("users/u1", {"approved": True})
    assert exc.value.operation == "update"
    assert db.rows[("users", "u1")]["approved"] is False


@pytest.mark.anyio
async def test_row_level_security_errors_are_permission_denied():
    db = FakeDatabase()
    db.error = FakeAPIError("new row violates row-level security policy", "42501")
    store = SupabaseDocumentStore(FakeClient(db))
    with pytest.raises(PermissionDeniedError):
        await store.set("users/u1", _student())
    with pytest.raises(PermissionDeniedError):
        await store.get("users/u1")


@pytest.mark.anyio
async def test_set_and_get_round_trip_through_one_row():
    db = FakeDatabase()
    store = SupabaseDocumentStore(FakeClient(db), table="documents")
    await store.set("users/u1", _student(name="سارة"))
    assert await store.get("users/u1") == _student(name="سارة")
    assert await store.get("users/missing") is None


@pytest.mark.anyio
async def test_subscription_coalesces_bursts_and_delivers_latest_state():
    db = FakeDatabase()
    db.rows[("users", "u1")] = _student(name="سارة", createdAt="2024-01-01")
    client = FakeClient(db)
    store = SupabaseDocumentStore(client)
    snapshots = []

    sub = store.subscribe(Query("users", order_by="createdAt", descending=True), snapshots.append)
    await _drain()
    assert len(snapshots) == 1
    channel = client.channels[0]
    assert channel.filter == "collection=eq.users"

    db.rows[("users", "u2")] = _student(name="ليلى", createdAt="2024-02-01")
    for _ in range(3):
        channel.callback({"eventType": "INSERT"})
    await _drain()
    # One re-query in flight plus one queued, not one per event.
    assert len(snapshots) == 3
    assert [d.id for d in snapshots[-1]] == ["u2", "u1"]

    sub.unsubscribe()
    sub.unsubscribe()
    await _drain()
    assert client.removed == [channel]
    channel.callback({"eventType": "UPDATE"})
    await _drain()
    assert len(snapshots) == 3
    assert not store._tasks


@pytest.mark.anyio
async def test_subscription_reports_denied_reads_and_releases_channel():
    db = FakeDatabase()
    client = FakeClient(db)
    store = SupabaseDocumentStore(client)
    errors = []
    db.error = FakeAPIError("permission denied for table documents", "42501")

    store.subscribe(Query("users"), lambda snap: None, errors.append)
    await _drain()
    assert len(errors) == 1
    assert isinstance(errors[0], PermissionDeniedError)
    assert errors[0].operation == "list"
    assert client.removed == client.channels


@pytest.mark.anyio
async def test_failed_realtime_subscribe_reaches_the_error_callback():
    client = FakeClient()
    client.channel_error = ConnectionError("socket closed")
    store = SupabaseDocumentStore(client)
    errors = []

    store.subscribe(Query("users"), lambda snap: None, errors.append)
    await _drain()
    assert len(errors) == 1
    assert errors[0].code == "backend_error"
