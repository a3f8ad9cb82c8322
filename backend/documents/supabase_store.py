"""
Supabase-backed document store.

Why:
    Supabase offers auth, Postgres with row-level security and realtime change
    feeds. We keep the app's document model by storing every document as one
    row of a single table and let RLS policies enforce who may read or write
    which path.

Table layout::

    create table public.documents (
        collection text not null,        -- "users", "subjects/s1/lectures"
        id         text not null,
        data       jsonb not null default '{}'::jsonb,
        primary key (collection, id)
    );

    -- Partial updates merge on the server; RLS applies (security invoker).
    create function public.documents_patch(
        p_collection text, p_id text, p_patch jsonb, p_remove text[]
    ) returns boolean language sql security invoker as $$
        with changed as (
            update public.documents
               set data = (data || p_patch) - p_remove
             where collection = p_collection and id = p_id
            returning 1
        )
        select exists (select 1 from changed);
    $$;

Behavior:
    - Filters and ordering use PostgREST JSON paths (``data->>field``).
    - ``update`` calls ``<table>_patch``, a single UPDATE statement; it never
      creates a row. ``DELETE_FIELD`` drops the key.
    - ``SERVER_TIMESTAMP`` is resolved to the current UTC time (ISO 8601) when
      the write is issued.
    - Realtime: one ``postgres_changes`` channel per subscription filtered by
      collection; every change re-runs the query and delivers a full snapshot.
      Re-queries of one subscription never overlap, so snapshots arrive in
      emission order.

Security:
    The client must be bound to the signed-in user's session (anon key + user
    access token) so RLS applies. Never hand a service-role client to this
    adapter in request paths.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Coroutine, Mapping, Optional, Set
import asyncio
import itertools
import json
import logging

from .ports import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    Document,
    DocumentNotFoundError,
    DocumentStoreError,
    ErrorCallback,
    PermissionDeniedError,
    Query,
    Snapshot,
    SnapshotCallback,
    apply_fields,
    split_path,
)

logger = logging.getLogger("farsi_hub.documents.supabase")

_channel_ids = itertools.count(1)

# PostgREST filter methods by query operator.
_FILTER_METHODS = {
    "==": "eq",
    "!=": "neq",
    "<": "lt",
    "<=": "lte",
    ">": "gt",
    ">=": "gte",
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_json_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _as_text(value: Any) -> str:
    """Render a filter value the way ``data->>field`` renders it in Postgres."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(_to_json_value(value))


def _is_permission_error(exc: Exception) -> bool:
    code = str(getattr(exc, "code", "") or "")
    message = str(getattr(exc, "message", "") or exc).lower()
    return code in {"42501", "401", "403"} or "row-level security" in message or "permission denied" in message


class _SupabaseSubscription:
    def __init__(self, store: "SupabaseDocumentStore", query: Query, on_snapshot: SnapshotCallback,
                 on_error: Optional[ErrorCallback], loop: asyncio.AbstractEventLoop) -> None:
        self._store = store
        self._query = query
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._loop = loop
        self._channel: Any = None
        self._active = True
        self._lock = asyncio.Lock()
        self._pending = False
        store._spawn(self._open())

    async def _open(self) -> None:
        client = self._store._client
        name = f"documents:{self._query.describe()}:{next(_channel_ids)}"
        channel = client.channel(name)
        channel.on_postgres_changes(
            "*",
            callback=self._on_change,
            table=self._store.table,
            schema="public",
            filter=f"collection=eq.{self._query.collection}",
        )
        try:
            await channel.subscribe()
        except Exception as exc:
            logger.warning("Realtime subscribe failed for %s: %s", self._query.describe(), exc.__class__.__name__)
            self._fail(exc, "list")
            return
        if not self._active:
            await client.remove_channel(channel)
            return
        self._channel = channel
        await self._refresh()

    def _on_change(self, _payload: Any) -> None:
        if not self._active:
            return
        # Realtime may call back outside the request loop.
        self._loop.call_soon_threadsafe(self._schedule_refresh)

    def _schedule_refresh(self) -> None:
        if self._active:
            self._store._spawn(self._refresh())

    async def _refresh(self) -> None:
        # Coalesce bursts: at most one re-query running and one queued.
        if self._lock.locked():
            self._pending = True
            return
        async with self._lock:
            while self._active:
                self._pending = False
                try:
                    snap = await self._store.run_query(self._query)
                except Exception as exc:
                    self._fail(exc, "list")
                    return
                if not self._active:
                    return
                try:
                    self._on_snapshot(snap)
                except Exception as exc:
                    logger.warning("Snapshot listener for %s failed: %s", self._query.describe(), exc.__class__.__name__)
                if not self._pending:
                    return

    def _fail(self, exc: Exception, operation: str) -> None:
        if not self._active:
            return
        self._active = False
        err = exc if isinstance(exc, DocumentStoreError) else self._store._translate(exc, self._query.describe(), operation)
        if self._on_error is not None:
            self._on_error(err)
        self._release()

    def _release(self) -> None:
        channel, self._channel = self._channel, None
        if channel is not None:
            self._store._spawn(self._store._client.remove_channel(channel))

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._release()


class SupabaseDocumentStore:
    """Document store over a Supabase ``AsyncClient`` (duck-typed)."""

    def __init__(self, client: Any, table: str = "documents") -> None:
        self._client = client
        self.table = table
        self.patch_function = f"{table}_patch"
        self._tasks: Set["asyncio.Task[Any]"] = set()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Realtime task failed: %s", task.exception().__class__.__name__)

    def _translate(self, exc: Exception, path: str, operation: str) -> DocumentStoreError:
        if _is_permission_error(exc):
            return PermissionDeniedError(path=path, operation=operation)
        logger.warning("Document %s on %s failed: %s", operation, path, exc.__class__.__name__)
        return DocumentStoreError("backend_error", path=path, operation=operation)

    def _select(self, collection: str):
        return self._client.table(self.table).select("id,data").eq("collection", collection)

    async def _fetch_row(self, path: str, operation: str) -> Optional[dict[str, Any]]:
        collection, doc_id = split_path(path)
        try:
            res = await self._select(collection).eq("id", doc_id).limit(1).execute()
        except Exception as exc:
            raise self._translate(exc, path, operation) from exc
        rows = getattr(res, "data", None) or []
        return dict(rows[0].get("data") or {}) if rows else None

    async def get(self, path: str) -> Optional[dict[str, Any]]:
        return await self._fetch_row(path, "get")

    async def set(self, path: str, data: Mapping[str, Any]) -> None:
        collection, doc_id = split_path(path)
        payload = {k: _to_json_value(v) for k, v in apply_fields({}, data, now=_now_iso()).items()}
        row = {"collection": collection, "id": doc_id, "data": payload}
        try:
            await self._client.table(self.table).upsert(row, on_conflict="collection,id").execute()
        except Exception as exc:
            raise self._translate(exc, path, "create") from exc

    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        """Merge ``fields`` into the stored document in one server-side statement.

        Concurrent partial updates of different fields never revert each
        other, and an update never recreates a deleted document.
        """
        collection, doc_id = split_path(path)
        patch = {k: _to_json_value(v) for k, v in apply_fields({}, fields, now=_now_iso()).items()}
        removed = [k for k, v in fields.items() if v is DELETE_FIELD]
        params = {"p_collection": collection, "p_id": doc_id, "p_patch": patch, "p_remove": removed}
        try:
            res = await self._client.rpc(self.patch_function, params).execute()
        except Exception as exc:
            raise self._translate(exc, path, "update") from exc
        if getattr(res, "data", None) is True:
            return
        # No row changed: either it is gone or the update policy hides it.
        if await self._fetch_row(path, "update") is None:
            raise DocumentNotFoundError(path=path)
        raise PermissionDeniedError(path=path, operation="update")

    async def delete(self, path: str) -> None:
        collection, doc_id = split_path(path)
        try:
            await self._client.table(self.table).delete().eq("collection", collection).eq("id", doc_id).execute()
        except Exception as exc:
            raise self._translate(exc, path, "delete") from exc

    async def run_query(self, query: Query) -> Snapshot:
        builder = self._select(query.collection)
        if query.document_id is not None:
            builder = builder.eq("id", query.document_id)
        for name, op, value in query.filters:
            column = f"data->>{name}"
            if op == "in":
                builder = builder.in_(column, [_as_text(v) for v in value])
            elif op == "==" and value is None:
                builder = builder.is_(column, "null")
            else:
                builder = getattr(builder, _FILTER_METHODS[op])(column, _as_text(value))
        if query.order_by:
            builder = builder.order(f"data->>{query.order_by}", desc=query.descending, nullsfirst=False)
        try:
            res = await builder.execute()
        except Exception as exc:
            raise self._translate(exc, query.describe(), "list") from exc
        rows = getattr(res, "data", None) or []
        return tuple(Document.build(query.collection, str(r.get("id")), r.get("data") or {}) for r in rows)

    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> _SupabaseSubscription:
        return _SupabaseSubscription(self, query, on_snapshot, on_error, asyncio.get_running_loop())


__all__ = ["SupabaseDocumentStore", "DELETE_FIELD", "SERVER_TIMESTAMP"]
