"""
In-memory document store for development and tests.

Why: Keep local development and the test-suite independent of a running
backend while honouring the same contract as the Supabase adapter (partial
updates, sentinels, ordered snapshots, access-policy rejections).

Delivery: snapshots are pushed synchronously on subscribe and after every
write that touches the subscribed collection, in write order. For production,
use ``documents.supabase_store.SupabaseDocumentStore``.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional
import itertools
import logging

from .ports import (
    Document,
    DocumentNotFoundError,
    DocumentStoreError,
    ErrorCallback,
    PermissionDeniedError,
    Query,
    Snapshot,
    SnapshotCallback,
    apply_fields,
    matches,
    split_path,
)

logger = logging.getLogger("farsi_hub.documents.memory")

# (operation, path) -> allowed?  Operations: get, list, create, update, delete.
AccessPolicy = Callable[[str, str], bool]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Listener:
    listener_id: int
    query: Query
    on_snapshot: SnapshotCallback
    on_error: Optional[ErrorCallback]
    active: bool = True


class _MemorySubscription:
    def __init__(self, store: "MemoryDocumentStore", listener: _Listener | None) -> None:
        self._store = store
        self._listener = listener

    def unsubscribe(self) -> None:
        if self._listener is None:
            return
        self._listener.active = False
        self._store._listeners.pop(self._listener.listener_id, None)
        self._listener = None


class MemoryDocumentStore:
    def __init__(self, policy: AccessPolicy | None = None) -> None:
        self._collections: Dict[str, Dict[str, dict[str, Any]]] = {}
        self._listeners: Dict[int, _Listener] = {}
        self._ids = itertools.count(1)
        self.policy = policy

    # --- access policy --------------------------------------------------------

    def _check(self, operation: str, path: str) -> None:
        if self.policy is not None and not self.policy(operation, path):
            raise PermissionDeniedError(path=path, operation=operation)

    # --- one-shot operations -------------------------------------------------

    async def get(self, path: str) -> Optional[dict[str, Any]]:
        collection, doc_id = split_path(path)
        self._check("get", path)
        data = self._collections.get(collection, {}).get(doc_id)
        return dict(data) if data is not None else None

    async def set(self, path: str, data: Mapping[str, Any]) -> None:
        collection, doc_id = split_path(path)
        existing = self._collections.get(collection, {}).get(doc_id)
        self._check("update" if existing is not None else "create", path)
        self._collections.setdefault(collection, {})[doc_id] = apply_fields({}, data, now=_now())
        self._publish(collection)

    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        collection, doc_id = split_path(path)
        self._check("update", path)
        docs = self._collections.get(collection, {})
        if doc_id not in docs:
            raise DocumentNotFoundError(path=path)
        docs[doc_id] = apply_fields(docs[doc_id], fields, now=_now())
        self._publish(collection)

    async def delete(self, path: str) -> None:
        collection, doc_id = split_path(path)
        self._check("delete", path)
        docs = self._collections.get(collection, {})
        if docs.pop(doc_id, None) is not None:
            self._publish(collection)

    # --- realtime --------------------------------------------------------------

    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> _MemorySubscription:
        try:
            self._check("get" if query.document_id else "list", query.describe())
        except DocumentStoreError as exc:
            if on_error is not None:
                on_error(exc)
            return _MemorySubscription(self, None)
        listener = _Listener(next(self._ids), query, on_snapshot, on_error)
        self._listeners[listener.listener_id] = listener
        self._deliver(listener)
        return _MemorySubscription(self, listener)

    def snapshot(self, query: Query) -> Snapshot:
        docs = self._collections.get(query.collection, {})
        if query.document_id is not None:
            data = docs.get(query.document_id)
            if data is None or not matches(data, query.filters):
                return ()
            return (Document.build(query.collection, query.document_id, data),)
        selected = [
            Document.build(query.collection, doc_id, data)
            for doc_id, data in docs.items()
            if matches(data, query.filters)
        ]
        if query.order_by:
            key = query.order_by
            present = [d for d in selected if d.data.get(key) is not None]
            missing = [d for d in selected if d.data.get(key) is None]
            present.sort(key=lambda d: d.data[key], reverse=query.descending)
            selected = present + missing
        return tuple(selected)

    def _publish(self, collection: str) -> None:
        # Copy: callbacks may unsubscribe (or subscribe) while we iterate.
        for listener in list(self._listeners.values()):
            if listener.active and listener.query.collection == collection:
                self._deliver(listener)

    def _deliver(self, listener: _Listener) -> None:
        snap = self.snapshot(listener.query)
        try:
            listener.on_snapshot(snap)
        except Exception as exc:
            logger.warning(
                "Snapshot listener for %s failed: %s", listener.query.describe(), exc.__class__.__name__
            )

    def listener_count(self) -> int:
        return len(self._listeners)


def seed_documents(store: MemoryDocumentStore, collection: str, docs: Mapping[str, Mapping[str, Any]]) -> None:
    """Load fixture documents without triggering access checks (dev/tests)."""
    target = store._collections.setdefault(collection, {})
    for doc_id, data in docs.items():
        target[doc_id] = dict(data)
    store._publish(collection)


__all__: List[str] = ["AccessPolicy", "MemoryDocumentStore", "seed_documents"]
