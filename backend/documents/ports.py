"""
Document store port (framework-agnostic).

Why:
    Every page of the app reads and writes documents in a managed backend and
    reflects changes through realtime listeners. The session core and the
    collaborators depend on this narrow contract only, so the concrete backend
    (Supabase in production, in-memory for development/tests) stays swappable.

Contract:
    - Paths alternate collection and document segments: ``users/{uid}``,
      ``subjects/{sid}/lectures/{lid}``.
    - ``update`` is a partial write. ``DELETE_FIELD`` removes a field instead
      of writing null; ``SERVER_TIMESTAMP`` is resolved by the store.
    - ``subscribe`` delivers an immutable, ordered snapshot on every change
      plus a terminal error callback. The returned subscription's
      ``unsubscribe`` is safe to call more than once.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence, Tuple


class _Sentinel:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


DELETE_FIELD = _Sentinel("DELETE_FIELD")
SERVER_TIMESTAMP = _Sentinel("SERVER_TIMESTAMP")

FILTER_OPERATORS = frozenset({"==", "!=", "<", "<=", ">", ">=", "in"})


class DocumentStoreError(Exception):
    """Base error for document store operations."""

    def __init__(self, code: str, *, path: str = "", operation: str = ""):
        super().__init__(code)
        self.code = code
        self.path = path
        self.operation = operation


class PermissionDeniedError(DocumentStoreError):
    """Raised when the backend's access policy rejects an operation."""

    def __init__(self, *, path: str, operation: str):
        super().__init__("permission_denied", path=path, operation=operation)


class DocumentNotFoundError(DocumentStoreError):
    """Raised by partial updates that target a missing document."""

    def __init__(self, *, path: str, operation: str = "update"):
        super().__init__("not_found", path=path, operation=operation)


def split_path(path: str) -> tuple[str, str]:
    """Split a document path into (collection path, document id).

    Raises ValueError for collection paths or malformed input.
    """
    parts = [p for p in (path or "").strip("/").split("/") if p]
    if not parts or len(parts) % 2 != 0:
        raise ValueError("invalid_document_path")
    return "/".join(parts[:-1]), parts[-1]


def document_path(collection: str, doc_id: str) -> str:
    return f"{collection.strip('/')}/{doc_id}"


@dataclass(frozen=True)
class Document:
    id: str
    path: str
    data: Mapping[str, Any]

    @classmethod
    def build(cls, collection: str, doc_id: str, data: Mapping[str, Any]) -> "Document":
        # Read-only view over a private copy; consumers never mutate snapshots.
        return cls(id=doc_id, path=document_path(collection, doc_id), data=MappingProxyType(dict(data)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


Snapshot = Tuple[Document, ...]


@dataclass(frozen=True)
class Query:
    """Query descriptor for a single collection.

    ``document_id`` narrows the query to one document (0 or 1 results), which
    is how single-document watches are expressed.
    """

    collection: str
    filters: Tuple[Tuple[str, str, Any], ...] = field(default_factory=tuple)
    order_by: Optional[str] = None
    descending: bool = False
    document_id: Optional[str] = None

    def __post_init__(self) -> None:
        for f in self.filters:
            if len(f) != 3 or f[1] not in FILTER_OPERATORS:
                raise ValueError("invalid_filter")

    def where(self, field_name: str, op: str, value: Any) -> "Query":
        return Query(
            collection=self.collection,
            filters=self.filters + ((field_name, op, value),),
            order_by=self.order_by,
            descending=self.descending,
            document_id=self.document_id,
        )

    def describe(self) -> str:
        if self.document_id:
            return document_path(self.collection, self.document_id)
        return self.collection


SnapshotCallback = Callable[[Snapshot], None]
ErrorCallback = Callable[[DocumentStoreError], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


class DocumentStore(Protocol):
    async def get(self, path: str) -> Optional[dict[str, Any]]:
        ...

    async def set(self, path: str, data: Mapping[str, Any]) -> None:
        ...

    async def update(self, path: str, fields: Mapping[str, Any]) -> None:
        ...

    async def delete(self, path: str) -> None:
        ...

    def subscribe(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        ...


def apply_fields(current: Mapping[str, Any], fields: Mapping[str, Any], *, now: Any) -> dict[str, Any]:
    """Return a new mapping with a partial update applied (sentinels resolved)."""
    merged = dict(current)
    for key, value in fields.items():
        if value is DELETE_FIELD:
            merged.pop(key, None)
        elif value is SERVER_TIMESTAMP:
            merged[key] = now
        else:
            merged[key] = value
    return merged


def matches(data: Mapping[str, Any], filters: Sequence[Tuple[str, str, Any]]) -> bool:
    for name, op, expected in filters:
        if name not in data:
            return False
        actual = data[name]
        try:
            if op == "==" and not actual == expected:
                return False
            if op == "!=" and not actual != expected:
                return False
            if op == "in" and actual not in expected:
                return False
            if op == "<" and not actual < expected:
                return False
            if op == "<=" and not actual <= expected:
                return False
            if op == ">" and not actual > expected:
                return False
            if op == ">=" and not actual >= expected:
                return False
        except TypeError:
            return False
    return True


__all__ = [
    "DELETE_FIELD",
    "SERVER_TIMESTAMP",
    "Document",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "PermissionDeniedError",
    "Query",
    "Snapshot",
    "Subscription",
    "apply_fields",
    "document_path",
    "matches",
    "split_path",
]
