"""
Scoped helpers around ``DocumentStore.subscribe``.

Every long-lived consumer pairs subscribe with a guaranteed unsubscribe. These
helpers make that pairing structural: the subscription is released when the
``async with`` block exits, whether by normal teardown, an error, or task
cancellation (e.g., a closed server-sent-events connection).
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional, Union
import asyncio

from .ports import DocumentStore, DocumentStoreError, Query, Snapshot

StreamItem = Union[Snapshot, DocumentStoreError]


class SnapshotStream:
    """Async iterator over snapshots of one subscription, in emission order.

    A backend error is delivered once as a ``DocumentStoreError`` instance and
    terminates the stream.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[StreamItem]" = asyncio.Queue()
        self._closed = False

    def _push(self, item: StreamItem) -> None:
        if not self._closed:
            self._queue.put_nowait(item)

    def __aiter__(self) -> "SnapshotStream":
        return self

    async def __anext__(self) -> StreamItem:
        if self._closed:
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, DocumentStoreError):
            self._closed = True
        return item


@asynccontextmanager
async def watch(store: DocumentStore, query: Query) -> AsyncIterator[SnapshotStream]:
    stream = SnapshotStream()
    subscription = store.subscribe(query, stream._push, stream._push)
    try:
        yield stream
    finally:
        stream._closed = True
        subscription.unsubscribe()


async def first_snapshot(store: DocumentStore, query: Query, *, timeout: Optional[float] = 5.0) -> Snapshot:
    """Return the first snapshot of ``query`` and release the subscription.

    Raises the backend's ``DocumentStoreError`` (e.g. ``PermissionDeniedError``)
    and ``asyncio.TimeoutError`` when nothing arrives in time.
    """
    async with watch(store, query) as stream:
        item = await asyncio.wait_for(stream.__anext__(), timeout)
    if isinstance(item, DocumentStoreError):
        raise item
    return item
