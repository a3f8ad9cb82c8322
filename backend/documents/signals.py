"""
Process-wide channel for "operation denied" signals.

Why:
    Access-policy rejections are surfaced twice: once to the user at the call
    site (a notice next to the form/list) and once here, centrally, so that
    developers can see path, operation and attempted payload in one place
    (dev-only overlay route) without digging through per-page notices.

Lifecycle: created once by the app factory and lives for the process.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Deque, List, Mapping, Optional
import logging

logger = logging.getLogger("farsi_hub.documents.signals")


@dataclass(frozen=True)
class PermissionDeniedEvent:
    path: str
    operation: str
    payload: Optional[Mapping[str, Any]] = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> dict:
        return {
            "path": self.path,
            "operation": self.operation,
            "payload": dict(self.payload) if self.payload is not None else None,
            "occurred_at": self.occurred_at.isoformat(),
        }


Listener = Callable[[PermissionDeniedEvent], None]


class PermissionErrorChannel:
    def __init__(self, history: int = 50) -> None:
        self._listeners: List[Listener] = []
        self._recent: Deque[PermissionDeniedEvent] = deque(maxlen=history)

    def emit(self, event: PermissionDeniedEvent) -> None:
        self._recent.append(event)
        logger.warning("Permission denied: %s on %s", event.operation, event.path)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as exc:
                # Diagnostics must never break the operation that reported them.
                logger.warning("Permission listener failed: %s", exc.__class__.__name__)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def recent(self) -> List[PermissionDeniedEvent]:
        return list(self._recent)
