"""
Server-side session registry.

Why: Each browser session owns a ``SessionController`` (its own identity
provider client, document store binding and profile watch). The browser only
carries an opaque id in an HttpOnly cookie; everything else stays server-side.
The registry is constructed once by the app factory and injected via
``app.state``. There is no module-level singleton.

Lifecycle: records expire after ``ttl_seconds`` of inactivity. Expired or
deleted records close their controller so realtime subscriptions are released.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional
import logging
import secrets
import time

from .session import SessionController

logger = logging.getLogger("farsi_hub.identity_access.stores")

SessionFactory = Callable[[], Awaitable[SessionController]]


def _now() -> int:
    return int(time.time())


@dataclass
class SessionRecord:
    session_id: str
    controller: SessionController
    expires_at: int


class SessionRegistry:
    def __init__(self, factory: SessionFactory, ttl_seconds: int = 3600):
        self._factory = factory
        self.ttl_seconds = ttl_seconds
        self._data: Dict[str, SessionRecord] = {}

    async def create(self) -> SessionRecord:
        controller = await self._factory()
        await controller.start()
        sid = secrets.token_urlsafe(24)
        rec = SessionRecord(session_id=sid, controller=controller, expires_at=_now() + self.ttl_seconds)
        self._data[sid] = rec
        return rec

    def get(self, session_id: Optional[str]) -> Optional[SessionRecord]:
        if not session_id:
            return None
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at < _now():
            self.delete(session_id)
            return None
        rec.expires_at = _now() + self.ttl_seconds
        return rec

    def delete(self, session_id: str) -> None:
        rec = self._data.pop(session_id, None)
        if rec is not None:
            rec.controller.close()

    def prune(self) -> int:
        """Close all expired sessions; returns how many were removed."""
        expired = [sid for sid, rec in self._data.items() if rec.expires_at < _now()]
        for sid in expired:
            self.delete(sid)
        if expired:
            logger.debug("Pruned %s expired sessions", len(expired))
        return len(expired)

    def close_all(self) -> None:
        for sid in list(self._data):
            self.delete(sid)

    def __len__(self) -> int:
        return len(self._data)


__all__ = ["SessionFactory", "SessionRecord", "SessionRegistry"]
