"""
Identity provider port.

Why:
    The session state machine never talks to the identity service directly.
    All session-mutating operations go through this narrow contract so the
    backend (Supabase in production, in-memory for development/tests) stays
    swappable and every provider error is mapped at one boundary.

Contract:
    - Failures are raised as ``identity_access.errors.IdentityError``.
    - ``on_identity_change`` fires once immediately with the current identity
      (or ``None``) and again on every sign-in/sign-out. Callbacks run
      synchronously on the event loop and must not block.
    - ``sign_out`` is idempotent; repeated calls do not raise and do not emit
      duplicate events.
"""
from __future__ import annotations

from typing import Callable, Optional, Protocol

from .domain import Identity

IdentityCallback = Callable[[Optional[Identity]], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    async def authenticate(self, email: str, secret: str) -> Identity:
        ...

    async def register(self, email: str, secret: str) -> Identity:
        ...

    async def request_password_reset(self, email: str) -> None:
        ...

    async def sign_out(self) -> None:
        ...

    async def update_identity_profile_picture(self, url: str) -> None:
        ...

    async def delete_identity(self) -> None:
        ...

    async def reload(self) -> Optional[Identity]:
        ...

    def on_identity_change(self, callback: IdentityCallback) -> Unsubscribe:
        ...


class IdentityListeners:
    """Listener bookkeeping shared by provider implementations.

    Emits only on actual changes of the signed-in uid, so repeated sign-outs
    or token refreshes never produce duplicate events.
    """

    def __init__(self) -> None:
        self._callbacks: list[IdentityCallback] = []
        self.current: Optional[Identity] = None

    def add(self, callback: IdentityCallback) -> Unsubscribe:
        self._callbacks.append(callback)
        callback(self.current)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def set_current(self, identity: Optional[Identity]) -> None:
        previous = self.current
        self.current = identity
        if (previous.uid if previous else None) == (identity.uid if identity else None):
            return
        for cb in list(self._callbacks):
            cb(identity)


__all__ = ["IdentityCallback", "IdentityListeners", "IdentityProvider", "Unsubscribe"]
