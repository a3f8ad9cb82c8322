"""
Supabase Auth adapter for the identity provider port.

Why:
    Each browser session owns one Supabase ``AsyncClient`` so that the auth
    session (access/refresh token) lives server-side and every document read
    runs under the user's row-level security context. This adapter is the
    only place that knows the SDK's auth calls and error shapes.

Behavior:
    - SDK auth events (``SIGNED_IN``, ``SIGNED_OUT``, token refresh failures)
      are forwarded as identity changes; duplicates for the same uid are
      suppressed.
    - Account deletion needs the service-role admin API; the admin client is
      injected by the app factory and never exposed to request handlers.
    - Supabase does not report unknown accounts on password reset, so
      ``UnknownAccount`` is never raised by this adapter.

Security: Never log tokens, passwords or the service-role key.
"""
from __future__ import annotations

from typing import Any, Optional
import logging

from .domain import Identity
from .errors import AuthErrorKind, IdentityError, map_provider_error
from .provider import IdentityCallback, IdentityListeners, Unsubscribe

logger = logging.getLogger("farsi_hub.identity_access.supabase")


def identity_from_user(user: Any) -> Optional[Identity]:
    """Map a GoTrue ``User`` (duck-typed) to an ``Identity``."""
    if user is None or not getattr(user, "id", None):
        return None
    metadata = getattr(user, "user_metadata", None) or {}
    return Identity(
        uid=str(user.id),
        email=str(getattr(user, "email", "") or ""),
        photo_url=metadata.get("avatar_url") or None,
        email_verified=bool(getattr(user, "email_confirmed_at", None)),
    )


class SupabaseIdentityProvider:
    def __init__(self, client: Any, *, admin_client: Any = None, reset_redirect_url: Optional[str] = None) -> None:
        self._client = client
        self._admin = admin_client
        self._reset_redirect_url = reset_redirect_url
        self._listeners = IdentityListeners()
        self._sdk_subscription: Any = None

    def _on_auth_event(self, event: str, session: Any) -> None:
        user = getattr(session, "user", None) if session is not None else None
        logger.debug("Auth event %s", event)
        self._listeners.set_current(identity_from_user(user))

    def _ensure_sdk_listener(self) -> None:
        if self._sdk_subscription is None:
            self._sdk_subscription = self._client.auth.on_auth_state_change(self._on_auth_event)

    async def authenticate(self, email: str, secret: str) -> Identity:
        try:
            res = await self._client.auth.sign_in_with_password({"email": email, "password": secret})
        except Exception as exc:
            err = map_provider_error(exc)
            if err.kind is AuthErrorKind.UNKNOWN_ACCOUNT:
                # Sign-in never tells an unknown account from a wrong secret.
                raise IdentityError(AuthErrorKind.INVALID_CREDENTIALS, err.code) from exc
            raise err from exc
        identity = identity_from_user(getattr(res, "user", None))
        if identity is None:
            raise IdentityError(AuthErrorKind.INVALID_CREDENTIALS, "no_user")
        self._listeners.set_current(identity)
        return identity

    async def register(self, email: str, secret: str) -> Identity:
        try:
            res = await self._client.auth.sign_up({"email": email, "password": secret})
        except Exception as exc:
            raise map_provider_error(exc) from exc
        identity = identity_from_user(getattr(res, "user", None))
        if identity is None:
            raise IdentityError(AuthErrorKind.NETWORK_OR_UNKNOWN, "no_user")
        # With email confirmation disabled sign-up returns a session; the
        # profile document must be written under that session.
        if getattr(res, "session", None) is not None:
            self._listeners.set_current(identity)
        return identity

    async def request_password_reset(self, email: str) -> None:
        options = {"redirect_to": self._reset_redirect_url} if self._reset_redirect_url else {}
        try:
            await self._client.auth.reset_password_for_email(email, options)
        except Exception as exc:
            raise map_provider_error(exc) from exc

    async def sign_out(self) -> None:
        if self._listeners.current is not None:
            try:
                await self._client.auth.sign_out()
            except Exception as exc:
                # Local state is cleared regardless; the refresh token expires server-side.
                logger.warning("Supabase sign_out failed: %s", exc.__class__.__name__)
        self._listeners.set_current(None)

    async def update_identity_profile_picture(self, url: str) -> None:
        try:
            res = await self._client.auth.update_user({"data": {"avatar_url": url}})
        except Exception as exc:
            raise map_provider_error(exc) from exc
        identity = identity_from_user(getattr(res, "user", None))
        if identity is not None:
            self._listeners.current = identity

    async def delete_identity(self) -> None:
        current = self._listeners.current
        if current is None:
            raise IdentityError(AuthErrorKind.PERMISSION_DENIED, "not_signed_in")
        if self._admin is None:
            raise IdentityError(AuthErrorKind.NETWORK_OR_UNKNOWN, "admin_client_missing")
        try:
            await self._admin.auth.admin.delete_user(current.uid)
        except Exception as exc:
            raise map_provider_error(exc) from exc
        await self.sign_out()

    async def reload(self) -> Optional[Identity]:
        if self._listeners.current is None:
            return None
        try:
            res = await self._client.auth.get_user()
        except Exception as exc:
            raise map_provider_error(exc) from exc
        identity = identity_from_user(getattr(res, "user", None) if res is not None else None)
        if identity is None:
            self._listeners.set_current(None)
            return None
        self._listeners.current = identity
        return identity

    def on_identity_change(self, callback: IdentityCallback) -> Unsubscribe:
        self._ensure_sdk_listener()
        return self._listeners.add(callback)

    def close(self) -> None:
        sub, self._sdk_subscription = self._sdk_subscription, None
        if sub is not None:
            try:
                sub.unsubscribe()
            except Exception as exc:
                logger.warning("Auth listener unsubscribe failed: %s", exc.__class__.__name__)


__all__ = ["SupabaseIdentityProvider", "identity_from_user"]
