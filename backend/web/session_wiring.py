"""
Session factory wiring for the configured backend.

Why:
    Every browser session needs its own identity client and a document store
    bound to that client's credentials. The registry only knows "give me a new
    controller"; this module decides what a controller is made of, based on
    ``Settings.backend``.

Behavior:
    - ``memory``: one process-wide account directory and document store; each
      session gets a fresh provider view onto the directory. Optionally seeds a
      development admin account (``FARSI_DEV_ADMIN_*``).
    - ``supabase``: each session gets its own async Supabase client (anon key).
      The service-role client is created lazily once and used only for account
      deletion.

Security:
    The service-role key never leaves the server and is not used for document
    access; all reads and writes run under the signed-in user's token so the
    backend's row-level policies apply.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
import logging

from documents.memory import MemoryDocumentStore, seed_documents
from documents.signals import PermissionErrorChannel
from identity_access.domain import USERS_COLLECTION
from identity_access.provider_memory import InMemoryIdentityDirectory, InMemoryIdentityProvider
from identity_access.session import SessionController
from identity_access.stores import SessionFactory

from .config import Settings

logger = logging.getLogger("farsi_hub.web.wiring")

DEV_ADMIN_NAME = "مسؤول النظام"


@dataclass
class MemoryBackend:
    """Shared state behind all in-memory sessions (exposed for dev tooling and tests)."""

    directory: InMemoryIdentityDirectory
    store: MemoryDocumentStore


def seed_dev_admin(backend: MemoryBackend, email: str, secret: str) -> str:
    """Create an approved admin account with its profile document; returns the uid."""
    identity = backend.directory.add_account(email, secret, email_verified=True)
    seed_documents(
        backend.store,
        USERS_COLLECTION,
        {
            identity.uid: {
                "uid": identity.uid,
                "name": DEV_ADMIN_NAME,
                "email": identity.email,
                "role": "admin",
                "approved": True,
                "createdAt": datetime.now(timezone.utc),
                "year": None,
                "photoURL": None,
            }
        },
    )
    logger.info("Seeded development admin account")
    return identity.uid


def build_memory_factory(
    settings: Settings,
    channel: PermissionErrorChannel,
    *,
    store: Optional[MemoryDocumentStore] = None,
    directory: Optional[InMemoryIdentityDirectory] = None,
) -> tuple[SessionFactory, MemoryBackend]:
    backend = MemoryBackend(
        directory=directory or InMemoryIdentityDirectory(),
        store=store if store is not None else MemoryDocumentStore(),
    )
    if settings.dev_admin_email and settings.dev_admin_password:
        seed_dev_admin(backend, settings.dev_admin_email, settings.dev_admin_password)

    async def factory() -> SessionController:
        return SessionController(InMemoryIdentityProvider(backend.directory), backend.store, channel)

    return factory, backend


class SupabaseSessionFactory:
    """Creates one session controller per browser session against Supabase."""

    def __init__(self, settings: Settings, channel: PermissionErrorChannel) -> None:
        self._settings = settings
        self._channel = channel
        self._admin_client: Any = None

    async def _admin(self) -> Any:
        if self._admin_client is None and self._settings.supabase_service_role_key:
            from supabase import acreate_client

            self._admin_client = await acreate_client(
                self._settings.supabase_url, self._settings.supabase_service_role_key
            )
        return self._admin_client

    async def __call__(self) -> SessionController:
        # Lazy imports keep the SDK out of memory-backend runs.
        from supabase import acreate_client

        from documents.supabase_store import SupabaseDocumentStore
        from identity_access.provider_supabase import SupabaseIdentityProvider

        client = await acreate_client(self._settings.supabase_url, self._settings.supabase_anon_key)
        provider = SupabaseIdentityProvider(
            client,
            admin_client=await self._admin(),
            reset_redirect_url=self._settings.password_reset_redirect_url,
        )
        store = SupabaseDocumentStore(client, table=self._settings.documents_table)
        return SessionController(provider, store, self._channel)


def build_session_factory(
    settings: Settings,
    channel: PermissionErrorChannel,
    *,
    store: Optional[MemoryDocumentStore] = None,
) -> tuple[SessionFactory, Optional[MemoryBackend]]:
    """Return the session factory and, for the memory backend, its shared state."""
    if settings.backend == "supabase":
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise SystemExit("FARSI_BACKEND=supabase requires SUPABASE_URL and SUPABASE_ANON_KEY.")
        logger.info("Using Supabase backend")
        return SupabaseSessionFactory(settings, channel), None
    if settings.backend != "memory":
        raise SystemExit(f"Unknown FARSI_BACKEND: {settings.backend!r}")
    logger.info("Using in-memory backend (development only)")
    return build_memory_factory(settings, channel, store=store)


__all__ = [
    "MemoryBackend",
    "SupabaseSessionFactory",
    "build_memory_factory",
    "build_session_factory",
    "seed_dev_admin",
]
