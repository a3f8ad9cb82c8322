"""
Session state machine: one controller per browser session.

Why:
    The session user is derived from two asynchronous sources, the identity
    provider and the ``users/{uid}`` profile document. Treating "not loaded
    yet" as "logged out" is the bug class this controller exists to prevent,
    so the state is an explicit union (``Unresolved`` / ``Resolving`` /
    ``Authenticated`` / ``Unauthenticated``) and ``loading`` is derived from it.

Behavior:
    - The identity-change callback and explicit actions (refresh, sign-out,
      deletion) are the only producers of transitions. Each transition bumps
      a monotonic generation; async results tagged with an older generation
      are discarded, so the last event wins.
    - An authenticated identity without a profile document is inconsistent:
      the session becomes ``Unauthenticated`` and the identity is signed out
      (idempotent).
    - Errors on the resolution path end in ``Unauthenticated`` and are never
      raised. Errors from explicit actions propagate as ``IdentityError`` to
      the calling form; nothing is retried.
    - Once authenticated, the controller watches its own profile document and
      replaces the ``AppUser`` wholesale when it changes. The watch is
      released on every transition and on ``close()``.

Permissions:
    Document access runs through the store handed in by the factory, which is
    bound to this session's credentials. Access-policy rejections are also
    published on the permission-error channel.
"""
from __future__ import annotations

from typing import Any, Callable, Coroutine, List, Mapping, Optional, Set
import asyncio
import logging

from documents.ports import DocumentStore, Query, Snapshot, Subscription
from documents.signals import PermissionDeniedEvent, PermissionErrorChannel

from .domain import (
    ACADEMIC_YEARS,
    AppUser,
    Authenticated,
    Identity,
    Profile,
    Resolving,
    SessionState,
    Unauthenticated,
    Unresolved,
    USERS_COLLECTION,
    is_loading,
    profile_path,
)
from .errors import AuthErrorKind, IdentityError, map_provider_error
from .provider import IdentityProvider

logger = logging.getLogger("farsi_hub.identity_access.session")

StateListener = Callable[[SessionState], None]


class SessionController:
    def __init__(
        self,
        provider: IdentityProvider,
        store: DocumentStore,
        channel: Optional[PermissionErrorChannel] = None,
    ) -> None:
        self._provider = provider
        self._store = store
        self._channel = channel
        self._state: SessionState = Unresolved()
        self._generation = 0
        self._listeners: List[StateListener] = []
        self._unsubscribe_identity: Optional[Callable[[], None]] = None
        self._profile_watch: Optional[Subscription] = None
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._settled = asyncio.Event()
        self._registering = False
        self._closed = False

    # --- read side -------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def loading(self) -> bool:
        return is_loading(self._state)

    @property
    def user(self) -> Optional[AppUser]:
        return self._state.user if isinstance(self._state, Authenticated) else None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def store(self) -> DocumentStore:
        """Document store bound to this session (read-only use by collaborators)."""
        return self._store

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_until_settled(self, timeout: Optional[float] = None) -> bool:
        """Wait until the session leaves the loading states.

        Returns False when ``timeout`` elapses first; the state is unchanged.
        """
        if not self.loading:
            return True
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return not self.loading

    # --- lifecycle ---------------------------------------------------------------

    async def start(self) -> None:
        if self._unsubscribe_identity is None and not self._closed:
            # Fires synchronously with the current identity (or None).
            self._unsubscribe_identity = self._provider.on_identity_change(self._on_identity_change)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._generation += 1
        self._release_watch()
        if self._unsubscribe_identity is not None:
            self._unsubscribe_identity()
            self._unsubscribe_identity = None
        for task in list(self._tasks):
            task.cancel()
        closer = getattr(self._provider, "close", None)
        if callable(closer):
            closer()
        self._listeners.clear()

    # --- transitions -------------------------------------------------------------

    def _advance(self) -> int:
        self._generation += 1
        self._release_watch()
        return self._generation

    def _set_state(self, state: SessionState, generation: int) -> bool:
        if generation != self._generation or self._closed:
            logger.debug("Discarding stale result (gen %s, current %s)", generation, self._generation)
            return False
        self._state = state
        if is_loading(state):
            self._settled.clear()
        else:
            self._settled.set()
        logger.debug("Session state -> %s (gen %s)", state.__class__.__name__, generation)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as exc:
                logger.warning("Session listener failed: %s", exc.__class__.__name__)
        return True

    def _on_identity_change(self, identity: Optional[Identity]) -> None:
        if self._closed:
            return
        if self._registering:
            # The profile document does not exist yet; resolving now would
            # look like an inconsistent account.
            logger.debug("Identity event held back during registration")
            return
        self._begin(identity)

    def _begin(self, identity: Optional[Identity]) -> int:
        generation = self._advance()
        if identity is None:
            if isinstance(self._state, Unauthenticated):
                # Keep the original reason (e.g. a forced sign-out).
                return generation
            self._set_state(Unauthenticated(), generation)
        else:
            self._set_state(Resolving(identity), generation)
            self._spawn(self._resolve(identity, generation))
        return generation

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: "asyncio.Task[Any]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Session task failed: %s", task.exception().__class__.__name__)

    async def _resolve(self, identity: Identity, generation: int) -> None:
        path = profile_path(identity.uid)
        try:
            data = await self._store.get(path)
        except Exception as exc:
            err = map_provider_error(exc)
            if generation != self._generation:
                logger.debug("Discarding stale profile error for gen %s", generation)
                return
            self._report(err, path, "get")
            logger.warning("Profile fetch failed: %s", err.code)
            self._set_state(Unauthenticated(err.kind.value), generation)
            return
        if generation != self._generation:
            logger.debug("Discarding stale profile for gen %s", generation)
            return
        profile = self._parse_profile(identity.uid, data)
        if profile is None:
            await self._inconsistent(generation)
            return
        if self._set_state(Authenticated(AppUser(identity, profile)), generation):
            self._watch_profile(identity, generation)

    @staticmethod
    def _parse_profile(uid: str, data: Optional[Mapping[str, Any]]) -> Optional[Profile]:
        if data is None:
            return None
        try:
            return Profile.from_document(uid, data)
        except ValueError as exc:
            logger.warning("Invalid profile document for %s: %s", uid, exc)
            return None

    async def _inconsistent(self, generation: int) -> None:
        if self._set_state(Unauthenticated(AuthErrorKind.PROFILE_INCONSISTENT.value), generation):
            await self._force_sign_out()

    async def _force_sign_out(self) -> None:
        try:
            await self._provider.sign_out()
        except Exception as exc:
            logger.warning("Forced sign-out failed: %s", exc.__class__.__name__)

    # --- profile watch -------------------------------------------------------------

    def _watch_profile(self, identity: Identity, generation: int) -> None:
        query = Query(USERS_COLLECTION, document_id=identity.uid)
        self._profile_watch = self._store.subscribe(
            query,
            lambda snap: self._on_profile_snapshot(identity, generation, snap),
            lambda err: self._on_profile_error(generation, err),
        )

    def _release_watch(self) -> None:
        watch, self._profile_watch = self._profile_watch, None
        if watch is not None:
            watch.unsubscribe()

    def _on_profile_snapshot(self, identity: Identity, generation: int, snap: Snapshot) -> None:
        if generation != self._generation or not isinstance(self._state, Authenticated):
            return
        profile = self._parse_profile(identity.uid, snap[0].data) if snap else None
        if profile is None:
            # Visible to the very next request; only the sign-out is deferred.
            if self._set_state(Unauthenticated(AuthErrorKind.PROFILE_INCONSISTENT.value), self._advance()):
                self._spawn(self._force_sign_out())
            return
        if profile != self._state.user.profile:
            # Replacement, not a transition: same generation, whole AppUser.
            self._set_state(Authenticated(AppUser(self._state.user.identity, profile)), generation)

    def _on_profile_error(self, generation: int, err: Exception) -> None:
        if generation != self._generation:
            return
        mapped = map_provider_error(err)
        self._report(mapped, profile_path(self.user.uid) if self.user else USERS_COLLECTION, "get")
        logger.warning("Profile watch ended: %s", mapped.code)

    # --- explicit actions ------------------------------------------------------------

    def _report(self, err: IdentityError, path: str, operation: str,
                payload: Optional[Mapping[str, Any]] = None) -> None:
        if err.kind is AuthErrorKind.PERMISSION_DENIED and self._channel is not None:
            self._channel.emit(PermissionDeniedEvent(path=path, operation=operation, payload=payload))

    def _require_user(self) -> AppUser:
        user = self.user
        if user is None:
            raise IdentityError(AuthErrorKind.PERMISSION_DENIED, "not_signed_in")
        return user

    async def _write(self, operation: str, path: str, fields: Mapping[str, Any]) -> None:
        try:
            if operation == "create":
                await self._store.set(path, fields)
            else:
                await self._store.update(path, fields)
        except Exception as exc:
            err = map_provider_error(exc)
            self._report(err, path, operation, {k: v for k, v in fields.items() if k != "createdAt"})
            raise err

    async def sign_in(self, email: str, secret: str) -> Identity:
        try:
            return await self._provider.authenticate(email, secret)
        except Exception as exc:
            raise map_provider_error(exc)

    async def register(self, name: str, email: str, secret: str) -> Identity:
        """Create identity and profile document, then sign out.

        The user signs in afresh afterwards. If the profile write fails the
        identity is left without a profile; the next sign-in resolves that as
        an inconsistent account.
        """
        self._registering = True
        identity: Optional[Identity] = None
        try:
            try:
                identity = await self._provider.register(email, secret)
            except Exception as exc:
                raise map_provider_error(exc)
            await self._write("create", profile_path(identity.uid), Profile.new_document(identity.uid, name, email))
            logger.info("Registered profile for %s", identity.uid)
            return identity
        finally:
            self._registering = False
            if identity is not None:
                await self._sign_out_quietly()

    async def request_password_reset(self, email: str) -> None:
        try:
            await self._provider.request_password_reset(email)
        except Exception as exc:
            raise map_provider_error(exc)

    async def sign_out(self) -> None:
        try:
            await self._provider.sign_out()
        except Exception as exc:
            raise map_provider_error(exc)
        if not isinstance(self._state, Unauthenticated):
            self._begin(None)

    async def _sign_out_quietly(self) -> None:
        await self._force_sign_out()
        if not isinstance(self._state, Unauthenticated):
            self._begin(None)

    async def refresh(self) -> SessionState:
        """Re-read identity and profile; never raises.

        A sign-out that lands while the refresh is in flight wins.
        """
        state = self._state
        if isinstance(state, Authenticated):
            identity = state.user.identity
        elif isinstance(state, Resolving):
            identity = state.identity
        else:
            return state
        generation = self._advance()
        self._set_state(Resolving(identity), generation)
        try:
            fresh = await self._provider.reload()
        except Exception as exc:
            err = map_provider_error(exc)
            logger.warning("Identity reload failed: %s", err.code)
            self._set_state(Unauthenticated(err.kind.value), generation)
            return self._state
        if generation != self._generation:
            return self._state
        if fresh is None:
            self._set_state(Unauthenticated(), generation)
            return self._state
        await self._resolve(fresh, generation)
        return self._state

    async def update_profile_picture(self, url: str) -> None:
        user = self._require_user()
        try:
            await self._provider.update_identity_profile_picture(url)
        except Exception as exc:
            raise map_provider_error(exc)
        await self._write("update", profile_path(user.uid), {"photoURL": url})
        await self.refresh()

    async def complete_onboarding(self, year: str, photo_url: str) -> None:
        """Store academic year and avatar in one write, then re-fetch."""
        user = self._require_user()
        if not user.is_student:
            raise IdentityError(AuthErrorKind.PERMISSION_DENIED, "not_a_student")
        if year not in ACADEMIC_YEARS:
            raise ValueError("invalid_year")
        try:
            await self._provider.update_identity_profile_picture(photo_url)
        except Exception as exc:
            raise map_provider_error(exc)
        await self._write("update", profile_path(user.uid), {"year": year, "photoURL": photo_url})
        await self.refresh()

    async def delete_account(self) -> None:
        """Delete the profile document, then the identity. Not atomic.

        If the identity deletion fails after the document is gone, the session
        is ended as inconsistent and the error is raised.
        """
        user = self._require_user()
        path = profile_path(user.uid)
        # Our own deletion must not be mistaken for an external inconsistency.
        generation = self._advance()
        try:
            await self._store.delete(path)
        except Exception as exc:
            err = map_provider_error(exc)
            self._report(err, path, "delete")
            if generation == self._generation:
                self._watch_profile(user.identity, generation)
            raise err
        try:
            await self._provider.delete_identity()
        except Exception as exc:
            err = map_provider_error(exc)
            logger.warning("Identity deletion failed after profile deletion: %s", err.code)
            await self._inconsistent(self._advance())
            raise err
        logger.info("Deleted account %s", user.uid)
        if not isinstance(self._state, Unauthenticated):
            self._begin(None)


__all__ = ["SessionController", "StateListener"]
