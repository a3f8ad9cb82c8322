"""
In-memory identity backend for development and tests.

Why: Run the complete session flow (sign-up, sign-in, onboarding, deletion)
without a live identity service. One ``InMemoryIdentityDirectory`` holds the
accounts for the process; every browser session gets its own
``InMemoryIdentityProvider`` view onto it, mirroring how each browser holds
its own auth session against the managed service.

Security: Secrets are stored as salted PBKDF2 hashes and compared in constant
time. Do not use this backend in production (startup guard refuses it).
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional
import hashlib
import hmac
import logging
import secrets
import uuid

from .domain import Identity
from .errors import AuthErrorKind, IdentityError
from .provider import IdentityCallback, IdentityListeners, Unsubscribe

logger = logging.getLogger("farsi_hub.identity_access.memory")

_ITERATIONS = 100_000


def _hash(secret: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, _ITERATIONS)


@dataclass
class _Account:
    identity: Identity
    salt: bytes
    secret_hash: bytes


class InMemoryIdentityDirectory:
    """Process-wide account table shared by all in-memory providers."""

    def __init__(self) -> None:
        self._by_email: Dict[str, _Account] = {}
        # Outbox of password-reset requests (email addresses), for dev/tests.
        self.reset_requests: List[str] = []

    @staticmethod
    def _key(email: str) -> str:
        return (email or "").strip().lower()

    def add_account(self, email: str, secret: str, *, uid: Optional[str] = None,
                    email_verified: bool = False) -> Identity:
        key = self._key(email)
        if not key or "@" not in key or len(secret or "") < 6:
            raise IdentityError(AuthErrorKind.INVALID_CREDENTIALS, "validation_failed")
        if key in self._by_email:
            raise IdentityError(AuthErrorKind.EMAIL_ALREADY_IN_USE, "email_exists")
        salt = secrets.token_bytes(16)
        identity = Identity(uid=uid or uuid.uuid4().hex, email=key, email_verified=email_verified)
        self._by_email[key] = _Account(identity=identity, salt=salt, secret_hash=_hash(secret, salt))
        return identity

    def verify(self, email: str, secret: str) -> Identity:
        account = self._by_email.get(self._key(email))
        if account is None or not hmac.compare_digest(account.secret_hash, _hash(secret or "", account.salt)):
            # Unknown account and wrong secret are indistinguishable on purpose.
            raise IdentityError(AuthErrorKind.INVALID_CREDENTIALS, "invalid_credentials")
        return account.identity

    def find(self, uid: str) -> Optional[Identity]:
        for account in self._by_email.values():
            if account.identity.uid == uid:
                return account.identity
        return None

    def has_email(self, email: str) -> bool:
        return self._key(email) in self._by_email

    def set_photo(self, uid: str, url: str) -> Identity:
        for account in self._by_email.values():
            if account.identity.uid == uid:
                account.identity = replace(account.identity, photo_url=url)
                return account.identity
        raise IdentityError(AuthErrorKind.NETWORK_OR_UNKNOWN, "user_not_found")

    def remove(self, uid: str) -> None:
        for key, account in list(self._by_email.items()):
            if account.identity.uid == uid:
                del self._by_email[key]
                return
        raise IdentityError(AuthErrorKind.NETWORK_OR_UNKNOWN, "user_not_found")


class InMemoryIdentityProvider:
    """One browser session's view of the in-memory directory."""

    def __init__(self, directory: InMemoryIdentityDirectory) -> None:
        self.directory = directory
        self._listeners = IdentityListeners()

    @property
    def current(self) -> Optional[Identity]:
        return self._listeners.current

    def _require_current(self) -> Identity:
        if self._listeners.current is None:
            raise IdentityError(AuthErrorKind.PERMISSION_DENIED, "not_signed_in")
        return self._listeners.current

    async def authenticate(self, email: str, secret: str) -> Identity:
        identity = self.directory.verify(email, secret)
        self._listeners.set_current(identity)
        return identity

    async def register(self, email: str, secret: str) -> Identity:
        identity = self.directory.add_account(email, secret)
        # Creating an account signs it in, as managed auth services do.
        self._listeners.set_current(identity)
        return identity

    async def request_password_reset(self, email: str) -> None:
        if not self.directory.has_email(email):
            raise IdentityError(AuthErrorKind.UNKNOWN_ACCOUNT, "user_not_found")
        self.directory.reset_requests.append(self.directory._key(email))
        logger.info("Password reset requested")

    async def sign_out(self) -> None:
        self._listeners.set_current(None)

    async def update_identity_profile_picture(self, url: str) -> None:
        identity = self._require_current()
        # Display metadata changes do not count as an identity change.
        self._listeners.current = self.directory.set_photo(identity.uid, url)

    async def delete_identity(self) -> None:
        identity = self._require_current()
        self.directory.remove(identity.uid)
        self._listeners.set_current(None)

    async def reload(self) -> Optional[Identity]:
        current = self._listeners.current
        if current is None:
            return None
        fresh = self.directory.find(current.uid)
        if fresh is None:
            self._listeners.set_current(None)
            return None
        self._listeners.current = fresh
        return fresh

    def on_identity_change(self, callback: IdentityCallback) -> Unsubscribe:
        return self._listeners.add(callback)


__all__ = ["InMemoryIdentityDirectory", "InMemoryIdentityProvider"]
