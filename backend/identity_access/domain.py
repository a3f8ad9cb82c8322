"""
Identity domain types: roles, academic years, identity/profile records and
the session state union.

Why:
- Centralize allowed roles and years to avoid drift between the router, the
  session controller and the web layer.
- Model "still resolving" vs. "resolved, absent" vs. "resolved, present" as
  distinct variants instead of optional fields on a loose user object. Code
  must never read ``user`` while a session is loading.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from documents.ports import SERVER_TIMESTAMP, document_path

# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset({"student", "admin"})
ACADEMIC_YEARS = ("first", "second", "third", "fourth")

USERS_COLLECTION = "users"


def profile_path(uid: str) -> str:
    return document_path(USERS_COLLECTION, uid)


@dataclass(frozen=True)
class Identity:
    """Record owned by the identity provider; never mutated locally."""

    uid: str
    email: str
    photo_url: Optional[str] = None
    email_verified: bool = False


@dataclass(frozen=True)
class Profile:
    uid: str
    name: str
    email: str
    role: str
    approved: bool
    created_at: Any = None
    year: Optional[str] = None
    photo_url: Optional[str] = None

    @classmethod
    def from_document(cls, uid: str, data: Mapping[str, Any]) -> "Profile":
        """Build a profile from a ``users/{uid}`` document.

        Raises ValueError for unknown roles or academic years.
        """
        role = str(data.get("role") or "")
        if role not in ALLOWED_ROLES:
            raise ValueError("invalid_role")
        year = data.get("year") or None
        if year is not None and year not in ACADEMIC_YEARS:
            raise ValueError("invalid_year")
        return cls(
            uid=uid,
            name=str(data.get("name") or ""),
            email=str(data.get("email") or ""),
            role=role,
            approved=bool(data.get("approved", False)),
            created_at=data.get("createdAt"),
            year=year,
            photo_url=data.get("photoURL") or None,
        )

    @staticmethod
    def new_document(uid: str, name: str, email: str) -> dict[str, Any]:
        """Profile document written once at sign-up."""
        return {
            "uid": uid,
            "name": name,
            "email": email,
            "role": "student",
            "approved": False,
            "createdAt": SERVER_TIMESTAMP,
            "year": None,
            "photoURL": None,
        }


@dataclass(frozen=True)
class AppUser:
    """Merged view of identity and profile.

    Replaced wholesale whenever either side changes; never patched.
    """

    identity: Identity
    profile: Profile

    @property
    def uid(self) -> str:
        return self.identity.uid

    @property
    def email(self) -> str:
        return self.identity.email or self.profile.email

    @property
    def name(self) -> str:
        return self.profile.name

    @property
    def role(self) -> str:
        return self.profile.role

    @property
    def approved(self) -> bool:
        return self.profile.approved

    @property
    def year(self) -> Optional[str]:
        return self.profile.year

    @property
    def photo_url(self) -> Optional[str]:
        # The profile document wins; the provider's picture is a fallback.
        return self.profile.photo_url or self.identity.photo_url

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_student(self) -> bool:
        return self.role == "student"

    @property
    def needs_onboarding(self) -> bool:
        return self.is_student and self.year is None


# --- Session state -------------------------------------------------------------


@dataclass(frozen=True)
class Unresolved:
    """No identity-change event received yet."""


@dataclass(frozen=True)
class Resolving:
    identity: Identity


@dataclass(frozen=True)
class Authenticated:
    user: AppUser


@dataclass(frozen=True)
class Unauthenticated:
    # Why the session ended up here: "signed_out" or an AuthErrorKind value.
    reason: str = "signed_out"


SessionState = Union[Unresolved, Resolving, Authenticated, Unauthenticated]


def is_loading(state: SessionState) -> bool:
    return isinstance(state, (Unresolved, Resolving))


def current_user(state: SessionState) -> Optional[AppUser]:
    return state.user if isinstance(state, Authenticated) else None


__all__ = [
    "ACADEMIC_YEARS",
    "ALLOWED_ROLES",
    "AppUser",
    "Authenticated",
    "Identity",
    "Profile",
    "Resolving",
    "SessionState",
    "Unauthenticated",
    "Unresolved",
    "current_user",
    "is_loading",
    "profile_path",
]
