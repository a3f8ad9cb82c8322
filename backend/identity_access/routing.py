"""
Access-control router: a pure decision over (session state, target path).

Why:
    The same decision runs on every request, HTMX swap and realtime-driven
    re-render, so it must be side-effect free and idempotent. Redirection is
    the only effect, and the caller performs it.

Rules (first match wins):
    1. Loading sessions suspend: no navigation decision yet.
    2. Unauthenticated sessions on protected paths go to ``/login``.
    3. Authenticated sessions on login/signup go to their role home.
    4. Role mismatch (student on ``/admin``, admin on ``/student``) goes to
       ``/login``; fail closed, no "forbidden" page.
    5. Students without an academic year go to onboarding for every other
       protected path, regardless of approval.
    6. Students with a year on onboarding, and everyone on ``/dashboard``, go
       to their role home.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .domain import AppUser, Authenticated, SessionState, is_loading

LOGIN_PATH = "/login"
SIGNUP_PATH = "/signup"
DASHBOARD_PATH = "/dashboard"
ONBOARDING_PATH = "/student/onboarding"
ADMIN_HOME = "/admin/profile"
STUDENT_HOME = "/student/profile"

PROTECTED_PREFIXES = ("/dashboard", "/admin", "/student", "/lectures", "/assignments", "/quizzes", "/profile")
AUTH_ONLY_PATHS = (LOGIN_PATH, SIGNUP_PATH)
PUBLIC_PREFIXES = ("/static/",)
PUBLIC_PATHS = ("/", "/health", "/favicon.ico")


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Redirect:
    location: str


@dataclass(frozen=True)
class Suspend:
    pass


Decision = Union[Allow, Redirect, Suspend]


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def is_public(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIXES)


def is_protected(path: str) -> bool:
    return any(_under(path, prefix) for prefix in PROTECTED_PREFIXES)


def is_auth_only(path: str) -> bool:
    return any(_under(path, p) for p in AUTH_ONLY_PATHS)


def required_role(path: str) -> str | None:
    if _under(path, "/admin"):
        return "admin"
    if _under(path, "/student"):
        return "student"
    return None


def role_home(user: AppUser) -> str:
    if user.is_admin:
        return ADMIN_HOME
    return ONBOARDING_PATH if user.needs_onboarding else STUDENT_HOME


def decide(state: SessionState, target: str) -> Decision:
    path = (target or "/").split("?", 1)[0] or "/"
    if is_public(path):
        return Allow()
    if is_loading(state):
        return Suspend()
    if not isinstance(state, Authenticated):
        return Redirect(LOGIN_PATH) if is_protected(path) else Allow()

    user = state.user
    if is_auth_only(path):
        return Redirect(role_home(user))
    needed = required_role(path)
    if needed is not None and needed != user.role:
        return Redirect(LOGIN_PATH)
    if user.needs_onboarding and is_protected(path) and not _under(path, ONBOARDING_PATH):
        return Redirect(ONBOARDING_PATH)
    if _under(path, ONBOARDING_PATH) and not user.needs_onboarding:
        return Redirect(role_home(user))
    if path == DASHBOARD_PATH:
        return Redirect(role_home(user))
    return Allow()


__all__ = [
    "Allow",
    "Decision",
    "Redirect",
    "Suspend",
    "decide",
    "is_protected",
    "is_public",
    "role_home",
]
