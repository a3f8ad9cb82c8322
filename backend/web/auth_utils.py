"""
Shared session-cookie utilities.

Why:
    The session cookie is set by the gate middleware (new sessions) and
    cleared by the logout route. Keeping the policy in one helper avoids drift
    between the two.

Design:
    ``cookie_opts`` is framework-agnostic and pure: it accepts an environment
    string and returns the corresponding cookie flags. Callers decide where
    the environment comes from (e.g., the settings object).
"""

from __future__ import annotations

from fastapi import Response

SESSION_COOKIE_NAME = "farsi_session"


def cookie_opts(environment: str) -> dict:
    """Return hardened cookie flags (dev = prod).

    Returns a mapping with keys:
      - secure: True
      - samesite: "lax"  # sent on top-level navigations, e.g. the password-reset link
    """
    return {"secure": True, "samesite": "lax"}


def set_session_cookie(response: Response, value: str, *, environment: str, max_age: int | None = None) -> None:
    opts = cookie_opts(environment)
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=value,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


def clear_session_cookie(response: Response, *, environment: str) -> None:
    opts = cookie_opts(environment)
    response.delete_cookie(
        key=SESSION_COOKIE_NAME,
        path="/",
        secure=opts["secure"],
        httponly=True,
        samesite=opts["samesite"],
    )
