"""
Helpers shared by the HTML routers.

Why:
    Every page response needs the same layout wrapping, cache policy and HTMX
    aware redirect; every form POST needs the same origin check. Keeping these
    in one module avoids drift between routers.
"""
from __future__ import annotations

from typing import Optional
import logging

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from identity_access.domain import AppUser
from identity_access.errors import AuthErrorKind, IdentityError
from identity_access.session import SessionController

from ..components import Layout
from ..config import Settings
from .security import is_same_origin

logger = logging.getLogger("farsi_hub.web.sessions")

NO_STORE = {"Cache-Control": "private, no-store"}


def settings_of(request: Request) -> Settings:
    return request.app.state.settings


def session_of(request: Request) -> SessionController:
    """Controller attached by the session gate (always present on protected routes)."""
    return request.state.session


async def ensure_session(request: Request) -> SessionController:
    """Return the browser's session, registering a new one if it has none.

    Only the auth forms call this, so anonymous page views never allocate a
    controller. The session gate sets the cookie for ``new_session_id``.
    """
    session = getattr(request.state, "session", None)
    if session is not None:
        return session
    registry = request.app.state.registry
    registry.prune()
    try:
        record = await registry.create()
    except Exception as exc:
        logger.warning("Session creation failed: %s", exc.__class__.__name__)
        raise IdentityError(AuthErrorKind.NETWORK_OR_UNKNOWN, "session_unavailable") from exc
    request.state.session = record.controller
    request.state.new_session_id = record.session_id
    return record.controller


def user_of(request: Request) -> Optional[AppUser]:
    session = getattr(request.state, "session", None)
    return session.user if session is not None else None


def is_htmx(request: Request) -> bool:
    return "HX-Request" in request.headers


def page(request: Request, title: str, content: str, *, status_code: int = 200,
         show_nav: bool = True) -> HTMLResponse:
    html = Layout(
        title,
        content,
        user=user_of(request),
        current_path=request.url.path,
        show_nav=show_nav,
    ).render()
    return HTMLResponse(html, status_code=status_code, headers=dict(NO_STORE))


def redirect(request: Request, location: str, *, status_code: int = 303) -> Response:
    """Redirect after a form action; HTMX requests get ``HX-Redirect`` instead."""
    if is_htmx(request):
        return Response(status_code=204, headers={"HX-Redirect": location, **NO_STORE, "Vary": "HX-Request"})
    return RedirectResponse(url=location, status_code=status_code, headers=dict(NO_STORE))


def reject_cross_origin(request: Request) -> Optional[Response]:
    """Return a 403 response for cross-origin form posts, else None."""
    if is_same_origin(request):
        return None
    return JSONResponse({"error": "forbidden", "detail": "csrf_violation"}, status_code=403, headers=dict(NO_STORE))


def error_status(err: IdentityError) -> int:
    """HTTP status for a failed form action: 403 for policy rejections, else 400."""
    return 403 if err.kind is AuthErrorKind.PERMISSION_DENIED else 400


def form_text(form, name: str) -> str:
    value = form.get(name)
    return value.strip() if isinstance(value, str) else ""


__all__ = [
    "NO_STORE",
    "ensure_session",
    "error_status",
    "form_text",
    "is_htmx",
    "page",
    "redirect",
    "reject_cross_origin",
    "session_of",
    "settings_of",
    "user_of",
]
