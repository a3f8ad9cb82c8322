"Farsi Hub web application"
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles

from documents.memory import MemoryDocumentStore
from documents.signals import PermissionErrorChannel
from identity_access.domain import SessionState, Unauthenticated
from identity_access.routing import LOGIN_PATH, Redirect, Suspend, decide, is_public
from identity_access.stores import SessionFactory, SessionRegistry

from .auth_utils import SESSION_COOKIE_NAME, set_session_cookie
from .components import Layout
from .components.pages import HomePage, LoadingPlaceholder
from .config import Settings, ensure_secure_config_on_startup, load_settings, should_load_dotenv
from .routes.account import account_router
from .routes.admin import admin_router
from .routes.auth import auth_router
from .routes.common import NO_STORE, is_htmx, page
from .routes.content import content_router
from .routes.learning import learning_router
from .routes.operations import operations_router
from .session_wiring import build_session_factory

logger = logging.getLogger("farsi_hub.web")

STATIC_DIR = Path(__file__).parent / "static"
SUSPEND_REFRESH_SECONDS = 1
# Avatar images are served by an external image host.
AVATAR_IMAGE_HOST = "https://i.suar.me"

# --- Session gate -----------------------------------------------------------------


def _bypasses_session(path: str) -> bool:
    # Public assets and health checks never touch the session registry; "/" is
    # public too but renders the navigation for signed-in users.
    return is_public(path) and path != "/"


def _suspend_response(request: Request) -> Response:
    if is_htmx(request):
        return Response(status_code=204, headers={"HX-Refresh": "true", **NO_STORE})
    html = Layout(
        "جارٍ التحميل",
        LoadingPlaceholder().render(),
        current_path=request.url.path,
        show_nav=False,
    ).render()
    headers = {**NO_STORE, "Refresh": str(SUSPEND_REFRESH_SECONDS)}
    return HTMLResponse(html, status_code=200, headers=headers)


def _redirect_response(request: Request, location: str) -> Response:
    if is_htmx(request):
        # Unauthenticated HTMX requests get 401 so client code can tell them apart.
        status_code = 401 if location == LOGIN_PATH else 204
        return Response(
            status_code=status_code,
            headers={"HX-Redirect": location, **NO_STORE, "Vary": "HX-Request"},
        )
    status_code = 303 if request.method not in ("GET", "HEAD") else 302
    return RedirectResponse(url=location, status_code=status_code, headers=dict(NO_STORE))


async def session_gate(request: Request, call_next):
    path = request.url.path
    if _bypasses_session(path):
        return await call_next(request)

    settings: Settings = request.app.state.settings
    registry: SessionRegistry = request.app.state.registry
    record = registry.get(request.cookies.get(SESSION_COOKIE_NAME))
    if record is None:
        # Browsers without a session are decided as signed out; only the auth
        # forms register a server-side session (``ensure_session``).
        session = None
        state: SessionState = Unauthenticated()
    else:
        session = record.controller
        await session.wait_until_settled(settings.resolve_timeout_seconds)
        state = session.state
    decision = decide(state, path)
    request.state.session = session
    request.state.user = session.user if session is not None else None

    if isinstance(decision, Suspend):
        response = _suspend_response(request)
    elif isinstance(decision, Redirect):
        response = _redirect_response(request, decision.location)
    else:
        response = await call_next(request)

    new_session_id = getattr(request.state, "new_session_id", None)
    if new_session_id is not None:
        set_session_cookie(response, new_session_id, environment=settings.environment)
    return response


# --- Security headers ------------------------------------------------------------


def _content_security_policy(settings: Settings) -> str:
    connect_src = "'self'"
    if settings.supabase_url:
        connect_src += f" {settings.supabase_url.rstrip('/')}"
    img_src = f"'self' data: {AVATAR_IMAGE_HOST}"
    if settings.is_prod_like:
        # No inline script or style in production.
        return (
            "default-src 'self'; script-src 'self'; style-src 'self'; "
            f"img-src {img_src}; font-src 'self' data:; connect-src {connect_src}; frame-ancestors 'self'"
        )
    return (
        "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; "
        f"img-src {img_src}; font-src 'self' data:; connect-src {connect_src}; frame-ancestors 'self'"
    )


async def security_headers(request: Request, call_next):
    response = await call_next(request)
    settings: Settings = request.app.state.settings
    response.headers.setdefault("Content-Security-Policy", _content_security_policy(settings))
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if settings.is_prod_like:
        response.headers.setdefault("Cross-Origin-Opener-Policy", "same-origin")
    response.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    # HSTS: always on (dev = prod)
    response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- App factory -------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[SessionFactory] = None,
    channel: Optional[PermissionErrorChannel] = None,
    store: Optional[MemoryDocumentStore] = None,
) -> FastAPI:
    """Compose the application.

    Dependencies are built here and shared through ``app.state``:
    ``settings``, ``channel`` (permission errors), ``registry`` (sessions) and,
    for the in-memory backend, ``memory`` (accounts and documents).
    ``session_factory`` replaces the configured backend entirely (tests).
    """
    settings = settings or load_settings()
    ensure_secure_config_on_startup(settings)
    channel = channel or PermissionErrorChannel()
    memory = None
    if session_factory is None:
        session_factory, memory = build_session_factory(settings, channel, store=store)
    registry = SessionRegistry(session_factory, ttl_seconds=settings.session_ttl_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        registry.close_all()
        logger.info("Closed all sessions")

    app = FastAPI(title="Farsi Hub", description="منصة تعلم اللغة الفارسية", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.channel = channel
    app.state.registry = registry
    app.state.memory = memory

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    app.include_router(operations_router)
    app.include_router(auth_router)
    app.include_router(account_router)
    app.include_router(admin_router)
    app.include_router(content_router)
    app.include_router(learning_router)

    @app.get("/", response_class=HTMLResponse)
    async def home(request: Request):
        user = getattr(request.state, "user", None)
        return page(request, "الرئيسية", HomePage(user).render())

    # Registration order: the last one added runs outermost, so security
    # headers also cover gate redirects and loading pages.
    app.middleware("http")(session_gate)
    app.middleware("http")(security_headers)
    return app


def _app_from_environment() -> FastAPI:
    if should_load_dotenv():
        from dotenv import load_dotenv

        load_dotenv()
    return create_app()


app = _app_from_environment()
