"""
Authentication routes: login, sign-up, password reset and logout.

Why:
    Forms post to the server; the session controller talks to the identity
    provider. Failures re-render the same form with a message chosen by error
    kind, so no provider string ever reaches the browser.

Behavior:
    - Successful login waits briefly for the session to settle, then redirects
      to the role home (the router decides the target).
    - Sign-up creates identity and profile, signs out again and sends the user
      to the login page.
    - Password reset for an unknown email shows "not registered" unless
      ``PASSWORD_RESET_CONCEAL_UNKNOWN`` is enabled.
    - Logout ends the server-side session and clears the cookie.
"""
from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Request

from identity_access.domain import Authenticated, Unauthenticated
from identity_access.errors import AuthErrorKind, IdentityError, user_message
from identity_access.routing import DASHBOARD_PATH, LOGIN_PATH, role_home

from ..auth_utils import SESSION_COOKIE_NAME, clear_session_cookie
from ..components.pages import LoginPage, SignupPage
from .common import ensure_session, form_text, page, redirect, reject_cross_origin, settings_of, user_of

auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("farsi_hub.web.auth")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_NAME_LENGTH = 2
MIN_SECRET_LENGTH = 6

MSG_NAME_SHORT = "يجب أن يتكون الاسم من حرفين على الأقل."
MSG_EMAIL_INVALID = "البريد الإلكتروني غير صالح."
MSG_SECRET_SHORT = "يجب أن تتكون كلمة المرور من 6 أحرف على الأقل."
MSG_SECRET_REQUIRED = "كلمة المرور مطلوبة."
MSG_REGISTERED = "تم إنشاء الحساب بنجاح. يمكنك الآن تسجيل الدخول."
MSG_RESET_SENT = "تم إرسال البريد الإلكتروني بنجاح. يرجى التحقق من صندوق الوارد الخاص بك."
MSG_DELETED = "تم حذف حسابك بنجاح."

_LOGIN_NOTICES = {"registered": MSG_REGISTERED, "deleted": MSG_DELETED}


def _valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def _login_page(request: Request, *, status_code: int = 200, **kwargs):
    return page(request, "تسجيل الدخول", LoginPage(**kwargs).render(), status_code=status_code)


@auth_router.get("/login")
async def login_form(request: Request):
    notice = _LOGIN_NOTICES.get(request.query_params.get("status", ""))
    return _login_page(request, notice=notice)


@auth_router.post("/login")
async def login_submit(request: Request):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    form = await request.form()
    email = form_text(form, "email").lower()
    secret = str(form.get("password") or "")

    field_errors = {}
    if not _valid_email(email):
        field_errors["email"] = MSG_EMAIL_INVALID
    if not secret:
        field_errors["password"] = MSG_SECRET_REQUIRED
    if field_errors:
        return _login_page(request, status_code=400, email=email, field_errors=field_errors)

    try:
        session = await ensure_session(request)
        await session.sign_in(email, secret)
    except IdentityError as err:
        logger.info("Login failed: %s", err.code)
        return _login_page(request, status_code=400, email=email, error=user_message(err.kind, "sign_in"))

    await session.wait_until_settled(settings_of(request).resolve_timeout_seconds)
    state = session.state
    if isinstance(state, Authenticated):
        return redirect(request, role_home(state.user))
    if isinstance(state, Unauthenticated):
        # Identity accepted, but the session did not resolve (missing profile,
        # policy rejection, backend failure).
        try:
            kind = AuthErrorKind(state.reason)
        except ValueError:
            kind = AuthErrorKind.NETWORK_OR_UNKNOWN
        return _login_page(request, status_code=400, email=email, error=user_message(kind, "sign_in"))
    # Still resolving: the dashboard suspends until the router can decide.
    return redirect(request, DASHBOARD_PATH)


@auth_router.get("/signup")
async def signup_form(request: Request):
    return page(request, "إنشاء حساب", SignupPage().render())


@auth_router.post("/signup")
async def signup_submit(request: Request):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    form = await request.form()
    name = form_text(form, "name")
    email = form_text(form, "email").lower()
    secret = str(form.get("password") or "")

    field_errors = {}
    if len(name) < MIN_NAME_LENGTH:
        field_errors["name"] = MSG_NAME_SHORT
    if not _valid_email(email):
        field_errors["email"] = MSG_EMAIL_INVALID
    if len(secret) < MIN_SECRET_LENGTH:
        field_errors["password"] = MSG_SECRET_SHORT
    if field_errors:
        content = SignupPage(name=name, email=email, field_errors=field_errors).render()
        return page(request, "إنشاء حساب", content, status_code=400)

    try:
        session = await ensure_session(request)
        await session.register(name, email, secret)
    except IdentityError as err:
        logger.info("Registration failed: %s", err.code)
        content = SignupPage(name=name, email=email, error=user_message(err.kind, "sign_up")).render()
        return page(request, "إنشاء حساب", content, status_code=400)
    return redirect(request, f"{LOGIN_PATH}?status=registered")


@auth_router.post("/forgot")
async def forgot_submit(request: Request):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    form = await request.form()
    email = form_text(form, "reset_email").lower()
    if not _valid_email(email):
        return _login_page(request, status_code=400, reset_error=MSG_EMAIL_INVALID)

    try:
        session = await ensure_session(request)
        await session.request_password_reset(email)
    except IdentityError as err:
        conceal = settings_of(request).conceal_unknown_reset
        if not (err.kind is AuthErrorKind.UNKNOWN_ACCOUNT and conceal):
            logger.info("Password reset failed: %s", err.code)
            return _login_page(request, status_code=400, reset_error=user_message(err.kind, "password_reset"))
    return _login_page(request, notice=MSG_RESET_SENT)


@auth_router.post("/logout")
async def logout(request: Request):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    session = getattr(request.state, "session", None)
    if session is not None:
        try:
            await session.sign_out()
        except IdentityError as err:
            # The server-side session is discarded below either way.
            logger.warning("Sign-out failed: %s", err.code)
    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if sid:
        request.app.state.registry.delete(sid)
    response = redirect(request, LOGIN_PATH)
    clear_session_cookie(response, environment=settings_of(request).environment)
    return response


@auth_router.get("/dashboard")
async def dashboard(request: Request):
    """Role dispatch; normally answered by the session gate before this runs."""
    user = user_of(request)
    return redirect(request, role_home(user) if user else LOGIN_PATH, status_code=302)


__all__ = ["auth_router"]
