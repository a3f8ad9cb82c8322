"""
Account routes: student onboarding, profile pages, avatar change, deletion.

Why:
    These are the explicit profile mutations of a signed-in user. Each one
    goes through the session controller, which writes the profile document
    under the user's own credentials and re-fetches the session afterwards.

Security:
    The session gate has already enforced sign-in, role and onboarding rules
    for every path here. Avatars are restricted to the offered choices so a
    crafted form cannot store an arbitrary URL.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from identity_access.domain import ACADEMIC_YEARS, AppUser
from identity_access.errors import IdentityError, user_message
from identity_access.routing import ADMIN_HOME, LOGIN_PATH, STUDENT_HOME, role_home

from ..auth_utils import SESSION_COOKIE_NAME, clear_session_cookie
from ..components.pages import AVATAR_OPTIONS, OnboardingPage, ProfilePage
from .common import error_status, form_text, page, redirect, reject_cross_origin, session_of, settings_of

account_router = APIRouter(tags=["Account"])
logger = logging.getLogger("farsi_hub.web.account")

MSG_INCOMPLETE = "الرجاء إكمال جميع الخيارات."
MSG_AVATAR_UPDATED = "تم تحديث الصورة بنجاح"
MSG_CONFIRM_DELETE = "يرجى تأكيد حذف الحساب."

_AVATAR_URLS = {url for url, _ in AVATAR_OPTIONS}


def _profile_home(user: AppUser) -> str:
    return ADMIN_HOME if user.is_admin else STUDENT_HOME


def _profile_page(request: Request, user: AppUser, *, status_code: int = 200, **kwargs):
    return page(request, "الملف الشخصي", ProfilePage(user, **kwargs).render(), status_code=status_code)


@account_router.get("/student/onboarding")
async def onboarding_form(request: Request):
    user = session_of(request).user
    return page(request, "إكمال البيانات", OnboardingPage(user).render())


@account_router.post("/student/onboarding")
async def onboarding_submit(request: Request):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    session = session_of(request)
    user = session.user
    form = await request.form()
    year = form_text(form, "year")
    avatar = form_text(form, "avatar")
    if year not in ACADEMIC_YEARS or avatar not in _AVATAR_URLS:
        content = OnboardingPage(user, error=MSG_INCOMPLETE, year=year or None, avatar=avatar or None).render()
        return page(request, "إكمال البيانات", content, status_code=400)

    try:
        await session.complete_onboarding(year, avatar)
    except IdentityError as err:
        logger.warning("Onboarding failed: %s", err.code)
        content = OnboardingPage(user, error=user_message(err.kind, "onboarding"), year=year, avatar=avatar).render()
        return page(request, "إكمال البيانات", content, status_code=error_status(err))

    fresh = session.user
    return redirect(request, role_home(fresh) if fresh else LOGIN_PATH)


def _profile_view(request: Request):
    user = session_of(request).user
    notice = MSG_AVATAR_UPDATED if request.query_params.get("status") == "avatar" else None
    return _profile_page(request, user, notice=notice)


@account_router.get("/student/profile")
async def student_profile(request: Request):
    return _profile_view(request)


@account_router.get("/admin/profile")
async def admin_profile(request: Request):
    return _profile_view(request)


@account_router.post("/profile/avatar")
async def change_avatar(request: Request):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    session = session_of(request)
    user = session.user
    form = await request.form()
    avatar = form_text(form, "avatar")
    if avatar not in _AVATAR_URLS:
        return _profile_page(request, user, status_code=400, error=MSG_INCOMPLETE)

    try:
        await session.update_profile_picture(avatar)
    except IdentityError as err:
        logger.warning("Avatar update failed: %s", err.code)
        status_code = error_status(err)
        return _profile_page(request, user, status_code=status_code, error=user_message(err.kind, "avatar"))

    fresh = session.user
    if fresh is None:
        return redirect(request, LOGIN_PATH)
    return redirect(request, f"{_profile_home(fresh)}?status=avatar")


@account_router.post("/profile/delete")
async def delete_account(request: Request):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    session = session_of(request)
    user = session.user
    form = await request.form()
    if form_text(form, "confirm") != "yes":
        return _profile_page(request, user, status_code=400, error=MSG_CONFIRM_DELETE)

    try:
        await session.delete_account()
    except IdentityError as err:
        logger.warning("Account deletion failed: %s", err.code)
        if session.user is None:
            # Profile is gone but the identity remained; the session has ended.
            return redirect(request, LOGIN_PATH)
        status_code = error_status(err)
        return _profile_page(request, user, status_code=status_code, error=user_message(err.kind, "delete_account"))

    sid = request.cookies.get(SESSION_COOKIE_NAME)
    if sid:
        request.app.state.registry.delete(sid)
    response = redirect(request, f"{LOGIN_PATH}?status=deleted")
    clear_session_cookie(response, environment=settings_of(request).environment)
    return response


__all__ = ["account_router"]
