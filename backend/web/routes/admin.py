"""
Admin routes: student list, approval toggle and a live row stream.

Why:
    Admins approve newly registered students. The list page renders the
    current snapshot server-side; the browser then opens
    ``/admin/students/events`` (server-sent events) and swaps in fresh rows
    whenever the ``users`` query changes, e.g. after another admin's approval.

Security:
    The session gate restricts ``/admin/*`` to admins. Reads and writes still
    run under the admin's own credentials, so the backend's access policy has
    the final word. Rejections are published on the permission-error channel
    and shown as a notice; the page never silently shows stale data.
"""
from __future__ import annotations

from typing import AsyncIterator, Optional
import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from documents.ports import DocumentStore, DocumentStoreError, PermissionDeniedError
from documents.signals import PermissionDeniedEvent, PermissionErrorChannel
from documents.subscriptions import first_snapshot, watch
from identity_access.directory import set_approval, student_rows, students_query
from identity_access.errors import AuthErrorKind, IdentityError, user_message

from ..components.pages import StudentRows, StudentsPage
from .common import NO_STORE, error_status, form_text, page, redirect, reject_cross_origin, session_of

admin_router = APIRouter(tags=["Admin"])
logger = logging.getLogger("farsi_hub.web.admin")

STUDENTS_PATH = "/admin/students"
MSG_APPROVED = "تم قبول الطالب بنجاح."
MSG_SUSPENDED = "تم تعليق حساب الطالب."
MSG_LOAD_FAILED = "فشل تحميل الطلاب"

_NOTICES = {"approved": MSG_APPROVED, "suspended": MSG_SUSPENDED}


def _channel(request: Request) -> PermissionErrorChannel:
    return request.app.state.channel


def _report_denied(channel: Optional[PermissionErrorChannel], err: DocumentStoreError) -> None:
    if channel is not None and isinstance(err, PermissionDeniedError):
        channel.emit(PermissionDeniedEvent(path=err.path or "users", operation=err.operation or "list"))


async def _load_rows(request: Request):
    """Return (rows, error message, status code) for the current student list."""
    session = session_of(request)
    timeout = request.app.state.settings.resolve_timeout_seconds or None
    try:
        snapshot = await first_snapshot(session.store, students_query(), timeout=timeout)
    except DocumentStoreError as err:
        _report_denied(_channel(request), err)
        logger.warning("Student list failed: %s", err.code)
        if isinstance(err, PermissionDeniedError):
            return [], user_message(AuthErrorKind.PERMISSION_DENIED, "load"), 403
        return [], MSG_LOAD_FAILED, 503
    except asyncio.TimeoutError:
        logger.warning("Student list timed out")
        return [], MSG_LOAD_FAILED, 503
    return student_rows(snapshot), None, 200


@admin_router.get(STUDENTS_PATH)
async def students_page(request: Request):
    rows, error, status_code = await _load_rows(request)
    notice = _NOTICES.get(request.query_params.get("status", ""))
    content = StudentsPage(rows, notice=notice, error=error).render()
    return page(request, "إدارة الطلاب", content, status_code=status_code)


@admin_router.post(STUDENTS_PATH + "/{uid}/approval")
async def update_approval(request: Request, uid: str):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    form = await request.form()
    approved = form_text(form, "approved").lower() == "true"
    try:
        await set_approval(session_of(request).store, uid, approved, _channel(request))
    except IdentityError as err:
        logger.warning("Approval update failed: %s", err.code)
        rows, _, _ = await _load_rows(request)
        content = StudentsPage(rows, error=user_message(err.kind, "approval")).render()
        return page(request, "إدارة الطلاب", content, status_code=error_status(err))
    return redirect(request, f"{STUDENTS_PATH}?status={'approved' if approved else 'suspended'}")


def sse_message(event: str, data: str) -> str:
    lines = data.splitlines() or [""]
    body = "".join(f"data: {line}\n" for line in lines)
    return f"event: {event}\n{body}\n"


async def student_row_events(
    store: DocumentStore, channel: Optional[PermissionErrorChannel] = None
) -> AsyncIterator[str]:
    """Yield one ``rows`` message per snapshot; ``denied`` ends the stream.

    The subscription is released when the consumer stops iterating (client
    disconnect cancels the generator).
    """
    async with watch(store, students_query()) as stream:
        async for item in stream:
            if isinstance(item, DocumentStoreError):
                _report_denied(channel, item)
                logger.warning("Student stream ended: %s", item.code)
                yield sse_message("denied", user_message(AuthErrorKind.PERMISSION_DENIED, "load")
                                  if isinstance(item, PermissionDeniedError) else MSG_LOAD_FAILED)
                return
            yield sse_message("rows", StudentRows(student_rows(item)).render())


@admin_router.get(STUDENTS_PATH + "/events")
async def student_events(request: Request):
    headers = {**NO_STORE, "X-Accel-Buffering": "no"}
    return StreamingResponse(
        student_row_events(session_of(request).store, _channel(request)),
        media_type="text/event-stream",
        headers=headers,
    )


__all__ = ["admin_router", "sse_message", "student_row_events"]
