"""
Admin content routes: subjects, lectures and quiz results.

Why:
    Admins maintain the catalog students browse. Lists are rendered from the
    first snapshot of the same queries the student pages use; every form posts
    back and redirects with a ``status`` notice on success, or re-renders the
    form with field errors on failure.

Security:
    The session gate restricts ``/admin/*`` to admins. Writes still run under
    the admin's own credentials; a rejection is published on the
    permission-error channel by the learning helpers and rendered here as a
    notice.
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional
import asyncio
import logging

from fastapi import APIRouter, Request

from documents.ports import Document, DocumentStoreError, PermissionDeniedError, Query
from documents.signals import PermissionDeniedEvent
from documents.subscriptions import first_snapshot
from identity_access.errors import AuthErrorKind, IdentityError, user_message
from learning.authoring import (
    InvalidDraft,
    create_lecture,
    create_subject,
    delete_lecture,
    delete_subject,
    lecture_draft,
    questions_text,
    subject_draft,
    update_lecture,
    update_subject,
)
from learning.catalog import (
    lecture_items,
    lecture_path,
    lectures_query,
    subject_item,
    subject_items,
    subject_path,
    subjects_query,
)
from learning.quizzes import submission_rows, submissions_query

from ..components.pages import (
    ContentErrorPage,
    EditPage,
    LectureForm,
    LecturesAdminPage,
    SubjectForm,
    SubjectsAdminPage,
    SubmissionsPage,
)
from .common import error_status, form_text, page, redirect, reject_cross_origin, session_of

content_router = APIRouter(tags=["Content"])
logger = logging.getLogger("farsi_hub.web.content")

SUBJECTS_PATH = "/admin/subjects"
QUIZ_RESULTS_PATH = "/admin/quizzes"
MSG_LOAD_FAILED = "فشل تحميل البيانات"
MSG_SUBJECT_NOT_FOUND = "المادة غير موجودة"
MSG_LECTURE_NOT_FOUND = "المحاضرة غير موجودة"

_NOTICES = {
    "subject_added": "تمت إضافة المادة",
    "subject_updated": "تم تحديث المادة",
    "subject_deleted": "تم حذف المادة",
    "lecture_added": "تمت إضافة المحاضرة",
    "lecture_updated": "تم تحديث المحاضرة",
    "lecture_deleted": "تم حذف المحاضرة",
}

_SUBJECT_FIELDS = ("name", "year", "semester")
_LECTURE_FIELDS = (
    "title", "description", "pdfUrl", "youtubeVideoUrl", "summary", "hasQuiz", "quizTitle", "quizQuestions",
)


def _timeout(request: Request) -> Optional[float]:
    return request.app.state.settings.resolve_timeout_seconds or None


def _notice(request: Request) -> Optional[str]:
    return _NOTICES.get(request.query_params.get("status", ""))


def _read_failure(request: Request, err: Exception) -> tuple[str, int]:
    if isinstance(err, PermissionDeniedError):
        request.app.state.channel.emit(PermissionDeniedEvent(path=err.path, operation=err.operation))
        return user_message(AuthErrorKind.PERMISSION_DENIED, "load"), 403
    logger.warning("Content read failed: %s", err.__class__.__name__)
    return MSG_LOAD_FAILED, 503


async def _snapshot(request: Request, query: Query):
    """Return (snapshot, error message, status code)."""
    try:
        snapshot = await first_snapshot(session_of(request).store, query, timeout=_timeout(request))
    except (DocumentStoreError, asyncio.TimeoutError) as err:
        error, status_code = _read_failure(request, err)
        return (), error, status_code
    return snapshot, None, 200


async def _document(request: Request, path: str) -> Optional[Document]:
    """Fetch one document; raises ``DocumentStoreError`` for the caller's read handling."""
    data = await session_of(request).store.get(path)
    if data is None:
        return None
    collection, _, doc_id = path.rpartition("/")
    return Document.build(collection, doc_id, data)


def _write_failed(err: IdentityError, action: str) -> tuple[str, int]:
    logger.warning("Content write failed (%s): %s", action, err.code)
    if err.code == "not_found":
        return MSG_LECTURE_NOT_FOUND if action.startswith("lecture") else MSG_SUBJECT_NOT_FOUND, 404
    return user_message(err.kind, action), error_status(err)


def _values(form: Mapping[str, Any], names) -> Dict[str, str]:
    return {name: form_text(form, name) for name in names}


def _error_page(request: Request, message: str, status_code: int = 404):
    return page(request, "المواد الدراسية", ContentErrorPage(message).render(), status_code=status_code)


# --- subjects --------------------------------------------------------------------


async def _subjects_page(request: Request, *, form: Optional[SubjectForm] = None,
                         error: Optional[str] = None, status_code: Optional[int] = None):
    snapshot, load_error, load_status = await _snapshot(request, subjects_query())
    content = SubjectsAdminPage(
        subject_items(snapshot), form=form, notice=_notice(request), error=error or load_error
    ).render()
    return page(request, "إدارة المواد الدراسية", content, status_code=status_code or load_status)


def _subject_edit_page(request: Request, subject_id: str, values: Mapping[str, str], *,
                       errors: Optional[Mapping[str, str]] = None, error: Optional[str] = None,
                       status_code: int = 200):
    form = SubjectForm(f"{SUBJECTS_PATH}/{subject_id}", values=values, errors=errors, submit_label="حفظ التغييرات")
    content = EditPage("تعديل المادة", form, SUBJECTS_PATH, error=error).render()
    return page(request, "تعديل المادة", content, status_code=status_code)


@content_router.get(SUBJECTS_PATH)
async def subjects_page(request: Request):
    return await _subjects_page(request)


@content_router.post(SUBJECTS_PATH)
async def add_subject(request: Request):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    values = _values(await request.form(), _SUBJECT_FIELDS)
    try:
        draft = subject_draft(values["name"], values["year"], values["semester"])
        await create_subject(session_of(request).store, draft, request.app.state.channel)
    except InvalidDraft as invalid:
        form = SubjectForm(SUBJECTS_PATH, values=values, errors=invalid.errors)
        return await _subjects_page(request, form=form, status_code=400)
    except IdentityError as err:
        message, status_code = _write_failed(err, "subject_save")
        form = SubjectForm(SUBJECTS_PATH, values=values)
        return await _subjects_page(request, form=form, error=message, status_code=status_code)
    return redirect(request, f"{SUBJECTS_PATH}?status=subject_added")


@content_router.get(SUBJECTS_PATH + "/{subject_id}/edit")
async def edit_subject_form(request: Request, subject_id: str):
    try:
        doc = await _document(request, subject_path(subject_id))
    except DocumentStoreError as err:
        return _error_page(request, *_read_failure(request, err))
    if doc is None:
        return _error_page(request, MSG_SUBJECT_NOT_FOUND)
    values = {name: str(doc.get(name) or "") for name in _SUBJECT_FIELDS}
    return _subject_edit_page(request, subject_id, values)


@content_router.post(SUBJECTS_PATH + "/{subject_id}")
async def edit_subject(request: Request, subject_id: str):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    values = _values(await request.form(), _SUBJECT_FIELDS)
    try:
        draft = subject_draft(values["name"], values["year"], values["semester"])
        await update_subject(session_of(request).store, subject_id, draft, request.app.state.channel)
    except InvalidDraft as invalid:
        return _subject_edit_page(request, subject_id, values, errors=invalid.errors, status_code=400)
    except IdentityError as err:
        message, status_code = _write_failed(err, "subject_save")
        return _subject_edit_page(request, subject_id, values, error=message, status_code=status_code)
    return redirect(request, f"{SUBJECTS_PATH}?status=subject_updated")


@content_router.post(SUBJECTS_PATH + "/{subject_id}/delete")
async def remove_subject(request: Request, subject_id: str):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    try:
        await delete_subject(
            session_of(request).store, subject_id, request.app.state.channel, timeout=_timeout(request)
        )
    except IdentityError as err:
        message, status_code = _write_failed(err, "subject_delete")
        return await _subjects_page(request, error=message, status_code=status_code)
    return redirect(request, f"{SUBJECTS_PATH}?status=subject_deleted")


# --- lectures --------------------------------------------------------------------


def _lectures_path(subject_id: str) -> str:
    return f"{SUBJECTS_PATH}/{subject_id}/lectures"


def _draft_from(values: Mapping[str, str]):
    return lecture_draft(
        title=values["title"],
        description=values["description"],
        pdf_url=values["pdfUrl"],
        summary=values["summary"],
        youtube_url=values["youtubeVideoUrl"],
        has_quiz=values["hasQuiz"] == "yes",
        quiz_title=values["quizTitle"],
        quiz_questions=values["quizQuestions"],
    )


def _stored_lecture_values(doc: Document) -> Dict[str, str]:
    values = {name: str(doc.get(name) or "") for name in ("title", "description", "pdfUrl", "youtubeVideoUrl", "summary")}
    quiz = doc.get("quiz")
    if isinstance(quiz, Mapping):
        values.update(
            hasQuiz="yes",
            quizTitle=str(quiz.get("title") or ""),
            quizQuestions=questions_text(quiz.get("questions")),
        )
    return values


async def _lectures_page(request: Request, subject_id: str, *, form: Optional[LectureForm] = None,
                         error: Optional[str] = None, status_code: Optional[int] = None):
    try:
        doc = await _document(request, subject_path(subject_id))
    except DocumentStoreError as err:
        return _error_page(request, *_read_failure(request, err))
    if doc is None:
        return _error_page(request, MSG_SUBJECT_NOT_FOUND)
    subject = subject_item(doc)
    snapshot, load_error, load_status = await _snapshot(request, lectures_query(subject_id))
    content = LecturesAdminPage(
        subject, lecture_items(snapshot), form=form, notice=_notice(request), error=error or load_error
    ).render()
    return page(request, subject.name, content, status_code=status_code or load_status)


def _lecture_edit_page(request: Request, subject_id: str, lecture_id: str, values: Mapping[str, str], *,
                       errors: Optional[Mapping[str, str]] = None, error: Optional[str] = None,
                       status_code: int = 200):
    action = f"{_lectures_path(subject_id)}/{lecture_id}"
    form = LectureForm(action, values=values, errors=errors, submit_label="حفظ التغييرات")
    content = EditPage("تعديل المحاضرة", form, _lectures_path(subject_id), error=error).render()
    return page(request, "تعديل المحاضرة", content, status_code=status_code)


@content_router.get(SUBJECTS_PATH + "/{subject_id}/lectures")
async def lectures_page(request: Request, subject_id: str):
    return await _lectures_page(request, subject_id)


@content_router.post(SUBJECTS_PATH + "/{subject_id}/lectures")
async def add_lecture(request: Request, subject_id: str):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    values = _values(await request.form(), _LECTURE_FIELDS)
    try:
        parent = await _document(request, subject_path(subject_id))
    except DocumentStoreError as err:
        return _error_page(request, *_read_failure(request, err))
    if parent is None:
        return _error_page(request, MSG_SUBJECT_NOT_FOUND)
    action = _lectures_path(subject_id)
    try:
        draft = _draft_from(values)
        await create_lecture(session_of(request).store, subject_id, draft, request.app.state.channel)
    except InvalidDraft as invalid:
        form = LectureForm(action, values=values, errors=invalid.errors)
        return await _lectures_page(request, subject_id, form=form, status_code=400)
    except IdentityError as err:
        message, status_code = _write_failed(err, "lecture_save")
        form = LectureForm(action, values=values)
        return await _lectures_page(request, subject_id, form=form, error=message, status_code=status_code)
    return redirect(request, f"{action}?status=lecture_added")


@content_router.get(SUBJECTS_PATH + "/{subject_id}/lectures/{lecture_id}/edit")
async def edit_lecture_form(request: Request, subject_id: str, lecture_id: str):
    try:
        doc = await _document(request, lecture_path(subject_id, lecture_id))
    except DocumentStoreError as err:
        return _error_page(request, *_read_failure(request, err))
    if doc is None:
        return _error_page(request, MSG_LECTURE_NOT_FOUND)
    return _lecture_edit_page(request, subject_id, lecture_id, _stored_lecture_values(doc))


@content_router.post(SUBJECTS_PATH + "/{subject_id}/lectures/{lecture_id}")
async def edit_lecture(request: Request, subject_id: str, lecture_id: str):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    values = _values(await request.form(), _LECTURE_FIELDS)
    try:
        draft = _draft_from(values)
        await update_lecture(session_of(request).store, subject_id, lecture_id, draft, request.app.state.channel)
    except InvalidDraft as invalid:
        return _lecture_edit_page(request, subject_id, lecture_id, values, errors=invalid.errors, status_code=400)
    except IdentityError as err:
        message, status_code = _write_failed(err, "lecture_update")
        return _lecture_edit_page(request, subject_id, lecture_id, values, error=message, status_code=status_code)
    return redirect(request, f"{_lectures_path(subject_id)}?status=lecture_updated")


@content_router.post(SUBJECTS_PATH + "/{subject_id}/lectures/{lecture_id}/delete")
async def remove_lecture(request: Request, subject_id: str, lecture_id: str):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    try:
        await delete_lecture(session_of(request).store, subject_id, lecture_id, request.app.state.channel)
    except IdentityError as err:
        message, status_code = _write_failed(err, "lecture_delete")
        return await _lectures_page(request, subject_id, error=message, status_code=status_code)
    return redirect(request, f"{_lectures_path(subject_id)}?status=lecture_deleted")


# --- quiz results ------------------------------------------------------------------


@content_router.get(QUIZ_RESULTS_PATH)
async def quiz_results(request: Request):
    snapshot, error, status_code = await _snapshot(request, submissions_query())
    content = SubmissionsPage(submission_rows(snapshot), error=error).render()
    return page(request, "نتائج الاختبارات", content, status_code=status_code)


__all__ = ["content_router"]
