"""
Lecture catalog and quiz routes.

Why:
    Students browse subjects of their academic year and the lectures inside a
    subject. Admins see every subject. The data lives in the document store
    (``subjects`` and nested ``subjects/{id}/lectures``). A lecture with a
    quiz links to ``/quizzes/{subject}/{lecture}``; answers are scored on the
    server and recorded in ``quizSubmissions``.

Permissions:
    The session gate requires a signed-in user with a completed onboarding.
    Whether unapproved students may read lecture documents is decided by the
    backend's access policy; a rejection is rendered as a notice and published
    on the permission-error channel.
"""
from __future__ import annotations

from typing import Optional
import asyncio
import logging

from fastapi import APIRouter, Request

from documents.ports import Document, DocumentStoreError, PermissionDeniedError
from documents.signals import PermissionDeniedEvent
from documents.subscriptions import first_snapshot
from identity_access.errors import AuthErrorKind, IdentityError, user_message
from learning.catalog import (
    lecture_items,
    lecture_path,
    lectures_query,
    subject_item,
    subject_items,
    subject_path,
    subjects_query,
)
from learning.quizzes import Quiz, collect_answers, quiz_of, score_answers, submit_quiz

from ..components.pages import LecturesPage, QuizPage, QuizResultPage, SubjectsPage
from .common import error_status, page, reject_cross_origin, session_of

learning_router = APIRouter(tags=["Learning"])
logger = logging.getLogger("farsi_hub.web.learning")

MSG_LOAD_FAILED = "فشل تحميل البيانات"
MSG_SUBJECT_NOT_FOUND = "المادة غير موجودة."
MSG_QUIZ_NOT_FOUND = "الاختبار غير موجود لهذه المحاضرة"


def _failure(request: Request, err: Exception) -> tuple[str, int]:
    if isinstance(err, PermissionDeniedError):
        request.app.state.channel.emit(PermissionDeniedEvent(path=err.path, operation=err.operation))
        return user_message(AuthErrorKind.PERMISSION_DENIED, "load"), 403
    logger.warning("Catalog read failed: %s", err.__class__.__name__)
    return MSG_LOAD_FAILED, 503


@learning_router.get("/lectures")
async def subjects(request: Request):
    session = session_of(request)
    user = session.user
    year = user.year if user.is_student else None
    timeout = request.app.state.settings.resolve_timeout_seconds or None
    try:
        snapshot = await first_snapshot(session.store, subjects_query(year), timeout=timeout)
    except (DocumentStoreError, asyncio.TimeoutError) as err:
        error, status_code = _failure(request, err)
        return page(request, "المحاضرات", SubjectsPage([], year=year, error=error).render(), status_code=status_code)
    return page(request, "المحاضرات", SubjectsPage(subject_items(snapshot), year=year).render())


@learning_router.get("/lectures/{subject_id}")
async def lectures(request: Request, subject_id: str):
    session = session_of(request)
    path = subject_path(subject_id)
    timeout = request.app.state.settings.resolve_timeout_seconds or None
    try:
        data = await session.store.get(path)
        if data is None:
            content = LecturesPage(None, [], error=MSG_SUBJECT_NOT_FOUND).render()
            return page(request, "المحاضرات", content, status_code=404)
        subject = subject_item(Document(id=subject_id, path=path, data=data))
        user = session.user
        if user.is_student and subject.year and subject.year != user.year:
            # Other years' subjects are not listed; do not serve them by URL either.
            content = LecturesPage(None, [], error=MSG_SUBJECT_NOT_FOUND).render()
            return page(request, "المحاضرات", content, status_code=404)
        snapshot = await first_snapshot(session.store, lectures_query(subject_id), timeout=timeout)
    except (DocumentStoreError, asyncio.TimeoutError) as err:
        error, status_code = _failure(request, err)
        return page(request, "المحاضرات", LecturesPage(None, [], error=error).render(), status_code=status_code)
    return page(request, subject.name, LecturesPage(subject, lecture_items(snapshot)).render())


async def _subject_quiz(request: Request, subject_id: str, lecture_id: str) -> tuple[Optional[Quiz], Optional[str], int]:
    """Return (quiz, error message, status code) for one lecture's quiz."""
    session = session_of(request)
    try:
        subject = await session.store.get(subject_path(subject_id))
        user = session.user
        if subject is None or (user.is_student and subject.get("year") and subject.get("year") != user.year):
            return None, MSG_SUBJECT_NOT_FOUND, 404
        lecture = await session.store.get(lecture_path(subject_id, lecture_id))
    except DocumentStoreError as err:
        error, status_code = _failure(request, err)
        return None, error, status_code
    quiz = quiz_of(lecture) if lecture is not None else None
    if quiz is None:
        return None, MSG_QUIZ_NOT_FOUND, 404
    return quiz, None, 200


@learning_router.get("/quizzes/{subject_id}/{lecture_id}")
async def quiz_form(request: Request, subject_id: str, lecture_id: str):
    quiz, error, status_code = await _subject_quiz(request, subject_id, lecture_id)
    if quiz is None:
        return page(request, "الاختبار", LecturesPage(None, [], error=error).render(), status_code=status_code)
    return page(request, quiz.title or "الاختبار", QuizPage(request.url.path, quiz).render())


@learning_router.post("/quizzes/{subject_id}/{lecture_id}")
async def quiz_submit(request: Request, subject_id: str, lecture_id: str):
    rejected = reject_cross_origin(request)
    if rejected:
        return rejected
    quiz, error, status_code = await _subject_quiz(request, subject_id, lecture_id)
    if quiz is None:
        return page(request, "الاختبار", LecturesPage(None, [], error=error).render(), status_code=status_code)
    form = await request.form()
    try:
        answers = collect_answers(quiz, form)
    except ValueError as invalid:
        partial = {i: str(form.get(f"q{i}") or "") for i in range(len(quiz.questions))}
        content = QuizPage(request.url.path, quiz, answers=partial, error=str(invalid)).render()
        return page(request, quiz.title or "الاختبار", content, status_code=400)

    session = session_of(request)
    back = f"/lectures/{subject_id}"
    try:
        result = await submit_quiz(
            session.store, session.user, subject_id, lecture_id, quiz, answers, request.app.state.channel
        )
    except IdentityError as err:
        logger.warning("Quiz submission failed: %s", err.code)
        # The score is still shown; only recording it failed.
        content = QuizResultPage(score_answers(quiz, answers), back, error=user_message(err.kind, "quiz_submit")).render()
        return page(request, "نتيجة الاختبار", content, status_code=error_status(err))
    return page(request, "نتيجة الاختبار", QuizResultPage(result, back).render())


__all__ = ["learning_router"]
