"""
Subject and lecture authoring for administrators.

Why:
    Admins maintain the catalog students browse: subjects per academic year
    and semester, and the lectures (PDF, optional video, optional quiz)
    nested below each subject. Form values are validated into drafts here so
    the web adapter only renders errors and calls the write helpers.

Behavior:
    - New documents get a random id and a ``createdAt`` server timestamp.
    - Editing a lecture removes an emptied video link and a switched-off quiz
      with ``DELETE_FIELD``; students never see an empty quiz object.
    - Deleting a subject deletes its lectures first, so no lecture is left
      without a parent.

Security:
    Writes run through the admin's session-bound store. A rejected write is
    published on the permission-error channel with the attempted payload and
    raised as ``IdentityError`` for the route to render, like
    ``identity_access.directory.set_approval``.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse
import re
import uuid

from documents.ports import DELETE_FIELD, SERVER_TIMESTAMP, DocumentStore
from documents.signals import PermissionDeniedEvent, PermissionErrorChannel
from documents.subscriptions import first_snapshot
from identity_access.domain import ACADEMIC_YEARS
from identity_access.errors import AuthErrorKind, map_provider_error

from .catalog import lecture_path, lectures_collection, lectures_query, subject_path

SEMESTERS = ("first", "second")
SEMESTER_LABELS = {"first": "الفصل الدراسي الأول", "second": "الفصل الدراسي الثاني"}

MSG_SUBJECT_NAME = "يجب أن يتكون اسم المادة من 3 أحرف على الأقل."
MSG_YEAR = "الرجاء تحديد الفرقة الدراسية."
MSG_SEMESTER = "الرجاء تحديد الفصل الدراسي."
MSG_TITLE = "يجب أن يتكون العنوان من 3 أحرف على الأقل."
MSG_DESCRIPTION = "يجب أن يتكون الوصف من 10 أحرف على الأقل."
MSG_URL = "الرجاء إدخال رابط صالح."
MSG_QUIZ = "إذا تم تفعيل الاختبار، يجب توفير عنوان للاختبار وسؤال واحد على الأقل."
MSG_QUESTION_TEXT = "يجب أن يكون السؤال 5 أحرف على الأقل."
MSG_OPTIONS = "يجب أن يكون هناك خياران على الأقل."
MSG_CORRECT_ANSWER = "الرجاء تحديد الإجابة الصحيحة."

# Questions are separated by a blank line. The first line is the question;
# option lines follow and the correct one starts with "*". A question
# without options is an essay question.
_BLOCK_SPLIT = re.compile(r"\n\s*\n")


class InvalidDraft(ValueError):
    """Form values failed validation; ``errors`` maps field name to message."""

    def __init__(self, errors: Mapping[str, str]):
        super().__init__(", ".join(sorted(errors)))
        self.errors = dict(errors)


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


def is_web_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


@dataclass(frozen=True)
class SubjectDraft:
    name: str
    year: str
    semester: str

    def fields(self) -> Dict[str, Any]:
        return {"name": self.name, "year": self.year, "semester": self.semester}


def subject_draft(name: str, year: str, semester: str) -> SubjectDraft:
    errors = {}
    if len(name.strip()) < 3:
        errors["name"] = MSG_SUBJECT_NAME
    if year not in ACADEMIC_YEARS:
        errors["year"] = MSG_YEAR
    if semester not in SEMESTERS:
        errors["semester"] = MSG_SEMESTER
    if errors:
        raise InvalidDraft(errors)
    return SubjectDraft(name=name.strip(), year=year, semester=semester)


def parse_questions(text: str) -> List[Dict[str, Any]]:
    """Parse the quiz textarea into question dicts (validated by ``lecture_draft``)."""
    questions = []
    for block in _BLOCK_SPLIT.split(text.replace("\r\n", "\n").strip()):
        lines = [line.strip() for line in block.splitlines() if line.strip()]
        if not lines:
            continue
        question_text, option_lines = lines[0], lines[1:]
        if not option_lines:
            questions.append({"type": "essay", "text": question_text})
            continue
        options = [line.lstrip("*").strip() for line in option_lines]
        marked = [line.lstrip("*").strip() for line in option_lines if line.startswith("*")]
        questions.append({
            "type": "mcq",
            "text": question_text,
            "options": [o for o in options if o],
            "correctAnswer": marked[0] if marked else "",
        })
    return questions


def questions_text(questions: Any) -> str:
    """Inverse of ``parse_questions`` for pre-filling the edit form."""
    blocks = []
    for question in questions or ():
        if not isinstance(question, Mapping):
            continue
        lines = [str(question.get("text") or "")]
        correct = question.get("correctAnswer")
        for option in question.get("options") or ():
            lines.append(f"*{option}" if option == correct else str(option))
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def _question_error(question: Mapping[str, Any]) -> Optional[str]:
    if len(question["text"]) < 5:
        return MSG_QUESTION_TEXT
    if question["type"] != "mcq":
        return None
    if len(question["options"]) < 2:
        return MSG_OPTIONS
    if question["correctAnswer"] not in question["options"]:
        return MSG_CORRECT_ANSWER
    return None


@dataclass(frozen=True)
class LectureDraft:
    title: str
    description: str
    pdf_url: str
    summary: str = ""
    youtube_url: Optional[str] = None
    quiz: Optional[Dict[str, Any]] = None

    def create_fields(self, subject_id: str) -> Dict[str, Any]:
        fields: Dict[str, Any] = {
            "title": self.title,
            "description": self.description,
            "pdfUrl": self.pdf_url,
            "summary": self.summary,
            "subjectId": subject_id,
            "createdAt": SERVER_TIMESTAMP,
        }
        if self.youtube_url:
            fields["youtubeVideoUrl"] = self.youtube_url
        if self.quiz is not None:
            fields["quiz"] = self.quiz
        return fields

    def update_fields(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "pdfUrl": self.pdf_url,
            "summary": self.summary,
            "youtubeVideoUrl": self.youtube_url or DELETE_FIELD,
            "quiz": self.quiz if self.quiz is not None else DELETE_FIELD,
        }


def lecture_draft(
    *,
    title: str,
    description: str,
    pdf_url: str,
    summary: str = "",
    youtube_url: str = "",
    has_quiz: bool = False,
    quiz_title: str = "",
    quiz_questions: str = "",
) -> LectureDraft:
    errors = {}
    title, description = title.strip(), description.strip()
    if len(title) < 3:
        errors["title"] = MSG_TITLE
    if len(description) < 10:
        errors["description"] = MSG_DESCRIPTION
    if not is_web_url(pdf_url):
        errors["pdfUrl"] = MSG_URL
    if youtube_url and not is_web_url(youtube_url):
        errors["youtubeVideoUrl"] = MSG_URL

    quiz = None
    if has_quiz:
        questions = parse_questions(quiz_questions)
        if not quiz_title.strip() or not questions:
            errors["quiz"] = MSG_QUIZ
        else:
            problem = next(filter(None, (_question_error(q) for q in questions)), None)
            if problem:
                errors["quiz"] = problem
            quiz = {"title": quiz_title.strip(), "questions": questions}
    if errors:
        raise InvalidDraft(errors)
    return LectureDraft(
        title=title,
        description=description,
        pdf_url=pdf_url,
        summary=summary.strip(),
        youtube_url=youtube_url or None,
        quiz=quiz,
    )


def _printable(payload: Mapping[str, Any]) -> Dict[str, Any]:
    # Sentinels are shown by name in the diagnostics feed.
    return {k: repr(v) if v is DELETE_FIELD or v is SERVER_TIMESTAMP else v for k, v in payload.items()}


async def _write(store: DocumentStore, operation: str, path: str, payload: Optional[Mapping[str, Any]],
                 channel: Optional[PermissionErrorChannel]) -> None:
    try:
        if operation == "create":
            await store.set(path, payload or {})
        elif operation == "update":
            await store.update(path, payload or {})
        else:
            await store.delete(path)
    except Exception as exc:
        err = map_provider_error(exc)
        if err.kind is AuthErrorKind.PERMISSION_DENIED and channel is not None:
            shown = _printable(payload) if payload is not None else None
            channel.emit(PermissionDeniedEvent(path=path, operation=operation, payload=shown))
        raise err from exc


async def create_subject(store: DocumentStore, draft: SubjectDraft,
                         channel: Optional[PermissionErrorChannel] = None) -> str:
    subject_id = new_document_id()
    fields = {**draft.fields(), "createdAt": SERVER_TIMESTAMP}
    await _write(store, "create", subject_path(subject_id), fields, channel)
    return subject_id


async def update_subject(store: DocumentStore, subject_id: str, draft: SubjectDraft,
                         channel: Optional[PermissionErrorChannel] = None) -> None:
    await _write(store, "update", subject_path(subject_id), draft.fields(), channel)


async def delete_subject(store: DocumentStore, subject_id: str,
                         channel: Optional[PermissionErrorChannel] = None, *,
                         timeout: Optional[float] = 5.0) -> None:
    try:
        lectures = await first_snapshot(store, lectures_query(subject_id), timeout=timeout)
    except Exception as exc:
        err = map_provider_error(exc)
        if err.kind is AuthErrorKind.PERMISSION_DENIED and channel is not None:
            channel.emit(PermissionDeniedEvent(path=lectures_collection(subject_id), operation="list"))
        raise err from exc
    for lecture in lectures:
        await _write(store, "delete", lecture.path, None, channel)
    await _write(store, "delete", subject_path(subject_id), None, channel)


async def create_lecture(store: DocumentStore, subject_id: str, draft: LectureDraft,
                         channel: Optional[PermissionErrorChannel] = None) -> str:
    lecture_id = new_document_id()
    await _write(store, "create", lecture_path(subject_id, lecture_id), draft.create_fields(subject_id), channel)
    return lecture_id


async def update_lecture(store: DocumentStore, subject_id: str, lecture_id: str, draft: LectureDraft,
                         channel: Optional[PermissionErrorChannel] = None) -> None:
    await _write(store, "update", lecture_path(subject_id, lecture_id), draft.update_fields(), channel)


async def delete_lecture(store: DocumentStore, subject_id: str, lecture_id: str,
                         channel: Optional[PermissionErrorChannel] = None) -> None:
    await _write(store, "delete", lecture_path(subject_id, lecture_id), None, channel)


__all__ = [
    "InvalidDraft",
    "LectureDraft",
    "SEMESTERS",
    "SEMESTER_LABELS",
    "SubjectDraft",
    "create_lecture",
    "create_subject",
    "delete_lecture",
    "delete_subject",
    "lecture_draft",
    "parse_questions",
    "questions_text",
    "subject_draft",
    "update_lecture",
    "update_subject",
]
