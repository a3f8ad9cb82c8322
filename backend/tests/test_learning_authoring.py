"""
Subject/lecture drafts, quiz text parsing, authoring writes and quiz scoring
against the in-memory store.
"""
from __future__ import annotations

import pytest

from documents.memory import MemoryDocumentStore, seed_documents
from documents.ports import DELETE_FIELD, SERVER_TIMESTAMP, Query
from documents.signals import PermissionErrorChannel
from identity_access.errors import AuthErrorKind, IdentityError
from learning.authoring import (
    MSG_CORRECT_ANSWER,
    MSG_DESCRIPTION,
    MSG_OPTIONS,
    MSG_QUIZ,
    MSG_SUBJECT_NAME,
    MSG_URL,
    InvalidDraft,
    create_lecture,
    create_subject,
    delete_subject,
    lecture_draft,
    parse_questions,
    questions_text,
    subject_draft,
    update_lecture,
)
from learning.catalog import lectures_query, subjects_query
from learning.quizzes import MSG_ANSWER_ALL, collect_answers, quiz_of, score_answers

pytestmark = pytest.mark.anyio("asyncio")

QUESTIONS = """ما معنى كلمة سلام؟
*peace
war

اكتب جملة باستخدام كلمة كتاب"""


def _lecture(**overrides):
    values = dict(
        title="الدرس الأول",
        description="مقدمة في قواعد اللغة الفارسية",
        pdf_url="https://files.example/l1.pdf",
    )
    values.update(overrides)
    return lecture_draft(**values)


def test_subject_draft_validates_every_field():
    with pytest.raises(InvalidDraft) as exc:
        subject_draft("نح", "fifth", "")
    assert exc.value.errors["name"] == MSG_SUBJECT_NAME
    assert set(exc.value.errors) == {"name", "year", "semester"}

    draft = subject_draft("  القواعد ", "first", "second")
    assert draft.fields() == {"name": "القواعد", "year": "first", "semester": "second"}


def test_lecture_draft_reports_field_errors():
    with pytest.raises(InvalidDraft) as exc:
        _lecture(description="قصير", pdf_url="files/l1.pdf", youtube_url="not a url")
    assert exc.value.errors == {"description": MSG_DESCRIPTION, "pdfUrl": MSG_URL, "youtubeVideoUrl": MSG_URL}


def test_enabled_quiz_needs_title_and_questions():
    with pytest.raises(InvalidDraft) as exc:
        _lecture(has_quiz=True, quiz_title="", quiz_questions=QUESTIONS)
    assert exc.value.errors == {"quiz": MSG_QUIZ}

    with pytest.raises(InvalidDraft) as exc:
        _lecture(has_quiz=True, quiz_title="اختبار", quiz_questions="ما معنى كلمة سلام؟\n*peace")
    assert exc.value.errors == {"quiz": MSG_OPTIONS}

    with pytest.raises(InvalidDraft) as exc:
        _lecture(has_quiz=True, quiz_title="اختبار", quiz_questions="ما معنى كلمة سلام؟\npeace\nwar")
    assert exc.value.errors == {"quiz": MSG_CORRECT_ANSWER}


def test_quiz_text_parses_choice_and_essay_questions():
    questions = parse_questions(QUESTIONS.replace("\n", "\r\n"))
    assert questions == [
        {"type": "mcq", "text": "ما معنى كلمة سلام؟", "options": ["peace", "war"], "correctAnswer": "peace"},
        {"type": "essay", "text": "اكتب جملة باستخدام كلمة كتاب"},
    ]
    assert parse_questions(questions_text(questions)) == questions


def test_disabled_quiz_and_empty_video_are_removed_on_edit():
    fields = _lecture(has_quiz=False, quiz_title="اختبار", quiz_questions=QUESTIONS).update_fields()
    assert fields["quiz"] is DELETE_FIELD
    assert fields["youtubeVideoUrl"] is DELETE_FIELD

    created = _lecture().create_fields("grammar")
    assert "quiz" not in created
    assert "youtubeVideoUrl" not in created
    assert created["createdAt"] is SERVER_TIMESTAMP


@pytest.mark.anyio
async def test_turning_off_the_quiz_deletes_the_stored_quiz():
    store = MemoryDocumentStore()
    subject_id = await create_subject(store, subject_draft("القواعد", "first", "first"))
    with_quiz = _lecture(has_quiz=True, quiz_title="اختبار", quiz_questions=QUESTIONS,
                         youtube_url="https://youtube.example/watch?v=1")
    lecture_id = await create_lecture(store, subject_id, with_quiz)
    path = f"subjects/{subject_id}/lectures/{lecture_id}"
    stored = await store.get(path)
    assert stored["quiz"]["title"] == "اختبار"
    assert stored["subjectId"] == subject_id

    await update_lecture(store, subject_id, lecture_id, _lecture(title="الدرس الأول (محدث)"))
    stored = await store.get(path)
    assert "quiz" not in stored
    assert "youtubeVideoUrl" not in stored
    assert stored["title"] == "الدرس الأول (محدث)"
    assert stored["createdAt"] is not None


@pytest.mark.anyio
async def test_deleting_a_subject_removes_its_lectures():
    store = MemoryDocumentStore()
    subject_id = await create_subject(store, subject_draft("القواعد", "first", "first"))
    await create_lecture(store, subject_id, _lecture())
    await create_lecture(store, subject_id, _lecture(title="الدرس الثاني"))

    await delete_subject(store, subject_id, timeout=1.0)
    assert store.snapshot(subjects_query()) == ()
    assert store.snapshot(lectures_query(subject_id)) == ()


@pytest.mark.anyio
async def test_rejected_lecture_edit_is_reported_with_payload():
    store = MemoryDocumentStore(policy=lambda op, path: op != "update")
    channel = PermissionErrorChannel()
    seed_documents(store, "subjects/grammar/lectures", {"l1": {"title": "الدرس", "quiz": {"title": "x"}}})

    with pytest.raises(IdentityError) as exc:
        await update_lecture(store, "grammar", "l1", _lecture(), channel)
    assert exc.value.kind is AuthErrorKind.PERMISSION_DENIED
    event = channel.recent()[-1]
    assert event.path == "subjects/grammar/lectures/l1"
    assert event.operation == "update"
    assert event.payload["quiz"] == "DELETE_FIELD"
    assert (await store.get("subjects/grammar/lectures/l1"))["quiz"] == {"title": "x"}


def test_quiz_scoring_counts_matching_choices_and_written_essays():
    quiz = quiz_of({"quiz": {"title": "اختبار", "questions": parse_questions(QUESTIONS)}})
    assert quiz is not None
    assert [q.kind for q in quiz.questions] == ["mcq", "essay"]

    result = score_answers(quiz, {0: "war", 1: "هذا كتاب جميل"})
    assert (result.correct, result.total) == (1, 2)
    assert result.score == 50.0
    assert score_answers(quiz, {0: "peace", 1: "نعم"}).score == 100.0

    with pytest.raises(ValueError) as exc:
        collect_answers(quiz, {"q0": "peace", "q1": "  "})
    assert str(exc.value) == MSG_ANSWER_ALL


def test_lectures_without_a_usable_quiz():
    assert quiz_of({}) is None
    assert quiz_of({"quiz": [{"q": "?"}]}) is None
    assert quiz_of({"quiz": {"title": "x", "questions": []}}) is None


def test_subjects_query_is_unfiltered_for_admins():
    assert subjects_query() == Query("subjects", order_by="createdAt", descending=True)
