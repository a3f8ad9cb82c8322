"""
Lecture quizzes: taking a quiz, scoring it and recording the submission.

Why:
    A lecture may carry a quiz (``quiz`` field of the lecture document).
    Students answer all questions in one form; the server scores the answers
    so the correct answers never leave the backend, then appends a document
    to ``quizSubmissions`` that admins review.

Scoring:
    A multiple-choice answer counts when it equals ``correctAnswer``; an essay
    answer counts when it is not blank. The score is the percentage of
    counted answers.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from documents.ports import SERVER_TIMESTAMP, DocumentStore, Query, Snapshot, document_path
from documents.signals import PermissionDeniedEvent, PermissionErrorChannel
from identity_access.domain import AppUser
from identity_access.errors import AuthErrorKind, map_provider_error

from .authoring import new_document_id

SUBMISSIONS_COLLECTION = "quizSubmissions"
MSG_ANSWER_ALL = "الرجاء الإجابة على جميع الأسئلة."


@dataclass(frozen=True)
class Question:
    text: str
    kind: str
    options: Tuple[str, ...] = ()
    correct_answer: Optional[str] = None

    @property
    def is_choice(self) -> bool:
        return self.kind == "mcq"


@dataclass(frozen=True)
class Quiz:
    title: str
    questions: Tuple[Question, ...]


def quiz_of(lecture: Mapping[str, Any]) -> Optional[Quiz]:
    """Quiz stored on a lecture document, or None when it has no usable quiz."""
    raw = lecture.get("quiz")
    if not isinstance(raw, Mapping):
        return None
    questions = []
    for item in raw.get("questions") or ():
        if not isinstance(item, Mapping) or not item.get("text"):
            continue
        options = tuple(str(o) for o in item.get("options") or ())
        kind = "mcq" if options else "essay"
        questions.append(Question(
            text=str(item["text"]),
            kind=kind,
            options=options,
            correct_answer=item.get("correctAnswer") if options else None,
        ))
    if not questions:
        return None
    return Quiz(title=str(raw.get("title") or ""), questions=tuple(questions))


@dataclass(frozen=True)
class QuizResult:
    correct: int
    total: int

    @property
    def score(self) -> float:
        return self.correct / self.total * 100 if self.total else 0.0


def collect_answers(quiz: Quiz, form: Mapping[str, Any]) -> Dict[int, str]:
    """Read ``q<index>`` form values; raises ``ValueError`` when one is blank."""
    answers = {}
    for index, _ in enumerate(quiz.questions):
        value = form.get(f"q{index}")
        value = value.strip() if isinstance(value, str) else ""
        if not value:
            raise ValueError(MSG_ANSWER_ALL)
        answers[index] = value
    return answers


def score_answers(quiz: Quiz, answers: Mapping[int, str]) -> QuizResult:
    correct = 0
    for index, question in enumerate(quiz.questions):
        answer = (answers.get(index) or "").strip()
        if question.is_choice:
            correct += answer == question.correct_answer
        else:
            correct += bool(answer)
    return QuizResult(correct=correct, total=len(quiz.questions))


async def submit_quiz(
    store: DocumentStore,
    user: AppUser,
    subject_id: str,
    lecture_id: str,
    quiz: Quiz,
    answers: Mapping[int, str],
    channel: Optional[PermissionErrorChannel] = None,
) -> QuizResult:
    """Score ``answers`` and append a submission document.

    Raises ``IdentityError``; a policy rejection is also published on the
    channel with the attempted payload.
    """
    result = score_answers(quiz, answers)
    path = document_path(SUBMISSIONS_COLLECTION, new_document_id())
    payload = {
        "quizId": lecture_id,
        "quizTitle": quiz.title,
        "lectureId": lecture_id,
        "subjectId": subject_id,
        "userId": user.uid,
        "userName": user.name,
        "score": result.score,
        "answers": {str(k): v for k, v in answers.items()},
    }
    try:
        await store.set(path, {**payload, "submittedAt": SERVER_TIMESTAMP})
    except Exception as exc:
        err = map_provider_error(exc)
        if err.kind is AuthErrorKind.PERMISSION_DENIED and channel is not None:
            channel.emit(PermissionDeniedEvent(path=path, operation="create", payload=payload))
        raise err from exc
    return result


def submissions_query() -> Query:
    """All submissions, newest first (admin review)."""
    return Query(SUBMISSIONS_COLLECTION, order_by="submittedAt", descending=True)


@dataclass(frozen=True)
class SubmissionRow:
    id: str
    user_name: str
    quiz_title: str
    score: float
    submitted_at: Any


def submission_rows(snapshot: Snapshot) -> List[SubmissionRow]:
    return [
        SubmissionRow(
            id=doc.id,
            user_name=str(doc.get("userName") or ""),
            quiz_title=str(doc.get("quizTitle") or ""),
            score=float(doc.get("score") or 0),
            submitted_at=doc.get("submittedAt"),
        )
        for doc in snapshot
    ]


__all__ = [
    "MSG_ANSWER_ALL",
    "Question",
    "Quiz",
    "QuizResult",
    "SubmissionRow",
    "collect_answers",
    "quiz_of",
    "score_answers",
    "submission_rows",
    "submissions_query",
    "submit_quiz",
]
