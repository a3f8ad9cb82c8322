"""
Lecture catalog for students (read-only).

Why:
    Students browse the subjects of their academic year and the lectures
    nested below each subject (``subjects/{sid}/lectures/{lid}``). Keeping the
    query descriptors here keeps the web adapter thin and makes the ordering
    rules testable without HTTP.

Permissions:
    Whether unapproved students may read content is decided by the backend's
    access policy, not here. A rejected read surfaces as
    ``PermissionDeniedError`` from the store.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from documents.ports import Document, Query, Snapshot, document_path

SUBJECTS_COLLECTION = "subjects"


def subjects_query(year: Optional[str] = None) -> Query:
    """Subjects, newest first; narrowed to one academic year when given."""
    query = Query(SUBJECTS_COLLECTION, order_by="createdAt", descending=True)
    return query.where("year", "==", year) if year else query


def lectures_collection(subject_id: str) -> str:
    return f"{SUBJECTS_COLLECTION}/{subject_id}/lectures"


def lectures_query(subject_id: str) -> Query:
    return Query(lectures_collection(subject_id), order_by="createdAt", descending=True)


def subject_path(subject_id: str) -> str:
    return document_path(SUBJECTS_COLLECTION, subject_id)


def lecture_path(subject_id: str, lecture_id: str) -> str:
    return document_path(lectures_collection(subject_id), lecture_id)


@dataclass(frozen=True)
class SubjectItem:
    id: str
    name: str
    description: str
    year: Optional[str]
    semester: Optional[str] = None


@dataclass(frozen=True)
class LectureItem:
    id: str
    title: str
    description: str
    pdf_url: Optional[str]
    has_quiz: bool
    created_at: Any
    youtube_url: Optional[str] = None


def subject_item(doc: Document) -> SubjectItem:
    return SubjectItem(
        id=doc.id,
        name=str(doc.get("name") or doc.get("title") or ""),
        description=str(doc.get("description") or ""),
        year=doc.get("year") or None,
        semester=doc.get("semester") or None,
    )


def subject_items(snapshot: Snapshot) -> List[SubjectItem]:
    return [subject_item(doc) for doc in snapshot]


def lecture_items(snapshot: Snapshot) -> List[LectureItem]:
    return [
        LectureItem(
            id=doc.id,
            title=str(doc.get("title") or ""),
            description=str(doc.get("description") or ""),
            pdf_url=doc.get("pdfUrl") or None,
            has_quiz=bool(doc.get("quiz")),
            created_at=doc.get("createdAt"),
            youtube_url=doc.get("youtubeVideoUrl") or None,
        )
        for doc in snapshot
    ]


__all__ = [
    "LectureItem",
    "SubjectItem",
    "lecture_items",
    "lecture_path",
    "lectures_query",
    "subject_item",
    "subject_items",
    "subject_path",
    "subjects_query",
]
