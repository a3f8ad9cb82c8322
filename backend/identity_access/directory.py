"""
Student directory for administrators (approval management).

Why:
    Admins review newly registered students and toggle their approval flag.
    The list is a live query over ``users`` so approvals made in another tab
    (or by another admin) show up without reloading.

Security:
    - Writes go through the admin's session-bound store; the backend's access
      policy decides whether the admin may update the document.
    - A rejected write is reported twice: on the permission-error channel (for
      diagnostics) and as an ``IdentityError`` the route renders as a notice.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional

from documents.ports import DocumentStore, Query, Snapshot
from documents.signals import PermissionDeniedEvent, PermissionErrorChannel

from .domain import USERS_COLLECTION, profile_path
from .errors import AuthErrorKind, IdentityError, map_provider_error

YEAR_LABELS = {
    "first": "الفرقة الأولى",
    "second": "الفرقة الثانية",
    "third": "الفرقة الثالثة",
    "fourth": "الفرقة الرابعة",
}


def students_query() -> Query:
    """All student profiles, newest registrations first."""
    return Query(USERS_COLLECTION, order_by="createdAt", descending=True).where("role", "==", "student")


@dataclass(frozen=True)
class StudentRow:
    uid: str
    name: str
    email: str
    year_label: str
    approved: bool
    photo_url: Optional[str]
    created_at: Any


def student_rows(snapshot: Snapshot) -> List[StudentRow]:
    rows: List[StudentRow] = []
    for doc in snapshot:
        year = doc.get("year")
        rows.append(
            StudentRow(
                uid=doc.id,
                name=str(doc.get("name") or ""),
                email=str(doc.get("email") or ""),
                year_label=YEAR_LABELS.get(year, "غير محدد") if year else "غير محدد",
                approved=bool(doc.get("approved", False)),
                photo_url=doc.get("photoURL") or None,
                created_at=doc.get("createdAt"),
            )
        )
    return rows


async def set_approval(
    store: DocumentStore,
    uid: str,
    approved: bool,
    channel: Optional[PermissionErrorChannel] = None,
) -> None:
    """Set the approval flag of one student (partial update).

    Raises ``IdentityError``; ``PERMISSION_DENIED`` is also published on the
    channel with the attempted payload.
    """
    path = profile_path(uid)
    payload = {"approved": bool(approved)}
    try:
        await store.update(path, payload)
    except Exception as exc:
        err = map_provider_error(exc)
        if err.kind is AuthErrorKind.PERMISSION_DENIED and channel is not None:
            channel.emit(PermissionDeniedEvent(path=path, operation="update", payload=payload))
        raise err


__all__ = ["StudentRow", "YEAR_LABELS", "set_approval", "student_rows", "students_query", "IdentityError"]
