"""
Admin pages: student approvals.

The table body is rendered by ``StudentRows`` so the live event stream can
push the same markup whenever the underlying query changes.
"""

from typing import Optional, Sequence

from identity_access.directory import StudentRow

from ..base import Component
from .common import Card, Notice


class StudentRows(Component):
    def __init__(self, rows: Sequence[StudentRow]) -> None:
        self.rows = rows

    def _row(self, row: StudentRow) -> str:
        status = "مقبول" if row.approved else "قيد المراجعة"
        action_label = "تعليق" if row.approved else "قبول"
        target = "false" if row.approved else "true"
        form = (
            f'<form method="post" action="/admin/students/{self.escape(row.uid)}/approval" class="inline-form">'
            f'<input type="hidden" name="approved" value="{target}">'
            f'<button type="submit" class="{self.classes("btn", "btn-sm", **{"btn-primary": not row.approved, "btn-secondary": row.approved})}">'
            f"{self.escape(action_label)}</button>"
            "</form>"
        )
        return (
            f'<tr data-uid="{self.escape(row.uid)}">'
            f"<td>{self.escape(row.name)}</td>"
            f"<td>{self.escape(row.email)}</td>"
            f"<td>{self.escape(row.year_label)}</td>"
            f'<td><span class="{self.classes("badge", **{"badge-success": row.approved, "badge-warning": not row.approved})}">'
            f"{self.escape(status)}</span></td>"
            f"<td>{form}</td>"
            "</tr>"
        )

    def render(self) -> str:
        if not self.rows:
            return '<tr><td colspan="5" class="text-center text-muted">لا يوجد طلاب مسجلون بعد.</td></tr>'
        return "".join(self._row(r) for r in self.rows)


class StudentsPage(Component):
    def __init__(
        self,
        rows: Sequence[StudentRow],
        *,
        notice: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        self.rows = rows
        self.notice = notice
        self.error = error

    def render(self) -> str:
        table = (
            '<table class="table" data-live-source="/admin/students/events">'
            "<thead><tr><th>الاسم</th><th>البريد الإلكتروني</th><th>الفرقة</th><th>الحالة</th><th>إجراء</th></tr></thead>"
            f'<tbody id="students-rows">{StudentRows(self.rows).render()}</tbody>'
            "</table>"
            '<script src="/static/js/live_rows.js" defer></script>'
        )
        return (
            f'{Notice(self.notice, "success").render()}'
            f"{Notice(self.error).render()}"
            f'{Card("إدارة الطلاب", table, description="قبول الطلاب الجدد أو تعليق حساباتهم.").render()}'
        )
