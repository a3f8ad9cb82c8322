"""
Admin content pages: subjects and the lectures of one subject.

Add and edit forms share one component each; the routes pass the submitted
(or stored) values back in so a failed validation keeps what was typed.
"""

from typing import Mapping, Optional, Sequence

from identity_access.directory import YEAR_LABELS
from identity_access.domain import ACADEMIC_YEARS
from learning.authoring import SEMESTER_LABELS, SEMESTERS
from learning.catalog import LectureItem, SubjectItem

from ..base import Component
from ..forms import CheckboxField, SelectField, SubmitButton, TextAreaField, TextInputField
from .common import Card, Notice

QUIZ_HELP = "افصل بين الأسئلة بسطر فارغ. السطر الأول هو السؤال ثم الخيارات، وضع * قبل الإجابة الصحيحة. سؤال بلا خيارات يعتبر سؤالاً مقالياً."


def _delete_form(component: Component, action: str, label: str) -> str:
    return (
        f'<form method="post" action="{component.escape(action)}" class="inline-form">'
        f'<button type="submit" class="btn btn-danger btn-sm">{component.escape(label)}</button>'
        "</form>"
    )


class SubjectForm(Component):
    def __init__(self, action: str, *, values: Optional[Mapping[str, str]] = None,
                 errors: Optional[Mapping[str, str]] = None, submit_label: str = "إضافة المادة") -> None:
        self.action = action
        self.values = dict(values or {})
        self.errors = dict(errors or {})
        self.submit_label = submit_label

    def render(self) -> str:
        name = TextInputField("name", "اسم المادة", required=True, error_text=self.errors.get("name"))
        year = SelectField("year", "الفرقة الدراسية", required=True, error_text=self.errors.get("year"))
        semester = SelectField("semester", "الفصل الدراسي", required=True, error_text=self.errors.get("semester"))
        return (
            f'<form method="post" action="{self.escape(self.action)}" class="form" novalidate>'
            f'{name.render(value=self.values.get("name", ""))}'
            f'{year.render([(y, YEAR_LABELS[y]) for y in ACADEMIC_YEARS], selected=self.values.get("year"))}'
            f'{semester.render([(s, SEMESTER_LABELS[s]) for s in SEMESTERS], selected=self.values.get("semester"))}'
            f"{SubmitButton(self.submit_label).render()}"
            "</form>"
        )


class SubjectsAdminPage(Component):
    def __init__(
        self,
        subjects: Sequence[SubjectItem],
        *,
        form: Optional[SubjectForm] = None,
        notice: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        self.subjects = subjects
        self.form = form or SubjectForm("/admin/subjects")
        self.notice = notice
        self.error = error

    def _row(self, subject: SubjectItem) -> str:
        base = f"/admin/subjects/{subject.id}"
        return (
            f'<tr data-subject="{self.escape(subject.id)}">'
            f"<td>{self.escape(subject.name)}</td>"
            f'<td>{self.escape(YEAR_LABELS.get(subject.year or "", "غير محدد"))}</td>'
            f'<td><span class="badge badge-outline">{self.escape(SEMESTER_LABELS.get(subject.semester or "", ""))}</span></td>'
            "<td>"
            f'<a class="btn btn-secondary btn-sm" href="{self.escape(base)}/lectures">المحاضرات</a>'
            f'<a class="btn btn-secondary btn-sm" href="{self.escape(base)}/edit">تعديل</a>'
            f'{_delete_form(self, base + "/delete", "حذف")}'
            "</td></tr>"
        )

    def render(self) -> str:
        if self.subjects:
            table = (
                '<table class="table">'
                "<thead><tr><th>المادة</th><th>الفرقة</th><th>الفصل</th><th>إجراء</th></tr></thead>"
                f'<tbody>{"".join(self._row(s) for s in self.subjects)}</tbody>'
                "</table>"
            )
        else:
            table = '<p class="text-muted">لا توجد مواد دراسية بعد. قم بإضافة مادتك الدراسية الأولى.</p>'
        return (
            f'{Notice(self.notice, "success").render()}'
            f"{Notice(self.error).render()}"
            f'{Card("إدارة المواد الدراسية", table, description="إضافة وتعديل المواد الدراسية لكل فرقة.").render()}'
            f'{Card("إضافة مادة جديدة", self.form.render()).render()}'
        )


class LectureForm(Component):
    def __init__(self, action: str, *, values: Optional[Mapping[str, str]] = None,
                 errors: Optional[Mapping[str, str]] = None, submit_label: str = "إضافة المحاضرة") -> None:
        self.action = action
        self.values = dict(values or {})
        self.errors = dict(errors or {})
        self.submit_label = submit_label

    def render(self) -> str:
        v, e = self.values, self.errors
        title = TextInputField("title", "عنوان المحاضرة", required=True, error_text=e.get("title"))
        description = TextAreaField("description", "الوصف", required=True, error_text=e.get("description"))
        pdf = TextInputField("pdfUrl", "رابط ملف PDF", required=True, error_text=e.get("pdfUrl"))
        video = TextInputField("youtubeVideoUrl", "رابط فيديو يوتيوب (اختياري)", error_text=e.get("youtubeVideoUrl"))
        summary = TextAreaField("summary", "ملخص (اختياري)")
        has_quiz = CheckboxField("hasQuiz", "إضافة اختبار لهذه المحاضرة")
        quiz_title = TextInputField("quizTitle", "عنوان الاختبار")
        questions = TextAreaField("quizQuestions", "الأسئلة", help_text=QUIZ_HELP, error_text=e.get("quiz"))
        return (
            f'<form method="post" action="{self.escape(self.action)}" class="form" novalidate>'
            f'{title.render(value=v.get("title", ""))}'
            f'{description.render(value=v.get("description", ""))}'
            f'{pdf.render(value=v.get("pdfUrl", ""), input_type="url")}'
            f'{video.render(value=v.get("youtubeVideoUrl", ""), input_type="url")}'
            f'{summary.render(value=v.get("summary", ""))}'
            '<fieldset class="quiz-fields">'
            f'{has_quiz.render(checked=v.get("hasQuiz") == "yes")}'
            f'{quiz_title.render(value=v.get("quizTitle", ""))}'
            f'{questions.render(value=v.get("quizQuestions", ""), rows=8)}'
            "</fieldset>"
            f"{SubmitButton(self.submit_label).render()}"
            "</form>"
        )


class LecturesAdminPage(Component):
    def __init__(
        self,
        subject: SubjectItem,
        lectures: Sequence[LectureItem],
        *,
        form: Optional[LectureForm] = None,
        notice: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        self.subject = subject
        self.lectures = lectures
        self.form = form or LectureForm(f"/admin/subjects/{subject.id}/lectures")
        self.notice = notice
        self.error = error

    def _item(self, lecture: LectureItem) -> str:
        base = f"/admin/subjects/{self.subject.id}/lectures/{lecture.id}"
        quiz = '<span class="badge badge-info">يتضمن اختباراً</span>' if lecture.has_quiz else ""
        return (
            f'<li class="list-item" data-lecture="{self.escape(lecture.id)}">'
            f"<h3>{self.escape(lecture.title)}</h3>{quiz}"
            f'<a class="btn btn-secondary btn-sm" href="{self.escape(base)}/edit">تعديل</a>'
            f'{_delete_form(self, base + "/delete", "حذف")}'
            "</li>"
        )

    def render(self) -> str:
        if self.lectures:
            body = f'<ul class="list">{"".join(self._item(x) for x in self.lectures)}</ul>'
        else:
            body = '<p class="text-muted">لا توجد محاضرات في هذه المادة بعد.</p>'
        body += '<p><a href="/admin/subjects">العودة إلى المواد</a></p>'
        return (
            f'{Notice(self.notice, "success").render()}'
            f"{Notice(self.error).render()}"
            f"{Card(self.subject.name, body).render()}"
            f'{Card("إضافة محاضرة جديدة", self.form.render()).render()}'
        )


class EditPage(Component):
    """Edit form on its own page, with a link back to the list."""

    def __init__(self, title: str, form: Component, back_href: str, *, error: Optional[str] = None) -> None:
        self.title = title
        self.form = form
        self.back_href = back_href
        self.error = error

    def render(self) -> str:
        body = f'{self.form.render()}<p><a href="{self.escape(self.back_href)}">رجوع</a></p>'
        return f"{Notice(self.error).render()}{Card(self.title, body).render()}"


class ContentErrorPage(Component):
    """Missing or unreadable subject/lecture, with a way back to the subjects."""

    def __init__(self, message: str) -> None:
        self.message = message

    def render(self) -> str:
        return f'{Notice(self.message).render()}<p><a href="/admin/subjects">العودة إلى المواد</a></p>'
