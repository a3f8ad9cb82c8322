"""
Student lecture catalog pages.
"""

from typing import Optional, Sequence

from identity_access.directory import YEAR_LABELS
from learning.catalog import LectureItem, SubjectItem

from ..base import Component
from .common import Card, Notice


class SubjectsPage(Component):
    def __init__(self, subjects: Sequence[SubjectItem], *, year: Optional[str] = None,
                 error: Optional[str] = None) -> None:
        self.subjects = subjects
        self.year = year
        self.error = error

    def render(self) -> str:
        heading = "المواد الدراسية"
        if self.year:
            heading = f"{heading} - {YEAR_LABELS.get(self.year, '')}"
        if self.subjects:
            items = "".join(
                f'<li class="list-item"><a href="/lectures/{self.escape(s.id)}">{self.escape(s.name)}</a>'
                f'<p class="text-muted">{self.escape(s.description)}</p></li>'
                for s in self.subjects
            )
            body = f'<ul class="list">{items}</ul>'
        else:
            body = '<p class="text-muted">لا توجد مواد متاحة حالياً.</p>'
        return f"{Notice(self.error).render()}{Card(heading, body).render()}"


class LecturesPage(Component):
    def __init__(self, subject: Optional[SubjectItem], lectures: Sequence[LectureItem], *,
                 error: Optional[str] = None) -> None:
        self.subject = subject
        self.lectures = lectures
        self.error = error

    def _lecture(self, lecture: LectureItem) -> str:
        link = (
            f'<a class="btn btn-secondary btn-sm" href="{self.escape(lecture.pdf_url)}" target="_blank" rel="noopener">عرض الملف</a>'
            if lecture.pdf_url
            else ""
        )
        video = (
            f'<a class="btn btn-secondary btn-sm" href="{self.escape(lecture.youtube_url)}" target="_blank" rel="noopener">مشاهدة الفيديو</a>'
            if lecture.youtube_url
            else ""
        )
        quiz = ""
        if lecture.has_quiz:
            quiz = '<span class="badge badge-info">يتضمن اختباراً</span>'
            if self.subject is not None:
                href = f"/quizzes/{self.subject.id}/{lecture.id}"
                quiz += f'<a class="btn btn-primary btn-sm" href="{self.escape(href)}">ابدأ الاختبار</a>'
        return (
            '<li class="list-item">'
            f"<h3>{self.escape(lecture.title)}</h3>"
            f'<p class="text-muted">{self.escape(lecture.description)}</p>'
            f"{quiz}{link}{video}"
            "</li>"
        )

    def render(self) -> str:
        title = self.subject.name if self.subject else "المحاضرات"
        if self.lectures:
            body = f'<ul class="list">{"".join(self._lecture(x) for x in self.lectures)}</ul>'
        else:
            body = '<p class="text-muted">لا توجد محاضرات في هذه المادة بعد.</p>'
        body += '<p><a href="/lectures">العودة إلى المواد</a></p>'
        return f"{Notice(self.error).render()}{Card(title, body).render()}"
