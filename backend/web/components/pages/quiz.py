"""
Quiz pages: the answer form, the result card and the admin results table.

The answer form never contains the correct answers; scoring happens on the
server after submission.
"""

from typing import Mapping, Optional, Sequence

from learning.quizzes import Quiz, QuizResult, SubmissionRow

from ..base import Component
from ..forms import SubmitButton
from .common import Card, Notice


class QuizPage(Component):
    def __init__(self, action: str, quiz: Quiz, *, answers: Optional[Mapping[int, str]] = None,
                 error: Optional[str] = None) -> None:
        self.action = action
        self.quiz = quiz
        self.answers = dict(answers or {})
        self.error = error

    def _question(self, index: int, question) -> str:
        name = f"q{index}"
        current = self.answers.get(index, "")
        if question.is_choice:
            choices = "".join(
                f'<label class="quiz-option"><input {self.attributes(type="radio", name=name, value=option, checked=option == current)}>'
                f"{self.escape(option)}</label>"
                for option in question.options
            )
        else:
            choices = f'<textarea name="{name}" rows="4" class="form-textarea">{self.escape(current)}</textarea>'
        return (
            '<fieldset class="quiz-question">'
            f"<legend>{index + 1}. {self.escape(question.text)}</legend>"
            f"{choices}"
            "</fieldset>"
        )

    def render(self) -> str:
        questions = "".join(self._question(i, q) for i, q in enumerate(self.quiz.questions))
        body = (
            f'<form method="post" action="{self.escape(self.action)}" class="form">'
            f"{Notice(self.error).render()}"
            f"{questions}"
            f'{SubmitButton("إنهاء الاختبار").render()}'
            "</form>"
        )
        return Card(self.quiz.title or "الاختبار", body).render()


class QuizResultPage(Component):
    def __init__(self, result: QuizResult, back_href: str, *, error: Optional[str] = None) -> None:
        self.result = result
        self.back_href = back_href
        self.error = error

    def render(self) -> str:
        body = (
            f'<p class="quiz-score">{round(self.result.score)}%</p>'
            f'<p class="text-muted">أجبت بشكل صحيح على {self.result.correct} من {self.result.total} أسئلة.</p>'
            f'<a class="btn btn-primary" href="{self.escape(self.back_href)}">العودة إلى المحاضرات</a>'
        )
        notice = Notice(self.error).render() if self.error else Notice("تم تقديم الاختبار بنجاح!", "success").render()
        return f'{notice}{Card("نتيجة الاختبار", body, description="لقد أكملت الاختبار.").render()}'


class SubmissionsPage(Component):
    def __init__(self, rows: Sequence[SubmissionRow], *, error: Optional[str] = None) -> None:
        self.rows = rows
        self.error = error

    def render(self) -> str:
        if self.rows:
            items = "".join(
                "<tr>"
                f"<td>{self.escape(r.user_name)}</td>"
                f"<td>{self.escape(r.quiz_title)}</td>"
                f"<td>{round(r.score)}%</td>"
                "</tr>"
                for r in self.rows
            )
            body = (
                '<table class="table">'
                "<thead><tr><th>الطالب</th><th>الاختبار</th><th>النتيجة</th></tr></thead>"
                f"<tbody>{items}</tbody></table>"
            )
        else:
            body = '<p class="text-muted">لم يقم أي طالب بتقديم اختبار بعد.</p>'
        return f'{Notice(self.error).render()}{Card("نتائج الاختبارات", body).render()}'
