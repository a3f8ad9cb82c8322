"""
Account pages: onboarding, student/admin profile (avatar change, account deletion).
"""

from typing import Optional

from identity_access.directory import YEAR_LABELS
from identity_access.domain import ACADEMIC_YEARS, AppUser

from ..base import Component
from ..forms import AvatarChoiceField, SelectField, SubmitButton
from .common import AVATAR_OPTIONS, Card, Notice


class OnboardingPage(Component):
    def __init__(
        self,
        user: AppUser,
        *,
        error: Optional[str] = None,
        year: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> None:
        self.user = user
        self.error = error
        self.year = year
        self.avatar = avatar

    def render(self) -> str:
        year_field = SelectField("year", "اختر فرقتك الدراسية", required=True)
        avatar_field = AvatarChoiceField("avatar", "اختر صورتك الرمزية", required=True)
        options = [(y, YEAR_LABELS[y]) for y in ACADEMIC_YEARS]
        body = (
            '<form method="post" action="/student/onboarding" class="form">'
            f"{Notice(self.error).render()}"
            f"{year_field.render(options, selected=self.year)}"
            f"{avatar_field.render(AVATAR_OPTIONS, selected=self.avatar)}"
            f'{SubmitButton("حفظ ومتابعة").render()}'
            "</form>"
            '<form method="post" action="/logout" class="inline-form">'
            '<button type="submit" class="btn btn-link">تسجيل الخروج</button>'
            "</form>"
        )
        return Card(
            f"خطوة أخيرة يا {self.user.name}!",
            body,
            description="أكمل بياناتك لتتمكن من الوصول إلى المحاضرات والاختبارات.",
            class_name="onboarding-card",
        ).render()


class ProfilePage(Component):
    def __init__(self, user: AppUser, *, notice: Optional[str] = None, error: Optional[str] = None) -> None:
        self.user = user
        self.notice = notice
        self.error = error

    def _summary(self) -> str:
        u = self.user
        rows = [("البريد الإلكتروني", u.email)]
        if u.is_student:
            rows.append(("الفرقة الدراسية", YEAR_LABELS.get(u.year or "", "غير محدد")))
            rows.append(("حالة الحساب", "مفعل" if u.approved else "قيد المراجعة"))
        else:
            rows.append(("الدور", "مسؤول"))
        items = "".join(f"<dt>{self.escape(k)}</dt><dd>{self.escape(v)}</dd>" for k, v in rows)
        avatar = (
            f'<img class="avatar avatar-lg" src="{self.escape(u.photo_url)}" alt="{self.escape(u.name)}" width="96" height="96">'
            if u.photo_url
            else ""
        )
        return Card(u.name, f'{avatar}<dl class="profile-details">{items}</dl>').render()

    def _avatar_form(self) -> str:
        field = AvatarChoiceField("avatar", "الصورة الرمزية", required=True)
        body = (
            '<form method="post" action="/profile/avatar" class="form">'
            f"{field.render(AVATAR_OPTIONS, selected=self.user.photo_url)}"
            f'{SubmitButton("حفظ الصورة").render()}'
            "</form>"
        )
        return Card("تغيير الصورة الشخصية", body, description="اختر صورة رمزية جديدة لحسابك.").render()

    def _delete_form(self) -> str:
        body = (
            '<form method="post" action="/profile/delete" class="form">'
            '<label class="form-label"><input type="checkbox" name="confirm" value="yes" required> '
            "أفهم أن هذا الإجراء لا يمكن التراجع عنه.</label>"
            f'{SubmitButton("حذف الحساب", variant="danger").render()}'
            "</form>"
        )
        return Card(
            "منطقة الخطر",
            body,
            description="حذف حسابك سيؤدي إلى إزالة جميع بياناتك بشكل دائم.",
            class_name="card-danger",
        ).render()

    def render(self) -> str:
        return (
            f'{Notice(self.notice, "success").render()}'
            f"{Notice(self.error).render()}"
            f"{self._summary()}"
            f"{self._avatar_form()}"
            f"{self._delete_form()}"
        )
