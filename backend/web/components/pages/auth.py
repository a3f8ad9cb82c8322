"""
Login and sign-up pages.

Both forms post back to their own URL; the routes re-render the page with
field errors and a form-level message instead of redirecting on failure.
"""

from typing import Mapping, Optional

from ..base import Component
from ..forms import SubmitButton, TextInputField
from .common import Card, Notice


class LoginPage(Component):
    def __init__(
        self,
        *,
        email: str = "",
        error: Optional[str] = None,
        notice: Optional[str] = None,
        reset_error: Optional[str] = None,
        field_errors: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.email = email
        self.error = error
        self.notice = notice
        self.reset_error = reset_error
        self.field_errors = dict(field_errors or {})

    def _login_form(self) -> str:
        email = TextInputField("email", "البريد الإلكتروني", required=True, error_text=self.field_errors.get("email"))
        password = TextInputField("password", "كلمة المرور", required=True, error_text=self.field_errors.get("password"))
        return (
            '<form method="post" action="/login" class="form" novalidate>'
            f"{Notice(self.error).render()}"
            f'{email.render(value=self.email, input_type="email", autocomplete="email", placeholder="example@mail.com")}'
            f'{password.render(input_type="password", autocomplete="current-password")}'
            f'{SubmitButton("تسجيل الدخول").render()}'
            "</form>"
        )

    def _forgot_form(self) -> str:
        email = TextInputField("reset_email", "البريد الإلكتروني", required=True, error_text=self.reset_error)
        return (
            '<details class="forgot-password"><summary>هل نسيت كلمة المرور؟</summary>'
            '<form method="post" action="/forgot" class="form" novalidate>'
            "<p>أدخل بريدك الإلكتروني وسنرسل لك رابطاً لإعادة تعيين كلمة المرور.</p>"
            f'{email.render(input_type="email", autocomplete="email")}'
            f'{SubmitButton("إرسال رابط إعادة التعيين", variant="secondary").render()}'
            "</form></details>"
        )

    def render(self) -> str:
        body = (
            f'{Notice(self.notice, "success").render()}'
            f"{self._login_form()}"
            f"{self._forgot_form()}"
            '<p class="text-muted">ليس لديك حساب؟ <a href="/signup">أنشئ حساباً جديداً</a></p>'
        )
        return Card(
            "تسجيل الدخول",
            body,
            description="مرحباً بعودتك! أدخل بياناتك للوصول إلى حسابك.",
            class_name="auth-card",
        ).render()


class SignupPage(Component):
    def __init__(
        self,
        *,
        name: str = "",
        email: str = "",
        error: Optional[str] = None,
        field_errors: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.name = name
        self.email = email
        self.error = error
        self.field_errors = dict(field_errors or {})

    def render(self) -> str:
        fe = self.field_errors
        name = TextInputField("name", "الاسم الكامل", required=True, error_text=fe.get("name"))
        email = TextInputField("email", "البريد الإلكتروني", required=True, error_text=fe.get("email"))
        password = TextInputField(
            "password", "كلمة المرور", required=True, error_text=fe.get("password"),
            help_text="6 أحرف على الأقل.",
        )
        form = (
            '<form method="post" action="/signup" class="form" novalidate>'
            f"{Notice(self.error).render()}"
            f'{name.render(value=self.name, autocomplete="name")}'
            f'{email.render(value=self.email, input_type="email", autocomplete="email")}'
            f'{password.render(input_type="password", autocomplete="new-password")}'
            f'{SubmitButton("إنشاء حساب").render()}'
            "</form>"
            '<p class="text-muted">لديك حساب بالفعل؟ <a href="/login">سجل الدخول</a></p>'
        )
        return Card(
            "إنشاء حساب",
            form,
            description="أدخل بياناتك لإنشاء حساب جديد في منصة فارسي هب.",
            class_name="auth-card",
        ).render()
