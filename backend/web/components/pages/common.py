"""
Shared page fragments: notices, cards, the loading placeholder and the home page.
"""

from typing import Optional

from identity_access.domain import AppUser

from ..base import Component

BOY_AVATAR = "https://i.suar.me/81XmV/l"
GIRL_AVATAR = "https://i.suar.me/j5Q7x/l"
AVATAR_OPTIONS = [(BOY_AVATAR, "ولد"), (GIRL_AVATAR, "بنت")]


class Notice(Component):
    """Inline alert; ``kind`` is "error", "success" or "info"."""

    def __init__(self, message: Optional[str], kind: str = "error") -> None:
        self.message = message
        self.kind = kind

    def render(self) -> str:
        if not self.message:
            return ""
        role = "alert" if self.kind == "error" else "status"
        return f'<div class="alert alert-{self.kind}" role="{role}">{self.escape(self.message)}</div>'


class Card(Component):
    def __init__(self, title: str, body: str, *, description: Optional[str] = None, class_name: str = "") -> None:
        self.title = title
        self.body = body
        self.description = description
        self.class_name = class_name

    def render(self) -> str:
        desc = f'<p class="card-description">{self.escape(self.description)}</p>' if self.description else ""
        return (
            f'<section class="{self.classes("card", self.class_name)}">'
            f'<div class="card-header"><h2 class="card-title">{self.escape(self.title)}</h2>{desc}</div>'
            f'<div class="card-body">{self.body}</div>'
            "</section>"
        )


class LoadingPlaceholder(Component):
    """Shown while the session is still resolving; the page reloads itself."""

    def render(self) -> str:
        return (
            '<div class="loading" role="status" aria-live="polite">'
            '<span class="spinner" aria-hidden="true"></span>'
            "<p>جارٍ التحميل...</p>"
            "</div>"
        )


class HomePage(Component):
    FEATURES = [
        ("المحاضرات", "وصول سهل ومنظم لجميع ملفات المحاضرات بصيغة PDF."),
        ("الاختبارات", "اختبر فهمك بعد كل محاضرة من خلال اختبارات قصيرة."),
        ("التكليفات", "تابع التكليفات المطلوبة وقم بتسليمها في المواعيد المحددة."),
        ("التطوير الذاتي", "موارد إضافية وبرامج لتنمية مهاراتك اللغوية بشكل مستمر."),
    ]

    def __init__(self, user: Optional[AppUser] = None) -> None:
        self.user = user

    def render(self) -> str:
        if self.user is None:
            cta = '<a class="btn btn-primary" href="/signup">ابدأ الآن</a> <a class="btn btn-secondary" href="/login">تسجيل الدخول</a>'
        else:
            cta = '<a class="btn btn-primary" href="/dashboard">لوحة التحكم</a>'
        features = "".join(
            f'<div class="card feature"><h3>{self.escape(title)}</h3><p>{self.escape(text)}</p></div>'
            for title, text in self.FEATURES
        )
        return (
            '<section class="hero">'
            "<h1>فارسي هب</h1>"
            "<p>منصتك لتعلم اللغة الفارسية: محاضرات واختبارات وتكليفات في مكان واحد.</p>"
            f'<div class="hero-actions">{cta}</div>'
            "</section>"
            f'<section class="grid features">{features}</section>'
        )
