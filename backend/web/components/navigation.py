"""
Header navigation for Farsi Hub.

Role-aware: admins get a link to the control panel, students a link to their
profile. Unapproved students see a banner explaining that some content may be
restricted until an administrator approves the account.
"""

from typing import List, Optional, Tuple

from identity_access.domain import AppUser

from .base import Component

NAV_ITEMS: List[Tuple[str, str]] = [
    ("/", "الرئيسية"),
    ("/lectures", "المحاضرات"),
    ("/assignments", "التكليفات"),
]

PENDING_APPROVAL_TEXT = "حسابك قيد المراجعة. قد تكون بعض الميزات محدودة حتى تتم الموافقة على حسابك."


class PendingApprovalBanner(Component):
    def render(self) -> str:
        return f'<div class="banner banner-warning" role="status">{self.escape(PENDING_APPROVAL_TEXT)}</div>'


class Navigation(Component):
    """Top navigation bar with auth area."""

    def __init__(self, user: Optional[AppUser] = None, current_path: str = "/"):
        self.user = user
        self.current_path = current_path

    def _is_active(self, href: str) -> bool:
        if href == "/":
            return self.current_path == "/"
        return self.current_path == href or self.current_path.startswith(href + "/")

    def _link(self, href: str, label: str) -> str:
        attrs = self.attributes(
            href=href,
            class_=self.classes("nav-link", active=self._is_active(href)),
            aria_current="page" if self._is_active(href) else None,
        )
        return f"<a {attrs}>{self.escape(label)}</a>"

    def _auth_area(self) -> str:
        if self.user is None:
            return (
                '<div class="nav-auth">'
                f'{self._link("/login", "تسجيل الدخول")}'
                f'{self._link("/signup", "إنشاء حساب")}'
                "</div>"
            )
        profile_href = "/admin/profile" if self.user.is_admin else "/student/profile"
        profile_label = "لوحة التحكم" if self.user.is_admin else "الملف الشخصي"
        avatar = (
            f'<img class="avatar" src="{self.escape(self.user.photo_url)}" alt="{self.escape(self.user.name)}" width="32" height="32">'
            if self.user.photo_url
            else ""
        )
        return (
            '<div class="nav-auth">'
            f'{avatar}<span class="nav-user">{self.escape(self.user.name)}</span>'
            f"{self._link(profile_href, profile_label)}"
            '<form method="post" action="/logout" class="inline-form">'
            '<button type="submit" class="btn btn-link">تسجيل الخروج</button>'
            "</form>"
            "</div>"
        )

    def render(self) -> str:
        links = [self._link(href, label) for href, label in NAV_ITEMS]
        if self.user is not None and self.user.is_admin:
            links.append(self._link("/admin/students", "الطلاب"))
            links.append(self._link("/admin/subjects", "المواد"))
            links.append(self._link("/admin/quizzes", "نتائج الاختبارات"))
        banner = (
            PendingApprovalBanner().render()
            if self.user is not None and self.user.is_student and not self.user.approved
            else ""
        )
        return (
            '<header class="site-header">'
            f"{banner}"
            '<nav class="nav" aria-label="التنقل الرئيسي">'
            '<a href="/" class="brand">فارسي هب</a>'
            f'<div class="nav-links">{"".join(links)}</div>'
            f"{self._auth_area()}"
            "</nav>"
            "</header>"
        )
