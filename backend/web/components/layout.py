"""
Layout Component for Farsi Hub

Wraps page content into a complete right-to-left Arabic HTML document.
"""

from typing import Optional

from identity_access.domain import AppUser

from .base import Component
from .navigation import Navigation


class Layout(Component):
    """Main layout component that assembles the complete page"""

    def __init__(
        self,
        title: str,
        content: str,
        user: Optional[AppUser] = None,
        current_path: str = "/",
        show_nav: bool = True,
        extra_head: str = "",
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            user: Current session user, or None when signed out / loading
            current_path: Current URL path for active navigation highlighting
            show_nav: Whether to render the header navigation
            extra_head: Trusted markup appended to <head> (e.g. refresh meta)
        """
        self.title = title
        self.content = content
        self.user = user
        self.current_path = current_path
        self.show_nav = show_nav
        self.extra_head = extra_head

    def render(self) -> str:
        nav_html = Navigation(self.user, self.current_path).render() if self.show_nav else ""
        return f"""<!DOCTYPE html>
<html lang="ar" dir="rtl">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{self.escape(self.title)} - فارسي هب</title>
    <link rel="stylesheet" href="/static/css/farsi.css">
    {self.extra_head}
</head>
<body>
    <a href="#main-content" class="skip-link">انتقل إلى المحتوى الرئيسي</a>
    {nav_html}
    <main id="main-content" class="main-content" role="main">
        {self.content}
    </main>
    <footer class="content-footer" role="contentinfo">
        <p class="text-center text-muted">فارسي هب</p>
    </footer>
</body>
</html>"""
