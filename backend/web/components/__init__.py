# Farsi Hub Component System
# Pure Python Components for server-rendered, escaped HTML

from .base import Component
from .layout import Layout
from .navigation import Navigation, PendingApprovalBanner
from .forms import AvatarChoiceField, FormField, SelectField, SubmitButton, TextInputField

__all__ = [
    "AvatarChoiceField",
    "Component",
    "FormField",
    "Layout",
    "Navigation",
    "PendingApprovalBanner",
    "SelectField",
    "SubmitButton",
    "TextInputField",
]
