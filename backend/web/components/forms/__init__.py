"""
Form components for Farsi Hub.
"""

from .fields import AvatarChoiceField, CheckboxField, FormField, SelectField, TextAreaField, TextInputField
from .submit import SubmitButton

__all__ = [
    "AvatarChoiceField",
    "CheckboxField",
    "FormField",
    "SelectField",
    "SubmitButton",
    "TextAreaField",
    "TextInputField",
]
