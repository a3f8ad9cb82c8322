"""
Submit button component.
"""

from ..base import Component


class SubmitButton(Component):
    """Form action button; ``variant`` picks the visual style."""

    def __init__(self, label: str, *, variant: str = "primary") -> None:
        self.label = label
        self.variant = variant

    def render(self) -> str:
        attrs = self.attributes(type="submit", class_=self.classes("btn", f"btn-{self.variant}"))
        return f"<button {attrs}>{self.escape(self.label)}</button>"
