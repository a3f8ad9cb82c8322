"""
Base class for Farsi Hub UI components.

Pages are rendered server-side from small Python classes instead of a
template engine: every component returns an HTML string and escapes all
user-provided text through the helpers below.
"""

from typing import Any, Optional
import html


class Component:
    """Base class for all UI components."""

    def render(self) -> str:
        raise NotImplementedError("Subclasses must implement render()")

    @staticmethod
    def escape(text: Optional[Any]) -> str:
        """Escape HTML entities; ``None`` renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def classes(*always: str, **conditionals: bool) -> str:
        """Join CSS classes, adding each keyword class only when its value is true.

        Example:
            >>> Component.classes("btn", "btn-primary", disabled=True, active=False)
            'btn btn-primary disabled'
        """
        names = [c for c in always if c]
        names.extend(name for name, enabled in conditionals.items() if enabled)
        return " ".join(names)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Render keyword arguments as HTML attributes.

        ``class_``/``for_`` map to reserved names, inner underscores become
        hyphens (``aria_label`` -> ``aria-label``). ``True`` renders a bare
        boolean attribute; ``False`` and ``None`` are dropped.

        Example:
            >>> Component.attributes(id="year", data_value="1", required=True)
            'id="year" data-value="1" required'
        """
        parts = []
        for key, value in attrs.items():
            name = key[:-1] if key.endswith("_") else key.replace("_", "-")
            if value is True:
                parts.append(name)
            elif value is not False and value is not None:
                parts.append(f'{name}="{html.escape(str(value))}"')
        return " ".join(parts)
