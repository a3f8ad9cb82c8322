"""
Form field components.

Small wrappers that keep label, help and error markup consistent across the
auth, onboarding and profile forms.
"""

from typing import Optional, Sequence, Tuple

from ..base import Component


class FormField(Component):
    """Wrapper that renders label, input slot, help, and error text."""

    def __init__(
        self,
        field_id: str,
        label: str,
        *,
        required: bool = False,
        help_text: Optional[str] = None,
        error_text: Optional[str] = None,
    ) -> None:
        self.field_id = field_id
        self.label = label
        self.required = required
        self.help_text = help_text
        self.error_text = error_text

    def _aria(self) -> dict:
        return {
            "aria_describedby": f"{self.field_id}-help" if self.help_text else None,
            "aria_invalid": "true" if self.error_text else "false",
        }

    def render(self, input_html: str) -> str:
        state_class = self.classes("form-field", **{"form-field--error": bool(self.error_text)})
        required_marker = '<span class="form-required" aria-hidden="true">*</span>' if self.required else ""
        help_html = (
            f'<p class="form-help" id="{self.field_id}-help">{self.escape(self.help_text)}</p>'
            if self.help_text
            else ""
        )
        error_html = (
            f'<p class="form-error" role="alert" id="{self.field_id}-error">{self.escape(self.error_text)}</p>'
            if self.error_text
            else ""
        )
        label_attrs = self.attributes(for_=self.field_id, class_="form-label")
        return (
            f'<div class="{state_class}">'
            f"<label {label_attrs}>{self.escape(self.label)}{required_marker}</label>"
            f"{input_html}{help_html}{error_html}"
            "</div>"
        )


class TextInputField(FormField):
    """Single-line input (text, email or password)."""

    def render(
        self,
        *,
        value: str = "",
        input_type: str = "text",
        autocomplete: Optional[str] = None,
        **attrs: str,
    ) -> str:
        input_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            type=input_type,
            # Never echo secrets back into the page.
            value=None if input_type == "password" else value,
            autocomplete=autocomplete,
            required=self.required,
            class_="form-input",
            **self._aria(),
            **attrs,
        )
        return super().render(f"<input {input_attrs}>")


class SelectField(FormField):
    """Drop-down over fixed (value, label) options."""

    def render(self, options: Sequence[Tuple[str, str]], *, selected: Optional[str] = None) -> str:
        opts = [f'<option value="">{self.escape("اختر...")}</option>']
        for value, label in options:
            attrs = self.attributes(value=value, selected=value == selected)
            opts.append(f"<option {attrs}>{self.escape(label)}</option>")
        select_attrs = self.attributes(
            id=self.field_id, name=self.field_id, required=self.required, class_="form-select", **self._aria()
        )
        return super().render(f"<select {select_attrs}>{''.join(opts)}</select>")


class AvatarChoiceField(FormField):
    """Radio group of avatar images."""

    def render(self, options: Sequence[Tuple[str, str]], *, selected: Optional[str] = None) -> str:
        items = []
        for index, (url, label) in enumerate(options):
            input_id = f"{self.field_id}-{index}"
            attrs = self.attributes(
                id=input_id,
                type="radio",
                name=self.field_id,
                value=url,
                checked=url == selected,
                required=self.required and index == 0,
            )
            items.append(
                f'<label class="avatar-choice" for="{input_id}"><input {attrs}>'
                f'<img src="{self.escape(url)}" alt="{self.escape(label)}" width="64" height="64"></label>'
            )
        return super().render(f'<div class="avatar-choices" role="radiogroup">{"".join(items)}</div>')


class TextAreaField(FormField):
    """Multi-line text input."""

    def render(self, *, value: str = "", rows: int = 4, **attrs: str) -> str:
        area_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            rows=rows,
            required=self.required,
            class_="form-textarea",
            **self._aria(),
            **attrs,
        )
        return super().render(f"<textarea {area_attrs}>{self.escape(value)}</textarea>")


class CheckboxField(FormField):
    """Single checkbox submitting ``value`` when ticked."""

    def render(self, *, checked: bool = False, value: str = "yes") -> str:
        box_attrs = self.attributes(
            id=self.field_id, name=self.field_id, type="checkbox", value=value, checked=checked, **self._aria()
        )
        return super().render(f"<input {box_attrs}>")
