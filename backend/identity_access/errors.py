"""
Error taxonomy for identity and profile operations.

Why:
    The managed backend reports failures as coarse strings/codes that differ
    between its auth API, its REST layer and plain transport failures. We
    translate them exactly once, here, into an explicit kind. Call sites branch
    on the kind and render messages via ``user_message``; no call site compares
    raw provider strings.

Security:
    Messages never echo provider details back to the browser. Raw codes are
    kept on the exception for logs only.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from documents.ports import DocumentStoreError, PermissionDeniedError


class AuthErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_ALREADY_IN_USE = "email_already_in_use"
    UNKNOWN_ACCOUNT = "unknown_account"
    PROFILE_INCONSISTENT = "profile_inconsistent"
    PERMISSION_DENIED = "permission_denied"
    NETWORK_OR_UNKNOWN = "network_or_unknown"


class IdentityError(Exception):
    """Raised by identity operations with a machine-readable kind."""

    def __init__(self, kind: AuthErrorKind, code: str = ""):
        super().__init__(kind.value)
        self.kind = kind
        self.code = code or kind.value


# Supabase GoTrue error codes (``AuthApiError.code``) by kind.
_AUTH_CODES = {
    "invalid_credentials": AuthErrorKind.INVALID_CREDENTIALS,
    "invalid_grant": AuthErrorKind.INVALID_CREDENTIALS,
    "email_address_invalid": AuthErrorKind.INVALID_CREDENTIALS,
    "validation_failed": AuthErrorKind.INVALID_CREDENTIALS,
    "user_not_found": AuthErrorKind.UNKNOWN_ACCOUNT,
    "email_exists": AuthErrorKind.EMAIL_ALREADY_IN_USE,
    "user_already_exists": AuthErrorKind.EMAIL_ALREADY_IN_USE,
}

# Older GoTrue deployments only send a message.
_AUTH_MESSAGES = (
    ("invalid login credentials", AuthErrorKind.INVALID_CREDENTIALS),
    ("user already registered", AuthErrorKind.EMAIL_ALREADY_IN_USE),
    ("user not found", AuthErrorKind.UNKNOWN_ACCOUNT),
)


def map_provider_error(exc: BaseException) -> IdentityError:
    """Translate any backend exception into an ``IdentityError``.

    Already-mapped errors pass through unchanged.
    """
    if isinstance(exc, IdentityError):
        return exc
    if isinstance(exc, PermissionDeniedError):
        return IdentityError(AuthErrorKind.PERMISSION_DENIED, exc.code)
    if isinstance(exc, DocumentStoreError):
        return IdentityError(AuthErrorKind.NETWORK_OR_UNKNOWN, exc.code)

    code = str(getattr(exc, "code", "") or "").strip().lower()
    if code in _AUTH_CODES:
        return IdentityError(_AUTH_CODES[code], code)
    if code == "42501":
        return IdentityError(AuthErrorKind.PERMISSION_DENIED, code)

    message = str(getattr(exc, "message", "") or exc).lower()
    for needle, kind in _AUTH_MESSAGES:
        if needle in message:
            return IdentityError(kind, code or needle.replace(" ", "_"))
    if "row-level security" in message:
        return IdentityError(AuthErrorKind.PERMISSION_DENIED, code or "rls")

    status = getattr(exc, "status", None)
    if status in (401, 403):
        return IdentityError(AuthErrorKind.PERMISSION_DENIED, code or str(status))
    return IdentityError(AuthErrorKind.NETWORK_OR_UNKNOWN, code or exc.__class__.__name__)


# --- User-facing messages (Arabic UI) --------------------------------------------

_GENERIC = "حدث خطأ غير متوقع. يرجى المحاولة مرة أخرى."
_PERMISSION = "ليست لديك الصلاحية لتنفيذ هذا الإجراء."

_MESSAGES: dict[tuple[str, AuthErrorKind], str] = {
    ("sign_in", AuthErrorKind.INVALID_CREDENTIALS): (
        "البريد الإلكتروني أو كلمة المرور غير صحيحة. يرجى التحقق منها وإعادة المحاولة."
    ),
    ("sign_in", AuthErrorKind.PROFILE_INCONSISTENT): (
        "لم يتم العثور على بيانات حسابك. يرجى إنشاء حساب جديد."
    ),
    ("sign_up", AuthErrorKind.EMAIL_ALREADY_IN_USE): "هذا البريد الإلكتروني مسجل بالفعل.",
    ("sign_up", AuthErrorKind.INVALID_CREDENTIALS): "البيانات المدخلة غير صالحة.",
    ("sign_up", AuthErrorKind.NETWORK_OR_UNKNOWN): "حدث خطأ ما. يرجى المحاولة مرة أخرى.",
    ("password_reset", AuthErrorKind.UNKNOWN_ACCOUNT): "هذا البريد الإلكتروني غير مسجل لدينا.",
    ("password_reset", AuthErrorKind.NETWORK_OR_UNKNOWN): (
        "حدث خطأ أثناء محاولة إرسال بريد إعادة التعيين. يرجى المحاولة لاحقاً."
    ),
    ("avatar", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل تحديث الصورة",
    ("onboarding", AuthErrorKind.NETWORK_OR_UNKNOWN): "حدث خطأ ما، يرجى المحاولة مرة أخرى.",
    ("delete_account", AuthErrorKind.NETWORK_OR_UNKNOWN): (
        "حدث خطأ أثناء محاولة حذف حسابك. يرجى المحاولة مرة أخرى."
    ),
    ("approval", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل تحديث حالة الطالب.",
    ("subject_save", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل حفظ المادة",
    ("subject_delete", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل حذف المادة",
    ("lecture_save", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل حفظ المحاضرة",
    ("lecture_update", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل تحديث المحاضرة",
    ("lecture_delete", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل حذف المحاضرة",
    ("quiz_submit", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل حفظ نتيجتك.",
    ("load", AuthErrorKind.NETWORK_OR_UNKNOWN): "فشل تحميل البيانات",
}


def user_message(kind: AuthErrorKind, action: str) -> str:
    """Return the message shown next to the form that triggered ``action``."""
    text: Optional[str] = _MESSAGES.get((action, kind))
    if text is not None:
        return text
    if kind is AuthErrorKind.PERMISSION_DENIED:
        return _PERMISSION
    return _MESSAGES.get((action, AuthErrorKind.NETWORK_OR_UNKNOWN), _GENERIC)


__all__ = ["AuthErrorKind", "IdentityError", "map_provider_error", "user_message"]
