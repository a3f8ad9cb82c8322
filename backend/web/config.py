"""
Configuration and startup security checks for Farsi Hub.

Why: A misconfigured deployment could run on the in-memory backend (accounts
lost on restart, no access policy) or talk to Supabase over plain HTTP. This
module reads all settings from the environment in one place and provides a
single guard that enforces minimal production safety without burdening local
development.

Permissions: The caller needs no special privileges. The functions simply read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import os
import sys

_PLACEHOLDERS = ("DUMMY", "CHANGE_ME", "TEST_ONLY")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _flag(name: str, default: str = "false") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes")


def _int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, "") or default)
    except ValueError:
        return default


def _float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, "") or default)
    except ValueError:
        return default


def should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via FARSI_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    return _flag("FARSI_ENABLE_DOTENV", "true")


@dataclass(frozen=True)
class Settings:
    environment: str = "dev"
    backend: str = "memory"
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""
    documents_table: str = "documents"
    session_ttl_seconds: int = 3600
    resolve_timeout_seconds: float = 2.0
    password_reset_redirect_url: Optional[str] = None
    conceal_unknown_reset: bool = False
    dev_admin_email: Optional[str] = None
    dev_admin_password: Optional[str] = None

    @property
    def is_prod_like(self) -> bool:
        return _is_prod_like(self.environment)

    @property
    def is_dev(self) -> bool:
        return (self.environment or "").lower() in {"dev", "development", "local"}


def load_settings() -> Settings:
    url = (os.getenv("SUPABASE_URL") or "").strip()
    backend = (os.getenv("FARSI_BACKEND") or ("supabase" if url else "memory")).strip().lower()
    return Settings(
        environment=(os.getenv("FARSI_ENV", "dev") or "dev").strip().lower(),
        backend=backend,
        supabase_url=url,
        supabase_anon_key=(os.getenv("SUPABASE_ANON_KEY") or "").strip(),
        supabase_service_role_key=(os.getenv("SUPABASE_SERVICE_ROLE_KEY") or "").strip(),
        documents_table=(os.getenv("SUPABASE_DOCUMENTS_TABLE") or "documents").strip(),
        session_ttl_seconds=max(60, _int("SESSION_TTL_SECONDS", 3600)),
        resolve_timeout_seconds=max(0.0, _float("SESSION_RESOLVE_TIMEOUT_SECONDS", 2.0)),
        password_reset_redirect_url=(os.getenv("PASSWORD_RESET_REDIRECT_URL") or "").strip() or None,
        conceal_unknown_reset=_flag("PASSWORD_RESET_CONCEAL_UNKNOWN"),
        dev_admin_email=(os.getenv("FARSI_DEV_ADMIN_EMAIL") or "").strip() or None,
        dev_admin_password=os.getenv("FARSI_DEV_ADMIN_PASSWORD") or None,
    )


def _is_placeholder(value: str) -> bool:
    return not value or value.upper().startswith(_PLACEHOLDERS)


def ensure_secure_config_on_startup(settings: Optional[Settings] = None) -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - The in-memory backend is not allowed.
    - SUPABASE_URL must be set and use https.
    - Anon and service-role keys must be set and not placeholders.
    - Dev admin seeding must be disabled.
    """
    cfg = settings or load_settings()
    if not cfg.is_prod_like:
        return  # dev/test remain permissive

    if cfg.backend != "supabase":
        raise SystemExit(
            "Refusing to start: FARSI_BACKEND must be 'supabase' in production/staging (in-memory backend is dev-only)."
        )
    if not cfg.supabase_url.lower().startswith("https://"):
        raise SystemExit("Refusing to start: SUPABASE_URL must be set and use https in production.")
    if _is_placeholder(cfg.supabase_anon_key):
        raise SystemExit("Refusing to start: SUPABASE_ANON_KEY is unset or a placeholder in production.")
    if _is_placeholder(cfg.supabase_service_role_key):
        raise SystemExit(
            "Refusing to start: SUPABASE_SERVICE_ROLE_KEY is unset or a dummy placeholder in production."
        )
    if cfg.dev_admin_email or cfg.dev_admin_password:
        raise SystemExit("Refusing to start: FARSI_DEV_ADMIN_* must not be set in production/staging.")


__all__ = ["Settings", "ensure_secure_config_on_startup", "load_settings", "should_load_dotenv"]
