"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend (the session controller schedules
its work on the running asyncio loop) and give every test a clean environment
and a fresh app with the in-memory backend. No network is needed.
"""
from __future__ import annotations

import sys
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport

# Ensure modules in backend/ and the test helpers are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

from documents.signals import PermissionErrorChannel  # noqa: E402
from web.config import Settings  # noqa: E402

_ENV_VARS = (
    "FARSI_ENV",
    "FARSI_BACKEND",
    "FARSI_TRUST_PROXY",
    "FARSI_DEV_ADMIN_EMAIL",
    "FARSI_DEV_ADMIN_PASSWORD",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_SERVICE_ROLE_KEY",
    "SUPABASE_DOCUMENTS_TABLE",
    "SESSION_TTL_SECONDS",
    "SESSION_RESOLVE_TIMEOUT_SECONDS",
    "PASSWORD_RESET_REDIRECT_URL",
    "PASSWORD_RESET_CONCEAL_UNKNOWN",
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    """Start every test from a development environment without feature flags."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def settings() -> Settings:
    return Settings(environment="dev", backend="memory", resolve_timeout_seconds=1.0)


@pytest.fixture
def channel() -> PermissionErrorChannel:
    return PermissionErrorChannel()


@pytest.fixture
def app(settings: Settings, channel: PermissionErrorChannel):
    from web.main import create_app

    return create_app(settings, channel=channel)


@pytest.fixture
async def client(app):
    async with httpx.AsyncClient(
        transport=ASGITransport(app=app), base_url="https://test", follow_redirects=False
    ) as c:
        yield c
