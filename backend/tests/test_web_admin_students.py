"""
Admin student management: list, approval toggle, role gating, the live
row stream and permission-error reporting.
"""
from __future__ import annotations

import httpx
import pytest
from httpx import ASGITransport

from documents.memory import MemoryDocumentStore
from identity_access.provider_memory import InMemoryIdentityDirectory, InMemoryIdentityProvider
from identity_access.session import SessionController
from web.config import Settings
from web.main import create_app
from web.routes.admin import sse_message, student_row_events

from factories import add_user, login

pytestmark = pytest.mark.anyio("asyncio")


def _seed(app):
    memory = app.state.memory
    add_user(memory.directory, memory.store, "admin@example.com", role="admin", approved=True, name="المسؤول")
    return add_user(memory.directory, memory.store, "sara@example.com", year="second", name="سارة")


@pytest.mark.anyio
async def test_admin_sees_students_and_approves(client, app):
    uid = _seed(app)
    await login(client, "admin@example.com")

    resp = await client.get("/admin/students")
    assert resp.status_code == 200
    body = resp.text
    assert "سارة" in body
    assert "الفرقة الثانية" in body
    assert "قيد المراجعة" in body
    assert f'action="/admin/students/{uid}/approval"' in body
    assert 'data-live-source="/admin/students/events"' in body
    # Admins are not listed as students.
    assert "المسؤول</td>" not in body

    resp = await client.post(f"/admin/students/{uid}/approval", data={"approved": "true"})
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/students?status=approved"
    assert (await app.state.memory.store.get(f"users/{uid}"))["approved"] is True

    resp = await client.get("/admin/students?status=approved")
    assert "تم قبول الطالب بنجاح." in resp.text

    resp = await client.post(f"/admin/students/{uid}/approval", data={"approved": "false"})
    assert resp.headers["location"] == "/admin/students?status=suspended"
    assert (await app.state.memory.store.get(f"users/{uid}"))["approved"] is False


@pytest.mark.anyio
async def test_student_cannot_open_admin_pages(client, app):
    _seed(app)
    await login(client, "sara@example.com")
    resp = await client.get("/admin/students")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"


@pytest.mark.anyio
async def test_admin_cannot_open_student_pages(client, app):
    _seed(app)
    await login(client, "admin@example.com")
    resp = await client.get("/student/profile")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/login"


def _denying_store():
    # The backend policy forbids updates of profile documents.
    return MemoryDocumentStore(policy=lambda op, path: not (op == "update" and path.startswith("users/")))


@pytest.mark.anyio
async def test_rejected_approval_is_reported_on_both_paths(channel):
    store = _denying_store()
    app = create_app(Settings(environment="dev", backend="memory"), channel=channel, store=store)
    uid = _seed(app)
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as client:
        await login(client, "admin@example.com")
        resp = await client.post(f"/admin/students/{uid}/approval", data={"approved": "true"})
        assert resp.status_code == 403
        assert "ليست لديك الصلاحية لتنفيذ هذا الإجراء." in resp.text

        events = channel.recent()
        assert events[-1].path == f"users/{uid}"
        assert events[-1].operation == "update"
        assert events[-1].payload == {"approved": True}

        resp = await client.get("/dev/permission-errors")
        assert resp.status_code == 200
        assert resp.json()["events"][-1]["payload"] == {"approved": True}
    assert (await store.get(f"users/{uid}"))["approved"] is False


@pytest.mark.anyio
async def test_rejected_list_read_shows_notice(channel):
    store = MemoryDocumentStore(policy=lambda op, path: op != "list")
    app = create_app(Settings(environment="dev", backend="memory"), channel=channel, store=store)
    _seed(app)
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as client:
        await login(client, "admin@example.com")
        resp = await client.get("/admin/students")
    assert resp.status_code == 403
    assert "ليست لديك الصلاحية لتنفيذ هذا الإجراء." in resp.text
    assert channel.recent()[-1].operation == "list"


@pytest.mark.anyio
async def test_permission_errors_endpoint_hidden_outside_dev(channel):
    directory = InMemoryIdentityDirectory()
    store = MemoryDocumentStore()

    async def factory():
        return SessionController(InMemoryIdentityProvider(directory), store, channel)

    settings = Settings(
        environment="prod",
        backend="supabase",
        supabase_url="https://project.supabase.co",
        supabase_anon_key="anon-key",
        supabase_service_role_key="service-key",
    )
    app = create_app(settings, session_factory=factory, channel=channel)
    async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as client:
        resp = await client.get("/dev/permission-errors")
    assert resp.status_code == 404
    assert "script-src 'self';" in resp.headers["Content-Security-Policy"]


@pytest.mark.anyio
async def test_row_stream_pushes_fresh_rows_and_releases_subscription(channel):
    store = MemoryDocumentStore()
    directory = InMemoryIdentityDirectory()
    uid = add_user(directory, store, "sara@example.com", year="first", name="سارة")

    events = student_row_events(store, channel)
    first = await events.__anext__()
    assert first.startswith("event: rows\n")
    assert "سارة" in first
    assert "قيد المراجعة" in first

    await store.update(f"users/{uid}", {"approved": True})
    second = await events.__anext__()
    assert "مقبول" in second

    await events.aclose()
    assert store.listener_count() == 0


@pytest.mark.anyio
async def test_row_stream_ends_with_denied_event(channel):
    store = MemoryDocumentStore(policy=lambda op, path: False)
    messages = [message async for message in student_row_events(store, channel)]
    assert len(messages) == 1
    assert messages[0].startswith("event: denied\n")
    assert channel.recent()[-1].operation == "list"
    assert store.listener_count() == 0


def test_sse_message_prefixes_every_line():
    assert sse_message("rows", "<tr>\n<td>x</td>") == "event: rows\ndata: <tr>\ndata: <td>x</td>\n\n"
    assert sse_message("denied", "") == "event: denied\ndata: \n\n"
