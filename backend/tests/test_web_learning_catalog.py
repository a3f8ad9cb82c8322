"""
Lecture catalog pages: year-scoped subject list and per-subject lectures.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from documents.memory import seed_documents
from learning.catalog import lecture_items, lectures_query, subjects_query

from factories import add_user, login

pytestmark = pytest.mark.anyio("asyncio")


def _seed_catalog(store):
    seed_documents(store, "subjects", {
        "grammar": {"name": "القواعد", "description": "قواعد اللغة", "year": "first",
                    "createdAt": datetime(2024, 1, 1, tzinfo=timezone.utc)},
        "poetry": {"name": "الشعر", "description": "", "year": "second",
                   "createdAt": datetime(2024, 2, 1, tzinfo=timezone.utc)},
    })
    seed_documents(store, "subjects/grammar/lectures", {
        "l1": {"title": "الدرس الأول", "description": "مقدمة", "pdfUrl": "https://files.example/l1.pdf",
               "quiz": [{"q": "?"}], "createdAt": datetime(2024, 1, 2, tzinfo=timezone.utc)},
        "l2": {"title": "الدرس الثاني", "description": "", "pdfUrl": None,
               "createdAt": datetime(2024, 1, 9, tzinfo=timezone.utc)},
    })


def test_catalog_queries():
    assert subjects_query("first").filters == (("year", "==", "first"),)
    assert subjects_query().filters == ()
    assert lectures_query("grammar").collection == "subjects/grammar/lectures"


@pytest.mark.anyio
async def test_student_sees_only_subjects_of_their_year(client, app):
    memory = app.state.memory
    _seed_catalog(memory.store)
    add_user(memory.directory, memory.store, "sara@example.com", year="first", approved=True)
    await login(client, "sara@example.com")

    resp = await client.get("/lectures")
    assert resp.status_code == 200
    assert "القواعد" in resp.text
    assert "الشعر" not in resp.text

    resp = await client.get("/lectures/grammar")
    assert resp.status_code == 200
    body = resp.text
    assert body.index("الدرس الثاني") < body.index("الدرس الأول")
    assert "https://files.example/l1.pdf" in body
    assert "يتضمن اختباراً" in body

    resp = await client.get("/lectures/poetry")
    assert resp.status_code == 404

    resp = await client.get("/lectures/missing")
    assert resp.status_code == 404
    assert "المادة غير موجودة." in resp.text


@pytest.mark.anyio
async def test_admin_sees_all_subjects(client, app):
    memory = app.state.memory
    _seed_catalog(memory.store)
    add_user(memory.directory, memory.store, "admin@example.com", role="admin", approved=True)
    await login(client, "admin@example.com")
    resp = await client.get("/lectures")
    assert resp.status_code == 200
    assert "القواعد" in resp.text
    assert "الشعر" in resp.text


@pytest.mark.anyio
async def test_students_without_year_are_sent_to_onboarding(client, app):
    memory = app.state.memory
    add_user(memory.directory, memory.store, "sara@example.com")
    await login(client, "sara@example.com")
    resp = await client.get("/lectures")
    assert resp.status_code == 302
    assert resp.headers["location"] == "/student/onboarding"


def test_lecture_items_map_documents():
    from documents.memory import MemoryDocumentStore

    store = MemoryDocumentStore()
    _seed_catalog(store)
    items = lecture_items(store.snapshot(lectures_query("grammar")))
    assert [i.id for i in items] == ["l2", "l1"]
    assert items[1].has_quiz is True
    assert items[0].pdf_url is None
