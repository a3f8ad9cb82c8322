"""
Identity domain tests: profile parsing, the merged AppUser view and the
loading predicate of the session state union.
"""
from __future__ import annotations

import pytest

from documents.ports import SERVER_TIMESTAMP
from identity_access.domain import (
    AppUser,
    Authenticated,
    Identity,
    Profile,
    Resolving,
    Unauthenticated,
    Unresolved,
    current_user,
    is_loading,
    profile_path,
)


def _profile(**overrides):
    data = {"name": "سارة", "email": "sara@example.com", "role": "student", "approved": False, "year": None}
    data.update(overrides)
    return Profile.from_document("u1", data)


def test_profile_from_document_reads_fields():
    p = _profile(year="second", photoURL="https://img/x.png", approved=True)
    assert p.uid == "u1"
    assert p.role == "student"
    assert p.year == "second"
    assert p.approved is True
    assert p.photo_url == "https://img/x.png"


def test_profile_rejects_unknown_role():
    with pytest.raises(ValueError):
        _profile(role="moderator")


def test_profile_rejects_unknown_year():
    with pytest.raises(ValueError):
        _profile(year="fifth")


def test_new_document_is_unapproved_student_without_year():
    doc = Profile.new_document("u1", "سارة", "sara@example.com")
    assert doc["role"] == "student"
    assert doc["approved"] is False
    assert doc["year"] is None
    assert doc["photoURL"] is None
    assert doc["createdAt"] is SERVER_TIMESTAMP


def test_app_user_prefers_profile_photo_and_flags_onboarding():
    identity = Identity(uid="u1", email="sara@example.com", photo_url="https://idp/pic.png")
    user = AppUser(identity, _profile())
    assert user.photo_url == "https://idp/pic.png"
    assert user.needs_onboarding is True
    assert user.is_student and not user.is_admin

    onboarded = AppUser(identity, _profile(year="first", photoURL="https://img/own.png"))
    assert onboarded.photo_url == "https://img/own.png"
    assert onboarded.needs_onboarding is False


def test_admin_never_needs_onboarding():
    user = AppUser(Identity(uid="a1", email="a@example.com"), _profile(role="admin"))
    assert user.is_admin
    assert user.needs_onboarding is False


def test_loading_states():
    identity = Identity(uid="u1", email="sara@example.com")
    user = AppUser(identity, _profile())
    assert is_loading(Unresolved())
    assert is_loading(Resolving(identity))
    assert not is_loading(Authenticated(user))
    assert not is_loading(Unauthenticated())
    assert current_user(Authenticated(user)) is user
    assert current_user(Resolving(identity)) is None


def test_profile_path():
    assert profile_path("abc") == "users/abc"
