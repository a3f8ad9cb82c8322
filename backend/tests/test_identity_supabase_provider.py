"""
Supabase identity provider against a fake auth client.

Checks the adapter's error kinds (sign-in never reveals whether an account
exists), identity events and the service-role deletion path.
"""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from identity_access.errors import AuthErrorKind, IdentityError
from identity_access.provider_supabase import SupabaseIdentityProvider

pytestmark = pytest.mark.anyio("asyncio")


class FakeAuthApiError(Exception):
    def __init__(self, message, code=None, status=400):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


def _user(uid="u1", email="sara@example.com", avatar=None):
    return SimpleNamespace(
        id=uid,
        email=email,
        user_metadata={"avatar_url": avatar} if avatar else {},
        email_confirmed_at="2024-01-01T00:00:00Z",
    )


class FakeAuth:
    def __init__(self):
        self.user = _user()
        self.error = None
        self.calls = []
        self.sdk_listener = None
        self.unsubscribed = False

    def _maybe_fail(self, name):
        self.calls.append(name)
        if self.error is not None:
            raise self.error

    async def sign_in_with_password(self, credentials):
        self._maybe_fail("sign_in_with_password")
        return SimpleNamespace(user=self.user, session=object())

    async def sign_up(self, credentials):
        self._maybe_fail("sign_up")
        return SimpleNamespace(user=self.user, session=object())

    async def reset_password_for_email(self, email, options):
        self._maybe_fail("reset_password_for_email")
        self.reset_options = options

    async def sign_out(self):
        self.calls.append("sign_out")

    async def update_user(self, attributes):
        self._maybe_fail("update_user")
        self.user = _user(avatar=attributes["data"]["avatar_url"])
        return SimpleNamespace(user=self.user)

    async def get_user(self):
        self.calls.append("get_user")
        return SimpleNamespace(user=self.user)

    def on_auth_state_change(self, callback):
        self.sdk_listener = callback

        def unsubscribe():
            self.unsubscribed = True

        return SimpleNamespace(unsubscribe=unsubscribe)


class FakeAdminApi:
    def __init__(self, error=None):
        self.deleted = []
        self.error = error

    async def delete_user(self, uid):
        if self.error is not None:
            raise self.error
        self.deleted.append(uid)


def _provider(*, admin=None, reset_redirect_url=None):
    auth = FakeAuth()
    admin_client = SimpleNamespace(auth=SimpleNamespace(admin=admin)) if admin is not None else None
    provider = SupabaseIdentityProvider(
        SimpleNamespace(auth=auth), admin_client=admin_client, reset_redirect_url=reset_redirect_url
    )
    return provider, auth


@pytest.mark.anyio
@pytest.mark.parametrize(
    "error",
    [
        FakeAuthApiError("User not found", code="user_not_found"),
        FakeAuthApiError("User not found"),
        FakeAuthApiError("Invalid login credentials", code="invalid_credentials"),
        FakeAuthApiError("Unable to validate email address", code="email_address_invalid"),
    ],
)
async def test_sign_in_failures_are_all_invalid_credentials(error):
    provider, auth = _provider()
    auth.error = error
    with pytest.raises(IdentityError) as exc:
        await provider.authenticate("sara@example.com", "secret-123")
    assert exc.value.kind is AuthErrorKind.INVALID_CREDENTIALS


@pytest.mark.anyio
async def test_sign_in_transport_failure_stays_network_error():
    provider, auth = _provider()
    auth.error = ConnectionError("unreachable")
    with pytest.raises(IdentityError) as exc:
        await provider.authenticate("sara@example.com", "secret-123")
    assert exc.value.kind is AuthErrorKind.NETWORK_OR_UNKNOWN


@pytest.mark.anyio
async def test_sign_up_with_taken_email():
    provider, auth = _provider()
    auth.error = FakeAuthApiError("User already registered", code="user_already_exists", status=422)
    with pytest.raises(IdentityError) as exc:
        await provider.register("sara@example.com", "secret-123")
    assert exc.value.kind is AuthErrorKind.EMAIL_ALREADY_IN_USE


@pytest.mark.anyio
async def test_identity_events_follow_sign_in_and_sdk_sign_out():
    provider, auth = _provider()
    seen = []
    unsubscribe = provider.on_identity_change(seen.append)
    assert seen == [None]

    identity = await provider.authenticate("sara@example.com", "secret-123")
    assert identity.uid == "u1"
    assert seen == [None, identity]

    # Token refresh for the same user is not a new identity.
    auth.sdk_listener("TOKEN_REFRESHED", SimpleNamespace(user=auth.user))
    assert len(seen) == 2

    auth.sdk_listener("SIGNED_OUT", None)
    assert seen[-1] is None

    unsubscribe()
    unsubscribe()
    provider.close()
    assert auth.unsubscribed is True


@pytest.mark.anyio
async def test_password_reset_passes_redirect_url():
    provider, auth = _provider(reset_redirect_url="https://farsi.example/reset")
    await provider.request_password_reset("sara@example.com")
    assert auth.reset_options == {"redirect_to": "https://farsi.example/reset"}


@pytest.mark.anyio
async def test_profile_picture_goes_to_user_metadata():
    provider, auth = _provider()
    await provider.authenticate("sara@example.com", "secret-123")
    await provider.update_identity_profile_picture("https://i.suar.me/avatar.png")
    refreshed = await provider.reload()
    assert refreshed.photo_url == "https://i.suar.me/avatar.png"


@pytest.mark.anyio
async def test_delete_identity_uses_admin_client_then_signs_out():
    admin = FakeAdminApi()
    provider, auth = _provider(admin=admin)
    seen = []
    provider.on_identity_change(seen.append)
    await provider.authenticate("sara@example.com", "secret-123")

    await provider.delete_identity()
    assert admin.deleted == ["u1"]
    assert auth.calls[-1] == "sign_out"
    assert seen[-1] is None


@pytest.mark.anyio
async def test_delete_identity_without_admin_client_fails_without_signing_out():
    provider, auth = _provider()
    await provider.authenticate("sara@example.com", "secret-123")
    with pytest.raises(IdentityError) as exc:
        await provider.delete_identity()
    assert exc.value.kind is AuthErrorKind.NETWORK_OR_UNKNOWN
    assert "sign_out" not in auth.calls


@pytest.mark.anyio
async def test_delete_identity_requires_a_signed_in_user():
    provider, _ = _provider(admin=FakeAdminApi())
    with pytest.raises(IdentityError) as exc:
        await provider.delete_identity()
    assert exc.value.kind is AuthErrorKind.PERMISSION_DENIED
