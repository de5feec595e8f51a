"""Tests for the auth providers."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

import studykit.auth as auth_module
from studykit.auth import SIGNED_IN, SIGNED_OUT, LocalAuth, Session, SupabaseAuth, User, require_user
from studykit.errors import AuthError, AuthRequiredError
from studykit.supabase_backend import SupabaseClient


def test_require_user():
    """A session without a user id counts as signed out."""

    user = User(id="u1", email="a@example.com")

    assert require_user(Session(user=user)) is user
    with pytest.raises(AuthRequiredError):
        require_user(None)
    with pytest.raises(AuthRequiredError):
        require_user(Session(user=User(id="", email="")))


def test_local_sign_up_then_sign_in(tmp_path):
    """Local accounts sign in with normalised emails and never store the password."""

    auth = LocalAuth(tmp_path)

    created = auth.sign_up("Ada@Example.com ", "secret", "Ada")
    signed_in = auth.sign_in("ada@example.com", "secret")

    assert created.user == signed_in.user
    assert signed_in.user.name == "Ada"
    stored = auth.users.select()[0]
    assert "secret" not in str(stored)


def test_local_rejects_bad_credentials_and_duplicates(tmp_path):
    """Wrong passwords, unknown emails and duplicate sign-ups are refused."""

    auth = LocalAuth(tmp_path)
    auth.sign_up("ada@example.com", "secret", "Ada")

    with pytest.raises(AuthError):
        auth.sign_in("ada@example.com", "wrong")
    with pytest.raises(AuthError):
        auth.sign_in("nobody@example.com", "secret")
    with pytest.raises(AuthError):
        auth.sign_up("ada@example.com", "other", "Ada again")


def test_listeners_are_notified_until_unsubscribed(tmp_path):
    """Listeners hear sign-in and sign-out until they unsubscribe."""

    auth = LocalAuth(tmp_path)
    events = []
    unsubscribe = auth.subscribe(lambda event, session: events.append((event, session)))

    session = auth.sign_up("ada@example.com", "secret", "Ada")
    auth.sign_out(session)
    unsubscribe()
    auth.sign_in("ada@example.com", "secret")
    unsubscribe()

    assert events == [(SIGNED_IN, session), (SIGNED_OUT, None)]


def _response(status_code, payload):
    return SimpleNamespace(
        ok=200 <= status_code < 300,
        status_code=status_code,
        content=b"{}" if payload is not None else b"",
        text="",
        json=lambda: payload,
    )


@pytest.fixture
def supabase_auth():
    return SupabaseAuth(SupabaseClient(url="https://demo.supabase.co", anon_key="anon"), "https://app.example/auth")


def test_supabase_sign_in_builds_session(monkeypatch, supabase_auth):
    """Password sign-in posts to GoTrue and builds a session from the reply."""

    captured = {}

    def fake_post(url, headers, json, timeout):
        captured.update(url=url, headers=headers, json=json, timeout=timeout)
        return _response(
            200,
            {
                "access_token": "jwt",
                "refresh_token": "refresh",
                "user": {"id": "u1", "email": "ada@example.com", "user_metadata": {"name": "Ada"}},
            },
        )

    monkeypatch.setattr(auth_module.requests, "post", fake_post)

    session = supabase_auth.sign_in("ada@example.com", "secret")

    assert captured["url"] == "https://demo.supabase.co/auth/v1/token?grant_type=password"
    assert captured["headers"]["apikey"] == "anon"
    assert captured["timeout"] == 10
    assert session == Session(user=User(id="u1", email="ada@example.com", name="Ada"), access_token="jwt", refresh_token="refresh")


def test_supabase_sign_up_pending_confirmation_returns_none(monkeypatch, supabase_auth):
    """A sign-up awaiting email confirmation returns no session."""

    monkeypatch.setattr(
        auth_module.requests,
        "post",
        lambda url, headers, json, timeout: _response(200, {"id": "u1", "email": "ada@example.com"}),
    )

    assert supabase_auth.sign_up("ada@example.com", "secret", "Ada") is None


def test_supabase_errors_surface_message(monkeypatch, supabase_auth):
    """GoTrue error descriptions become the error message."""

    monkeypatch.setattr(
        auth_module.requests,
        "post",
        lambda url, headers, json, timeout: _response(400, {"error_description": "Invalid login credentials"}),
    )

    with pytest.raises(AuthError, match="Invalid login credentials"):
        supabase_auth.sign_in("ada@example.com", "wrong")


def test_supabase_network_failure(monkeypatch, supabase_auth):
    """Network failures surface as auth errors."""

    def boom(*args, **kwargs):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(auth_module.requests, "post", boom)

    with pytest.raises(AuthError):
        supabase_auth.sign_in("ada@example.com", "secret")


def test_oauth_url_includes_provider_and_redirect(supabase_auth):
    """The OAuth link names the provider and the redirect target."""

    url = supabase_auth.oauth_url("google")

    assert url.startswith("https://demo.supabase.co/auth/v1/authorize?")
    assert "provider=google" in url
    assert "redirect_to=https%3A%2F%2Fapp.example%2Fauth" in url


def test_local_auth_has_no_oauth(tmp_path):
    """The local provider offers no OAuth link."""

    assert LocalAuth(tmp_path).oauth_url("google") is None
