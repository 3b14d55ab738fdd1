from datetime import timedelta
from pathlib import Path

import pytest

from client import (
    AccessDeniedError,
    AuthRequestError,
    RouteDecision,
    SessionExpiredError,
    SessionGuard,
    SessionStore,
)


@pytest.fixture()
def store(tmp_path: Path) -> SessionStore:
    return SessionStore(tmp_path / "session.json")


@pytest.fixture()
def guard(client, store) -> SessionGuard:
    return SessionGuard(client, store)


def test_no_session_redirects_to_login(guard):
    assert guard.is_logged_in is False
    assert guard.check_route() == RouteDecision(allowed=False, redirect_to="/login")


def test_signup_persists_session(guard, store, tmp_path):
    user = guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    assert user["role"] == "viewer"

    # A new guard over the same file sees the session
    reloaded = SessionGuard(guard.http, SessionStore(tmp_path / "session.json"))
    assert reloaded.is_logged_in
    assert reloaded.user["email"] == "a@x.com"
    assert reloaded.check_route() == RouteDecision(allowed=True)


def test_role_guard_shows_access_denied(guard):
    guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    decision = guard.check_route("admin")
    assert decision.allowed is False
    assert decision.access_denied is True
    assert decision.redirect_to == "/"
    assert decision.redirect_delay == 2.0
    assert guard.check_route("viewer", "editor", "admin").allowed is True


def test_failed_login_keeps_store_empty(guard, store):
    guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    guard.logout()

    with pytest.raises(AuthRequestError) as exc:
        guard.login("a@x.com", "wrong-one")
    assert exc.value.message == "Invalid email or password"
    assert exc.value.status_code == 401
    assert store.load() == (None, None)


def test_requests_carry_bearer_token(guard):
    guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    res = guard.request("GET", "/api/auth/me")
    assert res.status_code == 200
    assert res.json()["data"]["user"]["email"] == "a@x.com"


def test_forbidden_request_keeps_session(guard):
    guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    with pytest.raises(AccessDeniedError):
        guard.request("GET", "/api/auth/users")
    assert guard.is_logged_in


def test_unauthorized_request_clears_session(guard, store, token_issuer):
    user = guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    expired = token_issuer.issue(user["id"], "viewer", expires_delta=timedelta(seconds=-5))
    store.save(expired, user)

    with pytest.raises(SessionExpiredError):
        guard.request("GET", "/api/auth/me")
    assert guard.is_logged_in is False
    assert guard.check_route().redirect_to == "/login"


def test_update_profile_refreshes_cache(guard):
    guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    updated = guard.update_profile({"bio": "Analyst", "twitter": "ada"})
    assert updated["bio"] == "Analyst"
    assert guard.user["twitter"] == "ada"

    with pytest.raises(AuthRequestError, match="Email cannot be changed"):
        guard.update_profile({"email": "other@x.com"})
    assert guard.user["email"] == "a@x.com"


def test_reset_password_logs_in(guard, email_sender):
    guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    guard.logout()

    message = guard.forgot_password("a@x.com")
    assert "reset link" in message
    reset_token = email_sender.last_reset_token()
    assert guard.verify_reset_token(reset_token) is True

    user = guard.reset_password(reset_token, "brand-new")
    assert user["email"] == "a@x.com"
    assert guard.is_logged_in
    assert guard.verify_reset_token(reset_token) is False


def test_logout_clears_session(guard, store):
    guard.signup("a@x.com", "secret1", "Ada", "Lovelace")
    assert guard.logout() == "/login"
    assert store.load() == (None, None)
    assert guard.token is None


def test_unreadable_store_means_logged_out(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json", encoding="utf-8")
    assert SessionStore(path).load() == (None, None)


@pytest.mark.parametrize("content", ['["x"]', '"token"', "null", "42"])
def test_non_object_store_means_logged_out(tmp_path, client, content):
    path = tmp_path / "session.json"
    path.write_text(content, encoding="utf-8")
    assert SessionStore(path).load() == (None, None)
    assert SessionGuard(client, SessionStore(path)).is_logged_in is False
