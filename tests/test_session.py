# tests/test_session.py

"""
Tests for sign-in, guest sessions, restore and sign-out.
"""

import asyncio
from unittest.mock import Mock, patch

import pytest

from app.api.deps import get_current_user
from app.core.config import Settings, parse_id_list
from app.core.errors import AuthenticationError

from conftest import VISITOR

POST = "app.services.session.requests.post"

TOKENS = {"localId": "visitor-1", "email": "X@Example.com", "idToken": "id-tok",
          "refreshToken": "refresh-tok", "expiresIn": "3600"}


def reply(status_code, body):
    return Mock(status_code=status_code, json=Mock(return_value=body), text=str(body))


def test_login_returns_tokens(client):
    with patch(POST, return_value=reply(200, TOKENS)) as mock_post:
        response = client.post("/api/v1/auth/login", json={"email": "x@example.com", "password": "pw"})

    assert response.status_code == 200
    assert response.json()["uid"] == "visitor-1"
    assert response.json()["email"] == "x@example.com"
    assert response.json()["id_token"] == "id-tok"
    assert mock_post.call_args.args[0].endswith("accounts:signInWithPassword")
    assert mock_post.call_args.kwargs["params"] == {"key": "web-key"}


@pytest.mark.parametrize("code, message", [
    ("INVALID_LOGIN_CREDENTIALS", "Invalid email or password"),
    ("USER_DISABLED", "This account has been disabled"),
    ("TOO_MANY_ATTEMPTS_TRY_LATER : Access disabled", "Too many attempts. Please try again later"),
    ("SOMETHING_NEW", "Sign in failed"),
])
def test_login_failures_show_a_message(client, code, message):
    with patch(POST, return_value=reply(400, {"error": {"message": code}})):
        response = client.post("/api/v1/auth/login", json={"email": "x@example.com", "password": "pw"})
    assert response.status_code == 401
    assert response.json() == {"detail": message}


def test_auth_outage_is_a_retry_message(client):
    with patch(POST, return_value=reply(503, {})):
        response = client.post("/api/v1/auth/login", json={"email": "x@example.com", "password": "pw"})
    assert response.status_code == 503
    assert response.json()["detail"] == "Something went wrong. Please try again."


def test_guest_session(client):
    with patch(POST, return_value=reply(200, {**TOKENS, "localId": "guest-9"})) as mock_post:
        response = client.post("/api/v1/auth/guest")
    assert response.json()["is_anonymous"] is True
    assert response.json()["uid"] == "guest-9"
    assert mock_post.call_args.args[0].endswith("accounts:signUp")


def test_guest_sign_in_disabled(client):
    with patch(POST, return_value=reply(400, {"error": {"message": "ADMIN_ONLY_OPERATION"}})):
        response = client.post("/api/v1/auth/guest")
    assert response.status_code == 401
    assert response.json()["detail"] == "Guest sign-in is not available"


def test_restore_session(client):
    refreshed = {"user_id": "visitor-1", "id_token": "new-id", "refresh_token": "new-refresh", "expires_in": "3600"}
    with patch(POST, return_value=reply(200, refreshed)), \
         patch("app.services.session.initialize_app"), \
         patch("app.services.session.firebase_auth.verify_id_token",
               return_value={"uid": "visitor-1", "email": "X@example.com"}):
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": "old"})
    assert response.status_code == 200
    assert response.json()["id_token"] == "new-id"
    assert response.json()["email"] == "x@example.com"


def test_expired_refresh_token(client):
    with patch(POST, return_value=reply(400, {"error": {"message": "TOKEN_EXPIRED"}})):
        response = client.post("/api/v1/auth/refresh", json={"refresh_token": "old"})
    assert response.status_code == 401


def test_logout_revokes_refresh_tokens(client, current_user):
    current_user.set(VISITOR)
    with patch("app.services.session.initialize_app"), \
         patch("app.services.session.firebase_auth.revoke_refresh_tokens") as revoke:
        response = client.post("/api/v1/auth/logout")
    assert response.status_code == 200
    revoke.assert_called_once_with("visitor-1")


def test_missing_api_key_fails_before_calling_out(client, settings):
    settings.firebase_api_key = None
    with patch(POST) as mock_post:
        response = client.post("/api/v1/auth/login", json={"email": "x@example.com", "password": "pw"})
    assert response.status_code == 503
    mock_post.assert_not_called()


def test_bearer_header_is_required():
    with pytest.raises(AuthenticationError):
        asyncio.run(get_current_user(None))
    with pytest.raises(AuthenticationError):
        asyncio.run(get_current_user("Token abc"))


def test_bearer_token_becomes_current_user():
    claims = {"uid": "guest-1", "firebase": {"sign_in_provider": "anonymous"}}
    with patch("app.api.deps.verify_token", return_value=claims) as verify:
        user = asyncio.run(get_current_user("Bearer abc"))
    verify.assert_called_once_with("abc")
    assert user.uid == "guest-1"
    assert user.is_anonymous is True


def test_invalid_token_is_rejected():
    with patch("app.services.session.initialize_app"), \
         patch("app.services.session.firebase_auth.verify_id_token", side_effect=ValueError("expired")):
        with pytest.raises(AuthenticationError):
            asyncio.run(get_current_user("Bearer abc"))


def test_allow_lists_from_environment(monkeypatch):
    monkeypatch.setenv("ADMIN_UIDS", " a1, ,a2 ")
    monkeypatch.setenv("SUPER_ADMIN_UIDS", "")
    monkeypatch.setenv("SENDGRID_API_KEY", "")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = Settings()
    assert settings.admin_uids == ["a1", "a2"]
    assert settings.super_admin_uids == []
    assert settings.sendgrid_api_key is None
    assert settings.log_level == "DEBUG"
    assert parse_id_list(None) == []


def test_public_client_config(client):
    body = client.get("/api/v1/config").json()
    assert body["apiKey"] == "web-key"
