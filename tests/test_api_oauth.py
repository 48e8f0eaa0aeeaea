"""
HTTP tests for the OAuth login flow. The provider's token and profile
endpoints are served by httpx.MockTransport.
"""
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from luukahead.app.api import deps
from luukahead.app.api.v1.endpoints import oauth as oauth_endpoints
from luukahead.app.core.config import settings
from luukahead.app.security.oauth import GoogleProvider
from luukahead.app.security.sessions import SessionStore


class FakeGoogle:
    """Scriptable stand-in for Google's token and userinfo endpoints."""

    def __init__(self):
        self.profile = {"sub": "g-100", "email": "dana@example.com", "name": "Dana"}
        self.token_status = 200
        self.exchanged_codes = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "oauth2.googleapis.com":
            form = parse_qs(request.content.decode())
            self.exchanged_codes.append(form["code"][0])
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_grant"})
            return httpx.Response(200, json={"access_token": "at-1", "token_type": "Bearer"})
        if request.url.host == "openidconnect.googleapis.com":
            return httpx.Response(200, json=self.profile)
        return httpx.Response(404)


@pytest.fixture
def fake_google():
    return FakeGoogle()


@pytest.fixture
def oauth_app(app, fake_google):
    def override(provider: str):
        if provider != "google":
            raise HTTPException(status_code=404, detail="Unknown provider")
        return GoogleProvider(
            "gid",
            "gsecret",
            "http://testserver/login/google/callback",
            transport=httpx.MockTransport(fake_google.handler),
        )

    app.dependency_overrides[deps.get_oauth_provider] = override
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def oauth_client(oauth_app):
    with TestClient(oauth_app) as test_client:
        yield test_client


def _start(client):
    response = client.get("/login/google", follow_redirects=False)
    assert response.status_code == 302
    state = parse_qs(urlparse(response.headers["location"]).query)["state"][0]
    return response, state


def _oauth_login(client, code="auth-code"):
    _, state = _start(client)
    return client.get(
        "/login/google/callback",
        params={"code": code, "state": state},
        follow_redirects=False,
    )


class TestStart:
    """GET /login/{provider}"""

    def test_redirects_with_state_and_pkce_cookies(self, oauth_client):
        response, state = _start(oauth_client)

        location = urlparse(response.headers["location"])
        assert location.netloc == "accounts.google.com"
        assert parse_qs(location.query)["code_challenge_method"] == ["S256"]

        cookies = [c.lower() for c in response.headers.get_list("set-cookie")]
        assert any(c.startswith(f"google_oauth_state={state.lower()}") for c in cookies)
        assert any(c.startswith("google_code_verifier=") for c in cookies)
        for cookie in cookies:
            assert "httponly" in cookie
            assert "max-age=600" in cookie
            assert "samesite=lax" in cookie

    def test_unknown_provider(self, oauth_client):
        assert oauth_client.get("/login/github", follow_redirects=False).status_code == 404

    def test_unconfigured_provider(self, client, monkeypatch):
        monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "")

        assert client.get("/login/google", follow_redirects=False).status_code == 503


class TestCallback:
    """GET /login/{provider}/callback"""

    def test_successful_login_creates_user_and_session(self, oauth_client, fake_google):
        response = _oauth_login(oauth_client)

        assert response.status_code == 302
        assert response.headers["location"] == "/projects"
        assert oauth_client.cookies.get("auth-session")
        assert oauth_client.cookies.get("google_oauth_state") is None
        assert oauth_client.cookies.get("google_code_verifier") is None
        assert fake_google.exchanged_codes == ["auth-code"]

        me = oauth_client.get("/api/v1/auth/me").json()
        assert me["username"] == "dana"
        assert me["google_linked"] is True
        assert me["has_password"] is False

    def test_repeated_logins_resolve_to_same_user(self, oauth_client):
        _oauth_login(oauth_client)
        first = oauth_client.get("/api/v1/auth/me").json()["id"]

        oauth_client.cookies.clear()
        _oauth_login(oauth_client)
        second = oauth_client.get("/api/v1/auth/me").json()["id"]

        assert first == second

    def test_password_account_is_linked(self, oauth_client, fake_google):
        registered = oauth_client.post(
            "/api/v1/auth/register", data={"username": "alice", "password": "secret1"}
        ).json()
        oauth_client.post("/api/v1/auth/logout")
        oauth_client.cookies.clear()

        fake_google.profile = {"sub": "g-alice", "email": "alice@example.com"}
        _oauth_login(oauth_client)
        me = oauth_client.get("/api/v1/auth/me").json()

        assert me["id"] == registered["id"]
        assert me["has_password"] is True
        assert me["google_linked"] is True

    def test_oauth_only_account_has_no_password(self, oauth_client):
        _oauth_login(oauth_client)
        oauth_client.cookies.clear()

        response = oauth_client.post("/api/v1/auth/login", data={"username": "dana", "password": "whatever1"})

        assert response.status_code == 400
        assert response.json()["detail"] == "This account has no password set."

    def test_state_mismatch_is_rejected_without_side_effects(self, oauth_client, fake_google):
        _start(oauth_client)

        response = oauth_client.get(
            "/login/google/callback",
            params={"code": "auth-code", "state": "forged"},
            follow_redirects=False,
        )

        assert response.status_code == 400
        assert response.text == "Invalid OAuth state"
        assert fake_google.exchanged_codes == []
        assert oauth_client.cookies.get("auth-session") is None

        login = oauth_client.post("/api/v1/auth/login", data={"username": "dana", "password": "whatever1"})
        assert login.json()["detail"] == "Incorrect username or password"

    def test_missing_code_verifier_is_rejected(self, oauth_client, fake_google):
        _, state = _start(oauth_client)
        oauth_client.cookies.delete("google_code_verifier")

        response = oauth_client.get(
            "/login/google/callback",
            params={"code": "auth-code", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 400
        assert fake_google.exchanged_codes == []

    def test_callback_without_start_is_rejected(self, oauth_client):
        response = oauth_client.get(
            "/login/google/callback",
            params={"code": "auth-code", "state": "whatever"},
            follow_redirects=False,
        )

        assert response.status_code == 400

    def test_missing_code_is_rejected(self, oauth_client):
        _, state = _start(oauth_client)

        response = oauth_client.get(
            "/login/google/callback",
            params={"error": "access_denied", "state": state},
            follow_redirects=False,
        )

        assert response.status_code == 400

    def test_provider_error_redirects_to_login(self, oauth_client, fake_google):
        fake_google.token_status = 500

        response = _oauth_login(oauth_client)

        assert response.status_code == 302
        assert response.headers["location"] == "/login?error=oauth_failed"
        assert oauth_client.cookies.get("auth-session") is None
        assert oauth_client.get("/api/v1/auth/me").status_code == 401

        login = oauth_client.post("/api/v1/auth/login", data={"username": "dana", "password": "whatever1"})
        assert login.json()["detail"] == "Incorrect username or password"


def _connection_lost(*args, **kwargs):
    raise OperationalError("INSERT INTO session", {}, Exception("connection lost"))


class TestCallbackStorageFailure:
    """Database errors during the callback surface as a 500, not a login redirect"""

    @pytest.fixture
    def failing_client(self, oauth_app):
        with TestClient(oauth_app, raise_server_exceptions=False) as test_client:
            yield test_client

    def test_resolution_failure_returns_500(self, failing_client, monkeypatch):
        async def resolve_fails(*args, **kwargs):
            _connection_lost()

        monkeypatch.setattr(oauth_endpoints, "resolve_oauth_user", resolve_fails)

        response = _oauth_login(failing_client)

        assert response.status_code == 500
        assert response.json() == {"detail": "An error has occurred"}
        assert failing_client.cookies.get("auth-session") is None

    def test_session_failure_keeps_no_new_user(self, failing_client, monkeypatch):
        async def create_fails(self, token, user_id):
            _connection_lost()

        monkeypatch.setattr(SessionStore, "create_session", create_fails)

        response = _oauth_login(failing_client)
        monkeypatch.undo()

        assert response.status_code == 500
        assert failing_client.cookies.get("auth-session") is None

        # The user flushed by the linker was rolled back with the session
        login = failing_client.post("/api/v1/auth/login", data={"username": "dana", "password": "whatever1"})
        assert login.json()["detail"] == "Incorrect username or password"
