"""
Tests for the authentication endpoints and the CSRF check.
"""

from fastapi.testclient import TestClient

from home_account.api.main import create_app
from home_account.api.rate_limit import LoginRateLimiter
from home_account.config import Settings
from home_account.db.connection import get_db_session
from conftest import TEST_ENV, register_user


def test_register_returns_user_token_and_cookie(client):
    response = client.post(
        "/api/auth/register",
        json={"email": " Ana@Example.com ", "password": "secret-pass-1", "name": "Ana", "accountName": "Casa"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["user"]["email"] == "ana@example.com"
    assert body["user"]["name"] == "Ana"
    assert body["accessToken"]
    assert "password_hash" not in body["user"]
    assert response.cookies.get("accessToken") == body["accessToken"]


def test_register_creates_named_owner_account(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "password": "secret-pass-1", "name": "Ana", "accountName": "Casa"},
    )
    headers = {"Authorization": f"Bearer {response.json()['accessToken']}"}
    client.cookies.clear()

    accounts = client.get("/api/accounts/", headers=headers).json()["accounts"]

    assert len(accounts) == 1
    assert accounts[0]["name"] == "Casa"
    assert accounts[0]["role"] == "owner"


def test_register_duplicate_email(client):
    register_user(client)

    response = client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "password": "another-pass", "name": "Ana Bis"},
    )

    assert response.status_code == 409
    assert response.json() == {"success": False, "error": "Email already registered"}


def test_register_validation_errors(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "not-an-email", "password": "short", "name": "Ana"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert "email" in body["error"]


def test_login(client):
    register_user(client)

    response = client.post("/api/auth/login", json={"email": "ANA@example.com", "password": "secret-pass-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["email"] == "ana@example.com"
    assert response.cookies.get("accessToken") == body["accessToken"]


def test_login_invalid_credentials(client):
    register_user(client)

    wrong_password = client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope-nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "who@example.com", "password": "secret-pass-1"})

    for response in (wrong_password, unknown_email):
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Invalid credentials"}


class TestLoginRateLimit:
    WRONG = {"email": "ana@example.com", "password": "nope-nope"}
    RIGHT = {"email": "ana@example.com", "password": "secret-pass-1"}

    def test_eighth_failed_attempt_is_blocked(self, client):
        register_user(client)

        attempts = [client.post("/api/auth/login", json=self.WRONG) for _ in range(8)]

        assert [r.status_code for r in attempts[:7]] == [401] * 7
        blocked = attempts[7]
        assert blocked.status_code == 429
        assert blocked.json() == {
            "success": False,
            "error": "Demasiados intentos fallidos. Intenta de nuevo en 15 minutos.",
        }
        assert int(blocked.headers["Retry-After"]) > 0
        # Correct credentials are refused too until the window resets
        assert client.post("/api/auth/login", json=self.RIGHT).status_code == 429

    def test_successful_logins_do_not_count(self, client):
        register_user(client)

        for _ in range(8):
            assert client.post("/api/auth/login", json=self.RIGHT).status_code == 200
        for _ in range(6):
            assert client.post("/api/auth/login", json=self.WRONG).status_code == 401

        assert client.post("/api/auth/login", json=self.RIGHT).status_code == 200
        assert client.post("/api/auth/login", json=self.WRONG).status_code == 401

    def test_new_limiter_starts_clean(self, client, app):
        register_user(client)
        for _ in range(7):
            client.post("/api/auth/login", json=self.WRONG)

        app.state.login_limiter = LoginRateLimiter()

        assert client.post("/api/auth/login", json=self.RIGHT).status_code == 200


def test_me_requires_token(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["error"] == "Token not provided"


def test_me_rejects_garbage_token(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.token"})

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


def test_me_with_bearer_token(client, user):
    response = client.get("/api/auth/me", headers=user["headers"])

    assert response.status_code == 200
    assert response.json()["user"]["id"] == user["id"]


def test_me_with_cookie(client):
    client.post(
        "/api/auth/register",
        json={"email": "ana@example.com", "password": "secret-pass-1", "name": "Ana"},
    )

    # TestClient keeps the accessToken cookie set by register
    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "ana@example.com"


def test_logout(client):
    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Logged out"}


def test_csrf_token_endpoint(client):
    response = client.get("/api/auth/csrf-token")

    assert response.status_code == 200
    token = response.json()["csrfToken"]
    assert len(token) == 64
    assert response.cookies.get("csrfToken") == token


class TestCsrfProtection:
    """Mutating routes of protected routers with CSRF_ENABLED=true."""

    def _client(self, session_factory):
        app = create_app(Settings({**TEST_ENV, "CSRF_ENABLED": "true"}))

        def override_get_db_session():
            session = session_factory()
            try:
                yield session
                session.commit()
            finally:
                session.close()

        app.dependency_overrides[get_db_session] = override_get_db_session
        return TestClient(app)

    def test_missing_header_is_rejected(self, session_factory):
        client = self._client(session_factory)
        headers, _ = register_user(client)

        response = client.post("/api/accounts/", json={"name": "Viajes"}, headers=headers)

        assert response.status_code == 403
        assert response.json() == {"success": False, "error": "Invalid or missing CSRF token"}

    def test_matching_header_and_cookie_pass(self, session_factory):
        client = self._client(session_factory)
        headers, _ = register_user(client)
        token = client.get("/api/auth/csrf-token").json()["csrfToken"]

        response = client.post(
            "/api/accounts/",
            json={"name": "Viajes"},
            headers={**headers, "x-csrf-token": token},
        )

        assert response.status_code == 201

    def test_mismatched_header_is_rejected(self, session_factory):
        client = self._client(session_factory)
        headers, _ = register_user(client)
        client.get("/api/auth/csrf-token")

        response = client.post(
            "/api/accounts/",
            json={"name": "Viajes"},
            headers={**headers, "x-csrf-token": "f" * 64},
        )

        assert response.status_code == 403

    def test_safe_methods_skip_the_check(self, session_factory):
        client = self._client(session_factory)
        headers, _ = register_user(client)

        response = client.get("/api/accounts/", headers=headers)

        assert response.status_code == 200
