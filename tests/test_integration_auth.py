"""Integration tests for the session flow.

Tests the complete auth flow including:
- Registration issuing a signed session cookie
- Login and logout
- /me with and without a session
- Password change
- Uniform 401 responses for missing, tampered and expired tokens
"""

import pytest
from fastapi.testclient import TestClient

from careerboard import app as app_module
from careerboard.service.cookies import SESSION_COOKIE_NAME
from careerboard.service.runtime import get_runtime
from careerboard.service.seed import seed_admin
from careerboard.service.tokens import Role, SessionPayload

WEEK_MS = 7 * 24 * 60 * 60 * 1000


@pytest.fixture
def client():
    """Create a test client for the API."""
    return TestClient(app_module.app)


def _register(client, email="a@b.com", password="secret1"):
    return client.post("/api/auth/register", json={"email": email, "password": password})


def _error_without_request_id(response):
    body = response.json()
    body.pop("request_id", None)
    return body


class TestRegister:
    def test_register_sets_verifiable_session_cookie(self, client):
        runtime = get_runtime()
        before = runtime.signer.now_ms()
        response = _register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "ok"
        user = body["data"]["user"]
        assert user["email"] == "a@b.com"
        assert user["role"] == "user"

        set_cookie = response.headers["set-cookie"].lower()
        assert set_cookie.startswith(f"{SESSION_COOKIE_NAME}=")
        assert "httponly" in set_cookie
        assert "samesite=lax" in set_cookie
        assert "path=/" in set_cookie
        assert "max-age=604800" in set_cookie

        token = response.cookies[SESSION_COOKIE_NAME]
        payload = runtime.signer.verify(token)
        assert payload is not None
        assert payload.identifier == user["id"]
        assert payload.role is Role.USER
        assert before + WEEK_MS <= payload.expires_at_ms <= runtime.signer.now_ms() + WEEK_MS

    def test_register_rejects_duplicate_email(self, client):
        _register(client)
        response = _register(client, email="A@B.com")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "conflict"

    def test_register_validates_email_format(self, client):
        response = _register(client, email="invalid-email")
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_register_validates_password_length(self, client):
        response = _register(client, password="12345")
        assert response.status_code == 422

    def test_register_rejects_unknown_fields(self, client):
        response = client.post(
            "/api/auth/register",
            json={"email": "a@b.com", "password": "secret1", "role": "admin"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_register_rejects_unencodable_password(self, client):
        # httpx refuses to encode a lone surrogate, so send the escaped JSON as-is
        response = client.post(
            "/api/auth/register",
            content=b'{"email": "s@example.com", "password": "abcdef\\ud800"}',
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_cookie_marked_secure_when_configured(self, client, monkeypatch):
        runtime = get_runtime()
        monkeypatch.setattr(
            runtime, "settings", runtime.settings.model_copy(update={"cookie_secure": True})
        )
        response = _register(client)
        assert "; secure" in response.headers["set-cookie"].lower()


class TestLoginLogout:
    def test_login_sets_cookie_and_me_reports_user(self, client):
        _register(client)
        fresh = TestClient(app_module.app)
        response = fresh.post(
            "/api/auth/login", json={"email": "A@b.com", "password": "secret1"}
        )
        assert response.status_code == 200
        assert SESSION_COOKIE_NAME in response.cookies

        me = fresh.get("/api/auth/me")
        assert me.status_code == 200
        assert me.json()["data"]["email"] == "a@b.com"

    @pytest.mark.parametrize(
        "email,password",
        [("a@b.com", "wrong-password"), ("nobody@b.com", "secret1")],
    )
    def test_login_failures_are_uniform(self, client, email, password):
        _register(client)
        response = TestClient(app_module.app).post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        assert response.status_code == 401
        assert response.json()["error"] == {
            "code": "unauthorized",
            "message": "invalid email or password",
            "details": None,
        }
        assert "set-cookie" not in response.headers

    def test_fullwidth_email_logs_in_with_the_registered_spelling(self, client):
        registered = _register(client, email="\uff35ser@example.com")
        assert registered.status_code == 201
        assert registered.json()["data"]["user"]["email"] == "user@example.com"
        response = TestClient(app_module.app).post(
            "/api/auth/login", json={"email": "\uff35ser@example.com", "password": "secret1"}
        )
        assert response.status_code == 200

    def test_me_without_session_is_null(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json()["data"] is None

    def test_me_with_tampered_cookie_is_null(self, client):
        response = client.get(
            "/api/auth/me", headers={"Cookie": f"{SESSION_COOKIE_NAME}=abc.def"}
        )
        assert response.json()["data"] is None

    def test_logout_clears_cookie(self, client):
        _register(client)
        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        set_cookie = response.headers["set-cookie"].lower()
        assert set_cookie.startswith(f"{SESSION_COOKIE_NAME}=")
        assert "max-age=0" in set_cookie
        assert client.get("/api/auth/me").json()["data"] is None


class TestPasswordChange:
    def test_change_password_reissues_cookie(self, client):
        _register(client)
        response = client.post(
            "/api/auth/password",
            json={"current_password": "secret1", "new_password": "secret2"},
        )
        assert response.status_code == 200
        assert SESSION_COOKIE_NAME in response.cookies

        relogin = TestClient(app_module.app).post(
            "/api/auth/login", json={"email": "a@b.com", "password": "secret2"}
        )
        assert relogin.status_code == 200

    def test_change_password_wrong_current(self, client):
        _register(client)
        response = client.post(
            "/api/auth/password",
            json={"current_password": "not-it", "new_password": "secret2"},
        )
        assert response.status_code == 401

    @pytest.mark.parametrize(
        "body",
        [
            b'{"current_password": "secret1", "new_password": "secret\\udfff"}',
            b'{"current_password": "secret\\ud800", "new_password": "secret2"}',
        ],
    )
    def test_change_password_rejects_unencodable_passwords(self, client, body):
        _register(client)
        response = client.post(
            "/api/auth/password", content=body, headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    def test_change_password_requires_session(self, client):
        response = client.post(
            "/api/auth/password",
            json={"current_password": "secret1", "new_password": "secret2"},
        )
        assert response.status_code == 401


class TestGatesOverHttp:
    def test_expired_admin_token_matches_missing_cookie(self, client):
        runtime = get_runtime()
        seed_admin(runtime.store, runtime.settings, "admin@example.com", "admin-pass-1")
        admin = runtime.store.find_by_normalized_email("admin@example.com")
        expired = runtime.signer.sign(
            SessionPayload(
                identifier=admin.id,
                role=Role.ADMIN,
                expiresAtEpochMillis=runtime.signer.now_ms() - 1,
            )
        )
        body = {"title": "T", "company": "C"}

        no_cookie = client.post("/api/admin/jobs", json=body)
        with_expired = TestClient(app_module.app).post(
            "/api/admin/jobs",
            json=body,
            headers={"Cookie": f"{SESSION_COOKIE_NAME}={expired}"},
        )

        assert no_cookie.status_code == 401
        assert with_expired.status_code == 401
        assert _error_without_request_id(with_expired) == _error_without_request_id(no_cookie)
        assert no_cookie.json()["error"]["message"] == "authentication required"

    def test_user_token_on_admin_route_is_forbidden(self, client):
        _register(client)
        response = client.post("/api/admin/jobs", json={"title": "T", "company": "C"})
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "forbidden"

    def test_token_signed_with_other_secret_rejected(self, client):
        from careerboard.service.tokens import SessionTokenSigner

        runtime = get_runtime()
        other = SessionTokenSigner("some-other-secret-0123456789abcdefghij")
        token = other.sign(other.issue("user-x", Role.ADMIN, runtime.auth.ttl))
        response = client.get(
            "/api/jobs/me/application",
            headers={"Cookie": f"{SESSION_COOKIE_NAME}={token}"},
        )
        assert response.status_code == 401


def test_request_id_is_echoed(client):
    response = client.get("/api/auth/me", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_health(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
