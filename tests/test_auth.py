"""Tests for signup, login, sessions and password reset."""

from unittest.mock import patch

from tests.conftest import PASSWORD, signup


class TestSignupAndLogin:
    def test_signup_starts_session(self, client):
        user = signup(client)
        assert user["email"] == "alice@example.com"
        assert "passwordHash" not in user

        response = client.get("/api/user/settings")
        assert response.status_code == 200
        assert response.get_json()["user"]["name"] == "Alice"

    def test_session_cookie_is_http_only(self, client):
        response = client.post(
            "/api/auth/signup", json={"name": "Alice", "email": "alice@example.com", "password": PASSWORD}
        )
        cookie = response.headers["Set-Cookie"]
        assert cookie.startswith("userId=")
        assert "HttpOnly" in cookie

    def test_duplicate_email_rejected(self, client, app):
        signup(client)
        response = app.test_client().post(
            "/api/auth/signup", json={"name": "Alice 2", "email": "ALICE@example.com", "password": PASSWORD}
        )
        assert response.status_code == 409
        assert response.get_json()["error"] == "User with this email already exists"

    def test_short_password_is_validation_error(self, client):
        response = client.post("/api/auth/signup", json={"name": "A", "email": "a@example.com", "password": "123"})
        body = response.get_json()
        assert response.status_code == 400
        assert body["code"] == "VALIDATION_ERROR"
        assert body["details"][0]["field"] == "password"

    def test_malformed_json_is_400(self, client):
        response = client.post("/api/auth/login", data="{not json", content_type="application/json")
        assert response.status_code == 400

    def test_login_with_bad_password(self, client, app):
        signup(client)
        response = app.test_client().post(
            "/api/auth/login", json={"email": "alice@example.com", "password": "wrong-password"}
        )
        assert response.status_code == 401
        assert response.get_json() == {
            "success": False,
            "error": "Invalid email or password",
            "code": "AUTHENTICATION_ERROR",
        }

    def test_login_then_logout(self, client, app):
        signup(client)
        fresh = app.test_client()
        assert fresh.post("/api/auth/login", json={"email": "alice@example.com", "password": PASSWORD}).status_code == 200
        assert fresh.get("/api/tasks").status_code == 200

        assert fresh.post("/api/auth/logout").status_code == 200
        assert fresh.get("/api/tasks").status_code == 401


class TestUnauthenticated:
    def test_mutation_without_session_has_no_side_effect(self, client, user_client):
        response = client.post("/api/tasks", json={"title": "Sneaky"})
        assert response.status_code == 401
        assert response.get_json()["code"] == "AUTHENTICATION_ERROR"

        assert user_client.get("/api/tasks").get_json()["tasks"] == []

    def test_protected_page_redirects_to_login(self, client):
        response = client.get("/dashboard")
        assert response.status_code == 302
        assert response.headers["Location"].endswith("/auth/login")

    def test_dashboard_renders_for_signed_in_user(self, user_client):
        response = user_client.get("/dashboard")
        assert response.status_code == 200
        assert b"Hello, Alice" in response.data


class TestPasswordReset:
    def test_unknown_email_gets_same_response(self, client):
        signup(client)
        known = client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
        unknown = client.post("/api/auth/forgot-password", json={"email": "nobody@example.com"})
        assert known.status_code == unknown.status_code == 200
        assert known.get_json() == unknown.get_json()

    def test_missing_email_is_400(self, client):
        assert client.post("/api/auth/forgot-password", json={}).status_code == 400

    @patch("donext.auth.secrets.token_hex", return_value="a" * 64)
    def test_reset_token_is_single_use(self, mock_token, client, app):
        signup(client)
        client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})

        first = client.post("/api/auth/reset-password", json={"token": "a" * 64, "password": "newpass99"})
        assert first.status_code == 200

        second = client.post("/api/auth/reset-password", json={"token": "a" * 64, "password": "another99"})
        assert second.status_code == 400
        assert second.get_json()["error"] == "Invalid or expired token"

        fresh = app.test_client()
        assert fresh.post("/api/auth/login", json={"email": "alice@example.com", "password": "newpass99"}).status_code == 200

    def test_token_is_stored_hashed(self, client, session):
        signup(client)
        with patch("donext.auth.secrets.token_hex", return_value="b" * 64):
            client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})

        from donext.models import User
        user = session.query(User).filter_by(email="alice@example.com").one()
        assert user.reset_token_hash is not None
        assert user.reset_token_hash != "b" * 64

    def test_expired_token_rejected(self, client, session):
        from datetime import timedelta
        from donext.models import User, utcnow

        signup(client)
        with patch("donext.auth.secrets.token_hex", return_value="c" * 64):
            client.post("/api/auth/forgot-password", json={"email": "alice@example.com"})
        user = session.query(User).filter_by(email="alice@example.com").one()
        user.reset_token_expiry = utcnow() - timedelta(minutes=1)
        session.commit()

        response = client.post("/api/auth/reset-password", json={"token": "c" * 64, "password": "newpass99"})
        assert response.status_code == 400


class TestSettings:
    def test_update_settings(self, user_client):
        response = user_client.put("/api/user/settings", json={"theme": "dark", "notifPush": True})
        user = response.get_json()["user"]
        assert user["theme"] == "dark"
        assert user["notifPush"] is True
        assert user["name"] == "Alice"

    def test_email_clash(self, user_client, other_client):
        response = user_client.put("/api/user/settings", json={"email": "bob@example.com"})
        assert response.status_code == 409
