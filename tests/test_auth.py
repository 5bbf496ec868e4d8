# =============================================================================
# tests/test_auth.py - Authentication Tests
# =============================================================================
# Login, token and cookie auth, password reset and change.
# =============================================================================

from tests import factories


class TestLogin:
    """POST /api/auth/login"""

    def test_login_returns_token(self, client, admin, university):
        response = client.post("/api/auth/login", json={"email": "admin@tu.edu", "password": "password123"})

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"]
        assert data["token_type"] == "bearer"
        assert data["role"] == "UNIVERSITY_ADMIN"
        assert data["university_id"] == university["university_id"]

    def test_login_is_case_insensitive_on_email(self, client, admin):
        response = client.post("/api/auth/login", json={"email": "ADMIN@TU.EDU", "password": "password123"})
        assert response.status_code == 200

    def test_wrong_password(self, client, admin):
        response = client.post("/api/auth/login", json={"email": "admin@tu.edu", "password": "nope"})
        assert response.status_code == 401

    def test_unknown_email(self, client):
        response = client.post("/api/auth/login", json={"email": "ghost@tu.edu", "password": "password123"})
        assert response.status_code == 401

    def test_role_mismatch_is_rejected(self, client, admin):
        response = client.post(
            "/api/auth/login",
            json={"email": "admin@tu.edu", "password": "password123", "role": "STUDENT"}
        )
        assert response.status_code == 401

    def test_deactivated_account(self, client, university):
        factories.create_user("gone@tu.edu", "SUB_USER", university["university_id"], is_active=False)
        response = client.post("/api/auth/login", json={"email": "gone@tu.edu", "password": "password123"})
        assert response.status_code == 403

    def test_login_records_last_login(self, client, admin, admin_headers):
        client.post("/api/auth/login", json={"email": "admin@tu.edu", "password": "password123"})
        me = client.get("/api/auth/me", headers=admin_headers).json()
        assert me["last_login"] is not None

    def test_invalid_body_is_400(self, client):
        response = client.post("/api/auth/login", json={"email": "not-an-email"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["errors"]


class TestCurrentUser:
    """GET /api/auth/me"""

    def test_requires_token(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_rejects_garbage_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_bearer_token(self, client, admin, admin_headers):
        response = client.get("/api/auth/me", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["user_id"] == admin
        assert response.json()["email"] == "admin@tu.edu"

    def test_cookie_token(self, client, admin):
        token = factories.auth_headers(admin, "UNIVERSITY_ADMIN")["Authorization"].split(" ", 1)[1]
        client.cookies.set("access_token", token)

        response = client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json()["user_id"] == admin

    def test_deactivated_user_token(self, client, university):
        user_id = factories.create_user("off@tu.edu", "SUB_USER", university["university_id"], is_active=False)
        response = client.get("/api/auth/me", headers=factories.auth_headers(user_id, "SUB_USER"))
        assert response.status_code == 403


class TestPasswordReset:
    """Forgot / reset / change password."""

    def test_forgot_password_unknown_email_gives_same_message(self, client, admin):
        known = client.post("/api/auth/forgot-password", json={"email": "admin@tu.edu"}).json()
        unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@tu.edu"}).json()

        assert known["message"] == unknown["message"]
        assert known["reset_token"]
        assert unknown["reset_token"] is None

    def test_reset_password_flow(self, client, admin):
        token = client.post("/api/auth/forgot-password", json={"email": "admin@tu.edu"}).json()["reset_token"]

        response = client.post("/api/auth/reset-password", json={"token": token, "new_password": "brand-new-pass"})
        assert response.status_code == 200

        assert client.post("/api/auth/login", json={"email": "admin@tu.edu", "password": "password123"}).status_code == 401
        assert client.post("/api/auth/login", json={"email": "admin@tu.edu", "password": "brand-new-pass"}).status_code == 200

    def test_reset_token_is_single_use(self, client, admin):
        token = client.post("/api/auth/forgot-password", json={"email": "admin@tu.edu"}).json()["reset_token"]
        client.post("/api/auth/reset-password", json={"token": token, "new_password": "brand-new-pass"})

        again = client.post("/api/auth/reset-password", json={"token": token, "new_password": "another-pass"})
        assert again.status_code == 400

    def test_access_token_cannot_reset(self, client, admin, admin_headers):
        token = admin_headers["Authorization"].split(" ", 1)[1]
        response = client.post("/api/auth/reset-password", json={"token": token, "new_password": "brand-new-pass"})
        assert response.status_code == 400

    def test_reset_token_is_not_an_access_token(self, client, admin):
        token = client.post("/api/auth/forgot-password", json={"email": "admin@tu.edu"}).json()["reset_token"]
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_short_new_password(self, client, admin):
        token = client.post("/api/auth/forgot-password", json={"email": "admin@tu.edu"}).json()["reset_token"]
        response = client.post("/api/auth/reset-password", json={"token": token, "new_password": "short"})
        assert response.status_code == 400

    def test_change_password(self, client, admin, admin_headers):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "password123", "new_password": "changed-pass"},
            headers=admin_headers
        )
        assert response.status_code == 200
        assert client.post("/api/auth/login", json={"email": "admin@tu.edu", "password": "changed-pass"}).status_code == 200

    def test_change_password_wrong_current(self, client, admin, admin_headers):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "wrong-pass", "new_password": "changed-pass"},
            headers=admin_headers
        )
        assert response.status_code == 400
