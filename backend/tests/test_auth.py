"""
Registration, login and identity token tests.
"""

from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from taskflow.core.auth import issue_token, verify_token
from conftest import PASSWORD, auth_headers


class TestRegistration:
    """Test the three join paths and their validation."""

    def test_register_creates_organization_with_admin(self, client: TestClient, acme_admin: dict):
        """Registering with an organization name makes the user its admin."""
        assert acme_admin["user"]["role"] == "admin"
        assert acme_admin["user"]["email"] == "alice@acme.com"
        assert acme_admin["token"]

        response = client.get("/api/organizations/current", headers=acme_admin["headers"])
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Acme"
        assert data["code"].startswith("ACME")
        assert data["settings"] == {"theme": "light"}

    def test_register_by_join_code(self, acme_admin: dict, acme_member: dict):
        """Join-code registration grants the member role in that organization."""
        assert acme_member["user"]["role"] == "member"
        assert acme_member["user"]["organization_id"] == acme_admin["user"]["organization_id"]

    def test_join_code_is_case_insensitive(self, register, acme_admin: dict, acme_code: str):
        user = register("Dave", "dave@acme.com", organization_code=acme_code.lower())
        assert user["user"]["organization_id"] == acme_admin["user"]["organization_id"]

    def test_unknown_join_code(self, client: TestClient):
        response = client.post("/api/auth/register", json={
            "name": "Dave", "email": "dave@acme.com", "password": PASSWORD, "organization_code": "NOPE0000"
        })
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_register_requires_exactly_one_join_option(self, client: TestClient):
        """Zero or several join options are rejected."""
        base = {"name": "Dave", "email": "dave@acme.com", "password": PASSWORD}

        response = client.post("/api/auth/register", json=base)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

        response = client.post("/api/auth/register", json={
            **base, "organization_name": "Acme", "organization_code": "ACME1234"
        })
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_short_password_rejected(self, client: TestClient):
        response = client.post("/api/auth/register", json={
            "name": "Dave", "email": "dave@acme.com", "password": "123", "organization_name": "Acme"
        })
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_password_over_bcrypt_limit_rejected(self, client: TestClient):
        """Passwords longer than 72 bytes are a validation error, not a server error."""
        response = client.post("/api/auth/register", json={
            "name": "Dave", "email": "dave@acme.com", "password": "p" * 80, "organization_name": "Acme"
        })
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

        # Multi-byte characters count by their encoded size
        response = client.post("/api/auth/register", json={
            "name": "Dave", "email": "dave@acme.com", "password": "\u00e9" * 40, "organization_name": "Acme"
        })
        assert response.status_code == 400

    def test_password_at_bcrypt_limit_accepted(self, register):
        user = register("Dave", "dave@acme.com", password="p" * 72, organization_name="Acme")
        assert user["user"]["role"] == "admin"

    def test_duplicate_email(self, client: TestClient, acme_admin: dict):
        """Emails are unique across organizations, case-insensitively."""
        response = client.post("/api/auth/register", json={
            "name": "Alice 2", "email": "ALICE@acme.com", "password": PASSWORD, "organization_name": "Other"
        })
        assert response.status_code == 409
        assert response.json()["code"] == "DUPLICATE_CREDENTIAL"


class TestLogin:
    """Test login and the /me endpoint."""

    def test_login_success(self, client: TestClient, acme_admin: dict):
        response = client.post("/api/auth/login", json={"email": "alice@acme.com", "password": PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == acme_admin["user"]["id"]

        me = client.get("/api/auth/me", headers=auth_headers(data["token"]))
        assert me.status_code == 200
        assert me.json()["email"] == "alice@acme.com"

    def test_login_wrong_password(self, client: TestClient, acme_admin: dict):
        response = client.post("/api/auth/login", json={"email": "alice@acme.com", "password": "wrong-password"})
        assert response.status_code == 401
        assert response.json() == {"detail": "Invalid credentials", "code": "UNAUTHENTICATED"}

    def test_login_with_overlong_password(self, client: TestClient, acme_admin: dict):
        response = client.post("/api/auth/login", json={"email": "alice@acme.com", "password": "p" * 80})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_login_unknown_email(self, client: TestClient):
        response = client.post("/api/auth/login", json={"email": "nobody@acme.com", "password": PASSWORD})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_me_without_token(self, client: TestClient):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_me_with_invalid_token(self, client: TestClient):
        response = client.get("/api/auth/me", headers=auth_headers("garbage.token"))
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"

    def test_me_with_non_ascii_token(self, client: TestClient):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer abc.\u00e9\u00e9".encode("latin-1")})
        assert response.status_code == 401
        assert response.json()["code"] == "UNAUTHENTICATED"


class TestIdentityTokens:
    """Test token signing and expiry."""

    def test_round_trip(self):
        assert verify_token(issue_token(42)) == 42

    def test_tampered_signature(self):
        payload, signature = issue_token(42).rsplit(".", 1)
        assert verify_token(f"{payload}.{'0' * len(signature)}") is None

    def test_non_ascii_signature(self):
        payload, _ = issue_token(42).rsplit(".", 1)
        assert verify_token(f"{payload}.\u00e9\u00e9") is None

    def test_expired_token(self):
        issued_at = datetime.now(timezone.utc) - timedelta(days=8)
        assert verify_token(issue_token(42, issued_at=issued_at)) is None

    def test_token_within_validity_window(self):
        issued_at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        token = issue_token(7, issued_at=issued_at)
        assert verify_token(token, now=issued_at + timedelta(days=6)) == 7
        assert verify_token(token, now=issued_at + timedelta(days=8)) is None
