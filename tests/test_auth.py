"""
Auth Unit & Integration Tests

Tests cover:
  - Password hashing (bcrypt)
  - JWT token generation / verification / expiry
  - User service: registration, duplicate email, credential checks
  - Auth API: login, register, logout, me
"""

from datetime import datetime, timedelta, timezone

import jwt as pyjwt
import pytest

from workflow_hub.core.exceptions import ConflictError, InvalidCredentialsError, ValidationError
from workflow_hub.models.auth import ROLE_USER, User
from workflow_hub.services.jwt_service import (
    decode_access_token,
    generate_access_token,
    identity_from_payload,
)
from workflow_hub.services.user_service import authenticate_user, create_user, get_user_by_email
from workflow_hub.utils.crypto import hash_password, verify_password

TEST_PASSWORD = "SecurePass123!"  # matches the conftest user fixtures


# ═══════════════════════════════════════════════════════════════
# Password hashing
# ═══════════════════════════════════════════════════════════════

class TestPasswordHashing:
    def test_hash_is_bcrypt(self):
        hashed = hash_password("SecurePass123!")
        assert hashed.startswith("$2")
        assert hashed != "SecurePass123!"

    def test_verify_correct_password(self):
        hashed = hash_password("SecurePass123!")
        assert verify_password("SecurePass123!", hashed) is True

    def test_verify_wrong_password(self):
        hashed = hash_password("SecurePass123!")
        assert verify_password("WrongPass", hashed) is False

    def test_verify_handles_missing_or_garbage_hash(self):
        assert verify_password("anything", None) is False
        assert verify_password("anything", "not-a-bcrypt-hash") is False

    def test_same_password_hashes_differ(self):
        assert hash_password("same") != hash_password("same")


# ═══════════════════════════════════════════════════════════════
# JWT tokens
# ═══════════════════════════════════════════════════════════════

class TestJWT:
    IDENTITY = {"id": "u-1", "email": "a@acme.io", "name": "A", "role": "MANAGER"}

    def test_round_trip_identity(self):
        token = generate_access_token(self.IDENTITY)
        payload = decode_access_token(token)
        assert identity_from_payload(payload) == self.IDENTITY
        assert payload["sub"] == "u-1"
        assert payload["type"] == "access"

    def test_expired_token_rejected(self):
        issued = datetime.now(timezone.utc) - timedelta(hours=2)
        token = generate_access_token(self.IDENTITY, expires_in=60, issued_at=issued)
        with pytest.raises(pyjwt.ExpiredSignatureError):
            decode_access_token(token)

    def test_tampered_token_rejected(self):
        token = generate_access_token(self.IDENTITY)
        with pytest.raises(pyjwt.InvalidTokenError):
            decode_access_token(token[:-4] + "abcd")

    def test_wrong_token_type_rejected(self, app):
        token = pyjwt.encode(
            {"sub": "u-1", "type": "refresh"}, app.config["SECRET_KEY"], algorithm="HS256",
        )
        with pytest.raises(pyjwt.InvalidTokenError):
            decode_access_token(token)


# ═══════════════════════════════════════════════════════════════
# User service
# ═══════════════════════════════════════════════════════════════

class TestUserService:
    def test_create_user_defaults_to_user_role(self):
        user = create_user("Jane", "jane@acme.io", "password123")
        assert user.role == ROLE_USER
        assert user.password_hash != "password123"
        assert "password_hash" not in user.to_dict()

    def test_duplicate_email_fails_and_keeps_first(self):
        first = create_user("First", "dup@acme.io", "password123")
        first_hash = first.password_hash

        with pytest.raises(ConflictError) as exc:
            create_user("Second", "dup@acme.io", "otherpass456")
        assert str(exc.value) == "User already exists"

        assert User.query.filter_by(email="dup@acme.io").count() == 1
        stored = get_user_by_email("dup@acme.io")
        assert stored.name == "First"
        assert stored.password_hash == first_hash

    def test_unique_constraint_race_becomes_conflict(self, monkeypatch):
        create_user("First", "race@acme.io", "password123")
        # Simulate a concurrent request that passed the existence check first
        monkeypatch.setattr("workflow_hub.services.user_service.get_user_by_email", lambda email: None)

        with pytest.raises(ConflictError) as exc:
            create_user("Second", "race@acme.io", "password123")

        assert str(exc.value) == "User already exists"
        assert exc.value.is_duplicate
        assert User.query.filter_by(email="race@acme.io").one().name == "First"

    def test_invalid_fields_collected(self):
        with pytest.raises(ValidationError) as exc:
            create_user(None, "not-an-email", "short")
        assert set(exc.value.details) == {"email", "password"}

    def test_email_is_stored_as_supplied(self):
        create_user(None, "Mixed.Case@Acme.io", "password123")
        assert get_user_by_email("Mixed.Case@Acme.io") is not None
        assert get_user_by_email("mixed.case@acme.io") is None

    def test_authenticate_success(self, basic_user):
        assert authenticate_user(basic_user.email, TEST_PASSWORD).id == basic_user.id

    def test_authenticate_wrong_password_and_unknown_email_look_alike(self, basic_user):
        with pytest.raises(InvalidCredentialsError) as wrong:
            authenticate_user(basic_user.email, "WrongPass999")
        with pytest.raises(InvalidCredentialsError) as unknown:
            authenticate_user("ghost@acme.io", "WrongPass999")
        assert str(wrong.value) == str(unknown.value) == "Invalid credentials"


# ═══════════════════════════════════════════════════════════════
# Auth API
# ═══════════════════════════════════════════════════════════════

class TestAuthAPI:
    def test_login_returns_token_matching_user(self, client, manager_user):
        res = client.post(
            "/api/auth/login",
            json={"email": manager_user.email, "password": TEST_PASSWORD},
        )
        assert res.status_code == 200
        body = res.get_json()
        payload = decode_access_token(body["accessToken"])
        assert payload["id"] == manager_user.id
        assert payload["email"] == manager_user.email
        assert payload["role"] == "MANAGER"
        assert body["user"]["email"] == manager_user.email
        assert "password_hash" not in body["user"]

    def test_login_sets_http_only_lax_cookie(self, client, basic_user):
        res = client.post(
            "/api/auth/login",
            json={"email": basic_user.email, "password": TEST_PASSWORD},
        )
        cookies = [c for c in res.headers.getlist("Set-Cookie") if c.startswith("auth-token=")]
        assert len(cookies) == 1
        assert "HttpOnly" in cookies[0]
        assert "SameSite=Lax" in cookies[0]
        assert "Max-Age=86400" in cookies[0]

    def test_wrong_password_and_unknown_email_identical(self, client, basic_user):
        wrong = client.post(
            "/api/auth/login",
            json={"email": basic_user.email, "password": "WrongPass999"},
        )
        unknown = client.post(
            "/api/auth/login",
            json={"email": "ghost@acme.io", "password": "WrongPass999"},
        )
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.get_json() == unknown.get_json()
        assert wrong.get_json()["code"] == "ERR_INVALID_CREDENTIALS"

    def test_login_missing_fields(self, client):
        res = client.post("/api/auth/login", json={"email": ""})
        assert res.status_code == 400
        assert set(res.get_json()["details"]) == {"email", "password"}

    @pytest.mark.parametrize("body", [["a@acme.io", "pw"], "just a string", 42])
    def test_login_non_object_body_is_400(self, client, body):
        res = client.post("/api/auth/login", json=body)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert "body" in res.get_json()["details"]

    @pytest.mark.parametrize("body", [[1], ["new@acme.io", "password123"]])
    def test_register_non_object_body_is_400(self, client, body):
        res = client.post("/api/auth/register", json=body)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert User.query.count() == 0

    def test_register_creates_user_role(self, client):
        res = client.post(
            "/api/auth/register",
            json={"name": "New", "email": "new@acme.io", "password": "password123"},
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["role"] == "USER"
        assert body["email"] == "new@acme.io"
        assert "password" not in body and "password_hash" not in body

    def test_register_ignores_supplied_role(self, client):
        res = client.post(
            "/api/auth/register",
            json={"email": "sneaky@acme.io", "password": "password123", "role": "ADMIN"},
        )
        assert res.status_code == 201
        assert res.get_json()["role"] == "USER"

    def test_register_duplicate(self, client, basic_user):
        res = client.post(
            "/api/auth/register",
            json={"email": basic_user.email, "password": "password123"},
        )
        assert res.status_code == 400
        assert res.get_json()["error"] == "User already exists"
        assert res.get_json()["code"] == "ERR_CONFLICT_DUPLICATE"

    def test_register_race_is_400_not_500(self, client, basic_user, monkeypatch):
        monkeypatch.setattr("workflow_hub.services.user_service.get_user_by_email", lambda email: None)
        res = client.post(
            "/api/auth/register",
            json={"email": basic_user.email, "password": "password123"},
        )
        assert res.status_code == 400
        assert res.get_json() == {"error": "User already exists", "code": "ERR_CONFLICT_DUPLICATE"}
        assert client.post(
            "/api/auth/register",
            json={"email": "after-race@acme.io", "password": "password123"},
        ).status_code == 201

    def test_register_invalid_payload(self, client):
        res = client.post("/api/auth/register", json={"email": "bad"})
        assert res.status_code == 400
        assert "password" in res.get_json()["details"]

    def test_me_requires_token(self, client):
        res = client.get("/api/auth/me")
        assert res.status_code == 401

    def test_me_returns_identity(self, client, login_as, admin_user):
        login_as(admin_user)
        res = client.get("/api/auth/me")
        assert res.status_code == 200
        assert res.get_json() == {
            "id": admin_user.id,
            "email": admin_user.email,
            "name": admin_user.name,
            "role": "ADMIN",
        }

    def test_bearer_header_accepted(self, client, basic_user):
        token = generate_access_token(basic_user.identity())
        res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        assert res.get_json()["id"] == basic_user.id

    def test_logout_clears_cookie(self, client, login_as, basic_user):
        login_as(basic_user)
        res = client.post("/api/auth/logout")
        assert res.status_code == 200
        assert res.get_json() == {"success": True, "message": "Logged out successfully"}
        cleared = [c for c in res.headers.getlist("Set-Cookie") if c.startswith("auth-token=")]
        assert cleared and "Max-Age=0" in cleared[0]
        assert client.get("/api/auth/me").status_code == 401
