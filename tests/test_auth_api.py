import pytest
from unittest.mock import AsyncMock, patch

from sqlalchemy import select

from campus_connect.db.models import User, UserRole
from campus_connect.services.auth_service import AuthService
from campus_connect.utils.auth import AuthUtils

pytestmark = pytest.mark.integration

API = "/api/v1"


def register_payload(**overrides):
    payload = {
        "firstName": "Alice",
        "lastName": "Anders",
        "email": "alice@university.edu",
        "password": "secret123",
        "department": "CS",
    }
    payload.update(overrides)
    return payload


class TestAuthUtils:
    """Token and password helpers."""

    def test_token_round_trip_yields_user_id(self):
        token = AuthUtils.generate_access_token(42, "x@university.edu", "student")
        assert AuthUtils.user_id_from_token(token) == 42

    def test_tampered_token_rejected(self):
        token = AuthUtils.generate_access_token(42, "x@university.edu", "student")
        assert AuthUtils.user_id_from_token(token + "x") is None

    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc", "abc"),
            ("bearer abc", "abc"),
            ("Basic abc", None),
            ("Bearer ", None),
            (None, None),
        ],
    )
    def test_extract_bearer_token(self, header, expected):
        assert AuthUtils.extract_bearer_token(header) == expected

    def test_password_hashing(self):
        hashed = AuthUtils.hash_password("secret123")
        assert AuthUtils.verify_password("secret123", hashed)
        assert not AuthUtils.verify_password("wrong", hashed)
        assert not AuthUtils.verify_password("secret123", None)


class TestRegisterAndLogin:
    """Registration, login and the caller profile."""

    def test_register_student_creates_profile(self, client, db_session):
        response = client.post(f"{API}/auth/register", json=register_payload())

        assert response.status_code == 201, response.text
        body = response.json()
        assert body["success"] is True
        assert body["data"]["token"]
        assert body["data"]["user"]["department"] == "CS"
        assert body["data"]["user"]["role"] == "student"

        user = db_session.execute(
            select(User).where(User.email == "alice@university.edu")
        ).scalar_one()
        assert user.student_profile.department == "CS"
        assert user.password_hash != "secret123"

    def test_register_student_without_department_rejected(self, client):
        response = client.post(
            f"{API}/auth/register", json=register_payload(department=None)
        )
        assert response.status_code == 400
        assert response.json()["meta"]["errorCode"] == "DEPARTMENT_REQUIRED"

    def test_register_duplicate_email_conflicts(self, client):
        client.post(f"{API}/auth/register", json=register_payload())
        response = client.post(
            f"{API}/auth/register", json=register_payload(email="ALICE@university.edu")
        )
        assert response.status_code == 409
        assert response.json()["meta"]["errorCode"] == "EMAIL_ALREADY_EXISTS"

    def test_self_registration_as_admin_refused(self, client):
        response = client.post(f"{API}/auth/register", json=register_payload(role="admin"))
        assert response.status_code == 400
        assert response.json()["meta"]["errorCode"] == "ROLE_NOT_ALLOWED"

    def test_register_validation_error(self, client):
        response = client.post(
            f"{API}/auth/register", json=register_payload(email="not-an-email")
        )
        assert response.status_code == 422
        assert response.json()["meta"]["errorCode"] == "VALIDATION_ERROR"

    def test_login_and_me(self, client, student_a):
        response = client.post(
            f"{API}/auth/login",
            json={"email": student_a.email, "password": "password123"},
        )
        assert response.status_code == 200, response.text
        token = response.json()["data"]["token"]

        me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["data"]["email"] == student_a.email
        assert me.json()["data"]["department"] == "CS"

    def test_login_wrong_password(self, client, student_a):
        response = client.post(
            f"{API}/auth/login", json={"email": student_a.email, "password": "nope"}
        )
        assert response.status_code == 401
        assert response.json()["meta"]["errorCode"] == "INVALID_CREDENTIALS"

    def test_change_password(self, client, student_a, headers_for):
        response = client.post(
            f"{API}/auth/change-password",
            json={"currentPassword": "password123", "newPassword": "newsecret"},
            headers=headers_for(student_a),
        )
        assert response.status_code == 200, response.text

        login = client.post(
            f"{API}/auth/login", json={"email": student_a.email, "password": "newsecret"}
        )
        assert login.status_code == 200


class TestAuthMiddleware:
    """Bearer token enforcement."""

    def test_missing_token_rejected(self, client):
        response = client.get(f"{API}/auth/me")
        assert response.status_code == 401
        assert response.json()["meta"]["errorCode"] == "TOKEN_MISSING"

    def test_invalid_token_rejected(self, client):
        response = client.get(
            f"{API}/auth/me", headers={"Authorization": "Bearer garbage"}
        )
        assert response.status_code == 401
        assert response.json()["meta"]["errorCode"] == "TOKEN_INVALID"

    def test_token_for_deleted_user_rejected(self, client, student_a, headers_for, db_session):
        headers = headers_for(student_a)
        db_session.delete(student_a)
        db_session.commit()

        response = client.get(f"{API}/auth/me", headers=headers)
        assert response.status_code == 401

    def test_role_comes_from_database_not_token(self, client, student_a, db_session):
        # A forged admin claim on a student account grants nothing
        token = AuthUtils.generate_access_token(student_a.id, student_a.email, "admin")
        response = client.get(
            f"{API}/admin/ping", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 403

        # Promotion in the store takes effect without a new token
        student_a.role = UserRole.ADMIN
        db_session.commit()
        response = client.get(
            f"{API}/admin/ping", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200

    def test_health_is_public(self, client):
        assert client.get("/health").status_code == 200
        response = client.get(f"{API}/health/")
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "healthy"

    def test_request_id_header_echoed(self, client):
        request_id = "0b7f3c1e-2d4a-4e8b-9f6a-1c2d3e4f5a6b"
        response = client.get("/health", headers={"X-Request-ID": request_id})
        assert response.headers.get("X-Request-ID") == request_id
        assert response.json()["requestId"] == request_id


class TestGoogleLogin:
    """Google sign-in with the provider call stubbed."""

    def test_creates_student_for_new_google_user(self, client, db_session):
        token_info = {
            "sub": "google-123",
            "email": "gina@university.edu",
            "given_name": "Gina",
            "family_name": "Green",
            "email_verified": "true",
            "aud": "test-google-client",
        }
        with patch.object(
            AuthService, "verify_google_token", AsyncMock(return_value=token_info)
        ):
            response = client.post(f"{API}/auth/google", json={"credential": "id-token"})

        assert response.status_code == 200, response.text
        user = response.json()["data"]["user"]
        assert user["email"] == "gina@university.edu"
        assert user["hasPassword"] is False

        stored = db_session.execute(
            select(User).where(User.google_id == "google-123")
        ).scalar_one()
        assert stored.role == UserRole.STUDENT

    def test_links_existing_account_by_email(self, client, student_a):
        token_info = {"sub": "google-999", "email": student_a.email, "email_verified": "true"}
        with patch.object(
            AuthService, "verify_google_token", AsyncMock(return_value=token_info)
        ):
            response = client.post(f"{API}/auth/google", json={"credential": "id-token"})

        assert response.status_code == 200
        assert response.json()["data"]["user"]["id"] == student_a.id

    def test_provider_rejection(self, client):
        with patch.object(
            AuthService,
            "verify_google_token",
            AsyncMock(side_effect=ValueError("GOOGLE_TOKEN_INVALID")),
        ):
            response = client.post(f"{API}/auth/google", json={"credential": "bad"})

        assert response.status_code == 401
        assert response.json()["meta"]["errorCode"] == "GOOGLE_TOKEN_INVALID"
