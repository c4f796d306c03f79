"""
Auth API tests.

Tests cover:
  - Password hashing (bcrypt + werkzeug fallback)
  - JWT token generation / verification / expiry
  - Login, logout, profile read/update
  - Secretary-only registration and its validation
  - Bearer resolution failures (missing, malformed, expired, deleted user)
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from werkzeug.security import generate_password_hash

from thesis_portal.models import db
from thesis_portal.models.user import User
from thesis_portal.services.jwt_service import decode_access_token, generate_access_token
from thesis_portal.utils.crypto import hash_password, verify_password

DEFAULT_PASSWORD = "secret123"

BASE = "/api/v1/auth"


# ═══════════════════════════════════════════════════════════════
# Password hashing
# ═══════════════════════════════════════════════════════════════

class TestPasswordHashing:
    def test_bcrypt_round_trip(self):
        hashed = hash_password("pa55word", rounds=4)
        assert hashed.startswith("$2b$")
        assert verify_password("pa55word", hashed)
        assert not verify_password("wrong", hashed)

    def test_werkzeug_hash_still_accepted(self):
        hashed = generate_password_hash("legacy-pass")
        assert verify_password("legacy-pass", hashed)
        assert not verify_password("nope", hashed)

    def test_empty_hash_never_verifies(self):
        assert not verify_password("anything", None)
        assert not verify_password("anything", "")


# ═══════════════════════════════════════════════════════════════
# JWT
# ═══════════════════════════════════════════════════════════════

class TestJWT:
    def test_payload_shape(self):
        token = generate_access_token(42, "student")
        payload = decode_access_token(token)
        assert payload["sub"] == "42"
        assert payload["role"] == "student"
        assert payload["type"] == "access"
        assert "jti" in payload

    def test_wrong_type_rejected(self, app):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "1", "type": "refresh", "iat": now, "exp": now + timedelta(hours=1)},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        with pytest.raises(jwt.InvalidTokenError):
            decode_access_token(token)


# ═══════════════════════════════════════════════════════════════
# Login / logout / profile
# ═══════════════════════════════════════════════════════════════

class TestLogin:
    def test_login_success(self, client, student):
        res = client.post(f"{BASE}/login", json={"email": student.email, "password": DEFAULT_PASSWORD})
        assert res.status_code == 200
        body = res.get_json()
        assert body["token"]
        assert body["user"]["id"] == student.id
        assert body["user"]["role"] == "student"
        assert "password_hash" not in body["user"]

    def test_login_email_case_insensitive(self, client, student):
        res = client.post(f"{BASE}/login",
                          json={"email": student.email.upper(), "password": DEFAULT_PASSWORD})
        assert res.status_code == 200

    def test_login_wrong_password(self, client, student):
        res = client.post(f"{BASE}/login", json={"email": student.email, "password": "bad-pass"})
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_login_unknown_email(self, client):
        res = client.post(f"{BASE}/login", json={"email": "ghost@university.gr", "password": "whatever"})
        assert res.status_code == 401

    def test_login_missing_fields(self, client):
        res = client.post(f"{BASE}/login", json={"email": ""})
        assert res.status_code == 400

    def test_token_from_login_authorizes(self, client, student):
        token = client.post(
            f"{BASE}/login", json={"email": student.email, "password": DEFAULT_PASSWORD},
        ).get_json()["token"]
        res = client.get(f"{BASE}/profile", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 200
        assert res.get_json()["user"]["email"] == student.email

    def test_logout(self, client, student, auth_headers):
        res = client.post(f"{BASE}/logout", headers=auth_headers(student))
        assert res.status_code == 200


class TestBearerResolution:
    def test_missing_token(self, client):
        res = client.get(f"{BASE}/profile")
        assert res.status_code == 401
        assert res.get_json()["error"] == "Access token required"

    def test_malformed_token(self, client):
        res = client.get(f"{BASE}/profile", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid token"

    def test_expired_token(self, client, app, student):
        past = datetime.now(timezone.utc) - timedelta(days=2)
        token = jwt.encode(
            {"sub": str(student.id), "role": "student", "type": "access",
             "iat": past, "exp": past + timedelta(hours=1)},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        res = client.get(f"{BASE}/profile", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Token has expired"

    def test_token_for_deleted_user(self, client, make_user, auth_headers):
        user = make_user("student")
        headers = auth_headers(user)
        db.session.delete(user)
        db.session.commit()
        res = client.get(f"{BASE}/profile", headers=headers)
        assert res.status_code == 401

    def test_previous_request_user_does_not_leak(self, client, student, auth_headers):
        assert client.get(f"{BASE}/profile", headers=auth_headers(student)).status_code == 200
        assert client.get(f"{BASE}/profile").status_code == 401


class TestProfile:
    def test_get_profile_includes_contact_fields(self, client, student, auth_headers):
        res = client.get(f"{BASE}/profile", headers=auth_headers(student))
        user = res.get_json()["user"]
        assert "phone" in user and "address" in user

    def test_update_phone_and_address(self, client, student, auth_headers):
        res = client.put(f"{BASE}/profile", headers=auth_headers(student),
                         json={"phone": "+30 210 1234567", "address": "Patision 42, Athens"})
        assert res.status_code == 200
        assert res.get_json()["user"]["phone"] == "+30 210 1234567"
        assert db.session.get(User, student.id).address == "Patision 42, Athens"

    def test_other_fields_ignored(self, client, student, auth_headers):
        res = client.put(f"{BASE}/profile", headers=auth_headers(student),
                         json={"phone": "6900000000", "role": "secretary", "email": "x@university.gr"})
        assert res.status_code == 200
        refreshed = db.session.get(User, student.id)
        assert refreshed.role == "student"
        assert refreshed.email == "eve@university.gr"

    def test_nothing_to_update(self, client, student, auth_headers):
        res = client.put(f"{BASE}/profile", headers=auth_headers(student), json={"role": "secretary"})
        assert res.status_code == 400

    def test_phone_too_long(self, client, student, auth_headers):
        res = client.put(f"{BASE}/profile", headers=auth_headers(student), json={"phone": "1" * 51})
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════
# Registration (secretary only)
# ═══════════════════════════════════════════════════════════════

class TestRegister:
    def _payload(self, **overrides):
        data = {
            "role": "student",
            "am": "1099001",
            "full_name": "New Student",
            "email": "new.student@university.gr",
            "password": "longenough",
        }
        data.update(overrides)
        return data

    def test_secretary_registers_student(self, client, secretary, auth_headers):
        res = client.post(f"{BASE}/register", headers=auth_headers(secretary), json=self._payload())
        assert res.status_code == 201
        user = res.get_json()["user"]
        assert user["role"] == "student"
        assert user["am"] == "1099001"

        login = client.post(f"{BASE}/login",
                            json={"email": "new.student@university.gr", "password": "longenough"})
        assert login.status_code == 200

    def test_non_secretary_forbidden(self, client, supervisor, auth_headers):
        res = client.post(f"{BASE}/register", headers=auth_headers(supervisor), json=self._payload())
        assert res.status_code == 403

    def test_unauthenticated(self, client):
        res = client.post(f"{BASE}/register", json=self._payload())
        assert res.status_code == 401

    def test_duplicate_email(self, client, secretary, student, auth_headers):
        res = client.post(f"{BASE}/register", headers=auth_headers(secretary),
                          json=self._payload(email=student.email))
        assert res.status_code == 409

    @pytest.mark.parametrize("overrides", [
        {"role": "admin"},
        {"full_name": "  "},
        {"email": "not-an-email"},
        {"password": "short"},
        {"am": ""},
    ])
    def test_invalid_payload(self, client, secretary, auth_headers, overrides):
        res = client.post(f"{BASE}/register", headers=auth_headers(secretary),
                          json=self._payload(**overrides))
        assert res.status_code == 400

    def test_instructor_needs_no_am(self, client, secretary, auth_headers):
        res = client.post(f"{BASE}/register", headers=auth_headers(secretary),
                          json=self._payload(role="instructor", am=None, email="prof@university.gr"))
        assert res.status_code == 201
        assert res.get_json()["user"]["am"] is None
