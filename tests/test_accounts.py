"""
Tests for registration, login, email verification and password recovery.
"""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

from conftest import TEST_PASSWORD, auth_headers, make_profile

from divan.models import EmailVerification, PasswordReset, Profile
from divan.security_utils import hash_verification_token


def _register(client, email="novo@example.com"):
    return client.post(
        "/api/auth/register",
        json={"name": "Novo Cliente", "email": email, "password": "abc12345", "phone": "(11) 98765-4321"},
    )


class TestRegistration:
    """Client sign-up creates a pending profile and sends a verification link."""

    def test_register_creates_pending_profile(self, client, db):
        with patch("divan.domain.accounts.service.send_verification_email", new_callable=AsyncMock) as mock_send:
            response = _register(client)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["emailSent"] is True
        mock_send.assert_awaited_once()

        profile = db.query(Profile).filter(Profile.email == "novo@example.com").one()
        assert profile.status == "pending_email"
        assert profile.role == "client"
        assert profile.phone == "5511987654321"
        assert profile.email_verified_at is None

    def test_register_reports_unsent_email(self, client):
        """Without a mail provider the account is still created."""
        response = _register(client)
        assert response.status_code == 201
        assert response.json()["emailSent"] is False

    def test_duplicate_email_conflicts(self, client, db):
        make_profile(db, email="novo@example.com")
        response = _register(client, email="NOVO@example.com")
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_invalid_payload_is_400_with_fields(self, client):
        response = client.post(
            "/api/auth/register",
            json={"name": "A", "email": "not-an-email", "password": "123"},
        )
        assert response.status_code == 400
        fields = response.json()["fields"]
        assert "name" in fields
        assert "email" in fields
        assert "password" in fields


class TestLogin:
    """Password login issues a session token."""

    def test_login_success(self, client, db):
        make_profile(db, email="login@example.com")
        response = client.post("/api/auth/login", json={"email": "login@example.com", "password": TEST_PASSWORD})

        assert response.status_code == 200
        body = response.json()
        assert body["token"]
        assert body["user"]["email"] == "login@example.com"
        assert "divan_session" in response.cookies

    def test_wrong_password_is_401(self, client, db):
        make_profile(db, email="login@example.com")
        response = client.post("/api/auth/login", json={"email": "login@example.com", "password": "errada"})
        assert response.status_code == 401
        assert response.json()["error"] == "E-mail ou senha inválidos"

    def test_blocked_profile_cannot_login(self, client, db):
        make_profile(db, email="blocked@example.com", status="blocked")
        response = client.post("/api/auth/login", json={"email": "blocked@example.com", "password": TEST_PASSWORD})
        assert response.status_code == 403

    def test_me_requires_session(self, client):
        assert client.get("/api/auth/me").status_code == 401

    def test_me_returns_unverified_profile(self, client, db):
        profile = make_profile(db, status="pending_email", verified=False)
        response = client.get("/api/auth/me", headers=auth_headers(profile))
        assert response.status_code == 200
        assert response.json()["emailVerified"] is False


class TestResendVerification:
    """Resend answers identically whether or not an eligible account exists."""

    def test_existing_verified_account_gets_plain_success(self, client, db):
        make_profile(db, email="verified@example.com")
        with patch("divan.domain.accounts.service.send_verification_email", new_callable=AsyncMock) as mock_send:
            response = client.post("/api/auth/resend-verification", json={"email": "verified@example.com"})

        assert response.status_code == 200
        assert response.json() == {"success": True}
        mock_send.assert_not_awaited()

    def test_unknown_email_gets_identical_success(self, client, db):
        make_profile(db, email="verified@example.com")
        known = client.post("/api/auth/resend-verification", json={"email": "verified@example.com"})
        unknown = client.post("/api/auth/resend-verification", json={"email": "ninguem@example.com"})

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json() == {"success": True}

    def test_pending_account_gets_new_token(self, client, db):
        profile = make_profile(db, email="pending@example.com", status="pending_email", verified=False)
        with patch("divan.domain.accounts.service.send_verification_email", new_callable=AsyncMock) as mock_send:
            response = client.post("/api/auth/resend-verification", json={"email": "pending@example.com"})

        assert response.status_code == 200
        mock_send.assert_awaited_once()
        db.expire_all()
        assert db.query(EmailVerification).filter(EmailVerification.user_id == profile.id).count() == 1

    def test_malformed_email_is_400(self, client):
        response = client.post("/api/auth/resend-verification", json={"email": "sem-arroba"})
        assert response.status_code == 400
        assert response.json()["error"] == "E-mail inválido"


class TestVerifyEmail:
    """Verification tokens are single-use and expire."""

    def _issue(self, client):
        with patch("divan.domain.accounts.service.send_verification_email", new_callable=AsyncMock) as mock_send:
            _register(client)
        return mock_send.await_args.args[2]

    def test_valid_token_activates_profile(self, client, db):
        raw_token = self._issue(client)
        response = client.post("/api/auth/verify-email", json={"token": raw_token})

        assert response.status_code == 200
        assert response.json()["message"] == "E-mail verificado com sucesso"

        db.expire_all()
        profile = db.query(Profile).filter(Profile.email == "novo@example.com").one()
        assert profile.status == "active"
        assert profile.email_verified_at is not None

    def test_token_is_stored_only_as_digest(self, client, db, settings):
        raw_token = self._issue(client)
        stored = db.query(EmailVerification).one()
        assert stored.token_hash != raw_token
        assert stored.token_hash == hash_verification_token(raw_token, settings.secret_key)

    def test_second_use_fails_already_used(self, client):
        raw_token = self._issue(client)
        assert client.post("/api/auth/verify-email", json={"token": raw_token}).status_code == 200

        response = client.post("/api/auth/verify-email", json={"token": raw_token})
        assert response.status_code == 400
        assert response.json()["code"] == "TOKEN_ALREADY_USED"

    def test_expired_token_fails(self, client, db):
        raw_token = self._issue(client)
        verification = db.query(EmailVerification).one()
        verification.expires_at = verification.created_at - timedelta(minutes=1)
        db.commit()

        response = client.post("/api/auth/verify-email", json={"token": raw_token})
        assert response.status_code == 400
        assert response.json()["code"] == "TOKEN_EXPIRED"

    def test_unknown_token_is_invalid(self, client):
        response = client.post("/api/auth/verify-email", json={"token": "f" * 64})
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_missing_token(self, client):
        response = client.post("/api/auth/verify-email", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Token ausente"

    def test_resend_rotates_previous_token(self, client, db):
        first = self._issue(client)
        with patch("divan.domain.accounts.service.send_verification_email", new_callable=AsyncMock):
            client.post("/api/auth/resend-verification", json={"email": "novo@example.com"})

        response = client.post("/api/auth/verify-email", json={"token": first})
        assert response.json()["code"] == "INVALID_TOKEN"


class TestPasswordRecovery:
    """Reset links are single-use, expire, and never reveal whether an account exists."""

    def _request(self, client, email="reset@example.com"):
        with patch("divan.domain.accounts.service.send_password_reset_email", new_callable=AsyncMock) as mock_send:
            response = client.post("/api/auth/forgot-password", json={"email": email})
        return response, mock_send

    def _issue(self, client, db):
        make_profile(db, email="reset@example.com")
        _, mock_send = self._request(client)
        return mock_send.await_args.args[2]

    def test_known_and_unknown_emails_get_identical_answers(self, client, db):
        make_profile(db, email="reset@example.com")
        known, sent = self._request(client)
        unknown, not_sent = self._request(client, email="ninguem@example.com")

        assert known.status_code == unknown.status_code == 200
        assert known.json() == unknown.json() == {"success": True}
        sent.assert_awaited_once()
        not_sent.assert_not_awaited()

    def test_deleted_account_gets_no_link(self, client, db):
        make_profile(db, email="reset@example.com", deleted=True)
        response, mock_send = self._request(client)
        assert response.json() == {"success": True}
        mock_send.assert_not_awaited()

    def test_token_is_stored_only_as_digest(self, client, db, settings):
        raw_token = self._issue(client, db)
        stored = db.query(PasswordReset).one()
        assert stored.token_hash == hash_verification_token(raw_token, settings.secret_key)
        assert stored.expires_at - stored.created_at <= timedelta(minutes=settings.PASSWORD_RESET_TTL_MINUTES)

    def test_reset_changes_password(self, client, db):
        raw_token = self._issue(client, db)

        response = client.post("/api/auth/reset-password", json={"token": raw_token, "password": "nova-senha"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        old = client.post("/api/auth/login", json={"email": "reset@example.com", "password": TEST_PASSWORD})
        new = client.post("/api/auth/login", json={"email": "reset@example.com", "password": "nova-senha"})
        assert old.status_code == 401
        assert new.status_code == 200

    def test_token_is_single_use(self, client, db):
        raw_token = self._issue(client, db)
        client.post("/api/auth/reset-password", json={"token": raw_token, "password": "nova-senha"})

        response = client.post("/api/auth/reset-password", json={"token": raw_token, "password": "outra-senha"})

        assert response.status_code == 400
        assert response.json()["code"] == "TOKEN_ALREADY_USED"

    def test_expired_token_fails(self, client, db):
        raw_token = self._issue(client, db)
        reset = db.query(PasswordReset).one()
        reset.expires_at = reset.created_at - timedelta(minutes=1)
        db.commit()

        response = client.post("/api/auth/reset-password", json={"token": raw_token, "password": "nova-senha"})
        assert response.json()["code"] == "TOKEN_EXPIRED"

    def test_new_request_rotates_previous_link(self, client, db):
        first = self._issue(client, db)
        self._request(client)

        response = client.post("/api/auth/reset-password", json={"token": first, "password": "nova-senha"})
        assert response.json()["code"] == "INVALID_TOKEN"

    def test_short_password_is_400(self, client, db):
        raw_token = self._issue(client, db)
        response = client.post("/api/auth/reset-password", json={"token": raw_token, "password": "123"})
        assert response.status_code == 400
        assert "password" in response.json()["fields"]
