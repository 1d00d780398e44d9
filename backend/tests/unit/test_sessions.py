"""Tests for session credential issuance, verification and guards."""

import uuid
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi import Response

from smile_accounts.core.errors import AdminRequiredError, UnauthorizedError
from smile_accounts.core.sessions import (
    SessionConfig,
    SessionManager,
    authenticate,
    authenticate_admin,
    clear_session_cookie,
    set_session_cookie,
)
from tests.conftest import TEST_AUTH_SECRET

_ACCOUNT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


class TestIssueAndVerify:
    """Tests for SessionManager.issue() and verify()."""

    def test_round_trip_preserves_claims(self, session_manager: SessionManager):
        """Verified claims equal what was issued."""
        now = datetime.now(UTC).replace(microsecond=0)
        token = session_manager.issue(_ACCOUNT_ID, admin=True, verified=False, now=now)

        claims = session_manager.verify(token)

        assert claims.account_id == _ACCOUNT_ID
        assert claims.admin is True
        assert claims.verified is False
        assert claims.issued_at == now
        assert claims.expires_at == now + timedelta(days=7)

    def test_claims_are_a_snapshot(self, session_manager: SessionManager):
        """A credential keeps the flags it was issued with."""
        before = session_manager.issue(_ACCOUNT_ID, admin=False, verified=False)
        after = session_manager.issue(_ACCOUNT_ID, admin=False, verified=True)

        assert session_manager.verify(before).verified is False
        assert session_manager.verify(after).verified is True

    def test_rejects_expired_credential(self, session_manager: SessionManager):
        issued = datetime.now(UTC) - timedelta(days=7, seconds=1)
        token = session_manager.issue(
            _ACCOUNT_ID, admin=False, verified=True, now=issued
        )

        with pytest.raises(UnauthorizedError):
            session_manager.verify(token)

    def test_rejects_tampered_payload(self, session_manager: SessionManager):
        """Flipping the admin claim invalidates the signature."""
        token = session_manager.issue(_ACCOUNT_ID, admin=False, verified=True)
        forged = SessionManager(SessionConfig(secret="x" * 40)).issue(
            _ACCOUNT_ID, admin=True, verified=True
        )
        header, _payload, signature = token.split(".")
        tampered = f"{header}.{forged.split('.')[1]}.{signature}"

        with pytest.raises(UnauthorizedError):
            session_manager.verify(tampered)

    def test_rejects_credential_signed_with_another_secret(self):
        issuer = SessionManager(SessionConfig(secret="x" * 40))
        verifier = SessionManager(SessionConfig(secret=TEST_AUTH_SECRET))
        token = issuer.issue(_ACCOUNT_ID, admin=False, verified=True)

        with pytest.raises(UnauthorizedError):
            verifier.verify(token)

    def test_rejects_wrong_audience(self, session_manager: SessionManager):
        other = SessionManager(
            SessionConfig(secret=TEST_AUTH_SECRET, audience="someone-else")
        )
        token = other.issue(_ACCOUNT_ID, admin=False, verified=True)

        with pytest.raises(UnauthorizedError):
            session_manager.verify(token)

    @pytest.mark.parametrize("missing", ["sub", "iat", "exp", "admin"])
    def test_rejects_missing_claims(self, session_manager: SessionManager, missing):
        """Any structural gap makes the whole credential invalid."""
        now = datetime.now(UTC)
        payload = {
            "sub": str(_ACCOUNT_ID),
            "admin": False,
            "verified": True,
            "aud": "smile-accounts",
            "iss": "smile-accounts",
            "iat": now,
            "exp": now + timedelta(hours=1),
        }
        del payload[missing]
        token = jwt.encode(payload, TEST_AUTH_SECRET, algorithm="HS256")

        with pytest.raises(UnauthorizedError):
            session_manager.verify(token)

    def test_rejects_non_boolean_flags(self, session_manager: SessionManager):
        now = datetime.now(UTC)
        token = jwt.encode(
            {
                "sub": str(_ACCOUNT_ID),
                "admin": "yes",
                "verified": True,
                "aud": "smile-accounts",
                "iss": "smile-accounts",
                "iat": now,
                "exp": now + timedelta(hours=1),
            },
            TEST_AUTH_SECRET,
            algorithm="HS256",
        )

        with pytest.raises(UnauthorizedError):
            session_manager.verify(token)

    def test_rejects_garbage(self, session_manager: SessionManager):
        with pytest.raises(UnauthorizedError):
            session_manager.verify("not.a.jwt")


class TestGuards:
    """Tests for authenticate() and authenticate_admin()."""

    @pytest.mark.parametrize("credential", [None, ""])
    def test_missing_credential_is_unauthorized(
        self, session_manager: SessionManager, credential
    ):
        with pytest.raises(UnauthorizedError, match="No token provided"):
            authenticate(credential, session_manager)

    def test_authenticate_returns_claims(self, session_manager: SessionManager):
        token = session_manager.issue(_ACCOUNT_ID, admin=False, verified=True)
        assert authenticate(token, session_manager).account_id == _ACCOUNT_ID

    def test_admin_guard_rejects_non_admin(self, session_manager: SessionManager):
        token = session_manager.issue(_ACCOUNT_ID, admin=False, verified=True)

        with pytest.raises(AdminRequiredError) as exc_info:
            authenticate_admin(token, session_manager)
        assert exc_info.value.status_code == 403

    def test_admin_guard_accepts_admin(self, session_manager: SessionManager):
        token = session_manager.issue(_ACCOUNT_ID, admin=True, verified=True)
        assert authenticate_admin(token, session_manager).admin is True

    def test_admin_guard_checks_credential_first(
        self, session_manager: SessionManager
    ):
        """An invalid credential is 401, not 403."""
        with pytest.raises(UnauthorizedError):
            authenticate_admin("garbage", session_manager)


class TestCookies:
    """Tests for the session cookie helpers."""

    def test_set_cookie_attributes(self, session_config: SessionConfig):
        response = Response()
        set_session_cookie(response, "token-value", session_config)

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("authToken=token-value")
        assert "HttpOnly" in cookie
        assert "Secure" in cookie
        assert "SameSite=lax" in cookie
        assert "Path=/" in cookie
        assert "Max-Age=604800" in cookie

    def test_clear_cookie_expires_it(self, session_config: SessionConfig):
        response = Response()
        clear_session_cookie(response, session_config)

        cookie = response.headers["set-cookie"]
        assert cookie.startswith("authToken=")
        assert "Max-Age=0" in cookie
