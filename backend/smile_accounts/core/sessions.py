"""Session credentials: signed JWT issuance, verification and guards.

The session credential is a self-contained HS256 JWT. Nothing is stored
server-side, so a credential stays valid until it expires; logout only
discards the cookie on the client.

Pipeline:
- SessionManager.issue: claim snapshot (sub, admin, verified, iat, exp)
- SessionManager.verify: signature, audience, issuer and expiry checks
- authenticate / authenticate_admin: pure guards used before business logic
- set_session_cookie / clear_session_cookie: cookie transport
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Literal

import jwt
from fastapi import Response

from smile_accounts.core.errors import AdminRequiredError, UnauthorizedError

_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["sub", "exp", "iat", "aud", "iss"]


@dataclass(frozen=True)
class SessionConfig:
    """Immutable session settings, fixed for the process lifetime.

    Attributes:
        secret: HMAC signing secret.
        issuer: Value of the iss claim.
        audience: Value of the aud claim.
        ttl: Credential lifetime from issuance.
        cookie_name: Name of the transport cookie.
        cookie_secure: Secure flag on the cookie.
        cookie_samesite: SameSite attribute on the cookie.
        cookie_domain: Optional cookie domain. Empty means host-only.
    """

    secret: str
    issuer: str = "smile-accounts"
    audience: str = "smile-accounts"
    ttl: timedelta = timedelta(days=7)
    cookie_name: str = "authToken"
    cookie_secure: bool = True
    cookie_samesite: Literal["lax", "strict", "none"] = "lax"
    cookie_domain: str = ""


@dataclass(frozen=True)
class SessionClaims:
    """Decoded claim set of a session credential.

    Values reflect the account at issuance time. Later changes to the
    account do not alter an already-issued credential.
    """

    account_id: uuid.UUID
    admin: bool
    verified: bool
    issued_at: datetime
    expires_at: datetime


class SessionManager:
    """Issues and verifies session credentials.

    Args:
        config: Explicit session configuration.
    """

    def __init__(self, config: SessionConfig) -> None:
        self._config = config

    @property
    def config(self) -> SessionConfig:
        return self._config

    def issue(
        self,
        account_id: uuid.UUID,
        *,
        admin: bool,
        verified: bool,
        now: datetime | None = None,
    ) -> str:
        """Create a signed credential expiring ``config.ttl`` after issuance.

        Args:
            account_id: Account the credential identifies.
            admin: Admin flag at issuance.
            verified: Email-verified flag at issuance.
            now: Issuance time. Defaults to the current UTC time.

        Returns:
            Encoded JWT string.
        """
        issued_at = now or datetime.now(UTC)
        payload = {
            "sub": str(account_id),
            "admin": admin,
            "verified": verified,
            "aud": self._config.audience,
            "iss": self._config.issuer,
            "iat": issued_at,
            "exp": issued_at + self._config.ttl,
        }
        return jwt.encode(payload, self._config.secret, algorithm=_ALGORITHM)

    def verify(self, credential: str) -> SessionClaims:
        """Decode and check a credential.

        Any structural, signature, audience/issuer or expiry failure is
        reported the same way; a malformed credential is never partially
        trusted.

        Args:
            credential: Encoded JWT string.

        Returns:
            SessionClaims for a valid credential.

        Raises:
            UnauthorizedError: For any failure.
        """
        try:
            payload = jwt.decode(
                credential,
                self._config.secret,
                algorithms=[_ALGORITHM],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options={"require": _REQUIRED_CLAIMS},
            )
            admin = payload["admin"]
            verified = payload["verified"]
            if not isinstance(admin, bool) or not isinstance(verified, bool):
                raise UnauthorizedError("Invalid token")
            return SessionClaims(
                account_id=uuid.UUID(payload["sub"]),
                admin=admin,
                verified=verified,
                issued_at=datetime.fromtimestamp(payload["iat"], UTC),
                expires_at=datetime.fromtimestamp(payload["exp"], UTC),
            )
        except (jwt.PyJWTError, KeyError, TypeError, ValueError) as exc:
            raise UnauthorizedError("Invalid token") from exc

    @staticmethod
    def require_admin(claims: SessionClaims) -> SessionClaims:
        """Return the claims unchanged if they carry the admin flag.

        Raises:
            AdminRequiredError: When the admin claim is false.
        """
        if not claims.admin:
            raise AdminRequiredError()
        return claims


# ===================================================================
# Guards
# ===================================================================


def authenticate(credential: str | None, manager: SessionManager) -> SessionClaims:
    """Resolve a credential into the caller's identity.

    Args:
        credential: Raw cookie value, or None when the cookie is absent.
        manager: Session manager holding the signing secret.

    Returns:
        Verified SessionClaims.

    Raises:
        UnauthorizedError: Missing or invalid credential.
    """
    if not credential:
        raise UnauthorizedError("No token provided")
    return manager.verify(credential)


def authenticate_admin(
    credential: str | None, manager: SessionManager
) -> SessionClaims:
    """Resolve a credential and require the admin claim.

    Raises:
        UnauthorizedError: Missing or invalid credential.
        AdminRequiredError: Valid credential without admin privileges.
    """
    return SessionManager.require_admin(authenticate(credential, manager))


# ===================================================================
# Cookie transport
# ===================================================================


def set_session_cookie(response: Response, token: str, config: SessionConfig) -> None:
    """Set httpOnly session cookie on response.

    Security: httpOnly prevents XSS cookie theft. Secure flag and SameSite
    come from the session config for environment-appropriate security.

    Args:
        response: FastAPI response object.
        token: Encoded session credential.
        config: Session configuration with cookie attributes.
    """
    response.set_cookie(
        key=config.cookie_name,
        value=token,
        httponly=True,
        secure=config.cookie_secure,
        samesite=config.cookie_samesite,
        path="/",
        max_age=int(config.ttl.total_seconds()),
        domain=config.cookie_domain or None,
    )


def clear_session_cookie(response: Response, config: SessionConfig) -> None:
    """Delete the session cookie.

    Cookie attributes must match set_session_cookie() for the browser to
    delete it.
    """
    response.delete_cookie(
        key=config.cookie_name,
        path="/",
        httponly=True,
        secure=config.cookie_secure,
        samesite=config.cookie_samesite,
        domain=config.cookie_domain or None,
    )
