"""Token issuer and validator for purpose-scoped single-use tokens.

Purposes and value formats:
- verify-email: 3 random bytes, 6 uppercase hex chars (typed by the user)
- reset-password: 16 random bytes, 32 uppercase hex chars (reset link)
- activate-device: 32 random bytes, 64 lowercase hex chars (activation link)

Issuing deletes any unconsumed token of the same scope first, so exactly one
live token exists per (account, purpose[, device]) afterwards. Validation
never consumes; callers consume inside the same transaction that applies the
dependent state change.
"""

import hashlib
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from smile_accounts.core.errors import TokenExpiredError, TokenNotFoundError
from smile_accounts.models.base import Clock, as_utc, utc_now
from smile_accounts.models.token import AccountToken, TokenPurpose
from smile_accounts.repositories.token_repository import TokenRepository

logger = logging.getLogger(__name__)

DEFAULT_ACTIVATION_TTL = timedelta(minutes=30)


@dataclass(frozen=True)
class TokenFormat:
    """Random length and textual encoding for one purpose."""

    num_bytes: int
    uppercase: bool

    def generate(self) -> str:
        value = secrets.token_hex(self.num_bytes)
        return value.upper() if self.uppercase else value

    def normalize(self, value: str) -> str:
        value = value.strip()
        return value.upper() if self.uppercase else value.lower()


TOKEN_FORMATS: dict[TokenPurpose, TokenFormat] = {
    TokenPurpose.VERIFY_EMAIL: TokenFormat(num_bytes=3, uppercase=True),
    TokenPurpose.RESET_PASSWORD: TokenFormat(num_bytes=16, uppercase=True),
    TokenPurpose.ACTIVATE_DEVICE: TokenFormat(num_bytes=32, uppercase=False),
}


@dataclass(frozen=True)
class IssuedToken:
    """A freshly stored token and its plain value.

    The plain value exists only here and in the outbound message; the store
    keeps its hash.
    """

    record: AccountToken
    value: str


def hash_token(value: str) -> str:
    """SHA-256 hex digest used as the stored token identifier."""
    return hashlib.sha256(value.encode()).hexdigest()


class TokenService:
    """Issues, validates and consumes account tokens.

    Args:
        db: Async database session.
        activation_ttl: Validity window of activate-device tokens.
        clock: Source of the current time.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        activation_ttl: timedelta = DEFAULT_ACTIVATION_TTL,
        clock: Clock = utc_now,
    ) -> None:
        self._db = db
        self._activation_ttl = activation_ttl
        self._clock = clock

    @property
    def activation_ttl(self) -> timedelta:
        return self._activation_ttl

    async def issue(
        self,
        account_id: uuid.UUID,
        purpose: TokenPurpose,
        device_id: str | None = None,
    ) -> IssuedToken:
        """Replace any live token of the scope with a fresh one.

        Flushes but does not commit; the caller owns the transaction.

        Args:
            account_id: Owning account.
            purpose: Token purpose.
            device_id: Target device. Required for activate-device.

        Returns:
            IssuedToken with the stored record and plain value.

        Raises:
            ValueError: If device_id is missing for activate-device or
                given for another purpose.
        """
        if (purpose == TokenPurpose.ACTIVATE_DEVICE) != (device_id is not None):
            msg = "device_id is required for activate-device tokens and only for them"
            raise ValueError(msg)

        superseded = await TokenRepository.delete_open(
            self._db, account_id=account_id, purpose=purpose, device_id=device_id
        )
        if superseded:
            logger.info(
                "Superseded %d open %s token(s) for account %s",
                superseded,
                purpose,
                account_id,
            )

        value = TOKEN_FORMATS[purpose].generate()
        record = await TokenRepository.create(
            self._db,
            account_id=account_id,
            purpose=purpose,
            token_hash=hash_token(value),
            device_id=device_id,
            created_at=self._clock(),
        )
        return IssuedToken(record=record, value=value)

    async def validate(
        self,
        purpose: TokenPurpose,
        value: str,
        *,
        account_id: uuid.UUID | None = None,
        device_id: str | None = None,
    ) -> AccountToken:
        """Find the live token matching ``value`` without consuming it.

        Args:
            purpose: Expected purpose.
            value: Plain token value supplied by the caller.
            account_id: Account the token must belong to.
            device_id: Device the token must target (activate-device).

        Returns:
            The matching AccountToken.

        Raises:
            TokenNotFoundError: No unconsumed token matches.
            TokenExpiredError: Activate-device token older than the TTL.
        """
        normalized = TOKEN_FORMATS[purpose].normalize(value)
        token = await TokenRepository.find_open(
            self._db,
            purpose=purpose,
            token_hash=hash_token(normalized),
            account_id=account_id,
            device_id=device_id,
        )
        if token is None:
            raise TokenNotFoundError()

        if purpose == TokenPurpose.ACTIVATE_DEVICE and self.is_expired(token):
            raise TokenExpiredError()

        return token

    def is_expired(self, token: AccountToken) -> bool:
        """True once strictly more than the activation TTL has elapsed."""
        age = self._clock() - as_utc(token.created_at)
        return age > self._activation_ttl

    async def consume(self, token: AccountToken) -> None:
        """Mark ``token`` consumed within the caller's transaction."""
        await TokenRepository.mark_consumed(self._db, token)
