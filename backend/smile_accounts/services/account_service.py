"""Account service: registration, sign-in and self-service account flows.

Orchestrates the account store, the device registry, the token service, the
session manager and the notification dispatcher. Each public method is one
request-sized unit of work; multi-record changes commit through ``atomic()``.

Notification policy:
- register / change_profile: delivery is best-effort, failures are logged
- resend_verification / forgot_password: delivery is the whole point of the
  call, so NotificationError reaches the caller
"""

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from smile_accounts.core.database import atomic
from smile_accounts.core.email import (
    NotificationDispatcher,
    password_reset_message,
    verification_message,
)
from smile_accounts.core.errors import (
    AccountBannedError,
    AlreadyVerifiedError,
    ConflictError,
    NotFoundError,
    NotificationError,
    UnauthorizedError,
    ValidationError,
)
from smile_accounts.core.passwords import (
    BCRYPT_ROUNDS,
    hash_password,
    validate_password_strength,
    verify_password,
)
from smile_accounts.core.sessions import SessionManager
from smile_accounts.models.account import Account
from smile_accounts.models.base import Clock, utc_now
from smile_accounts.models.device import Device
from smile_accounts.models.token import TokenPurpose
from smile_accounts.repositories.account_repository import AccountRepository
from smile_accounts.repositories.token_repository import TokenRepository
from smile_accounts.services.device_registry import (
    DeviceInfo,
    DeviceRegistry,
    build_device,
)
from smile_accounts.services.token_service import IssuedToken, TokenService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewProfile:
    """Sign-up data.

    Attributes:
        email: Email address, stored as given.
        password: Plain-text password.
        first_name: Given name.
        last_name: Family name.
        profile_pic: Profile picture URL.
        login_type: Sign-in method label.
        verified: Create the account already verified (no code is sent).
    """

    email: str
    password: str
    first_name: str = ""
    last_name: str = ""
    profile_pic: str = ""
    login_type: str = "email"
    verified: bool = False


@dataclass(frozen=True)
class ProfileChanges:
    """Partial profile update. None means "leave unchanged"."""

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_pic: str | None = None


@dataclass(frozen=True)
class Registration:
    """Outcome of a successful sign-up.

    Attributes:
        account: The created account.
        session_token: Signed session credential.
        verification: Issued verify-email token, None if pre-verified.
    """

    account: Account
    session_token: str
    verification: IssuedToken | None


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful sign-in."""

    account: Account
    device: Device
    session_token: str


def _email_taken_error() -> ConflictError:
    return ConflictError(
        code="EMAIL_ALREADY_EXISTS",
        message="An account with this email already exists",
    )


class AccountService:
    """Account lifecycle flows.

    Args:
        db: Async database session.
        tokens: Token service sharing the same session.
        devices: Device registry sharing the same session.
        sessions: Session credential issuer.
        dispatcher: Outbound notification dispatcher.
        client_url: Frontend base URL for password reset links.
        clock: Source of the current time.
        password_rounds: bcrypt cost factor for new hashes.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        tokens: TokenService,
        devices: DeviceRegistry,
        sessions: SessionManager,
        dispatcher: NotificationDispatcher,
        client_url: str,
        clock: Clock = utc_now,
        password_rounds: int = BCRYPT_ROUNDS,
    ) -> None:
        self._db = db
        self._tokens = tokens
        self._devices = devices
        self._sessions = sessions
        self._dispatcher = dispatcher
        self._client_url = client_url
        self._clock = clock
        self._password_rounds = password_rounds

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _require_account(self, account_id: uuid.UUID) -> Account:
        account = await AccountRepository.get_by_id(self._db, account_id)
        if account is None:
            raise NotFoundError("Account", str(account_id))
        return account

    async def _notify(
        self,
        to_address: str,
        message: tuple[str, str],
        *,
        required: bool,
    ) -> None:
        subject, body = message
        try:
            await self._dispatcher.send(to_address, subject, body)
        except NotificationError:
            if required:
                raise
            logger.warning("Email %r not delivered; continuing", subject)

    def _issue_session(self, account: Account) -> str:
        return self._sessions.issue(
            account.id,
            admin=account.admin,
            verified=account.verified,
            now=self._clock(),
        )

    # -----------------------------------------------------------------------
    # Registration and sign-in
    # -----------------------------------------------------------------------

    async def register(self, profile: NewProfile, first_device: DeviceInfo) -> Registration:
        """Create an account with its first, already trusted, device.

        Args:
            profile: Sign-up data.
            first_device: Device the user signs up from.

        Returns:
            Registration with the account, a session credential and the
            verify-email token (None when created pre-verified).

        Raises:
            ValidationError: If the password is too weak.
            ConflictError: EMAIL_ALREADY_EXISTS if the email is taken.
        """
        validate_password_strength(profile.password)
        if await AccountRepository.email_taken(self._db, profile.email):
            raise _email_taken_error()

        now = self._clock()
        password_hash = hash_password(profile.password, rounds=self._password_rounds)
        verification: IssuedToken | None = None
        try:
            async with atomic(self._db):
                account = await AccountRepository.create(
                    self._db,
                    email=profile.email,
                    password_hash=password_hash,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    profile_pic=profile.profile_pic,
                    login_type=profile.login_type,
                    verified=profile.verified,
                    now=now,
                    first_device=build_device(first_device, trusted=True, now=now),
                )
                if not profile.verified:
                    verification = await self._tokens.issue(
                        account.id, TokenPurpose.VERIFY_EMAIL
                    )
        except IntegrityError as exc:
            # Lost a race with a concurrent sign-up for the same email
            raise _email_taken_error() from exc

        logger.info("Registered account %s", account.id)

        if verification is not None:
            await self._notify(
                account.email,
                verification_message(verification.value),
                required=False,
            )

        return Registration(
            account=account,
            session_token=self._issue_session(account),
            verification=verification,
        )

    async def login(self, email: str, password: str, device: DeviceInfo) -> LoginResult:
        """Authenticate by email and password from a device.

        The device is upserted through the registry: a known device is
        touched, an unseen one is added as provisional.

        Args:
            email: Account email.
            password: Plain-text password.
            device: Device the user signs in from.

        Returns:
            LoginResult with the account, the device and a fresh session
            credential reflecting the current admin and verified flags.

        Raises:
            NotFoundError: No account with this email.
            UnauthorizedError: Wrong password.
            AccountBannedError: The account is suspended.
        """
        account = await AccountRepository.get_by_email(self._db, email)
        if account is None:
            raise NotFoundError("Account")
        if not verify_password(password, account.password_hash):
            logger.info("Rejected login for account %s: bad password", account.id)
            raise UnauthorizedError("Invalid credentials")
        if account.banned:
            logger.info("Rejected login for banned account %s", account.id)
            raise AccountBannedError()

        account.last_login = self._clock()
        touched = await self._devices.touch_login(
            account,
            device.device_id,
            location=device.location,
            device_name=device.device_name or None,
            device_type=device.device_type or None,
        )

        return LoginResult(
            account=account,
            device=touched,
            session_token=self._issue_session(account),
        )

    # -----------------------------------------------------------------------
    # Profile
    # -----------------------------------------------------------------------

    async def get_account(self, account_id: uuid.UUID) -> Account:
        """Fetch an account.

        Raises:
            NotFoundError: If the account does not exist.
        """
        return await self._require_account(account_id)

    async def change_profile(
        self, account_id: uuid.UUID, changes: ProfileChanges
    ) -> Account:
        """Update profile fields.

        Changing the email re-checks uniqueness, marks the account
        unverified and sends a fresh verification code to the new address.

        Raises:
            NotFoundError: If the account does not exist.
            ConflictError: EMAIL_ALREADY_EXISTS if the new email is taken.
        """
        account = await self._require_account(account_id)

        updates = {
            field: value
            for field, value in (
                ("first_name", changes.first_name),
                ("last_name", changes.last_name),
                ("profile_pic", changes.profile_pic),
            )
            if value is not None
        }
        email_changed = changes.email is not None and changes.email != account.email
        if email_changed:
            if await AccountRepository.email_taken(
                self._db, changes.email, exclude_id=account.id
            ):
                raise _email_taken_error()
            updates["email"] = changes.email
            updates["verified"] = False

        if not updates:
            return account

        verification: IssuedToken | None = None
        try:
            async with atomic(self._db):
                await AccountRepository.update(self._db, account.id, **updates)
                if email_changed:
                    verification = await self._tokens.issue(
                        account.id, TokenPurpose.VERIFY_EMAIL
                    )
        except IntegrityError as exc:
            raise _email_taken_error() from exc

        if verification is not None:
            logger.info("Email changed for account %s; re-verification required", account.id)
            await self._notify(
                account.email,
                verification_message(verification.value),
                required=False,
            )

        return account

    async def delete_account(self, account_id: uuid.UUID) -> None:
        """Delete an account with its devices and tokens.

        Raises:
            NotFoundError: If the account does not exist.
        """
        account = await self._require_account(account_id)
        async with atomic(self._db):
            await TokenRepository.delete_for_account(self._db, account.id)
            await AccountRepository.delete(self._db, account)
        logger.info("Deleted account %s", account_id)

    # -----------------------------------------------------------------------
    # Email verification
    # -----------------------------------------------------------------------

    async def verify_email(self, account_id: uuid.UUID, token_value: str) -> Account:
        """Mark the account verified using its verify-email code.

        Raises:
            NotFoundError: If the account does not exist.
            AlreadyVerifiedError: If the account is already verified.
            TokenNotFoundError: If the code does not match a live token.
        """
        account = await self._require_account(account_id)
        if account.verified:
            raise AlreadyVerifiedError()

        token = await self._tokens.validate(
            TokenPurpose.VERIFY_EMAIL, token_value, account_id=account.id
        )
        async with atomic(self._db):
            account.verified = True
            await self._tokens.consume(token)

        logger.info("Verified email for account %s", account.id)
        return account

    async def resend_verification(self, account_id: uuid.UUID) -> IssuedToken:
        """Issue and send a new verification code.

        Raises:
            NotFoundError: If the account does not exist.
            AlreadyVerifiedError: If the account is already verified.
            NotificationError: If the code could not be sent.
        """
        account = await self._require_account(account_id)
        if account.verified:
            raise AlreadyVerifiedError()

        async with atomic(self._db):
            issued = await self._tokens.issue(account.id, TokenPurpose.VERIFY_EMAIL)

        await self._notify(
            account.email, verification_message(issued.value), required=True
        )
        return issued

    # -----------------------------------------------------------------------
    # Passwords
    # -----------------------------------------------------------------------

    async def forgot_password(self, email: str) -> IssuedToken:
        """Issue a password reset token and email the reset link.

        Calling it again replaces the previous link.

        Raises:
            NotFoundError: No account with this email.
            NotificationError: If the link could not be sent.
        """
        account = await AccountRepository.get_by_email(self._db, email)
        if account is None:
            raise NotFoundError("Account")

        async with atomic(self._db):
            issued = await self._tokens.issue(account.id, TokenPurpose.RESET_PASSWORD)

        await self._notify(
            account.email,
            password_reset_message(
                client_url=self._client_url, email=account.email, token=issued.value
            ),
            required=True,
        )
        return issued

    async def reset_password(
        self, email: str, token_value: str, new_password: str
    ) -> None:
        """Set a new password using a reset token.

        The new hash and the token consumption commit together.

        Raises:
            ValidationError: If the new password is too weak.
            NotFoundError: No account with this email.
            TokenNotFoundError: If the token does not match a live token.
        """
        validate_password_strength(new_password)
        account = await AccountRepository.get_by_email(self._db, email)
        if account is None:
            raise NotFoundError("Account")

        token = await self._tokens.validate(
            TokenPurpose.RESET_PASSWORD, token_value, account_id=account.id
        )
        new_hash = hash_password(new_password, rounds=self._password_rounds)
        async with atomic(self._db):
            account.password_hash = new_hash
            await self._tokens.consume(token)

        logger.info("Password reset for account %s", account.id)

    async def change_password(
        self, account_id: uuid.UUID, old_password: str, new_password: str
    ) -> None:
        """Change the password of a signed-in account.

        Raises:
            NotFoundError: If the account does not exist.
            ValidationError: If new equals old, old is wrong, or new is too
                weak. The stored hash is unchanged in every case.
        """
        account = await self._require_account(account_id)
        if old_password == new_password:
            raise ValidationError("New password cannot be the same as the old password")
        if not verify_password(old_password, account.password_hash):
            raise ValidationError("Old password is incorrect")
        validate_password_strength(new_password)

        new_hash = hash_password(new_password, rounds=self._password_rounds)
        async with atomic(self._db):
            account.password_hash = new_hash

        logger.info("Password changed for account %s", account.id)
