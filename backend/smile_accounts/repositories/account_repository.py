"""Repository for Account CRUD operations.

The account store contract: lookups return None for "no such account";
database errors propagate as exceptions.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from smile_accounts.models.account import Account
from smile_accounts.models.device import Device

# Fields that may be updated via AccountRepository.update().
# Security: Never add 'id' or 'created_at'.
# - email: allowed, but callers must re-check uniqueness and reset 'verified'
# - admin/banned: excluded to prevent mass-assignment privilege escalation
_UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "email",
        "first_name",
        "last_name",
        "profile_pic",
        "password_hash",
        "verified",
        "last_login",
    }
)


class AccountRepository:
    """Stateless repository for Account table operations.

    All methods are static, with no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, account_id: uuid.UUID) -> Account | None:
        """Fetch an account (with its devices) by primary key.

        Args:
            db: Async database session.
            account_id: UUID primary key.

        Returns:
            Account if found, None otherwise.
        """
        return await db.get(Account, account_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Account | None:
        """Fetch an account by its exact email address.

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            Account if found, None otherwise.
        """
        stmt = select(Account).where(Account.email == email)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def email_taken(
        db: AsyncSession,
        email: str,
        *,
        exclude_id: uuid.UUID | None = None,
    ) -> bool:
        """Check whether another account already uses ``email``.

        Args:
            db: Async database session.
            email: Email address to check.
            exclude_id: Account to ignore (the one being updated).

        Returns:
            True if some other account has this email.
        """
        stmt = select(Account.id).where(Account.email == email)
        if exclude_id is not None:
            stmt = stmt.where(Account.id != exclude_id)
        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none() is not None

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        email: str,
        password_hash: str,
        first_name: str = "",
        last_name: str = "",
        profile_pic: str = "",
        login_type: str = "email",
        verified: bool = False,
        now: datetime,
        first_device: Device | None = None,
    ) -> Account:
        """Create a new account, optionally with its first device.

        Args:
            db: Async database session.
            email: Account email address.
            password_hash: bcrypt hash.
            first_name: Given name.
            last_name: Family name.
            profile_pic: Profile picture URL.
            login_type: Sign-in method label.
            verified: Whether the email starts verified.
            now: Creation time, also used as first last_login.
            first_device: Device to register with the account.

        Returns:
            Created Account.

        Raises:
            sqlalchemy.exc.IntegrityError: If email already exists.
        """
        account = Account(
            email=email,
            password_hash=password_hash,
            first_name=first_name,
            last_name=last_name,
            profile_pic=profile_pic,
            login_type=login_type,
            verified=verified,
            created_at=now,
            last_login=now,
            devices=[first_device] if first_device is not None else [],
        )
        db.add(account)
        await db.flush()
        return account

    @staticmethod
    async def update(
        db: AsyncSession,
        account_id: uuid.UUID,
        **kwargs: Any,
    ) -> Account | None:
        """Update account fields.

        Only fields in _UPDATABLE_FIELDS are allowed. Unknown field names
        raise ValueError.

        Args:
            db: Async database session.
            account_id: UUID of the account to update.
            **kwargs: Field names and values to update.

        Returns:
            Updated Account if found, None if account does not exist.

        Raises:
            ValueError: If an unknown field name is passed.
        """
        unknown = set(kwargs) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unknown fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)

        account = await db.get(Account, account_id)
        if account is None:
            return None

        for field, value in kwargs.items():
            setattr(account, field, value)

        await db.flush()
        return account

    @staticmethod
    async def delete(db: AsyncSession, account: Account) -> None:
        """Delete an account and, through the ORM cascade, its devices.

        Args:
            db: Async database session.
            account: Account to delete.
        """
        await db.delete(account)
        await db.flush()
