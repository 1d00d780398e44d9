"""Repository for AccountToken operations.

Tokens are looked up by (purpose, token_hash) plus optional account and
device filters. Only unconsumed tokens are ever returned.
"""

import uuid
from datetime import datetime

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from smile_accounts.models.token import AccountToken, TokenPurpose


class TokenRepository:
    """Stateless repository for AccountToken table operations.

    All methods are static, with no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        purpose: TokenPurpose,
        token_hash: str,
        created_at: datetime,
        device_id: str | None = None,
    ) -> AccountToken:
        """Store a new unconsumed token.

        Args:
            db: Async database session.
            account_id: Owning account.
            purpose: Token purpose.
            token_hash: SHA-256 hash of the plain value.
            created_at: Issuance time.
            device_id: Target device for activate-device tokens.

        Returns:
            Created AccountToken.
        """
        token = AccountToken(
            account_id=account_id,
            purpose=purpose,
            token_hash=token_hash,
            device_id=device_id,
            created_at=created_at,
            consumed=False,
        )
        db.add(token)
        await db.flush()
        return token

    @staticmethod
    async def find_open(
        db: AsyncSession,
        *,
        purpose: TokenPurpose,
        token_hash: str,
        account_id: uuid.UUID | None = None,
        device_id: str | None = None,
    ) -> AccountToken | None:
        """Look up an unconsumed token.

        Args:
            db: Async database session.
            purpose: Token purpose.
            token_hash: SHA-256 hash of the plain value.
            account_id: Restrict to this account when given.
            device_id: Restrict to this device when given.

        Returns:
            Matching AccountToken, or None.
        """
        stmt = select(AccountToken).where(
            AccountToken.purpose == purpose,
            AccountToken.token_hash == token_hash,
            AccountToken.consumed.is_(False),
        )
        if account_id is not None:
            stmt = stmt.where(AccountToken.account_id == account_id)
        if device_id is not None:
            stmt = stmt.where(AccountToken.device_id == device_id)
        result = await db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    @staticmethod
    async def list_open(
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        purpose: TokenPurpose,
        device_id: str | None = None,
    ) -> list[AccountToken]:
        """List unconsumed tokens in one (account, purpose[, device]) scope."""
        stmt = select(AccountToken).where(
            AccountToken.account_id == account_id,
            AccountToken.purpose == purpose,
            AccountToken.consumed.is_(False),
        )
        if device_id is not None:
            stmt = stmt.where(AccountToken.device_id == device_id)
        result = await db.execute(stmt.order_by(AccountToken.created_at))
        return list(result.scalars().all())

    @staticmethod
    async def delete_open(
        db: AsyncSession,
        *,
        account_id: uuid.UUID,
        purpose: TokenPurpose,
        device_id: str | None = None,
    ) -> int:
        """Delete every unconsumed token in one scope.

        Args:
            db: Async database session.
            account_id: Owning account.
            purpose: Token purpose.
            device_id: Restrict to this device (activate-device scope).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(AccountToken).where(
            AccountToken.account_id == account_id,
            AccountToken.purpose == purpose,
            AccountToken.consumed.is_(False),
        )
        if device_id is not None:
            stmt = stmt.where(AccountToken.device_id == device_id)
        result = await db.execute(stmt.execution_options(synchronize_session="fetch"))
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count

    @staticmethod
    async def mark_consumed(db: AsyncSession, token: AccountToken) -> None:
        """Flag a token as used. Committed by the caller's transaction."""
        token.consumed = True
        await db.flush()

    @staticmethod
    async def delete_for_account(db: AsyncSession, account_id: uuid.UUID) -> None:
        """Delete all tokens of an account (account deletion cleanup)."""
        stmt = delete(AccountToken).where(AccountToken.account_id == account_id)
        await db.execute(stmt.execution_options(synchronize_session="fetch"))
