"""Account token model - single-use, purpose-scoped secrets.

Stores only the SHA-256 hash of the secret. Tokens are never updated
except to flip ``consumed``; superseded unconsumed tokens are deleted.
"""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from smile_accounts.models.base import Base, utc_now


class TokenPurpose(StrEnum):
    """What a token proves possession of."""

    VERIFY_EMAIL = "verify-email"
    RESET_PASSWORD = "reset-password"
    ACTIVATE_DEVICE = "activate-device"


class AccountToken(Base):
    """Purpose-scoped token bound to one account.

    Attributes:
        id: UUID primary key.
        account_id: Owning account.
        purpose: One of TokenPurpose.
        token_hash: SHA-256 hex digest of the secret value.
        device_id: Target device (activate-device only).
        created_at: Issuance time; activation TTL is measured from here.
        consumed: True once the token has been used.
    """

    __tablename__ = "account_tokens"
    __table_args__ = (
        CheckConstraint(
            "purpose IN ('verify-email', 'reset-password', 'activate-device')",
            name="ck_account_tokens_purpose",
        ),
        Index("ix_account_tokens_scope", "account_id", "purpose", "device_id"),
        Index("ix_account_tokens_lookup", "purpose", "token_hash"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    )
    purpose: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )
    device_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=utc_now,
    )
    consumed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
