"""Create account tables: accounts, devices, account_tokens.

Revision ID: 001_accounts_devices_tokens
Revises:
Create Date: 2026-10-19

- accounts: identity record, one row per email
- devices: per-account device registry, unique (account_id, device_id)
- account_tokens: hashed single-use tokens (verify-email, reset-password,
  activate-device)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_accounts_devices_tokens"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("profile_pic", sa.Text(), nullable=False, server_default=""),
        sa.Column("login_type", sa.String(20), nullable=False, server_default="email"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("banned", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("admin", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "last_login",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        # List fields owned by the watchlist service; stored as-is here
        sa.Column(
            "watchlist",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "favorites",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "recently_watched",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.UniqueConstraint("email", name="uq_accounts_email"),
    )

    op.create_table(
        "devices",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column(
            "account_id",
            sa.UUID(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("device_name", sa.String(255), nullable=False, server_default=""),
        sa.Column("device_type", sa.String(100), nullable=False, server_default=""),
        sa.Column("trusted", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "last_login",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("location", postgresql.JSONB(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "account_id", "device_id", name="uq_devices_account_id_device_id"
        ),
    )
    op.create_index("ix_devices_account_id", "devices", ["account_id"])

    op.create_table(
        "account_tokens",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column(
            "account_id",
            sa.UUID(),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("purpose", sa.String(20), nullable=False),
        # SHA-256 hex digest; the plain value is never stored
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("device_id", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("consumed", sa.Boolean(), nullable=False, server_default="false"),
        sa.CheckConstraint(
            "purpose IN ('verify-email', 'reset-password', 'activate-device')",
            name="ck_account_tokens_purpose",
        ),
    )
    op.create_index(
        "ix_account_tokens_scope",
        "account_tokens",
        ["account_id", "purpose", "device_id"],
    )
    op.create_index(
        "ix_account_tokens_lookup", "account_tokens", ["purpose", "token_hash"]
    )


def downgrade() -> None:
    op.drop_index("ix_account_tokens_lookup", table_name="account_tokens")
    op.drop_index("ix_account_tokens_scope", table_name="account_tokens")
    op.drop_table("account_tokens")
    op.drop_index("ix_devices_account_id", table_name="devices")
    op.drop_table("devices")
    op.drop_table("accounts")
