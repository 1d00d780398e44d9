"""Account model - identity record.

One row per registered email address. The device list is a child table
ordered by insertion position; tokens live in their own table and are
owned by the token store.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, String, Text, Uuid, text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smile_accounts.models.base import Base, JSONType, utc_now

if TYPE_CHECKING:
    from smile_accounts.models.device import Device


class Account(Base):
    """Registered user identity.

    Attributes:
        id: UUID primary key.
        email: Unique email address, case-sensitive as stored.
        password_hash: bcrypt hash.
        first_name: Given name.
        last_name: Family name.
        profile_pic: Profile picture URL.
        login_type: How the account signs in (e.g. "email").
        verified: Whether the email address has been verified.
        banned: Whether sign-in is suspended.
        admin: Whether the account has admin privileges.
        created_at: Creation timestamp.
        last_login: Most recent successful login.
        devices: Ordered device registry.
        watchlist: Watchlist entries, owned by the list service.
        favorites: Favorite entries, owned by the list service.
        recently_watched: Recently watched entries, owned by the list service.
    """

    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    last_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    profile_pic: Mapped[str] = mapped_column(
        Text(),
        nullable=False,
        default="",
    )
    login_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="email",
    )
    verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    banned: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    admin: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        nullable=False,
        default=utc_now,
    )
    last_login: Mapped[datetime] = mapped_column(
        nullable=False,
        default=utc_now,
    )
    watchlist: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )
    favorites: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )
    recently_watched: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )

    # Relationships
    devices: Mapped[list["Device"]] = relationship(
        "Device",
        back_populates="account",
        order_by="Device.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
        lazy="selectin",
    )
