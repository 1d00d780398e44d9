"""Device model - per-account device registry entry.

A device is identified by a caller-supplied ``device_id`` that is unique
within one account. ``trusted`` is the only trust flag.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smile_accounts.models.base import Base, JSONType, utc_now

if TYPE_CHECKING:
    from smile_accounts.models.account import Account


class Device(Base):
    """Device registered to an account.

    Attributes:
        id: UUID primary key.
        account_id: Owning account.
        device_id: Caller-supplied identifier, unique per account.
        device_name: Human-readable name.
        device_type: Device category (e.g. "mobile", "tv").
        trusted: False while provisional, True once activated.
        created_at: When the device was first seen.
        last_login: Most recent login from this device.
        location: Last-seen location snapshot, if the client sent one.
        position: Insertion order within the account's device list.
    """

    __tablename__ = "devices"
    __table_args__ = (
        UniqueConstraint(
            "account_id", "device_id", name="uq_devices_account_id_device_id"
        ),
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
        index=True,
    )
    device_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    device_name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )
    device_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        default="",
    )
    trusted: Mapped[bool] = mapped_column(
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
    location: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
    )
    position: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    account: Mapped["Account"] = relationship(
        "Account",
        back_populates="devices",
    )
