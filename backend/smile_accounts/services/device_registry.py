"""Device registry: per-account device lifecycle.

A device moves through three states:
- absent: not in the account's device list
- provisional: present, trusted=False (added after sign-up)
- trusted: present, trusted=True (first device, or activated via email link)

Transitions:
- add_device: absent -> provisional
- touch_login: absent -> provisional, otherwise refreshes last_login in place
- request_activation: provisional|trusted -> same, plus a fresh activation token
- activate: provisional -> trusted, consuming the activation token atomically
- remove_device: provisional|trusted -> absent (idempotent on absent)

Every public method is one unit of work and commits through ``atomic()``.
Devices are looked up through a keyed view of the ordered list, so the
device_id uniqueness invariant is checked before any write.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from smile_accounts.core.database import atomic
from smile_accounts.core.email import (
    NotificationDispatcher,
    device_activation_message,
)
from smile_accounts.core.errors import ConflictError, NotFoundError, NotificationError
from smile_accounts.models.account import Account
from smile_accounts.models.base import Clock, utc_now
from smile_accounts.models.device import Device
from smile_accounts.models.token import TokenPurpose
from smile_accounts.repositories.account_repository import AccountRepository
from smile_accounts.repositories.token_repository import TokenRepository
from smile_accounts.services.token_service import IssuedToken, TokenService

logger = logging.getLogger(__name__)

# Keys a client may send in a location snapshot
LOCATION_FIELDS: tuple[str, ...] = (
    "latitude",
    "longitude",
    "continent",
    "country",
    "state",
    "county",
    "road",
    "town",
)


@dataclass(frozen=True)
class DeviceInfo:
    """Client-supplied description of a device.

    Attributes:
        device_id: Caller-chosen identifier, unique within the account.
        device_name: Human-readable name.
        device_type: Device category.
        location: Optional location fields (see LOCATION_FIELDS).
    """

    device_id: str
    device_name: str = ""
    device_type: str = ""
    location: dict[str, Any] | None = None


def location_snapshot(
    location: dict[str, Any] | None, *, seen_at: datetime
) -> dict[str, Any] | None:
    """Keep known location fields and stamp the snapshot time."""
    if location is None:
        return None
    snapshot = {key: location[key] for key in LOCATION_FIELDS if key in location}
    snapshot["last_seen"] = seen_at.isoformat()
    return snapshot


def build_device(info: DeviceInfo, *, trusted: bool, now: datetime) -> Device:
    """Create an unsaved Device row from client info."""
    return Device(
        device_id=info.device_id,
        device_name=info.device_name,
        device_type=info.device_type,
        trusted=trusted,
        created_at=now,
        last_login=now,
        location=location_snapshot(info.location, seen_at=now),
    )


def _index(account: Account) -> dict[str, Device]:
    return {device.device_id: device for device in account.devices}


class DeviceRegistry:
    """Add, remove, touch and activate the devices of an account.

    Args:
        db: Async database session.
        tokens: Token service sharing the same session.
        dispatcher: Outbound notification dispatcher.
        client_url: Frontend base URL for activation links.
        clock: Source of the current time.
    """

    def __init__(
        self,
        db: AsyncSession,
        tokens: TokenService,
        dispatcher: NotificationDispatcher,
        *,
        client_url: str,
        clock: Clock = utc_now,
    ) -> None:
        self._db = db
        self._tokens = tokens
        self._dispatcher = dispatcher
        self._client_url = client_url
        self._clock = clock

    def list_devices(self, account: Account) -> list[Device]:
        """Devices of the account in insertion order."""
        return list(account.devices)

    def get_device(self, account: Account, device_id: str) -> Device:
        """Look up one device.

        Raises:
            NotFoundError: If the account has no such device.
        """
        device = _index(account).get(device_id)
        if device is None:
            raise NotFoundError("Device", device_id)
        return device

    async def add_device(self, account: Account, info: DeviceInfo) -> Device:
        """Register a new provisional device.

        Args:
            account: Owning account.
            info: Device description.

        Returns:
            The created Device with trusted=False.

        Raises:
            ConflictError: DEVICE_EXISTS if the device_id is already registered.
        """
        if info.device_id in _index(account):
            raise ConflictError(
                code="DEVICE_EXISTS",
                message=f"Device '{info.device_id}' is already registered",
            )

        device = build_device(info, trusted=False, now=self._clock())
        try:
            async with atomic(self._db):
                account.devices.append(device)
                await self._db.flush()
        except IntegrityError as exc:
            # Concurrent add of the same device_id
            raise ConflictError(
                code="DEVICE_EXISTS",
                message=f"Device '{info.device_id}' is already registered",
            ) from exc

        logger.info("Added device %s to account %s", info.device_id, account.id)
        return device

    async def remove_device(self, account: Account, device_id: str) -> bool:
        """Remove a device if present.

        Removing an absent device is a no-op. Open activation tokens for the
        device are deleted with it, so a later device registered under the
        same device_id cannot be activated by an old link.

        Returns:
            True if a device was removed, False if none matched.
        """
        device = _index(account).get(device_id)
        if device is None:
            return False

        async with atomic(self._db):
            account.devices.remove(device)
            await TokenRepository.delete_open(
                self._db,
                account_id=account.id,
                purpose=TokenPurpose.ACTIVATE_DEVICE,
                device_id=device_id,
            )
            await self._db.flush()

        logger.info("Removed device %s from account %s", device_id, account.id)
        return True

    async def touch_login(
        self,
        account: Account,
        device_id: str,
        *,
        location: dict[str, Any] | None = None,
        device_name: str | None = None,
        device_type: str | None = None,
    ) -> Device:
        """Record a login from a device, registering it if unseen.

        A known device gets a new last_login and, when given, a fresh
        location snapshot, name and type; its trust flag is left alone. An
        unseen device_id is appended as provisional. Any changes already
        staged on the session (such as the account's own last_login) are
        committed together with the device write.

        Returns:
            The touched or newly added Device.

        Raises:
            ConflictError: DEVICE_EXISTS if a concurrent request added the
                same device_id first.
        """
        now = self._clock()
        device = _index(account).get(device_id)

        try:
            async with atomic(self._db):
                if device is None:
                    info = DeviceInfo(
                        device_id=device_id,
                        device_name=device_name or "",
                        device_type=device_type or "",
                        location=location,
                    )
                    device = build_device(info, trusted=False, now=now)
                    account.devices.append(device)
                    logger.info(
                        "Login from new device %s on account %s",
                        device_id,
                        account.id,
                    )
                else:
                    device.last_login = now
                    if location is not None:
                        device.location = location_snapshot(location, seen_at=now)
                    if device_name is not None:
                        device.device_name = device_name
                    if device_type is not None:
                        device.device_type = device_type
                await self._db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                code="DEVICE_EXISTS",
                message=f"Device '{device_id}' is already registered",
            ) from exc

        return device

    async def request_activation(
        self, account: Account, device_id: str
    ) -> IssuedToken:
        """Issue an activation token for a device and email the link.

        The token is committed before delivery is attempted. A delivery
        failure is logged and does not undo the token.

        Returns:
            The issued activation token.

        Raises:
            NotFoundError: If the account has no such device.
        """
        device = self.get_device(account, device_id)

        async with atomic(self._db):
            issued = await self._tokens.issue(
                account.id, TokenPurpose.ACTIVATE_DEVICE, device_id=device_id
            )

        subject, body = device_activation_message(
            client_url=self._client_url,
            email=account.email,
            first_name=account.first_name,
            device_id=device.device_id,
            device_name=device.device_name,
            device_type=device.device_type,
            token=issued.value,
            ttl_minutes=int(self._tokens.activation_ttl.total_seconds() // 60),
        )
        try:
            await self._dispatcher.send(account.email, subject, body)
        except NotificationError:
            logger.warning(
                "Activation email for device %s of account %s not delivered",
                device_id,
                account.id,
            )

        return issued

    async def activate(
        self, account_id: uuid.UUID, device_id: str, token_value: str
    ) -> Device:
        """Promote a device to trusted using its activation token.

        The trust flag and the token consumption are committed together;
        if either write fails, neither is applied.

        Args:
            account_id: Owning account.
            device_id: Device to activate.
            token_value: Plain activation token from the link.

        Returns:
            The activated Device.

        Raises:
            TokenNotFoundError: No live token for this account and device.
            TokenExpiredError: The token is older than the activation TTL.
            NotFoundError: The account or device no longer exists.
        """
        token = await self._tokens.validate(
            TokenPurpose.ACTIVATE_DEVICE,
            token_value,
            account_id=account_id,
            device_id=device_id,
        )

        account = await AccountRepository.get_by_id(self._db, account_id)
        if account is None:
            raise NotFoundError("Account")
        device = self.get_device(account, device_id)

        async with atomic(self._db):
            device.trusted = True
            await self._tokens.consume(token)

        logger.info("Activated device %s for account %s", device_id, account_id)
        return device
