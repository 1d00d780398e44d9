"""Device registry endpoints.

Signed-in callers manage their own devices. ``POST /devices/activate`` is
the target of the emailed activation link and needs no session: the
activation token is the proof.
"""

from fastapi import APIRouter, Request

from smile_accounts.api.deps import Accounts, CurrentClaims, DbSession, Devices
from smile_accounts.core.config import settings
from smile_accounts.core.errors import NotFoundError
from smile_accounts.core.rate_limiting import limiter
from smile_accounts.core.responses import DataResponse
from smile_accounts.repositories.account_repository import AccountRepository
from smile_accounts.schemas.device import (
    ActivateDeviceRequest,
    DeviceCreate,
    DeviceRead,
    DeviceTouch,
)

router = APIRouter()


@router.get("")
async def list_devices(
    claims: CurrentClaims,
    accounts: Accounts,
    devices: Devices,
) -> DataResponse[list[DeviceRead]]:
    """List the caller's devices in registration order."""
    account = await accounts.get_account(claims.account_id)
    return DataResponse(
        data=[DeviceRead.model_validate(d) for d in devices.list_devices(account)]
    )


@router.post("", status_code=201)
async def add_device(
    body: DeviceCreate,
    claims: CurrentClaims,
    accounts: Accounts,
    devices: Devices,
) -> DataResponse[DeviceRead]:
    """Register a new, untrusted device."""
    account = await accounts.get_account(claims.account_id)
    device = await devices.add_device(account, body.to_info())
    return DataResponse(data=DeviceRead.model_validate(device))


@router.post("/activate")
@limiter.limit(lambda: settings.rate_limit_login)
async def activate_device(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ActivateDeviceRequest,
    db: DbSession,
    devices: Devices,
) -> DataResponse[DeviceRead]:
    """Trust a device using the token from the activation link."""
    account = await AccountRepository.get_by_email(db, body.email)
    if account is None:
        raise NotFoundError("Account")
    device = await devices.activate(account.id, body.device_id, body.token)
    return DataResponse(data=DeviceRead.model_validate(device))


@router.delete("/{device_id}", status_code=204)
async def remove_device(
    device_id: str,
    claims: CurrentClaims,
    accounts: Accounts,
    devices: Devices,
) -> None:
    """Remove a device. Removing an unknown device succeeds."""
    account = await accounts.get_account(claims.account_id)
    await devices.remove_device(account, device_id)


@router.post("/{device_id}/last-login")
async def touch_device(
    device_id: str,
    body: DeviceTouch,
    claims: CurrentClaims,
    accounts: Accounts,
    devices: Devices,
) -> DataResponse[DeviceRead]:
    """Record activity from a device, registering it if unseen."""
    account = await accounts.get_account(claims.account_id)
    device = await devices.touch_login(
        account,
        device_id,
        location=body.location.to_dict() if body.location else None,
        device_name=body.device_name,
        device_type=body.device_type,
    )
    return DataResponse(data=DeviceRead.model_validate(device))


@router.post("/{device_id}/activation-request", status_code=202)
@limiter.limit(lambda: settings.rate_limit_token_delivery)
async def request_activation(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    device_id: str,
    claims: CurrentClaims,
    accounts: Accounts,
    devices: Devices,
) -> DataResponse[dict]:
    """Email an activation link for one of the caller's devices."""
    account = await accounts.get_account(claims.account_id)
    await devices.request_activation(account, device_id)
    return DataResponse(data={"message": "Activation link sent"})
