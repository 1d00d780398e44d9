"""Device request/response schemas.

All request schemas use ConfigDict(extra="forbid") to reject unexpected fields.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from smile_accounts.services.device_registry import DeviceInfo


class LocationSnapshot(BaseModel):
    """Where a device was seen, as reported by the client."""

    model_config = ConfigDict(extra="forbid")

    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)
    continent: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    county: str | None = Field(None, max_length=100)
    road: str | None = Field(None, max_length=255)
    town: str | None = Field(None, max_length=100)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class DeviceCreate(BaseModel):
    """Device description sent at register, login and POST /devices."""

    model_config = ConfigDict(extra="forbid")

    device_id: str = Field(min_length=1, max_length=255)
    device_name: str = Field("", max_length=255)
    device_type: str = Field("", max_length=100)
    location: LocationSnapshot | None = None

    def to_info(self) -> DeviceInfo:
        return DeviceInfo(
            device_id=self.device_id,
            device_name=self.device_name,
            device_type=self.device_type,
            location=self.location.to_dict() if self.location else None,
        )


class DeviceTouch(BaseModel):
    """Request body for POST /devices/{device_id}/last-login."""

    model_config = ConfigDict(extra="forbid")

    device_name: str | None = Field(None, max_length=255)
    device_type: str | None = Field(None, max_length=100)
    location: LocationSnapshot | None = None


class ActivateDeviceRequest(BaseModel):
    """Request body for POST /devices/activate (fields from the email link)."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    device_id: str = Field(min_length=1, max_length=255)
    token: str = Field(min_length=1, max_length=128)


class DeviceRead(BaseModel):
    """Device as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    device_id: str
    device_name: str
    device_type: str
    trusted: bool
    created_at: datetime
    last_login: datetime
    location: dict[str, Any] | None = None
