"""Account and authentication request/response schemas.

Passwords are length-capped here; strength rules are enforced by the
account service so that every entry point applies them.
"""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from smile_accounts.schemas.device import DeviceCreate, DeviceRead
from smile_accounts.services.account_service import NewProfile, ProfileChanges


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    first_name: str = Field("", max_length=255)
    last_name: str = Field("", max_length=255)
    profile_pic: str = Field("", max_length=2048)
    device: DeviceCreate

    def to_profile(self) -> NewProfile:
        return NewProfile(
            email=self.email,
            password=self.password,
            first_name=self.first_name,
            last_name=self.last_name,
            profile_pic=self.profile_pic,
        )


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)
    device: DeviceCreate


class VerifyEmailRequest(BaseModel):
    """Request body for POST /auth/verify-email."""

    model_config = ConfigDict(extra="forbid")

    token: str = Field(min_length=1, max_length=64)


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /auth/forgot-password."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    token: str = Field(min_length=1, max_length=64)
    new_password: str = Field(min_length=1, max_length=128)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/change-password."""

    model_config = ConfigDict(extra="forbid")

    old_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=1, max_length=128)


class ProfileUpdate(BaseModel):
    """Request body for PATCH /accounts/me. Omitted fields stay unchanged."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr | None = None
    first_name: str | None = Field(None, max_length=255)
    last_name: str | None = Field(None, max_length=255)
    profile_pic: str | None = Field(None, max_length=2048)

    def to_changes(self) -> ProfileChanges:
        return ProfileChanges(
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            profile_pic=self.profile_pic,
        )


class AccountRead(BaseModel):
    """Account as returned to its owner. Never includes the password hash."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    profile_pic: str
    login_type: str
    verified: bool
    admin: bool
    created_at: datetime
    last_login: datetime
    devices: list[DeviceRead]
    watchlist: list[Any]
    favorites: list[Any]
    recently_watched: list[Any]
