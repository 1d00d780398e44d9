"""Pydantic request/response schemas for API endpoints."""

from smile_accounts.schemas.account import (
    AccountRead,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from smile_accounts.schemas.device import (
    ActivateDeviceRequest,
    DeviceCreate,
    DeviceRead,
    DeviceTouch,
    LocationSnapshot,
)

__all__ = [
    # Accounts and auth
    "AccountRead",
    "ChangePasswordRequest",
    "ForgotPasswordRequest",
    "LoginRequest",
    "ProfileUpdate",
    "RegisterRequest",
    "ResetPasswordRequest",
    "VerifyEmailRequest",
    # Devices
    "ActivateDeviceRequest",
    "DeviceCreate",
    "DeviceRead",
    "DeviceTouch",
    "LocationSnapshot",
]
