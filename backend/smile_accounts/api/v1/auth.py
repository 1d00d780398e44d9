"""Authentication endpoints.

register, login, logout, email verification and password flows.

Security considerations:
- login: verify_password never raises and burns a comparison on bad hashes
- register/login/forgot-password: rate limited per IP (or per account once
  signed in)
- the session credential travels only in the httpOnly cookie
"""

from fastapi import APIRouter, Request, Response

from smile_accounts.api.deps import Accounts, CurrentClaims, Sessions
from smile_accounts.core.config import settings
from smile_accounts.core.rate_limiting import limiter
from smile_accounts.core.responses import DataResponse
from smile_accounts.core.sessions import clear_session_cookie, set_session_cookie
from smile_accounts.schemas.account import (
    AccountRead,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)

router = APIRouter()


# ===================================================================
# POST /auth/register
# ===================================================================


@router.post("/register", status_code=201)
@limiter.limit(lambda: settings.rate_limit_register)
async def register(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: RegisterRequest,
    response: Response,
    accounts: Accounts,
    sessions: Sessions,
) -> DataResponse[AccountRead]:
    """Create an account and sign it in.

    The device in the body becomes the account's first, trusted device.
    A verification code is emailed; delivery failure does not fail sign-up.
    """
    registration = await accounts.register(body.to_profile(), body.device.to_info())
    set_session_cookie(response, registration.session_token, sessions.config)
    return DataResponse(data=AccountRead.model_validate(registration.account))


# ===================================================================
# POST /auth/login
# ===================================================================


@router.post("/login")
@limiter.limit(lambda: settings.rate_limit_login)
async def login(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: LoginRequest,
    response: Response,
    accounts: Accounts,
    sessions: Sessions,
) -> DataResponse[AccountRead]:
    """Sign in with email and password from a device.

    An unseen device is registered as untrusted.
    """
    result = await accounts.login(body.email, body.password, body.device.to_info())
    set_session_cookie(response, result.session_token, sessions.config)
    return DataResponse(data=AccountRead.model_validate(result.account))


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(response: Response, sessions: Sessions) -> DataResponse[dict]:
    """Clear the session cookie.

    Credentials are not tracked server-side, so an already-copied credential
    stays valid until it expires.
    """
    clear_session_cookie(response, sessions.config)
    return DataResponse(data={"message": "Logged out"})


# ===================================================================
# Email verification
# ===================================================================


@router.post("/verify-email")
async def verify_email(
    body: VerifyEmailRequest,
    claims: CurrentClaims,
    accounts: Accounts,
) -> DataResponse[AccountRead]:
    """Verify the caller's email with the emailed code."""
    account = await accounts.verify_email(claims.account_id, body.token)
    return DataResponse(data=AccountRead.model_validate(account))


@router.post("/verify-email/resend")
@limiter.limit(lambda: settings.rate_limit_token_delivery)
async def resend_verification(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    claims: CurrentClaims,
    accounts: Accounts,
) -> DataResponse[dict]:
    """Send a new verification code, replacing the previous one."""
    await accounts.resend_verification(claims.account_id)
    return DataResponse(data={"message": "Verification code sent"})


# ===================================================================
# Password flows
# ===================================================================


@router.post("/forgot-password")
@limiter.limit(lambda: settings.rate_limit_token_delivery)
async def forgot_password(
    request: Request,  # noqa: ARG001 - required by @limiter.limit()
    body: ForgotPasswordRequest,
    accounts: Accounts,
) -> DataResponse[dict]:
    """Email a password reset link. Calling again replaces the link."""
    await accounts.forgot_password(body.email)
    return DataResponse(data={"message": "Password reset link sent"})


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    accounts: Accounts,
) -> DataResponse[dict]:
    """Set a new password using the token from the reset link."""
    await accounts.reset_password(body.email, body.token, body.new_password)
    return DataResponse(data={"message": "Password updated"})


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    claims: CurrentClaims,
    accounts: Accounts,
) -> DataResponse[dict]:
    """Change the caller's password after checking the old one."""
    await accounts.change_password(
        claims.account_id, body.old_password, body.new_password
    )
    return DataResponse(data={"message": "Password updated"})
