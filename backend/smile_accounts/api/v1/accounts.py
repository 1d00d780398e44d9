"""Self-service account endpoints.

All endpoints act on the account named by the session credential.
"""

from fastapi import APIRouter, Response

from smile_accounts.api.deps import Accounts, CurrentClaims, Sessions
from smile_accounts.core.responses import DataResponse
from smile_accounts.core.sessions import clear_session_cookie
from smile_accounts.schemas.account import AccountRead, ProfileUpdate

router = APIRouter()


@router.get("/me")
async def get_me(claims: CurrentClaims, accounts: Accounts) -> DataResponse[AccountRead]:
    """Return the caller's account."""
    account = await accounts.get_account(claims.account_id)
    return DataResponse(data=AccountRead.model_validate(account))


@router.patch("/me")
async def update_me(
    body: ProfileUpdate,
    claims: CurrentClaims,
    accounts: Accounts,
) -> DataResponse[AccountRead]:
    """Update profile fields.

    Changing the email marks the account unverified and sends a new code to
    the new address.
    """
    account = await accounts.change_profile(claims.account_id, body.to_changes())
    return DataResponse(data=AccountRead.model_validate(account))


@router.delete("/me", status_code=204)
async def delete_me(
    response: Response,
    claims: CurrentClaims,
    accounts: Accounts,
    sessions: Sessions,
) -> None:
    """Delete the caller's account, devices and tokens, and sign out."""
    await accounts.delete_account(claims.account_id)
    clear_session_cookie(response, sessions.config)
