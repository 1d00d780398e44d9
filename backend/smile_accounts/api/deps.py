"""Shared dependencies for API endpoints.

This is the only layer that reads ``settings``: it builds the session
manager, the notification dispatcher and the per-request services from
configuration, and resolves the caller from the session cookie.

Tests override get_db, get_session_manager, get_dispatcher and get_clock
through ``app.dependency_overrides``.
"""

import logging
import secrets
from datetime import timedelta
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from smile_accounts.core.config import settings
from smile_accounts.core.database import get_db
from smile_accounts.core.email import NotificationDispatcher, ResendDispatcher
from smile_accounts.core.sessions import (
    SessionClaims,
    SessionConfig,
    SessionManager,
    authenticate,
)
from smile_accounts.models.base import Clock, utc_now
from smile_accounts.services.account_service import AccountService
from smile_accounts.services.device_registry import DeviceRegistry
from smile_accounts.services.token_service import TokenService

logger = logging.getLogger(__name__)

DbSession = Annotated[AsyncSession, Depends(get_db)]


# ===================================================================
# Process-wide components
# ===================================================================


def _signing_secret() -> str:
    """Configured AUTH_SECRET, or a random per-process key when unset.

    Production refuses to start without AUTH_SECRET (see Settings). Elsewhere
    an unset secret gets a throwaway key, so sessions end on restart.
    """
    secret = settings.auth_secret.get_secret_value()
    if secret:
        return secret
    logger.warning("AUTH_SECRET is not set; using a random per-process signing key")
    return secrets.token_hex(32)


@lru_cache
def get_session_manager() -> SessionManager:
    """Session manager built once from settings."""
    return SessionManager(
        SessionConfig(
            secret=_signing_secret(),
            issuer=settings.auth_issuer,
            audience=settings.auth_issuer,
            ttl=timedelta(days=settings.session_ttl_days),
            cookie_name=settings.auth_cookie_name,
            cookie_secure=settings.auth_cookie_secure,
            cookie_samesite=settings.auth_cookie_samesite,
            cookie_domain=settings.auth_cookie_domain,
        )
    )


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    """Resend-backed dispatcher built once from settings."""
    return ResendDispatcher(
        api_key=settings.resend_api_key.get_secret_value(),
        from_address=settings.email_from,
        from_name=settings.email_from_name,
    )


def get_clock() -> Clock:
    return utc_now


Sessions = Annotated[SessionManager, Depends(get_session_manager)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
ClockDep = Annotated[Clock, Depends(get_clock)]


# ===================================================================
# Per-request services
# ===================================================================


def get_token_service(db: DbSession, clock: ClockDep) -> TokenService:
    return TokenService(
        db,
        activation_ttl=timedelta(minutes=settings.activation_token_ttl_minutes),
        clock=clock,
    )


Tokens = Annotated[TokenService, Depends(get_token_service)]


def get_device_registry(
    db: DbSession,
    tokens: Tokens,
    dispatcher: Dispatcher,
    clock: ClockDep,
) -> DeviceRegistry:
    return DeviceRegistry(
        db,
        tokens,
        dispatcher,
        client_url=settings.client_url,
        clock=clock,
    )


Devices = Annotated[DeviceRegistry, Depends(get_device_registry)]


def get_account_service(
    db: DbSession,
    tokens: Tokens,
    devices: Devices,
    sessions: Sessions,
    dispatcher: Dispatcher,
    clock: ClockDep,
) -> AccountService:
    return AccountService(
        db,
        tokens=tokens,
        devices=devices,
        sessions=sessions,
        dispatcher=dispatcher,
        client_url=settings.client_url,
        clock=clock,
    )


Accounts = Annotated[AccountService, Depends(get_account_service)]


# ===================================================================
# Caller identity
# ===================================================================


def get_current_claims(request: Request, sessions: Sessions) -> SessionClaims:
    """Resolve the caller from the session cookie.

    Args:
        request: HTTP request (injected by FastAPI).
        sessions: Session manager (injected).

    Returns:
        Verified claims of the caller.

    Raises:
        UnauthorizedError: Missing or invalid session cookie.
    """
    return authenticate(request.cookies.get(sessions.config.cookie_name), sessions)


CurrentClaims = Annotated[SessionClaims, Depends(get_current_claims)]
