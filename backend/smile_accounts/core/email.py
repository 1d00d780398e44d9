"""Outbound email: the notification dispatcher contract and message builders.

Delivery goes through the Resend HTTP API as plain-text email. The core only
depends on ``NotificationDispatcher.send``; whether a failure is fatal is
decided by the calling flow, not by the dispatcher.
"""

import logging
from typing import Protocol
from urllib.parse import quote, urlencode

import httpx

from smile_accounts.core.errors import NotificationError

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0


class NotificationDispatcher(Protocol):
    """Best-effort delivery of a plain-text message."""

    async def send(self, to_address: str, subject: str, body_text: str) -> None:
        """Deliver one message.

        Raises:
            NotificationError: If the message could not be handed off.
        """
        ...


class ResendDispatcher:
    """Dispatcher backed by the Resend HTTP API.

    Args:
        api_key: Resend API key.
        from_address: Sender address.
        from_name: Sender display name.
    """

    def __init__(self, *, api_key: str, from_address: str, from_name: str) -> None:
        self._api_key = api_key
        self._from = f"{from_name} <{from_address}>" if from_name else from_address

    async def send(self, to_address: str, subject: str, body_text: str) -> None:
        """Send a plain-text email via Resend.

        Raises:
            NotificationError: On transport errors or non-2xx responses.
        """
        try:
            async with httpx.AsyncClient() as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json={
                        "from": self._from,
                        "to": to_address,
                        "subject": subject,
                        "text": body_text,
                    },
                    timeout=_RESEND_TIMEOUT,
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to send email %r", subject, exc_info=True)
            raise NotificationError() from exc


# ===================================================================
# Message builders
# ===================================================================


def verification_message(code: str) -> tuple[str, str]:
    """Subject and body for the email verification code."""
    return (
        "Verify your email",
        f"Your verification token: {code}\n\n"
        "Enter this code in the app to verify your email address.",
    )


def password_reset_message(*, client_url: str, email: str, token: str) -> tuple[str, str]:
    """Subject and body for the password reset link."""
    reset_url = (
        f"{client_url}/reset-password/{quote(email, safe='')}/{quote(token, safe='')}"
    )
    return (
        "Reset your password",
        f"Reset your password by visiting this link: {reset_url}\n\n"
        "If you didn't request this, you can safely ignore this email.",
    )


def device_activation_message(
    *,
    client_url: str,
    email: str,
    first_name: str,
    device_id: str,
    device_name: str,
    device_type: str,
    token: str,
    ttl_minutes: int,
) -> tuple[str, str]:
    """Subject and body for the device activation link."""
    params = urlencode(
        {"email": email, "deviceId": device_id, "token": token}, quote_via=quote
    )
    activate_url = f"{client_url}/auth/activate-device?{params}"
    greeting = f"Dear {first_name}," if first_name else "Hello,"
    return (
        "Security Alert: Device Activation Requested",
        f"{greeting}\n\n"
        "A request was made to mark this device as trusted on your account: "
        f"{device_name} ({device_type}).\n\n"
        "Only approve if you recognise this device.\n\n"
        f"Click here to activate (Link expires in {ttl_minutes} minutes): "
        f"{activate_url}\n\n"
        "If this wasn't you, please secure your account immediately.\n\n"
        "Smile Movies Team",
    )
