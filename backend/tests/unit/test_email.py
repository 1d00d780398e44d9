"""Tests for outbound email: message builders and the Resend dispatcher."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from smile_accounts.core.email import (
    ResendDispatcher,
    device_activation_message,
    password_reset_message,
    verification_message,
)
from smile_accounts.core.errors import NotificationError

_CLIENT_URL = "https://smile.test"


class TestMessageBuilders:
    def test_verification_message_contains_code(self):
        subject, body = verification_message("A1B2C3")

        assert subject == "Verify your email"
        assert "Your verification token: A1B2C3" in body

    def test_reset_link_escapes_email(self):
        _, body = password_reset_message(
            client_url=_CLIENT_URL, email="ada+films@example.com", token="ABC123"
        )
        assert f"{_CLIENT_URL}/reset-password/ada%2Bfilms%40example.com/ABC123" in body

    def test_activation_message(self):
        subject, body = device_activation_message(
            client_url=_CLIENT_URL,
            email="ada@example.com",
            first_name="Ada",
            device_id="tv 1",
            device_name="Living room",
            device_type="tv",
            token="f" * 64,
            ttl_minutes=30,
        )

        assert subject == "Security Alert: Device Activation Requested"
        assert body.startswith("Dear Ada,")
        assert "mark this device as trusted on your account: Living room (tv)" in body
        assert "Link expires in 30 minutes" in body
        # Trust is a flag on the device; sessions are not bound to devices
        assert "Delete your account" not in body
        assert "Manage other devices" not in body
        assert (
            f"{_CLIENT_URL}/auth/activate-device?email=ada%40example.com"
            f"&deviceId=tv%201&token={'f' * 64}"
        ) in body

    def test_activation_message_without_name(self):
        _, body = device_activation_message(
            client_url=_CLIENT_URL,
            email="ada@example.com",
            first_name="",
            device_id="tv-1",
            device_name="",
            device_type="",
            token="0" * 64,
            ttl_minutes=30,
        )
        assert body.startswith("Hello,")


class TestResendDispatcher:
    @pytest.fixture
    def dispatcher(self) -> ResendDispatcher:
        return ResendDispatcher(
            api_key="re_test", from_address="noreply@smile.test", from_name="Smile Movies"
        )

    async def test_posts_plain_text_email(self, dispatcher: ResendDispatcher):
        request = httpx.Request("POST", "https://api.resend.com/emails")
        ok = httpx.Response(200, json={"id": "msg_1"}, request=request)

        with patch.object(
            httpx.AsyncClient, "post", new=AsyncMock(return_value=ok)
        ) as post:
            await dispatcher.send("ada@example.com", "Hi", "Body")

        kwargs = post.call_args.kwargs
        assert kwargs["headers"] == {"Authorization": "Bearer re_test"}
        assert kwargs["json"] == {
            "from": "Smile Movies <noreply@smile.test>",
            "to": "ada@example.com",
            "subject": "Hi",
            "text": "Body",
        }

    async def test_error_status_raises_notification_error(
        self, dispatcher: ResendDispatcher
    ):
        request = httpx.Request("POST", "https://api.resend.com/emails")
        failed = httpx.Response(422, json={"message": "bad"}, request=request)

        with (
            patch.object(httpx.AsyncClient, "post", new=AsyncMock(return_value=failed)),
            pytest.raises(NotificationError),
        ):
            await dispatcher.send("ada@example.com", "Hi", "Body")

    async def test_transport_error_raises_notification_error(
        self, dispatcher: ResendDispatcher
    ):
        with (
            patch.object(
                httpx.AsyncClient,
                "post",
                new=AsyncMock(side_effect=httpx.ConnectError("down")),
            ),
            pytest.raises(NotificationError),
        ):
            await dispatcher.send("ada@example.com", "Hi", "Body")

    def test_from_without_display_name(self):
        dispatcher = ResendDispatcher(
            api_key="re_test", from_address="noreply@smile.test", from_name=""
        )
        assert dispatcher._from == "noreply@smile.test"
