"""Tests for rate limiting.

Security: handler envelope, key selection (account vs. IP), and enforcement
through a minimal app so the real routes stay out of the picture.
"""

import json
import uuid
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
from fastapi import FastAPI, Request
from httpx import ASGITransport, AsyncClient
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request as StarletteRequest

from smile_accounts.core.rate_limiting import (
    _rate_limit_key_func,
    rate_limit_exceeded_handler,
)
from smile_accounts.core.sessions import SessionManager
from tests.conftest import token_for

_ACCOUNT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")


def _handler_response(detail):
    request = StarletteRequest({"type": "http", "method": "POST", "path": "/test"})
    exc = MagicMock()
    exc.detail = detail
    return rate_limit_exceeded_handler(request, exc)


class TestRateLimitExceededHandler:
    """Tests for the 429 response format."""

    def test_returns_429_with_error_envelope(self):
        response = _handler_response("10 per 1 minute")

        body = json.loads(response.body.decode())
        assert response.status_code == 429
        assert body["error"]["code"] == "RATE_LIMITED"
        assert "Rate limit exceeded" in body["error"]["message"]

    @pytest.mark.parametrize("detail", ["unexpected format", None])
    def test_retry_after_falls_back_to_60(self, detail):
        response = _handler_response(detail)
        assert response.headers.get("Retry-After") == "60"


class TestRateLimitKeyFunction:
    """Signed-in callers are keyed per account, everyone else per IP."""

    @pytest.fixture(autouse=True)
    def use_test_sessions(self, session_manager: SessionManager) -> Iterator[None]:
        with patch(
            "smile_accounts.core.rate_limiting.get_session_manager",
            return_value=session_manager,
        ):
            yield

    def _make_request(
        self, *, client_host: str = "192.168.1.1", cookies: dict | None = None
    ) -> MagicMock:
        request = MagicMock()
        request.client.host = client_host
        request.cookies = cookies or {}
        return request

    def test_valid_session_keys_on_account(self, session_manager: SessionManager):
        token = token_for(session_manager, _ACCOUNT_ID)
        request = self._make_request(cookies={"authToken": token})

        assert _rate_limit_key_func(request) == f"account:{_ACCOUNT_ID}"

    def test_no_cookie_keys_on_ip(self):
        request = self._make_request(client_host="203.0.113.5")
        assert _rate_limit_key_func(request) == "unauth:203.0.113.5"

    def test_invalid_cookie_keys_on_ip(self):
        request = self._make_request(
            client_host="198.51.100.10", cookies={"authToken": "invalid-jwt-token"}
        )
        assert _rate_limit_key_func(request) == "unauth:198.51.100.10"

    def test_expired_cookie_keys_on_ip(self, session_manager: SessionManager):
        token = session_manager.issue(
            _ACCOUNT_ID,
            admin=False,
            verified=False,
            now=datetime.now(UTC) - timedelta(days=8),
        )
        request = self._make_request(
            client_host="198.51.100.20", cookies={"authToken": token}
        )
        assert _rate_limit_key_func(request) == "unauth:198.51.100.20"


class TestEnforcement:
    """Per-account keys give each signed-in caller its own budget."""

    @pytest.fixture
    def app(self, session_manager: SessionManager) -> Iterator[FastAPI]:
        limiter = Limiter(key_func=_rate_limit_key_func, enabled=True)
        app = FastAPI()
        app.state.limiter = limiter
        app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

        @app.post("/limited")
        @limiter.limit("2/minute")
        async def limited(request: Request) -> dict[str, str]:  # noqa: ARG001
            return {"status": "ok"}

        with patch(
            "smile_accounts.core.rate_limiting.get_session_manager",
            return_value=session_manager,
        ):
            yield app

    async def test_blocks_after_limit(self, app: FastAPI):
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            statuses = [(await client.post("/limited")).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]

    async def test_accounts_have_separate_budgets(
        self, app: FastAPI, session_manager: SessionManager
    ):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as first:
            first.cookies.set("authToken", token_for(session_manager, _ACCOUNT_ID))
            for _ in range(2):
                assert (await first.post("/limited")).status_code == 200
            assert (await first.post("/limited")).status_code == 429

        async with AsyncClient(transport=transport, base_url="http://test") as second:
            second.cookies.set("authToken", token_for(session_manager, uuid.uuid4()))
            assert (await second.post("/limited")).status_code == 200
