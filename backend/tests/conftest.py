import uuid
from collections.abc import AsyncGenerator, Iterator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from smile_accounts.core.errors import NotificationError
from smile_accounts.core.sessions import SessionConfig, SessionManager
from smile_accounts.models import Base
from smile_accounts.services.account_service import AccountService, NewProfile
from smile_accounts.services.device_registry import DeviceInfo, DeviceRegistry
from smile_accounts.services.token_service import TokenService

# Security: This is a test-only secret. Production uses a real secret from env.
TEST_AUTH_SECRET = "test-secret-key-that-is-at-least-32-characters-long"  # nosec B105  # gitleaks:allow

# Minimum bcrypt cost, keeps hashing fast in tests
TEST_BCRYPT_ROUNDS = 4

TEST_CLIENT_URL = "https://smile.test"
TEST_PASSWORD = "Sup3r-secret!"  # nosec B105
TEST_EMAIL = "ada@example.com"

# Starting point for the test clock. Session credentials issued at T0 are
# verified against the real clock, so T0 must be recent.
T0 = datetime.now(UTC).replace(microsecond=0)


class MutableClock:
    """Clock whose current time is set by the test."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class RecordingDispatcher:
    """Notification dispatcher that records messages instead of sending.

    Set ``fail = True`` to make every send raise NotificationError.
    """

    def __init__(self) -> None:
        self.sent: list[dict[str, str]] = []
        self.fail = False

    async def send(self, to_address: str, subject: str, body_text: str) -> None:
        if self.fail:
            raise NotificationError()
        self.sent.append({"to": to_address, "subject": subject, "body": body_text})

    @property
    def last(self) -> dict[str, str]:
        return self.sent[-1]


def device(device_id: str = "device-1", **kwargs) -> DeviceInfo:
    """Build a DeviceInfo with sensible defaults."""
    kwargs.setdefault("device_name", f"{device_id} name")
    kwargs.setdefault("device_type", "mobile")
    return DeviceInfo(device_id=device_id, **kwargs)


def profile(email: str = TEST_EMAIL, **kwargs) -> NewProfile:
    """Build a NewProfile with a valid password."""
    kwargs.setdefault("password", TEST_PASSWORD)
    kwargs.setdefault("first_name", "Ada")
    kwargs.setdefault("last_name", "Lovelace")
    return NewProfile(email=email, **kwargs)


# =============================================================================
# Database
# =============================================================================


@pytest_asyncio.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with a fresh schema per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Core components
# =============================================================================


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(secret=TEST_AUTH_SECRET)


@pytest.fixture
def session_manager(session_config: SessionConfig) -> SessionManager:
    return SessionManager(session_config)


@pytest.fixture
def token_service(db_session: AsyncSession, clock: MutableClock) -> TokenService:
    return TokenService(db_session, clock=clock)


@pytest.fixture
def device_registry(
    db_session: AsyncSession,
    token_service: TokenService,
    dispatcher: RecordingDispatcher,
    clock: MutableClock,
) -> DeviceRegistry:
    return DeviceRegistry(
        db_session,
        token_service,
        dispatcher,
        client_url=TEST_CLIENT_URL,
        clock=clock,
    )


@pytest.fixture
def account_service(
    db_session: AsyncSession,
    token_service: TokenService,
    device_registry: DeviceRegistry,
    session_manager: SessionManager,
    dispatcher: RecordingDispatcher,
    clock: MutableClock,
) -> AccountService:
    return AccountService(
        db_session,
        tokens=token_service,
        devices=device_registry,
        sessions=session_manager,
        dispatcher=dispatcher,
        client_url=TEST_CLIENT_URL,
        clock=clock,
        password_rounds=TEST_BCRYPT_ROUNDS,
    )


@pytest_asyncio.fixture
async def registered(account_service: AccountService, dispatcher: RecordingDispatcher):
    """An unverified account registered from device-1.

    The verification email is cleared from the dispatcher.
    """
    registration = await account_service.register(profile(), device("device-1"))
    dispatcher.sent.clear()
    return registration


# =============================================================================
# API Test Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def unauthenticated_client(
    session_factory: async_sessionmaker[AsyncSession],
    session_manager: SessionManager,
    dispatcher: RecordingDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client without a session cookie.

    Sets up:
    - Test database via dependency override
    - Session manager with the test secret
    - Recording dispatcher in place of Resend
    """
    from smile_accounts.api.deps import get_dispatcher, get_session_manager
    from smile_accounts.core.database import get_db
    from smile_accounts.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_manager] = lambda: session_manager
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def sign_in(client: AsyncClient, token: str) -> None:
    """Attach a session credential to the client.

    The real cookie is Secure and would not round-trip over http://test.
    """
    client.cookies.set("authToken", token)


def token_for(session_manager: SessionManager, account_id: uuid.UUID, **claims) -> str:
    claims.setdefault("admin", False)
    claims.setdefault("verified", False)
    return session_manager.issue(account_id, **claims)


# =============================================================================
# Autouse Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def disable_rate_limiting() -> Iterator[None]:
    """Disable rate limiting during tests.

    Security: Rate limiting is tested separately; disable for other tests
    to avoid flaky failures from rate limit triggers.
    """
    from smile_accounts.core.rate_limiting import limiter

    original_enabled = limiter.enabled
    limiter.enabled = False

    yield

    limiter.enabled = original_enabled
