"""Async database engine, session management and the atomic commit unit.

Configures the SQLAlchemy async engine with connection pooling and provides
dependency injection for database sessions. ``atomic()`` is the single
all-or-nothing commit boundary used by every multi-record transition.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from smile_accounts.core.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.environment == "development",
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def atomic(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Stage changes on ``db`` and commit them together.

    Everything flushed inside the block is committed in one transaction when
    the block exits cleanly. Any exception rolls the whole transaction back
    and is re-raised, so callers never observe a partial transition.

    Usage:
        async with atomic(db):
            device.trusted = True
            await TokenRepository.mark_consumed(db, token)

    Args:
        db: Async database session owning the transaction.

    Yields:
        The same session, for convenience.
    """
    try:
        yield db
        await db.commit()
    except BaseException:
        await db.rollback()
        raise
