"""
Shared pytest configuration for backend tests.

Service tests run against a throw-away database. By default that is a SQLite
file in the system temp directory (through aiosqlite); set TEST_DATABASE_URL
to run against PostgreSQL instead.

SAFETY: This module REFUSES to run against any database whose name does not
contain the substring "test". Tables are dropped after every test.
"""

import os
import tempfile

TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'swimtrain_test.db')}",
)

# Must be set before any swimtrain module reads the environment
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from swimtrain.database.db import Base  # noqa: E402
from swimtrain.tests.fakes import InMemoryIdentityProvider  # noqa: E402


def _check_test_database_url(url: str) -> str:
    """Raise RuntimeError unless the database name contains "test"."""
    db_name = url.rsplit("/", 1)[-1].split("?")[0]
    if "test" not in db_name.lower():
        raise RuntimeError(
            f"\n{'=' * 70}\n"
            f"  SAFETY: Refusing to run tests against database '{db_name}'.\n"
            f"  The database name must contain 'test' to prevent accidental\n"
            f"  data loss in development or production databases.\n\n"
            f"  Fix: set TEST_DATABASE_URL to a test database.\n"
            f"{'=' * 70}"
        )
    return url


_check_test_database_url(TEST_DATABASE_URL)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create the schema on a fresh engine and point the app's session factory at it."""
    # NullPool: no connection reuse across event loops
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Code that opens its own sessions (get_db_session, team stats) uses db.AsyncSessionLocal
    from swimtrain.database import db

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """A database session for one test."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest_asyncio.fixture
async def provider():
    """In-memory identity provider."""
    return InMemoryIdentityProvider()
