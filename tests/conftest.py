"""Shared test configuration and fixtures.

Each test gets a fresh database: a throwaway SQLite file by default, or the
database named by ``TEST_DATABASE_URL`` (e.g. a PostgreSQL test instance),
whose tables are recreated per test. Sessions are real sessions that
commit, because the allocator owns its transaction boundaries.
"""

import os
import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import staybook.models  # noqa: F401  (registers all tables on Base.metadata)
from staybook.auth.jwt import create_access_token
from staybook.database import Base, engine_options, get_db
from staybook.main import app
from staybook.models.listing import Listing
from staybook.models.user import User
from staybook.services import notifications

# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create an engine on an empty schema and dispose it after the test."""
    url = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'staybook_test.db'}"
    engine = create_async_engine(url, **engine_options(url))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Factory for independent sessions, one per simulated request."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient; every request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _restore_notification_sender():
    yield
    notifications.set_sender(None)


# ---------------------------------------------------------------------------
# Convenience fixtures: users and a listing
# ---------------------------------------------------------------------------


async def _make_user(db: AsyncSession, name: str = "Test User", is_active: bool = True) -> User:
    unique = uuid.uuid4().hex[:8]
    user = User(email=f"{name.lower().replace(' ', '-')}-{unique}@test.com", name=name, is_active=is_active)
    db.add(user)
    await db.commit()
    return user


def _auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest_asyncio.fixture
async def host(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "Test Host")


@pytest_asyncio.fixture
async def guest(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "Test Guest")


@pytest_asyncio.fixture
async def stranger(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "Someone Else")


@pytest_asyncio.fixture
async def listing(db_session: AsyncSession, host: User) -> Listing:
    """Nightly 100, two guests included, 20 per extra guest per night, at most four guests."""
    listing = Listing(
        host_id=host.id,
        title="Test Villa",
        city="Ubud",
        price=Decimal("100.00"),
        base_guests=2,
        extra_guest_fee=Decimal("20.00"),
        max_guests=4,
    )
    db_session.add(listing)
    await db_session.commit()
    return listing


@pytest.fixture
def host_headers(host: User) -> dict[str, str]:
    return _auth_headers(host)


@pytest.fixture
def guest_headers(guest: User) -> dict[str, str]:
    return _auth_headers(guest)


@pytest.fixture
def stranger_headers(stranger: User) -> dict[str, str]:
    return _auth_headers(stranger)


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Create extra users inside a test: ``await make_user("Name", is_active=False)``."""

    async def _factory(name: str = "Test User", is_active: bool = True) -> User:
        return await _make_user(db_session, name, is_active)

    return _factory


@pytest.fixture
def auth_headers_for():
    return _auth_headers
