import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

sys.path.append(str(Path(__file__).parents[1] / "src"))

# Must be set before budget_app.config is imported.
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("JWT_SECRET", "test-secret")

from budget_app.db.session import get_db  # noqa: E402
from budget_app.main import app  # noqa: E402
from budget_app.models.transaction import Transaction  # noqa: E402
from budget_app.models.user import User  # noqa: E402

if TEST_DATABASE_URL.startswith("sqlite"):
    # One shared connection so the in-memory database survives across sessions.
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
else:
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def setup_database():
    """Create tables for tests that need the database, and drop them after.

    Not autouse so pure unit tests run without touching a database.
    """
    from budget_app.models.base import BaseModel

    async with test_engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.drop_all)

    await test_engine.dispose()


@pytest.fixture
async def db_session(setup_database):
    """Provide test database session with fresh connection per test."""
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create the user that owns test transactions."""
    user = User(email="household@example.com", is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    """Create a second user to check per-user scoping."""
    user = User(email="neighbour@example.com", is_active=True)
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def make_transaction():
    """Factory for persisted-shape Transaction rows with all defaults filled in."""

    def _make(user: User, **overrides) -> Transaction:
        values = {
            "user_id": user.id,
            "account_id": "acc-a",
            "date": datetime(2025, 1, 2),
            "description": "OKQ8",
            "amount": -300,
            "balance_after": 10000,
            "type": "Transaction",
            "status": "unreviewed",
            "is_manually_changed": False,
        }
        values.update(overrides)
        return Transaction(**values)

    return _make


@pytest.fixture
async def auth_headers(test_user):
    """Provide authentication headers with valid JWT token."""
    from budget_app.core.security import create_access_token

    token = create_access_token(user_id=test_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(db_session: AsyncSession):
    """Provide test client with database override."""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
