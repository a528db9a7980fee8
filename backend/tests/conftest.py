"""
Shared pytest fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without a
live Postgres instance. Each test gets a fresh schema.

Environment overrides are applied before importing savtrack modules so that
Settings() picks up the test database URL.
"""
import os
import uuid
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

# Set test environment BEFORE importing any savtrack module
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEV_SKIP_AUTH", "true")
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from savtrack.models.base import Base
from savtrack.models.case import SavCase, SavMessage, SavPart, SavStatusHistory  # noqa: F401
from savtrack.models.catalog import ShopSavStatus, ShopSavType  # noqa: F401
from savtrack.models.customer import Customer  # noqa: F401
from savtrack.models.notification import Notification, SavDelayAlert  # noqa: F401
from savtrack.models.part import Part  # noqa: F401
from savtrack.models.sequence import CaseSequence  # noqa: F401
from savtrack.models.shop import Shop
from savtrack.models.user import User

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

NOW = datetime(2025, 3, 20, 12, 0, 0)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLite does not enforce FKs by default
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine):
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def shop(db_session: AsyncSession) -> Shop:
    shop = Shop(
        name="Réparation Express",
        subscription_tier="premium",
        sav_delay_alerts_enabled=True,
        review_request_enabled=False,
        created_at=NOW,
    )
    db_session.add(shop)
    await db_session.commit()
    return shop


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession, shop: Shop) -> User:
    """Create and return a persisted SHOP_ADMIN user."""
    user = User(
        auth_user_id=str(uuid.uuid4()),
        shop_id=shop.id,
        full_name="Test Admin",
        email="admin@test.local",
        role="SHOP_ADMIN",
        is_active=True,
        created_at=NOW,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def technician_user(db_session: AsyncSession, shop: Shop) -> User:
    user = User(
        auth_user_id=str(uuid.uuid4()),
        shop_id=shop.id,
        full_name="Test Technician",
        email="tech@test.local",
        role="TECHNICIAN",
        is_active=True,
        created_at=NOW,
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def client(engine, db_session: AsyncSession, admin_user: User):
    """
    AsyncClient for the FastAPI app with:
    - DB dependency overridden to use the test session
    - DEV_SKIP_AUTH=true so requests are authenticated as admin_user
      by default (pass X-Dev-User-ID header with another auth_user_id
      to switch users).
    """
    from savtrack.core.db import get_db
    from savtrack.main import app

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://testserver",
        headers={"X-Dev-User-ID": admin_user.auth_user_id},
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


def make_case(**overrides) -> SimpleNamespace:
    """In-memory case record for the pure service tests."""
    values = {
        "id": uuid.uuid4(),
        "case_number": "SAV-2025-00001",
        "sav_type": "client",
        "status": "in_progress",
        "created_at": NOW,
        "updated_at": NOW,
        "device_brand": "Apple",
        "device_model": "iPhone 13",
        "total_cost": Decimal("0"),
        "taken_over": False,
        "partial_takeover": False,
        "takeover_amount": None,
        "total_time_minutes": None,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


@pytest.fixture
def now() -> datetime:
    return NOW
