"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) with the production
models so tests run without Docker / PostgreSQL / Redis.  Redis is an
``AsyncMock`` whose ``SET NX`` always succeeds.
"""

from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.domain.enums import CabType, UserRole
from src.infrastructure.database import Base
from src.infrastructure.models import DriverModel, UserModel

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

# Pune: pickup near Shivajinagar, drop at the airport
PICKUP = {"address": "Shivajinagar, Pune", "lat": 18.5308, "lng": 73.8475}
DROP = {"address": "Pune Airport", "lat": 18.5793, "lng": 73.9089}


def make_redis(acquired: bool = True) -> AsyncMock:
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=acquired)
    redis.eval = AsyncMock(return_value=1)
    return redis


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema per test; every session shares the one in-memory connection."""
    engine = create_async_engine(TEST_DB_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def redis() -> AsyncMock:
    return make_redis()


# ── Seed data ─────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def seeded(session_factory) -> dict:
    """
    One rider, a second rider, an admin and two drivers parked at the
    pickup point (one standard, one luxury).
    """
    async with session_factory() as session:
        rider = UserModel(
            name="Asha Rao", email="asha@example.com", phone="9876543210",
            role=UserRole.USER,
        )
        other = UserModel(
            name="Vikram Shah", email="vikram@example.com", phone="9876500000",
            role=UserRole.USER,
        )
        admin = UserModel(
            name="Ops Admin", email="ops@example.com", phone="9000000000",
            role=UserRole.ADMIN,
        )
        driver_user = UserModel(
            name="Ravi Kumar", email="ravi@example.com", phone="9123456780",
            role=UserRole.DRIVER,
        )
        luxury_user = UserModel(
            name="Meera Iyer", email="meera@example.com", phone="9123456781",
            role=UserRole.DRIVER,
        )
        session.add_all([rider, other, admin, driver_user, luxury_user])
        await session.flush()

        session.add_all(
            [
                DriverModel(
                    id=driver_user.id,
                    vehicle_model="Swift Dzire",
                    vehicle_color="White",
                    plate_number="MH12AB1234",
                    cab_type=CabType.STANDARD,
                    rating=5.0,
                    is_available=True,
                    current_address=PICKUP["address"],
                    current_lat=PICKUP["lat"],
                    current_lng=PICKUP["lng"],
                ),
                DriverModel(
                    id=luxury_user.id,
                    vehicle_model="Mercedes E-Class",
                    vehicle_color="Black",
                    plate_number="MH12XY9999",
                    cab_type=CabType.LUXURY,
                    rating=5.0,
                    is_available=True,
                    current_address=PICKUP["address"],
                    current_lat=PICKUP["lat"],
                    current_lng=PICKUP["lng"],
                ),
            ]
        )
        await session.commit()

        return {
            "rider": rider.id,
            "other": other.id,
            "admin": admin.id,
            "driver": driver_user.id,
            "luxury_driver": luxury_user.id,
        }


# ── API client ────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, redis) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient backed by SQLite and a mocked Redis."""
    with (
        patch("src.workers.monitor.start_monitor_loop", new_callable=AsyncMock),
        patch("src.workers.monitor.stop_monitor_loop", new_callable=AsyncMock),
    ):

        async def _test_db():
            async with session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        async def _test_redis():
            return redis

        from src.api.app import create_app
        from src.api.dependencies import get_db, get_session_factory
        from src.api.middleware import limiter
        from src.infrastructure.redis_client import get_redis

        limiter.reset()
        app = create_app()
        app.dependency_overrides[get_db] = _test_db
        app.dependency_overrides[get_session_factory] = lambda: session_factory
        app.dependency_overrides[get_redis] = _test_redis

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
