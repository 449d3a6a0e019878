"""Tests for user registration and the retried write helper."""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from src.domain.entities import VehicleDetails
from src.domain.enums import CabType, UserRole
from src.infrastructure.database import write_with_retry
from src.infrastructure.models import DriverModel, UserModel
from src.services.errors import Conflict, Unprocessable
from src.services.users import register_user


def _transient() -> OperationalError:
    return OperationalError("INSERT INTO users", {}, Exception("database is locked"))


class TestWriteWithRetry:
    @pytest.mark.asyncio
    async def test_retries_transient_failures(self, session_factory):
        calls = []

        async def work(session):
            calls.append(session)
            if len(calls) < 3:
                raise _transient()
            return "ok"

        with patch("src.infrastructure.database.asyncio.sleep", new_callable=AsyncMock) as sleep:
            result = await write_with_retry(
                session_factory, work, attempts=3, backoff_seconds=1.0
            )

        assert result == "ok"
        assert len(calls) == 3
        assert calls[0] is not calls[1]
        assert sleep.await_count == 2
        sleep.assert_awaited_with(1.0)

    @pytest.mark.asyncio
    async def test_gives_up_after_last_attempt(self, session_factory):
        work = AsyncMock(side_effect=_transient())

        with patch("src.infrastructure.database.asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(OperationalError):
                await write_with_retry(session_factory, work, attempts=3)

        assert work.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self, session_factory):
        work = AsyncMock(side_effect=Conflict("taken"))

        with pytest.raises(Conflict):
            await write_with_retry(session_factory, work, attempts=3)
        assert work.await_count == 1


class TestRegisterUser:
    @pytest.mark.asyncio
    async def test_register_rider(self, session_factory):
        user = await register_user(
            session_factory, name="Neha Joshi", email="Neha@Example.com", phone="9988776655"
        )
        assert user.id is not None
        assert user.email == "neha@example.com"
        assert user.role == UserRole.USER

    @pytest.mark.asyncio
    async def test_register_driver_creates_profile(self, session_factory):
        user = await register_user(
            session_factory,
            name="Sanjay Patil",
            email="sanjay@example.com",
            phone="9090909090",
            role=UserRole.DRIVER,
            vehicle=VehicleDetails("Innova", "Silver", "MH14CD5678", CabType.LUXURY),
        )
        async with session_factory() as session:
            driver = await session.get(DriverModel, user.id)
            assert driver.cab_type == CabType.LUXURY
            assert driver.is_available is True
            assert driver.name == "Sanjay Patil"

    @pytest.mark.asyncio
    async def test_driver_needs_vehicle(self, session_factory):
        with pytest.raises(Unprocessable):
            await register_user(
                session_factory,
                name="No Car",
                email="nocar@example.com",
                phone="9090909090",
                role=UserRole.DRIVER,
            )

    @pytest.mark.asyncio
    async def test_duplicate_email(self, session_factory, seeded):
        with pytest.raises(Conflict):
            await register_user(
                session_factory, name="Asha", email="asha@EXAMPLE.com", phone="9876543210"
            )

    @pytest.mark.asyncio
    async def test_duplicate_plate_leaves_no_user_behind(self, session_factory, seeded):
        with pytest.raises(Conflict):
            await register_user(
                session_factory,
                name="Copy Cat",
                email="copycat@example.com",
                phone="9090909091",
                role=UserRole.DRIVER,
                vehicle=VehicleDetails("Swift", "Red", "MH12AB1234"),
            )
        async with session_factory() as session:
            result = await session.execute(
                select(UserModel).where(UserModel.email == "copycat@example.com")
            )
            assert result.scalar_one_or_none() is None
