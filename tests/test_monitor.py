"""Tests for the background ride monitor cycle."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from src.domain.dispatch import ride_h3_cell
from src.domain.enums import (
    AlertType,
    CabType,
    PaymentMethod,
    RideStatus,
)
from src.infrastructure.models import DriverModel, RideAlertModel, RideModel
from src.workers.monitor import run_monitor_cycle
from tests.conftest import DROP, PICKUP, make_redis

NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


async def _ride(
    session_factory, driver_id, status, accepted_at=NOW - timedelta(minutes=20), **fields
) -> int:
    async with session_factory() as session:
        ride = RideModel(
            user_id=1,
            driver_id=driver_id,
            pickup_address=PICKUP["address"],
            pickup_lat=PICKUP["lat"],
            pickup_lng=PICKUP["lng"],
            pickup_h3_cell=ride_h3_cell(PICKUP["lat"], PICKUP["lng"]),
            drop_address=DROP["address"],
            drop_lat=DROP["lat"],
            drop_lng=DROP["lng"],
            cab_type=CabType.STANDARD,
            fare=1000.0,
            distance_km=8.0,
            duration_min=16,
            payment_method=PaymentMethod.CASH,
            status=status,
            accepted_at=accepted_at,
            **fields,
        )
        session.add(ride)
        await session.commit()
        return ride.id


async def _seen(session_factory, driver_id, when, address=None):
    async with session_factory() as session:
        driver = await session.get(DriverModel, driver_id)
        driver.last_seen_at = when
        driver.current_address = address
        await session.commit()


async def _alerts(session_factory) -> list[RideAlertModel]:
    async with session_factory() as session:
        result = await session.execute(select(RideAlertModel).order_by(RideAlertModel.id))
        return list(result.scalars().all())


class TestMonitorCycle:
    @pytest.mark.asyncio
    async def test_route_deviation_alert(self, session_factory, seeded):
        driver = seeded["driver"]
        await _seen(session_factory, driver, NOW - timedelta(seconds=10), "Hadapsar")
        ride_id = await _ride(
            session_factory, driver, RideStatus.IN_PROGRESS,
            start_time=NOW - timedelta(minutes=10), route_deviation=True,
        )

        raised = await run_monitor_cycle(session_factory, make_redis(), NOW)

        assert raised == 1
        [alert] = await _alerts(session_factory)
        assert alert.ride_id == ride_id
        assert alert.type == AlertType.ROUTE_DEVIATION
        assert alert.location == "Hadapsar"
        assert "1 km" in alert.message

    @pytest.mark.asyncio
    async def test_offline_driver_alert(self, session_factory, seeded):
        driver = seeded["driver"]
        await _seen(session_factory, driver, NOW - timedelta(minutes=10))
        await _ride(session_factory, driver, RideStatus.DRIVER_ASSIGNED)

        assert await run_monitor_cycle(session_factory, make_redis(), NOW) == 1
        [alert] = await _alerts(session_factory)
        assert alert.type == AlertType.DRIVER_OFFLINE

    @pytest.mark.asyncio
    async def test_driver_that_never_pinged_judged_from_acceptance(
        self, session_factory, seeded
    ):
        await _ride(session_factory, seeded["driver"], RideStatus.ARRIVED)
        assert await run_monitor_cycle(session_factory, make_redis(), NOW) == 1

    @pytest.mark.asyncio
    async def test_recent_acceptance_outweighs_stale_ping(self, session_factory, seeded):
        driver = seeded["driver"]
        await _seen(session_factory, driver, NOW - timedelta(minutes=10))
        await _ride(
            session_factory, driver, RideStatus.DRIVER_ASSIGNED,
            accepted_at=NOW - timedelta(seconds=5),
        )

        assert await run_monitor_cycle(session_factory, make_redis(), NOW) == 0
        assert await _alerts(session_factory) == []

    @pytest.mark.asyncio
    async def test_recent_ping_outweighs_old_acceptance(self, session_factory, seeded):
        driver = seeded["driver"]
        await _seen(session_factory, driver, NOW - timedelta(seconds=20))
        await _ride(
            session_factory, driver, RideStatus.ARRIVED,
            accepted_at=NOW - timedelta(hours=1),
        )
        assert await run_monitor_cycle(session_factory, make_redis(), NOW) == 0

    @pytest.mark.asyncio
    async def test_healthy_ride_raises_nothing(self, session_factory, seeded):
        driver = seeded["driver"]
        await _seen(session_factory, driver, NOW - timedelta(seconds=30))
        await _ride(
            session_factory, driver, RideStatus.IN_PROGRESS,
            start_time=NOW - timedelta(minutes=5),
        )
        assert await run_monitor_cycle(session_factory, make_redis(), NOW) == 0

    @pytest.mark.asyncio
    async def test_no_duplicate_open_alerts(self, session_factory, seeded):
        driver = seeded["driver"]
        await _ride(
            session_factory, driver, RideStatus.IN_PROGRESS,
            start_time=NOW - timedelta(minutes=10), route_deviation=True,
        )

        assert await run_monitor_cycle(session_factory, make_redis(), NOW) == 2
        assert await run_monitor_cycle(session_factory, make_redis(), NOW) == 0
        assert len(await _alerts(session_factory)) == 2

    @pytest.mark.asyncio
    async def test_finished_rides_ignored(self, session_factory, seeded):
        driver = seeded["driver"]
        await _ride(
            session_factory, driver, RideStatus.COMPLETED,
            start_time=NOW - timedelta(minutes=30),
            end_time=NOW - timedelta(minutes=5),
            route_deviation=True,
        )
        await _ride(session_factory, None, RideStatus.CANCELLED)
        assert await run_monitor_cycle(session_factory, make_redis(), NOW) == 0

    @pytest.mark.asyncio
    async def test_skips_cycle_when_locked(self, session_factory, seeded):
        await _ride(session_factory, seeded["driver"], RideStatus.ARRIVED)
        redis = make_redis(acquired=False)

        assert await run_monitor_cycle(session_factory, redis, NOW) == 0
        redis.eval.assert_not_awaited()
        assert await _alerts(session_factory) == []
