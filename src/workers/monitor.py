"""
Background Ride Monitor
=======================

Runs every ``MONITOR_INTERVAL_SECONDS`` (default 30 s) and raises admin
alerts.

Concurrency safety
------------------
* **Redis distributed lock** (``ride-monitor``) ensures only one instance
  scans per cycle across multiple API processes.
* An alert is only created when the ride has no *open* alert of the same
  type, so repeated cycles do not pile up duplicates.

Checks per cycle
----------------
1. ``route_deviation`` (high) -- IN_PROGRESS rides flagged as off route.
2. ``driver_offline`` (high)  -- rides a driver is bound to
   (assigned / arrived / in progress) where neither the driver's last
   location ping nor the acceptance falls within
   ``DRIVER_OFFLINE_AFTER_SECONDS``.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker

from src.config import settings
from src.domain.clock import as_utc, utcnow
from src.domain.enums import AlertSeverity, AlertType, RideStatus
from src.infrastructure.database import async_session_factory
from src.infrastructure.locks import DistributedLock, LockNotAcquired
from src.infrastructure.models import RideAlertModel
from src.infrastructure.redis_client import get_redis
from src.infrastructure.repositories import (
    AlertRepository,
    DriverRepository,
    RideRepository,
)

logger = logging.getLogger(__name__)

_task: asyncio.Task | None = None
_stop_event: asyncio.Event | None = None


# ── Public API ────────────────────────────────────────────────────────


async def start_monitor_loop() -> None:
    global _task, _stop_event
    _stop_event = asyncio.Event()
    _task = asyncio.create_task(_loop())
    logger.info(
        "Ride monitor started (interval=%ds)", settings.monitor_interval_seconds
    )


async def stop_monitor_loop() -> None:
    if _stop_event:
        _stop_event.set()
    if _task:
        _task.cancel()
        try:
            await _task
        except asyncio.CancelledError:
            pass
    logger.info("Ride monitor stopped")


# ── Internals ─────────────────────────────────────────────────────────


async def _loop() -> None:
    """Periodic loop: run a monitor cycle then sleep."""
    assert _stop_event is not None
    while not _stop_event.is_set():
        try:
            await run_monitor_cycle()
        except Exception:
            logger.exception("Unhandled error in monitor cycle")
        try:
            await asyncio.wait_for(
                _stop_event.wait(), timeout=settings.monitor_interval_seconds
            )
            break
        except asyncio.TimeoutError:
            pass


async def run_monitor_cycle(
    session_factory: async_sessionmaker = async_session_factory,
    redis: Optional[aioredis.Redis] = None,
    now: Optional[datetime] = None,
) -> int:
    """Execute one monitor cycle.  Returns the number of alerts raised."""
    redis = redis or await get_redis()
    try:
        async with DistributedLock(redis, "ride-monitor", ttl_seconds=60):
            return await _scan(session_factory, now or utcnow())
    except LockNotAcquired:
        logger.debug("Lock held by another worker – skipping cycle")
        return 0


def _last_heard_from(driver, ride) -> Optional[datetime]:
    """Latest of the driver's last ping and the moment the ride was accepted."""
    seen = [
        as_utc(value)
        for value in (driver.last_seen_at if driver else None, ride.accepted_at)
        if value is not None
    ]
    return max(seen, default=None)


async def _scan(session_factory: async_sessionmaker, now: datetime) -> int:
    offline_cutoff = now - timedelta(seconds=settings.driver_offline_after_seconds)
    raised = 0
    try:
        async with session_factory() as session:
            ride_repo = RideRepository(session)
            driver_repo = DriverRepository(session)
            alert_repo = AlertRepository(session)

            for ride in await ride_repo.list_active():
                driver = await driver_repo.get_by_id(ride.driver_id)
                if (
                    ride.status == RideStatus.IN_PROGRESS
                    and ride.route_deviation
                    and not await alert_repo.has_open(ride.id, AlertType.ROUTE_DEVIATION)
                ):
                    await alert_repo.create(
                        RideAlertModel(
                            ride_id=ride.id,
                            type=AlertType.ROUTE_DEVIATION,
                            severity=AlertSeverity.HIGH,
                            message=(
                                "Driver has deviated from the planned route by "
                                f"more than {settings.route_deviation_km:g} km"
                            ),
                            location=driver.current_address if driver else None,
                            resolved=False,
                        )
                    )
                    raised += 1

                last_heard = _last_heard_from(driver, ride)
                if (
                    (last_heard is None or last_heard < offline_cutoff)
                    and not await alert_repo.has_open(ride.id, AlertType.DRIVER_OFFLINE)
                ):
                    await alert_repo.create(
                        RideAlertModel(
                            ride_id=ride.id,
                            type=AlertType.DRIVER_OFFLINE,
                            severity=AlertSeverity.HIGH,
                            message="Driver went offline during an active ride",
                            resolved=False,
                        )
                    )
                    raised += 1

            await session.commit()
            if raised:
                logger.info("Monitor cycle: %d alerts raised", raised)
    except Exception:
        logger.exception("Error in monitor cycle")

    return raised
