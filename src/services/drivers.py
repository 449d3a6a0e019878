"""Driver-side operations: availability, location pings, ride requests, earnings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.clock import utcnow
from src.domain.dispatch import nearby_cells, rank_by_pickup_distance
from src.domain.distance import distance_from_route_km
from src.domain.enums import RideStatus
from src.infrastructure.models import DriverModel, RideModel
from src.infrastructure.repositories import (
    OPEN_REQUEST_STATUSES,
    DriverRepository,
    RideRepository,
)
from src.services.errors import Conflict, NotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Earnings:
    today: float
    this_week: float


class DriverService:
    def __init__(
        self, session: AsyncSession, *, clock: Callable[[], datetime] = utcnow
    ):
        self.session = session
        self.clock = clock
        self.drivers = DriverRepository(session)
        self.rides = RideRepository(session)

    async def get_driver(self, driver_id: int) -> DriverModel:
        driver = await self.drivers.get_by_id(driver_id)
        if driver is None:
            raise NotFound("Driver not found")
        return driver

    async def set_availability(self, driver_id: int, is_available: bool) -> DriverModel:
        driver = await self.get_driver(driver_id)
        driver.is_available = is_available
        logger.info("Driver %s is now %s", driver_id, "available" if is_available else "unavailable")
        return driver

    async def update_location(
        self, driver_id: int, lat: float, lng: float, address: Optional[str] = None
    ) -> DriverModel:
        """
        Record a location ping.  While the driver has a ride in progress,
        the ride is flagged once the driver strays more than
        ``route_deviation_km`` from the pickup-to-drop path.
        """
        driver = await self.get_driver(driver_id)
        driver.current_lat = lat
        driver.current_lng = lng
        driver.current_address = address
        driver.last_seen_at = self.clock()

        ride = await self.rides.get_active_for_driver(driver_id)
        if ride is not None and ride.status == RideStatus.IN_PROGRESS and not ride.route_deviation:
            off_route = distance_from_route_km(
                (lat, lng),
                (ride.pickup_lat, ride.pickup_lng),
                (ride.drop_lat, ride.drop_lng),
            )
            if off_route > settings.route_deviation_km:
                ride.route_deviation = True
                logger.warning(
                    "Ride %s: driver %s is %.2f km off route", ride.id, driver_id, off_route
                )
        return driver

    async def ride_requests(self, driver_id: int) -> list[tuple[float, RideModel]]:
        """Open requests near the driver, nearest pickup first."""
        driver = await self.get_driver(driver_id)
        if not driver.can_take_rides():
            return []
        if await self.rides.get_active_for_driver(driver_id) is not None:
            return []

        cells = nearby_cells(
            driver.current_lat,
            driver.current_lng,
            settings.request_search_rings,
            settings.h3_resolution,
        )
        candidates = await self.rides.list_open_requests(
            cells, driver.cab_type, declined_by=driver_id
        )
        return rank_by_pickup_distance(candidates, driver.current_lat, driver.current_lng)

    async def decline_request(self, driver_id: int, ride_id: int) -> RideModel:
        """Stop offering an open request to this driver.  Other drivers still see it."""
        await self.get_driver(driver_id)
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        if ride.status not in OPEN_REQUEST_STATUSES or ride.driver_id is not None:
            raise Conflict(f"Ride is {ride.status.value}, not an open request")

        await self.rides.record_decline(ride_id, driver_id, self.clock())
        logger.info("Driver %s declined ride %s", driver_id, ride_id)
        return ride

    async def earnings(self, driver_id: int) -> Earnings:
        await self.get_driver(driver_id)
        now = self.clock()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return Earnings(
            today=await self.rides.completed_fares_since(driver_id, start_of_day),
            this_week=await self.rides.completed_fares_since(
                driver_id, now - timedelta(days=7)
            ),
        )
