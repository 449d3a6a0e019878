"""
Ride aggregate service
======================

Every status change of a ride goes through :class:`RideService`.  A
command runs as:

1. take the per-ride Redis lock (``ride-command:<id>``), rejecting with
   ``locked`` when another process holds it;
2. load the ride with ``SELECT ... FOR UPDATE``;
3. apply the lifecycle handler from :mod:`src.domain.lifecycle`;
4. commit on success (a rejected command leaves the ride untouched),
   release the lock.

Booking, rating and SOS are not status changes and raise
:class:`~src.services.errors.ServiceError` subclasses instead of
returning a ``CommandResult``.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain import lifecycle
from src.domain.clock import as_utc, utcnow
from src.domain.dispatch import ride_h3_cell
from src.domain.entities import Location
from src.domain.enums import (
    HISTORY_STATUSES,
    UPCOMING_STATUSES,
    AlertSeverity,
    AlertType,
    CabType,
    PaymentMethod,
    RideStatus,
    UserRole,
)
from src.domain.lifecycle import Actor, CommandResult, RejectionReason
from src.domain.pricing import FareEngine, FareEstimate
from src.infrastructure.locks import DistributedLock
from src.infrastructure.models import RideAlertModel, RideModel
from src.infrastructure.repositories import (
    ACTIVE_DRIVER_STATUSES,
    AlertRepository,
    DriverRepository,
    RideRepository,
    UserRepository,
)
from src.services.errors import Conflict, Forbidden, NotFound, Unprocessable

logger = logging.getLogger(__name__)


def default_fare_engine() -> FareEngine:
    return FareEngine(
        settings.base_rates, settings.per_km_rates, settings.minutes_per_km
    )


class RideService:
    def __init__(
        self,
        session: AsyncSession,
        redis: aioredis.Redis,
        *,
        fares: Optional[FareEngine] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.redis = redis
        self.fares = fares or default_fare_engine()
        self.clock = clock
        self.rides = RideRepository(session)
        self.drivers = DriverRepository(session)
        self.users = UserRepository(session)
        self.alerts = AlertRepository(session)

    # ── Queries ───────────────────────────────────────────────────────

    def estimate(
        self, pickup: Location, drop: Location, cab_type: CabType
    ) -> FareEstimate:
        return self.fares.estimate(pickup, drop, cab_type)

    async def get_ride(self, ride_id: int) -> RideModel:
        ride = await self.rides.get_by_id(ride_id)
        if ride is None:
            raise NotFound("Ride not found")
        return ride

    async def rides_for_user(self, user_id: int, scope: str) -> list[RideModel]:
        if await self.users.get_by_id(user_id) is None:
            raise NotFound("User not found")
        statuses = UPCOMING_STATUSES if scope == "upcoming" else HISTORY_STATUSES
        return await self.rides.list_for_user(user_id, statuses)

    # ── Booking ───────────────────────────────────────────────────────

    async def book(
        self,
        *,
        user_id: int,
        pickup: Location,
        drop: Location,
        cab_type: CabType,
        payment_method: PaymentMethod,
        scheduled_time: Optional[datetime] = None,
        idempotency_key: Optional[str] = None,
    ) -> RideModel:
        """
        Create a ride.  Rides for now start CONFIRMED, scheduled rides
        start PENDING.  Fare, distance and duration are computed here,
        never taken from the client.
        A repeated idempotency key returns the caller's earlier ride.
        """
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFound("User not found")
        if user.role != UserRole.USER:
            raise Forbidden(f"A {user.role.value} cannot book rides")

        if idempotency_key:
            existing = await self.rides.get_by_idempotency_key(idempotency_key)
            if existing is not None:
                if existing.user_id != user_id:
                    raise Conflict("Idempotency key already used by another booking")
                return existing

        if not pickup.address.strip() or not drop.address.strip():
            raise Unprocessable("Pickup and drop addresses are required")

        now = self.clock()
        scheduled_time = as_utc(scheduled_time)
        if scheduled_time is not None and scheduled_time <= now:
            raise Unprocessable("Scheduled time must be in the future")

        quote = self.fares.estimate(pickup, drop, cab_type)
        ride = await self.rides.create(
            RideModel(
                user_id=user_id,
                pickup_address=pickup.address,
                pickup_lat=pickup.lat,
                pickup_lng=pickup.lng,
                pickup_h3_cell=ride_h3_cell(
                    pickup.lat, pickup.lng, settings.h3_resolution
                ),
                drop_address=drop.address,
                drop_lat=drop.lat,
                drop_lng=drop.lng,
                cab_type=quote.cab_type,
                fare=quote.fare,
                distance_km=quote.distance_km,
                duration_min=quote.duration_min,
                payment_method=payment_method,
                status=(
                    RideStatus.PENDING if scheduled_time else RideStatus.CONFIRMED
                ),
                scheduled_time=scheduled_time,
                route_deviation=False,
                idempotency_key=idempotency_key,
            )
        )
        logger.info(
            "Ride %s booked by user %s (%s, fare=%.2f)",
            ride.id,
            user_id,
            ride.status.value,
            ride.fare,
        )
        return ride

    # ── Lifecycle commands ────────────────────────────────────────────

    async def accept_ride(self, ride_id: int, driver_id: int) -> CommandResult:
        async def handler(ride: RideModel) -> CommandResult:
            driver = await self.drivers.get_for_update(driver_id)
            if driver is None:
                return CommandResult.rejected(
                    RejectionReason.DRIVER_NOT_FOUND, "Driver not found", ride
                )
            busy = await self.rides.get_active_for_driver(driver_id) is not None
            result = lifecycle.accept_ride(
                ride, driver, self.clock(), driver_busy=busy
            )
            if result.ok:
                ride.driver = driver
            return result

        return await self._run(ride_id, "accept", handler)

    async def mark_arrived(
        self, ride_id: int, driver_id: int, odometer_km: Optional[float]
    ) -> CommandResult:
        async def handler(ride: RideModel) -> CommandResult:
            return lifecycle.mark_arrived(ride, driver_id, odometer_km, self.clock())

        return await self._run(ride_id, "arrive", handler)

    async def start_ride(self, ride_id: int, driver_id: int) -> CommandResult:
        async def handler(ride: RideModel) -> CommandResult:
            return lifecycle.start_ride(ride, driver_id, self.clock())

        return await self._run(ride_id, "start", handler)

    async def complete_ride(
        self, ride_id: int, driver_id: int, odometer_km: Optional[float]
    ) -> CommandResult:
        async def handler(ride: RideModel) -> CommandResult:
            return lifecycle.complete_ride(ride, driver_id, odometer_km, self.clock())

        return await self._run(ride_id, "complete", handler)

    async def cancel_ride(
        self, ride_id: int, actor_id: int, reason: Optional[str] = None
    ) -> CommandResult:
        async def handler(ride: RideModel) -> CommandResult:
            user = await self.users.get_by_id(actor_id)
            if user is None:
                return CommandResult.rejected(
                    RejectionReason.NOT_PERMITTED, f"Unknown user {actor_id}", ride
                )
            return lifecycle.cancel_ride(
                ride, Actor(user.id, user.role), self.clock(), reason
            )

        return await self._run(ride_id, "cancel", handler)

    async def _run(
        self,
        ride_id: int,
        name: str,
        handler: Callable[[RideModel], Awaitable[CommandResult]],
    ) -> CommandResult:
        lock = DistributedLock.for_ride(
            self.redis, ride_id, settings.ride_lock_ttl_seconds
        )
        if not await lock.acquire():
            logger.info("%s on ride %s rejected: lock held", name, ride_id)
            return CommandResult.rejected(
                RejectionReason.LOCKED,
                "Another command is being applied to this ride",
            )
        try:
            ride = await self.rides.get_for_update(ride_id)
            if ride is None:
                return CommandResult.rejected(
                    RejectionReason.RIDE_NOT_FOUND, "Ride not found"
                )
            result = await handler(ride)
            if result.ok:
                await self.session.commit()
                logger.info("Ride %s: %s -> %s", ride_id, name, ride.status.value)
            else:
                logger.info(
                    "Ride %s: %s rejected (%s)", ride_id, name, result.reason.value
                )
            return result
        finally:
            await lock.release()

    # ── Rider actions ─────────────────────────────────────────────────

    async def rate_ride(
        self, ride_id: int, user_id: int, rating: int, feedback: Optional[str]
    ) -> RideModel:
        ride = await self.get_ride(ride_id)
        if ride.user_id != user_id:
            raise Forbidden(f"User {user_id} does not own this ride")
        if ride.status != RideStatus.COMPLETED:
            raise Conflict("Only completed rides can be rated")
        if ride.rating is not None:
            raise Conflict("Ride has already been rated")

        ride.rating = rating
        ride.feedback = feedback
        await self.session.flush()

        driver = await self.drivers.get_by_id(ride.driver_id)
        average = await self.rides.average_rating(ride.driver_id)
        if driver is not None and average is not None:
            driver.rating = average
        return ride

    async def raise_sos(
        self, ride_id: int, user_id: int, location: Optional[str] = None
    ) -> RideAlertModel:
        ride = await self.get_ride(ride_id)
        if ride.user_id != user_id:
            raise Forbidden(f"User {user_id} does not own this ride")
        if ride.status not in ACTIVE_DRIVER_STATUSES:
            raise Conflict(f"Cannot raise SOS on a ride that is {ride.status.value}")

        alert = await self.alerts.create(
            RideAlertModel(
                ride_id=ride.id,
                type=AlertType.SOS,
                severity=AlertSeverity.HIGH,
                message="SOS button pressed by passenger",
                location=location,
                resolved=False,
            )
        )
        logger.warning("SOS raised on ride %s by user %s", ride_id, user_id)
        return alert
