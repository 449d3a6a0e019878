"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``Ride``: enforces valid lifecycle transitions
  (PENDING | CONFIRMED -> DRIVER_ASSIGNED -> ARRIVED -> IN_PROGRESS ->
  COMPLETED, any non-terminal -> CANCELLED).
- ``Driver.cab_type`` is the class of ride requests the driver serves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .enums import (
    DRIVER_BOUND_STATUSES,
    RIDE_TRANSITIONS,
    TERMINAL_STATUSES,
    CabType,
    PaymentMethod,
    RideStatus,
    UserRole,
)


class InvalidStateTransition(Exception):
    """Raised when a ride status change violates the state machine."""


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    address: str
    lat: float
    lng: float


@dataclass(frozen=True)
class VehicleDetails:
    model: str
    color: str
    plate_number: str
    cab_type: CabType = CabType.STANDARD


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class User:
    id: Optional[int] = None
    name: str = ""
    email: str = ""
    phone: str = ""
    role: UserRole = UserRole.USER


@dataclass
class Driver(User):
    role: UserRole = UserRole.DRIVER
    vehicle: Optional[VehicleDetails] = None
    rating: float = 5.0
    is_available: bool = True
    current_location: Optional[Location] = None
    last_seen_at: Optional[datetime] = None

    @property
    def cab_type(self) -> CabType:
        return self.vehicle.cab_type if self.vehicle else CabType.STANDARD


@dataclass
class Ride:
    id: Optional[int] = None
    user_id: int = 0
    driver_id: Optional[int] = None
    pickup: Location = field(default_factory=lambda: Location("", 0, 0))
    drop: Location = field(default_factory=lambda: Location("", 0, 0))
    cab_type: CabType = CabType.STANDARD
    fare: float = 0.0
    distance_km: float = 0.0
    duration_min: int = 0
    status: RideStatus = RideStatus.PENDING
    payment_method: PaymentMethod = PaymentMethod.CARD
    scheduled_time: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UserRole] = None
    cancellation_reason: Optional[str] = None
    start_odometer_km: Optional[float] = None
    end_odometer_km: Optional[float] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    route_deviation: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition_to(self, new_status: RideStatus) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        ensure_transition(self.status, new_status, self.driver_id)
        self.status = new_status


def ensure_transition(
    current: RideStatus, new_status: RideStatus, driver_id: Optional[int]
) -> None:
    """Raise ``InvalidStateTransition`` unless *current* -> *new_status* is legal."""
    allowed = RIDE_TRANSITIONS.get(current, set())
    if new_status not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {current.value} to {new_status.value}"
        )
    if new_status in DRIVER_BOUND_STATUSES and driver_id is None:
        raise InvalidStateTransition(
            f"Ride needs a driver before it can be {new_status.value}"
        )
