"""
Ride state variants.

``describe`` turns a ride's raw status into one variant of a tagged
union.  Each variant carries only the fields that are meaningful in that
state, so callers branch on the variant type instead of re-checking the
status string.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Optional, Union

from .clock import as_utc
from .enums import ACTION_ROLES, RIDE_ACTIONS, RideAction, RideStatus, UserRole


@dataclass(frozen=True)
class PendingRide:
    kind: ClassVar[RideStatus] = RideStatus.PENDING
    label: ClassVar[str] = "Pending"
    scheduled_time: Optional[datetime] = None


@dataclass(frozen=True)
class ConfirmedRide:
    kind: ClassVar[RideStatus] = RideStatus.CONFIRMED
    label: ClassVar[str] = "Confirmed"
    scheduled_time: Optional[datetime] = None


@dataclass(frozen=True)
class DriverAssignedRide:
    kind: ClassVar[RideStatus] = RideStatus.DRIVER_ASSIGNED
    label: ClassVar[str] = "Driver Assigned"
    driver_id: int
    accepted_at: Optional[datetime] = None


@dataclass(frozen=True)
class ArrivedRide:
    kind: ClassVar[RideStatus] = RideStatus.ARRIVED
    label: ClassVar[str] = "Arrived"
    driver_id: int
    arrived_at: Optional[datetime] = None


@dataclass(frozen=True)
class InProgressRide:
    kind: ClassVar[RideStatus] = RideStatus.IN_PROGRESS
    label: ClassVar[str] = "In Progress"
    driver_id: int
    start_time: datetime
    route_deviation: bool = False


@dataclass(frozen=True)
class CompletedRide:
    kind: ClassVar[RideStatus] = RideStatus.COMPLETED
    label: ClassVar[str] = "Completed"
    driver_id: int
    start_time: datetime
    end_time: datetime
    rating: Optional[int] = None
    feedback: Optional[str] = None


@dataclass(frozen=True)
class CancelledRide:
    kind: ClassVar[RideStatus] = RideStatus.CANCELLED
    label: ClassVar[str] = "Cancelled"
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[UserRole] = None
    reason: Optional[str] = None


RideState = Union[
    PendingRide,
    ConfirmedRide,
    DriverAssignedRide,
    ArrivedRide,
    InProgressRide,
    CompletedRide,
    CancelledRide,
]


def describe(ride: Any) -> RideState:
    status = RideStatus(ride.status)
    if status == RideStatus.PENDING:
        return PendingRide(as_utc(ride.scheduled_time))
    if status == RideStatus.CONFIRMED:
        return ConfirmedRide(as_utc(ride.scheduled_time))
    if status == RideStatus.DRIVER_ASSIGNED:
        return DriverAssignedRide(ride.driver_id, as_utc(ride.accepted_at))
    if status == RideStatus.ARRIVED:
        return ArrivedRide(ride.driver_id, as_utc(ride.arrived_at))
    if status == RideStatus.IN_PROGRESS:
        return InProgressRide(
            ride.driver_id, as_utc(ride.start_time), bool(ride.route_deviation)
        )
    if status == RideStatus.COMPLETED:
        return CompletedRide(
            ride.driver_id,
            as_utc(ride.start_time),
            as_utc(ride.end_time),
            ride.rating,
            ride.feedback,
        )
    return CancelledRide(
        as_utc(ride.cancelled_at), ride.cancelled_by, ride.cancellation_reason
    )


def available_actions(status: RideStatus, role: UserRole) -> list[RideAction]:
    """Actions *role* may perform on a ride in *status*, in lifecycle order."""
    return [
        action
        for action, (sources, _) in RIDE_ACTIONS.items()
        if status in sources and role in ACTION_ROLES[action]
    ]
