"""
Ride lifecycle commands
=======================

Single authority for ride status changes.  Every handler checks the
action table in :mod:`src.domain.enums`, the actor's right to perform the
action and the per-action preconditions, then mutates the ride and
stamps the matching timestamp.

Handlers never raise for business rejections: they return a
``CommandResult`` carrying either the updated ride or a
``RejectionReason``.  The ride argument may be a domain ``Ride`` or an ORM
row; only the lifecycle fields are touched.

Timestamps
----------
* ``accepted_at``  -- set on DRIVER_ASSIGNED
* ``arrived_at``   -- set on ARRIVED (with the pickup odometer reading)
* ``start_time``   -- set on IN_PROGRESS
* ``end_time``     -- set on COMPLETED, never earlier than ``start_time``
* ``cancelled_at`` -- set on CANCELLED
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from .clock import as_utc
from .entities import ensure_transition
from .enums import ACTION_ROLES, RIDE_ACTIONS, TERMINAL_STATUSES, RideAction, UserRole


class RejectionReason(str, enum.Enum):
    RIDE_NOT_FOUND = "ride_not_found"
    INVALID_TRANSITION = "invalid_transition"
    RIDE_FINISHED = "ride_finished"
    DRIVER_NOT_FOUND = "driver_not_found"
    DRIVER_UNAVAILABLE = "driver_unavailable"
    DRIVER_BUSY = "driver_busy"
    CAB_TYPE_MISMATCH = "cab_type_mismatch"
    NOT_ASSIGNED_DRIVER = "not_assigned_driver"
    NOT_PERMITTED = "not_permitted"
    ODOMETER_REQUIRED = "odometer_required"
    INVALID_ODOMETER = "invalid_odometer"
    LOCKED = "locked"


@dataclass(frozen=True)
class Actor:
    id: int
    role: UserRole


@dataclass(frozen=True)
class CommandResult:
    ride: Any = None
    reason: Optional[RejectionReason] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def accepted(cls, ride: Any) -> "CommandResult":
        return cls(ride=ride)

    @classmethod
    def rejected(
        cls, reason: RejectionReason, detail: str, ride: Any = None
    ) -> "CommandResult":
        return cls(ride=ride, reason=reason, detail=detail)


# ── Guards ────────────────────────────────────────────────────────────


def _check_action(ride: Any, action: RideAction, actor: Actor) -> Optional[CommandResult]:
    if actor.role not in ACTION_ROLES[action]:
        return CommandResult.rejected(
            RejectionReason.NOT_PERMITTED,
            f"A {actor.role.value} cannot {action.value} a ride",
            ride,
        )
    if ride.status in TERMINAL_STATUSES:
        return CommandResult.rejected(
            RejectionReason.RIDE_FINISHED,
            f"Ride is already {ride.status.value}",
            ride,
        )
    sources, _ = RIDE_ACTIONS[action]
    if ride.status not in sources:
        return CommandResult.rejected(
            RejectionReason.INVALID_TRANSITION,
            f"Cannot {action.value} a ride that is {ride.status.value}",
            ride,
        )
    return None


def _check_assigned(ride: Any, driver_id: int) -> Optional[CommandResult]:
    if ride.driver_id != driver_id:
        return CommandResult.rejected(
            RejectionReason.NOT_ASSIGNED_DRIVER,
            f"Driver {driver_id} is not assigned to this ride",
            ride,
        )
    return None


def _advance(ride: Any, action: RideAction) -> None:
    _, target = RIDE_ACTIONS[action]
    ensure_transition(ride.status, target, ride.driver_id)
    ride.status = target


# ── Commands ──────────────────────────────────────────────────────────


def accept_ride(
    ride: Any, driver: Any, now: datetime, *, driver_busy: bool = False
) -> CommandResult:
    """Assign *driver* to a PENDING or CONFIRMED ride of the driver's cab type."""
    rejection = _check_action(ride, RideAction.ACCEPT, Actor(driver.id, UserRole.DRIVER))
    if rejection:
        return rejection
    if not driver.is_available:
        return CommandResult.rejected(
            RejectionReason.DRIVER_UNAVAILABLE,
            f"Driver {driver.id} is not available",
            ride,
        )
    if driver_busy:
        return CommandResult.rejected(
            RejectionReason.DRIVER_BUSY,
            f"Driver {driver.id} already has an active ride",
            ride,
        )
    if driver.cab_type != ride.cab_type:
        return CommandResult.rejected(
            RejectionReason.CAB_TYPE_MISMATCH,
            f"Driver {driver.id} drives {driver.cab_type.value}, "
            f"ride needs {ride.cab_type.value}",
            ride,
        )

    ride.driver_id = driver.id
    _advance(ride, RideAction.ACCEPT)
    ride.accepted_at = now
    return CommandResult.accepted(ride)


def mark_arrived(
    ride: Any, driver_id: int, odometer_km: Optional[float], now: datetime
) -> CommandResult:
    """Driver reached the pickup point; records the pickup odometer."""
    rejection = _check_action(
        ride, RideAction.ARRIVE, Actor(driver_id, UserRole.DRIVER)
    ) or _check_assigned(ride, driver_id)
    if rejection:
        return rejection
    if odometer_km is None:
        return CommandResult.rejected(
            RejectionReason.ODOMETER_REQUIRED,
            "An odometer reading is required on arrival",
            ride,
        )
    if odometer_km < 0:
        return CommandResult.rejected(
            RejectionReason.INVALID_ODOMETER,
            "Odometer reading cannot be negative",
            ride,
        )

    _advance(ride, RideAction.ARRIVE)
    ride.start_odometer_km = odometer_km
    ride.arrived_at = now
    return CommandResult.accepted(ride)


def start_ride(ride: Any, driver_id: int, now: datetime) -> CommandResult:
    rejection = _check_action(
        ride, RideAction.START, Actor(driver_id, UserRole.DRIVER)
    ) or _check_assigned(ride, driver_id)
    if rejection:
        return rejection

    _advance(ride, RideAction.START)
    ride.start_time = now
    return CommandResult.accepted(ride)


def complete_ride(
    ride: Any, driver_id: int, odometer_km: Optional[float], now: datetime
) -> CommandResult:
    """Finish an IN_PROGRESS ride; the drop odometer may not go backwards."""
    rejection = _check_action(
        ride, RideAction.COMPLETE, Actor(driver_id, UserRole.DRIVER)
    ) or _check_assigned(ride, driver_id)
    if rejection:
        return rejection
    if odometer_km is None:
        return CommandResult.rejected(
            RejectionReason.ODOMETER_REQUIRED,
            "An odometer reading is required to complete the ride",
            ride,
        )
    if ride.start_odometer_km is not None and odometer_km < ride.start_odometer_km:
        return CommandResult.rejected(
            RejectionReason.INVALID_ODOMETER,
            f"Odometer reading {odometer_km} is below the pickup reading "
            f"{ride.start_odometer_km}",
            ride,
        )

    _advance(ride, RideAction.COMPLETE)
    ride.end_odometer_km = odometer_km
    started = as_utc(ride.start_time)
    ride.end_time = max(as_utc(now), started) if started else now
    return CommandResult.accepted(ride)


def cancel_ride(
    ride: Any, actor: Actor, now: datetime, reason: Optional[str] = None
) -> CommandResult:
    """Cancel from any non-terminal status.  Riders may only cancel their own rides."""
    rejection = _check_action(ride, RideAction.CANCEL, actor)
    if rejection:
        return rejection
    if actor.role == UserRole.USER and ride.user_id != actor.id:
        return CommandResult.rejected(
            RejectionReason.NOT_PERMITTED,
            f"User {actor.id} does not own this ride",
            ride,
        )

    _advance(ride, RideAction.CANCEL)
    ride.cancelled_at = now
    ride.cancelled_by = actor.role
    ride.cancellation_reason = reason
    return CommandResult.accepted(ride)
