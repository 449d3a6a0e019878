"""Unit tests for the lifecycle command handlers."""

from datetime import datetime, timedelta, timezone

import pytest

from src.domain import lifecycle
from src.domain.entities import Driver, Ride, VehicleDetails
from src.domain.enums import CabType, RideStatus, UserRole
from src.domain.lifecycle import Actor, RejectionReason

T0 = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _driver(**kwargs) -> Driver:
    return Driver(**{"id": 7, "is_available": True, **kwargs})


def _assigned(**kwargs) -> Ride:
    return Ride(
        **{"id": 1, "user_id": 3, "driver_id": 7, "status": RideStatus.DRIVER_ASSIGNED, **kwargs}
    )


class TestAccept:
    def test_accept_confirmed_ride(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.CONFIRMED)
        result = lifecycle.accept_ride(ride, _driver(), T0)
        assert result.ok
        assert ride.status == RideStatus.DRIVER_ASSIGNED
        assert ride.driver_id == 7
        assert ride.accepted_at == T0

    def test_accept_pending_scheduled_ride(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.PENDING)
        assert lifecycle.accept_ride(ride, _driver(), T0).ok

    def test_unavailable_driver_rejected(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.CONFIRMED)
        result = lifecycle.accept_ride(ride, _driver(is_available=False), T0)
        assert result.reason == RejectionReason.DRIVER_UNAVAILABLE
        assert ride.status == RideStatus.CONFIRMED
        assert ride.driver_id is None

    def test_busy_driver_rejected(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.CONFIRMED)
        result = lifecycle.accept_ride(ride, _driver(), T0, driver_busy=True)
        assert result.reason == RejectionReason.DRIVER_BUSY
        assert ride.driver_id is None

    def test_cab_type_mismatch_rejected(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.CONFIRMED, cab_type=CabType.LUXURY)
        result = lifecycle.accept_ride(ride, _driver(), T0)
        assert result.reason == RejectionReason.CAB_TYPE_MISMATCH
        assert ride.status == RideStatus.CONFIRMED
        assert ride.driver_id is None

    def test_matching_cab_type_accepted(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.CONFIRMED, cab_type=CabType.LUXURY)
        driver = _driver(
            vehicle=VehicleDetails("Innova", "White", "MH14ZZ0001", CabType.LUXURY)
        )
        assert lifecycle.accept_ride(ride, driver, T0).ok

    def test_second_accept_is_invalid(self):
        ride = _assigned()
        result = lifecycle.accept_ride(ride, _driver(id=8), T0)
        assert result.reason == RejectionReason.INVALID_TRANSITION
        assert ride.driver_id == 7

    def test_cannot_accept_cancelled_ride(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.CANCELLED)
        result = lifecycle.accept_ride(ride, _driver(), T0)
        assert result.reason == RejectionReason.RIDE_FINISHED
        assert not result.ok
        assert result.ride is ride


class TestArriveAndStart:
    def test_arrive_records_odometer(self):
        ride = _assigned()
        result = lifecycle.mark_arrived(ride, 7, 1200.5, T0)
        assert result.ok
        assert ride.status == RideStatus.ARRIVED
        assert ride.start_odometer_km == 1200.5
        assert ride.arrived_at == T0

    def test_arrive_requires_odometer(self):
        ride = _assigned()
        result = lifecycle.mark_arrived(ride, 7, None, T0)
        assert result.reason == RejectionReason.ODOMETER_REQUIRED
        assert ride.status == RideStatus.DRIVER_ASSIGNED

    def test_negative_odometer_rejected(self):
        result = lifecycle.mark_arrived(_assigned(), 7, -1.0, T0)
        assert result.reason == RejectionReason.INVALID_ODOMETER

    def test_other_driver_cannot_arrive(self):
        ride = _assigned()
        result = lifecycle.mark_arrived(ride, 99, 10.0, T0)
        assert result.reason == RejectionReason.NOT_ASSIGNED_DRIVER
        assert ride.status == RideStatus.DRIVER_ASSIGNED

    def test_start_from_arrived(self):
        ride = _assigned(status=RideStatus.ARRIVED)
        result = lifecycle.start_ride(ride, 7, T0)
        assert result.ok
        assert ride.status == RideStatus.IN_PROGRESS
        assert ride.start_time == T0

    def test_start_before_arrival_rejected(self):
        ride = _assigned()
        result = lifecycle.start_ride(ride, 7, T0)
        assert result.reason == RejectionReason.INVALID_TRANSITION
        assert ride.start_time is None


class TestComplete:
    def _in_progress(self) -> Ride:
        return _assigned(
            status=RideStatus.IN_PROGRESS, start_time=T0, start_odometer_km=100.0
        )

    def test_complete_sets_end_time_and_odometer(self):
        ride = self._in_progress()
        now = T0 + timedelta(minutes=25)
        result = lifecycle.complete_ride(ride, 7, 112.4, now)
        assert result.ok
        assert ride.status == RideStatus.COMPLETED
        assert ride.end_odometer_km == 112.4
        assert ride.end_time == now

    def test_end_time_never_before_start(self):
        ride = self._in_progress()
        lifecycle.complete_ride(ride, 7, 105.0, T0 - timedelta(minutes=5))
        assert ride.end_time == T0

    def test_odometer_cannot_go_backwards(self):
        ride = self._in_progress()
        result = lifecycle.complete_ride(ride, 7, 99.0, T0)
        assert result.reason == RejectionReason.INVALID_ODOMETER
        assert ride.status == RideStatus.IN_PROGRESS

    def test_complete_requires_odometer(self):
        result = lifecycle.complete_ride(self._in_progress(), 7, None, T0)
        assert result.reason == RejectionReason.ODOMETER_REQUIRED

    def test_completed_ride_cannot_complete_again(self):
        ride = self._in_progress()
        lifecycle.complete_ride(ride, 7, 110.0, T0)
        result = lifecycle.complete_ride(ride, 7, 120.0, T0)
        assert result.reason == RejectionReason.RIDE_FINISHED
        assert ride.end_odometer_km == 110.0


class TestCancel:
    def test_rider_cancels_own_ride(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.CONFIRMED)
        result = lifecycle.cancel_ride(ride, Actor(3, UserRole.USER), T0, "Plans changed")
        assert result.ok
        assert ride.status == RideStatus.CANCELLED
        assert ride.cancelled_at == T0
        assert ride.cancelled_by == UserRole.USER
        assert ride.cancellation_reason == "Plans changed"

    def test_rider_cannot_cancel_someone_elses_ride(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.CONFIRMED)
        result = lifecycle.cancel_ride(ride, Actor(4, UserRole.USER), T0)
        assert result.reason == RejectionReason.NOT_PERMITTED
        assert ride.status == RideStatus.CONFIRMED

    def test_admin_cancels_any_ride(self):
        ride = _assigned(status=RideStatus.IN_PROGRESS)
        result = lifecycle.cancel_ride(ride, Actor(1, UserRole.ADMIN), T0)
        assert result.ok
        assert ride.cancelled_by == UserRole.ADMIN

    def test_driver_cannot_cancel(self):
        ride = _assigned()
        result = lifecycle.cancel_ride(ride, Actor(7, UserRole.DRIVER), T0)
        assert result.reason == RejectionReason.NOT_PERMITTED

    def test_cancellation_is_irreversible(self):
        ride = Ride(id=1, user_id=3, status=RideStatus.PENDING)
        lifecycle.cancel_ride(ride, Actor(3, UserRole.USER), T0)

        again = lifecycle.cancel_ride(ride, Actor(3, UserRole.USER), T0)
        assert again.reason == RejectionReason.RIDE_FINISHED
        accept = lifecycle.accept_ride(ride, _driver(), T0)
        assert accept.reason == RejectionReason.RIDE_FINISHED
        assert ride.status == RideStatus.CANCELLED

    def test_completed_ride_cannot_be_cancelled(self):
        ride = _assigned(status=RideStatus.COMPLETED)
        result = lifecycle.cancel_ride(ride, Actor(1, UserRole.ADMIN), T0)
        assert result.reason == RejectionReason.RIDE_FINISHED


class TestRoleGuard:
    @pytest.mark.parametrize("role", [UserRole.USER, UserRole.ADMIN])
    def test_only_drivers_start_rides(self, role):
        ride = _assigned(status=RideStatus.ARRIVED)
        rejection = lifecycle._check_action(
            ride, lifecycle.RideAction.START, Actor(7, role)
        )
        assert rejection.reason == RejectionReason.NOT_PERMITTED
