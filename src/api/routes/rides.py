"""
Ride endpoints
==============

POST  /api/v1/rides/estimate           -- fare / distance / duration quote
POST  /api/v1/rides                    -- book a ride (returns 202 Accepted)
GET   /api/v1/rides/{ride_id}          -- ride details with state view
PATCH /api/v1/rides/{ride_id}/accept   -- driver accepts
PATCH /api/v1/rides/{ride_id}/arrive   -- driver at pickup (odometer)
PATCH /api/v1/rides/{ride_id}/start    -- driver starts the trip
PATCH /api/v1/rides/{ride_id}/complete -- driver completes (odometer)
PATCH /api/v1/rides/{ride_id}/cancel   -- rider or admin cancels
POST  /api/v1/rides/{ride_id}/rating   -- rider rates a completed ride
POST  /api/v1/rides/{ride_id}/sos      -- rider raises an SOS alert
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from src.api.dependencies import get_ride_service
from src.api.middleware import limiter
from src.api.schemas import (
    AlertResponse,
    CancelRequest,
    DriverCommandRequest,
    FareEstimateRequest,
    FareEstimateResponse,
    OdometerCommandRequest,
    RatingRequest,
    RideCreateRequest,
    RideDetailResponse,
    RideResponse,
    RideStateView,
    SosRequest,
)
from src.config import settings
from src.domain.entities import Location
from src.domain.enums import RideStatus, UserRole
from src.domain.lifecycle import CommandResult, RejectionReason
from src.domain.states import available_actions, describe
from src.services.rides import RideService

router = APIRouter(prefix="/rides", tags=["rides"])

_REJECTION_STATUS = {
    RejectionReason.RIDE_NOT_FOUND: 404,
    RejectionReason.DRIVER_NOT_FOUND: 404,
    RejectionReason.NOT_ASSIGNED_DRIVER: 403,
    RejectionReason.NOT_PERMITTED: 403,
    RejectionReason.ODOMETER_REQUIRED: 422,
    RejectionReason.INVALID_ODOMETER: 422,
}


def _location(body) -> Location:
    return Location(body.address, body.lat, body.lng)


def _detail(ride) -> RideDetailResponse:
    state = describe(ride)
    status = RideStatus(ride.status)
    return RideDetailResponse(
        **RideResponse.model_validate(ride).model_dump(),
        state=RideStateView(
            kind=state.kind,
            label=state.label,
            rider_actions=available_actions(status, UserRole.USER),
            driver_actions=available_actions(status, UserRole.DRIVER),
            admin_actions=available_actions(status, UserRole.ADMIN),
        ),
    )


def _command_response(result: CommandResult) -> RideDetailResponse:
    if not result.ok:
        raise HTTPException(
            status_code=_REJECTION_STATUS.get(result.reason, 409),
            detail={"reason": result.reason.value, "message": result.detail},
        )
    return _detail(result.ride)


@router.post(
    "/estimate",
    response_model=FareEstimateResponse,
    summary="Quote fare, distance and duration",
)
@limiter.limit(settings.rate_limit)
async def estimate_fare(
    request: Request,
    body: FareEstimateRequest,
    service: RideService = Depends(get_ride_service),
):
    return service.estimate(_location(body.pickup), _location(body.drop), body.cab_type)


@router.post(
    "",
    status_code=202,
    response_model=RideDetailResponse,
    summary="Book a ride",
    responses={202: {"description": "Ride booked; waiting for a driver."}},
)
@limiter.limit(settings.rate_limit)
async def create_ride(
    request: Request,
    body: RideCreateRequest,
    service: RideService = Depends(get_ride_service),
):
    ride = await service.book(
        user_id=body.user_id,
        pickup=_location(body.pickup),
        drop=_location(body.drop),
        cab_type=body.cab_type,
        payment_method=body.payment_method,
        scheduled_time=body.scheduled_time,
        idempotency_key=body.idempotency_key,
    )
    return _detail(ride)


@router.get(
    "/{ride_id}",
    response_model=RideDetailResponse,
    summary="Get ride status, fare and available actions",
)
@limiter.limit(settings.rate_limit)
async def get_ride(
    request: Request,
    ride_id: int,
    service: RideService = Depends(get_ride_service),
):
    return _detail(await service.get_ride(ride_id))


@router.patch(
    "/{ride_id}/accept",
    response_model=RideDetailResponse,
    summary="Driver accepts a pending or confirmed ride",
)
@limiter.limit(settings.rate_limit)
async def accept_ride(
    request: Request,
    ride_id: int,
    body: DriverCommandRequest,
    service: RideService = Depends(get_ride_service),
):
    return _command_response(await service.accept_ride(ride_id, body.driver_id))


@router.patch(
    "/{ride_id}/arrive",
    response_model=RideDetailResponse,
    summary="Driver arrived at pickup (odometer reading required)",
)
@limiter.limit(settings.rate_limit)
async def arrive(
    request: Request,
    ride_id: int,
    body: OdometerCommandRequest,
    service: RideService = Depends(get_ride_service),
):
    return _command_response(
        await service.mark_arrived(ride_id, body.driver_id, body.odometer_km)
    )


@router.patch(
    "/{ride_id}/start",
    response_model=RideDetailResponse,
    summary="Driver starts the ride",
)
@limiter.limit(settings.rate_limit)
async def start_ride(
    request: Request,
    ride_id: int,
    body: DriverCommandRequest,
    service: RideService = Depends(get_ride_service),
):
    return _command_response(await service.start_ride(ride_id, body.driver_id))


@router.patch(
    "/{ride_id}/complete",
    response_model=RideDetailResponse,
    summary="Driver completes the ride (odometer reading required)",
)
@limiter.limit(settings.rate_limit)
async def complete_ride(
    request: Request,
    ride_id: int,
    body: OdometerCommandRequest,
    service: RideService = Depends(get_ride_service),
):
    return _command_response(
        await service.complete_ride(ride_id, body.driver_id, body.odometer_km)
    )


@router.patch(
    "/{ride_id}/cancel",
    response_model=RideDetailResponse,
    summary="Cancel a ride",
    description=(
        "Transitions any non-terminal ride to cancelled. Riders may cancel "
        "their own rides, admins any ride. Cancellation is irreversible."
    ),
)
@limiter.limit(settings.rate_limit)
async def cancel_ride(
    request: Request,
    ride_id: int,
    body: CancelRequest,
    service: RideService = Depends(get_ride_service),
):
    return _command_response(
        await service.cancel_ride(ride_id, body.actor_id, body.reason)
    )


@router.post(
    "/{ride_id}/rating",
    response_model=RideDetailResponse,
    summary="Rate a completed ride",
)
@limiter.limit(settings.rate_limit)
async def rate_ride(
    request: Request,
    ride_id: int,
    body: RatingRequest,
    service: RideService = Depends(get_ride_service),
):
    ride = await service.rate_ride(ride_id, body.user_id, body.rating, body.feedback)
    return _detail(ride)


@router.post(
    "/{ride_id}/sos",
    status_code=201,
    response_model=AlertResponse,
    summary="Raise an SOS alert on an active ride",
)
@limiter.limit(settings.rate_limit)
async def raise_sos(
    request: Request,
    ride_id: int,
    body: SosRequest,
    service: RideService = Depends(get_ride_service),
):
    return await service.raise_sos(ride_id, body.user_id, body.location)
