"""
Driver endpoints
================

POST  /api/v1/drivers                          -- register a driver with vehicle
GET   /api/v1/drivers/{driver_id}              -- profile and availability
PATCH /api/v1/drivers/{driver_id}/availability -- go on / off duty
PATCH /api/v1/drivers/{driver_id}/location     -- location ping
GET   /api/v1/drivers/{driver_id}/ride-requests -- nearby open requests
PATCH /api/v1/drivers/{driver_id}/ride-requests/{ride_id}/decline -- turn a request down
GET   /api/v1/drivers/{driver_id}/earnings     -- today / last 7 days
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.dependencies import get_db, get_driver_service, get_session_factory
from src.api.middleware import limiter
from src.api.schemas import (
    AvailabilityRequest,
    DriverCreateRequest,
    DriverLocationRequest,
    DriverResponse,
    EarningsResponse,
    RideRequestResponse,
    RideResponse,
)
from src.config import settings
from src.domain.entities import VehicleDetails
from src.domain.enums import UserRole
from src.services.drivers import DriverService
from src.services.users import register_user

router = APIRouter(prefix="/drivers", tags=["drivers"])


@router.post(
    "",
    status_code=201,
    response_model=DriverResponse,
    summary="Register a driver",
)
@limiter.limit(settings.rate_limit)
async def create_driver(
    request: Request,
    body: DriverCreateRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
    db: AsyncSession = Depends(get_db),
):
    user = await register_user(
        session_factory,
        name=body.name,
        email=body.email,
        phone=body.phone,
        role=UserRole.DRIVER,
        vehicle=VehicleDetails(
            model=body.vehicle.model,
            color=body.vehicle.color,
            plate_number=body.vehicle.plate_number,
            cab_type=body.vehicle.cab_type,
        ),
    )
    return await DriverService(db).get_driver(user.id)


@router.get("/{driver_id}", response_model=DriverResponse, summary="Get a driver")
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    driver_id: int,
    service: DriverService = Depends(get_driver_service),
):
    return await service.get_driver(driver_id)


@router.patch(
    "/{driver_id}/availability",
    response_model=DriverResponse,
    summary="Toggle whether the driver receives ride requests",
)
@limiter.limit(settings.rate_limit)
async def set_availability(
    request: Request,
    driver_id: int,
    body: AvailabilityRequest,
    service: DriverService = Depends(get_driver_service),
):
    return await service.set_availability(driver_id, body.is_available)


@router.patch(
    "/{driver_id}/location",
    response_model=DriverResponse,
    summary="Report the driver's current position",
)
@limiter.limit(settings.rate_limit)
async def update_location(
    request: Request,
    driver_id: int,
    body: DriverLocationRequest,
    service: DriverService = Depends(get_driver_service),
):
    return await service.update_location(driver_id, body.lat, body.lng, body.address)


@router.get(
    "/{driver_id}/ride-requests",
    response_model=list[RideRequestResponse],
    summary="Open ride requests near the driver, nearest first",
)
@limiter.limit(settings.rate_limit)
async def ride_requests(
    request: Request,
    driver_id: int,
    service: DriverService = Depends(get_driver_service),
):
    return [
        RideRequestResponse(
            pickup_distance_km=distance, ride=RideResponse.model_validate(ride)
        )
        for distance, ride in await service.ride_requests(driver_id)
    ]


@router.patch(
    "/{driver_id}/ride-requests/{ride_id}/decline",
    response_model=RideResponse,
    summary="Turn down an open request so it is no longer offered to this driver",
)
@limiter.limit(settings.rate_limit)
async def decline_request(
    request: Request,
    driver_id: int,
    ride_id: int,
    service: DriverService = Depends(get_driver_service),
):
    return await service.decline_request(driver_id, ride_id)


@router.get(
    "/{driver_id}/earnings",
    response_model=EarningsResponse,
    summary="Fares of completed rides today and over the last 7 days",
)
@limiter.limit(settings.rate_limit)
async def earnings(
    request: Request,
    driver_id: int,
    service: DriverService = Depends(get_driver_service),
):
    result = await service.earnings(driver_id)
    return EarningsResponse(
        driver_id=driver_id, today=result.today, this_week=result.this_week
    )
