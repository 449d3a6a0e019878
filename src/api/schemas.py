"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from src.domain.enums import (
    AlertSeverity,
    AlertType,
    CabType,
    PaymentMethod,
    RideAction,
    RideStatus,
    UserRole,
)


# ── Shared ────────────────────────────────────────────────────────────


class LocationIn(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


# ── Requests ──────────────────────────────────────────────────────────


class UserCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(..., pattern=r"^[0-9]{10}$")
    role: UserRole = UserRole.USER


class VehicleIn(BaseModel):
    model: str = Field(..., min_length=1, max_length=80)
    color: str = Field(..., min_length=1, max_length=40)
    plate_number: str = Field(..., min_length=1, max_length=20)
    cab_type: CabType = CabType.STANDARD


class DriverCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(..., pattern=r"^[0-9]{10}$")
    vehicle: VehicleIn


class FareEstimateRequest(BaseModel):
    pickup: LocationIn
    drop: LocationIn
    cab_type: CabType = CabType.STANDARD


class RideCreateRequest(BaseModel):
    user_id: int
    pickup: LocationIn
    drop: LocationIn
    cab_type: CabType = CabType.STANDARD
    payment_method: PaymentMethod = PaymentMethod.CARD
    scheduled_time: Optional[datetime] = Field(
        None, description="Leave empty to ride now; must be in the future otherwise."
    )
    idempotency_key: Optional[str] = Field(
        None,
        max_length=64,
        description="Client-generated UUID to prevent double-booking on retries.",
    )


class DriverCommandRequest(BaseModel):
    driver_id: int


class OdometerCommandRequest(BaseModel):
    driver_id: int
    odometer_km: Optional[float] = Field(None, ge=0)


class CancelRequest(BaseModel):
    actor_id: int
    reason: Optional[str] = Field(None, max_length=255)


class RatingRequest(BaseModel):
    user_id: int
    rating: int = Field(..., ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=1000)


class SosRequest(BaseModel):
    user_id: int
    location: Optional[str] = Field(None, max_length=255)


class AvailabilityRequest(BaseModel):
    is_available: bool


class DriverLocationRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: Optional[str] = Field(None, max_length=255)


# ── Responses ─────────────────────────────────────────────────────────


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    phone: str
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DriverResponse(BaseModel):
    id: int
    name: str
    vehicle_model: str
    vehicle_color: str
    plate_number: str
    cab_type: CabType
    rating: float
    is_available: bool
    current_address: Optional[str] = None
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    last_seen_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class FareEstimateResponse(BaseModel):
    cab_type: CabType
    distance_km: float
    duration_min: int
    fare: float

    model_config = {"from_attributes": True}


class RideStateView(BaseModel):
    kind: RideStatus
    label: str
    rider_actions: list[RideAction]
    driver_actions: list[RideAction]
    admin_actions: list[RideAction]


class RideResponse(BaseModel):
    id: int
    user_id: int
    driver_id: Optional[int] = None
    pickup_address: str
    pickup_lat: float
    pickup_lng: float
    drop_address: str
    drop_lat: float
    drop_lng: float
    cab_type: CabType
    fare: float
    distance_km: float
    duration_min: int
    payment_method: PaymentMethod
    status: RideStatus
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
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class RideDetailResponse(RideResponse):
    state: RideStateView


class RideRequestResponse(BaseModel):
    pickup_distance_km: float
    ride: RideResponse


class EarningsResponse(BaseModel):
    driver_id: int
    today: float
    this_week: float


class AdminRideResponse(RideResponse):
    driver_name: Optional[str] = None


class RideStatsResponse(BaseModel):
    total: int
    by_status: dict[RideStatus, int]


class AlertResponse(BaseModel):
    id: int
    ride_id: int
    type: AlertType
    severity: AlertSeverity
    message: str
    location: Optional[str] = None
    resolved: bool
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


AlertFilter = Literal["active", "resolved", "all"]
RideScope = Literal["upcoming", "history"]


class HealthResponse(BaseModel):
    status: str = "ok"

