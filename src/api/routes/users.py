"""
User endpoints
==============

POST /api/v1/users                 -- register a rider or admin
GET  /api/v1/users/{user_id}       -- profile
GET  /api/v1/users/{user_id}/rides -- rider dashboard (upcoming | history)
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.api.dependencies import get_db, get_ride_service, get_session_factory
from src.api.middleware import limiter
from src.api.schemas import RideResponse, RideScope, UserCreateRequest, UserResponse
from src.config import settings
from src.domain.enums import UserRole
from src.infrastructure.repositories import UserRepository
from src.services.rides import RideService
from src.services.users import register_user

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    status_code=201,
    response_model=UserResponse,
    summary="Register a user",
)
@limiter.limit(settings.rate_limit)
async def create_user(
    request: Request,
    body: UserCreateRequest,
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    if body.role == UserRole.DRIVER:
        raise HTTPException(
            status_code=422, detail="Drivers register through /drivers"
        )
    return await register_user(
        session_factory,
        name=body.name,
        email=body.email,
        phone=body.phone,
        role=body.role,
    )


@router.get("/{user_id}", response_model=UserResponse, summary="Get a user")
@limiter.limit(settings.rate_limit)
async def get_user(
    request: Request,
    user_id: int,
    db: AsyncSession = Depends(get_db),
):
    user = await UserRepository(db).get_by_id(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get(
    "/{user_id}/rides",
    response_model=list[RideResponse],
    summary="List a rider's upcoming or past rides",
)
@limiter.limit(settings.rate_limit)
async def list_user_rides(
    request: Request,
    user_id: int,
    scope: RideScope = "upcoming",
    service: RideService = Depends(get_ride_service),
):
    return await service.rides_for_user(user_id, scope)
