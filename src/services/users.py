"""
User registration.

Writes go through :func:`~src.infrastructure.database.write_with_retry`
(``registration_attempts`` tries, fixed ``registration_backoff_seconds``
backoff) so a transient database hiccup does not lose a sign-up.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.config import settings
from src.domain.entities import VehicleDetails
from src.domain.enums import UserRole
from src.infrastructure.database import write_with_retry
from src.infrastructure.models import DriverModel, UserModel
from src.infrastructure.repositories import DriverRepository, UserRepository
from src.services.errors import Conflict, Unprocessable

logger = logging.getLogger(__name__)


async def register_user(
    session_factory: async_sessionmaker,
    *,
    name: str,
    email: str,
    phone: str,
    role: UserRole = UserRole.USER,
    vehicle: Optional[VehicleDetails] = None,
) -> UserModel:
    """Create a user (and the driver profile when *role* is ``driver``)."""
    if role == UserRole.DRIVER and vehicle is None:
        raise Unprocessable("Vehicle details are required for drivers")

    async def work(session: AsyncSession) -> UserModel:
        users = UserRepository(session)
        if await users.get_by_email(email) is not None:
            raise Conflict("This email is already registered")
        user = await users.create(
            UserModel(name=name, email=email.lower(), phone=phone, role=role)
        )
        if role == UserRole.DRIVER:
            await DriverRepository(session).create(
                DriverModel(
                    id=user.id,
                    vehicle_model=vehicle.model,
                    vehicle_color=vehicle.color,
                    plate_number=vehicle.plate_number,
                    cab_type=vehicle.cab_type,
                    rating=5.0,
                    is_available=True,
                )
            )
        return user

    try:
        user = await write_with_retry(
            session_factory,
            work,
            attempts=settings.registration_attempts,
            backoff_seconds=settings.registration_backoff_seconds,
        )
    except IntegrityError as exc:
        raise Conflict("Email or plate number is already registered") from exc

    logger.info("Registered %s %s", role.value, user.id)
    return user
