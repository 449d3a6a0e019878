"""FastAPI dependency injection helpers."""

import redis.asyncio as aioredis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.infrastructure.database import async_session_factory
from src.infrastructure.redis_client import get_redis
from src.services.drivers import DriverService
from src.services.rides import RideService


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker:
    """Factory for operations that manage their own sessions (retried writes)."""
    return async_session_factory


async def get_ride_service(
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis),
) -> RideService:
    return RideService(db, redis)


async def get_driver_service(db: AsyncSession = Depends(get_db)) -> DriverService:
    return DriverService(db)
