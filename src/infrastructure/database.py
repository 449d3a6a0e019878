"""
Async SQLAlchemy engine, session factory and write-retry helper.

Uses ``asyncpg`` as the PostgreSQL driver for non-blocking I/O.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

engine = create_async_engine(
    settings.database_url,
    echo=False,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""


async def write_with_retry(
    session_factory: async_sessionmaker,
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    attempts: int = 3,
    backoff_seconds: float = 1.0,
) -> T:
    """
    Run *work* in a fresh session and commit, retrying on transient
    ``OperationalError`` with a fixed backoff.  Any other error, or the
    last ``OperationalError``, propagates.
    """
    for attempt in range(1, attempts + 1):
        async with session_factory() as session:
            try:
                result = await work(session)
                await session.commit()
                return result
            except OperationalError:
                await session.rollback()
                if attempt == attempts:
                    logger.error("Write failed after %d attempts", attempts)
                    raise
                logger.warning(
                    "Transient write failure (attempt %d/%d), retrying in %.1fs",
                    attempt,
                    attempts,
                    backoff_seconds,
                )
            except Exception:
                await session.rollback()
                raise
        await asyncio.sleep(backoff_seconds)
    raise RuntimeError("attempts must be at least 1")
