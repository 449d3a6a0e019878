"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import String, cast, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    DriverModel,
    RideAlertModel,
    RideDeclineModel,
    RideModel,
    UserModel,
)
from src.domain.enums import AlertType, CabType, RideStatus

ACTIVE_DRIVER_STATUSES = (
    RideStatus.DRIVER_ASSIGNED,
    RideStatus.ARRIVED,
    RideStatus.IN_PROGRESS,
)
OPEN_REQUEST_STATUSES = (RideStatus.PENDING, RideStatus.CONFIRMED)


def _escape_like(text: str) -> str:
    """Match %, _ and the escape character literally in a LIKE pattern."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RideRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, ride: RideModel) -> RideModel:
        self.session.add(ride)
        await self.session.flush()
        return ride

    async def get_by_id(self, ride_id: int) -> Optional[RideModel]:
        return await self.session.get(RideModel, ride_id)

    async def get_for_update(self, ride_id: int) -> Optional[RideModel]:
        """SELECT ... FOR UPDATE so concurrent commands serialise on the row."""
        result = await self.session.execute(
            select(RideModel)
            .where(RideModel.id == ride_id)
            .with_for_update(of=RideModel)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_idempotency_key(self, key: str) -> Optional[RideModel]:
        result = await self.session.execute(
            select(RideModel).where(RideModel.idempotency_key == key)
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: int, statuses: Iterable[RideStatus]
    ) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.user_id == user_id,
                RideModel.status.in_(list(statuses)),
            )
            .order_by(RideModel.id.desc())
        )
        return list(result.scalars().all())

    async def list_for_driver(
        self, driver_id: int, statuses: Iterable[RideStatus]
    ) -> list[RideModel]:
        result = await self.session.execute(
            select(RideModel)
            .where(
                RideModel.driver_id == driver_id,
                RideModel.status.in_(list(statuses)),
            )
            .order_by(RideModel.id.desc())
        )
        return list(result.scalars().all())

    async def get_active_for_driver(self, driver_id: int) -> Optional[RideModel]:
        rides = await self.list_for_driver(driver_id, ACTIVE_DRIVER_STATUSES)
        return rides[0] if rides else None

    async def list_open_requests(
        self,
        cells: Iterable[str],
        cab_type: CabType,
        declined_by: Optional[int] = None,
    ) -> list[RideModel]:
        """Unassigned PENDING / CONFIRMED rides picked up inside *cells*.

        Rides the driver *declined_by* turned down are left out.
        """
        stmt = select(RideModel).where(
            RideModel.status.in_(OPEN_REQUEST_STATUSES),
            RideModel.driver_id.is_(None),
            RideModel.cab_type == cab_type,
            RideModel.pickup_h3_cell.in_(list(cells)),
        )
        if declined_by is not None:
            stmt = stmt.where(
                ~exists().where(
                    RideDeclineModel.ride_id == RideModel.id,
                    RideDeclineModel.driver_id == declined_by,
                )
            )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def record_decline(
        self, ride_id: int, driver_id: int, declined_at: datetime
    ) -> RideDeclineModel:
        """Idempotent: a repeated decline keeps the first timestamp."""
        decline = await self.session.get(RideDeclineModel, (ride_id, driver_id))
        if decline is None:
            decline = RideDeclineModel(
                ride_id=ride_id, driver_id=driver_id, declined_at=declined_at
            )
            self.session.add(decline)
            await self.session.flush()
        return decline

    async def list_active(self) -> list[RideModel]:
        """Rides a driver is currently bound to (assigned, arrived, in progress)."""
        result = await self.session.execute(
            select(RideModel).where(RideModel.status.in_(ACTIVE_DRIVER_STATUSES))
        )
        return list(result.scalars().all())

    async def search(
        self,
        status: Optional[RideStatus] = None,
        query: Optional[str] = None,
        limit: int = 100,
    ) -> list[RideModel]:
        """Admin monitoring: filter by status and free-text over id, addresses, driver name."""
        stmt = (
            select(RideModel)
            .outerjoin(UserModel, UserModel.id == RideModel.driver_id)
            .order_by(RideModel.id.desc())
            .limit(limit)
        )
        if status is not None:
            stmt = stmt.where(RideModel.status == status)
        if query:
            pattern = f"%{_escape_like(query.lower())}%"
            stmt = stmt.where(
                or_(
                    cast(RideModel.id, String).like(pattern, escape="\\"),
                    func.lower(RideModel.pickup_address).like(pattern, escape="\\"),
                    func.lower(RideModel.drop_address).like(pattern, escape="\\"),
                    func.lower(UserModel.name).like(pattern, escape="\\"),
                )
            )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_status(self) -> dict[RideStatus, int]:
        result = await self.session.execute(
            select(RideModel.status, func.count()).group_by(RideModel.status)
        )
        counts = {status: 0 for status in RideStatus}
        for status, count in result.all():
            counts[RideStatus(status)] = count
        return counts

    async def completed_fares_since(self, driver_id: int, since: datetime) -> float:
        result = await self.session.execute(
            select(func.coalesce(func.sum(RideModel.fare), 0.0)).where(
                RideModel.driver_id == driver_id,
                RideModel.status == RideStatus.COMPLETED,
                RideModel.end_time >= since,
            )
        )
        return float(result.scalar() or 0.0)

    async def average_rating(self, driver_id: int) -> Optional[float]:
        result = await self.session.execute(
            select(func.avg(RideModel.rating)).where(
                RideModel.driver_id == driver_id,
                RideModel.rating.is_not(None),
            )
        )
        value = result.scalar()
        return round(float(value), 2) if value is not None else None


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: UserModel) -> UserModel:
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)

    async def get_by_email(self, email: str) -> Optional[UserModel]:
        result = await self.session.execute(
            select(UserModel).where(func.lower(UserModel.email) == email.lower())
        )
        return result.scalar_one_or_none()


class DriverRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, driver: DriverModel) -> DriverModel:
        self.session.add(driver)
        await self.session.flush()
        return driver

    async def get_by_id(self, driver_id: int) -> Optional[DriverModel]:
        return await self.session.get(DriverModel, driver_id)

    async def get_for_update(self, driver_id: int) -> Optional[DriverModel]:
        result = await self.session.execute(
            select(DriverModel)
            .where(DriverModel.id == driver_id)
            .with_for_update(of=DriverModel)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class AlertRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, alert: RideAlertModel) -> RideAlertModel:
        self.session.add(alert)
        await self.session.flush()
        return alert

    async def get_by_id(self, alert_id: int) -> Optional[RideAlertModel]:
        return await self.session.get(RideAlertModel, alert_id)

    async def list_alerts(
        self, resolved: Optional[bool] = None
    ) -> list[RideAlertModel]:
        stmt = select(RideAlertModel).order_by(RideAlertModel.id.desc())
        if resolved is not None:
            stmt = stmt.where(RideAlertModel.resolved.is_(resolved))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def has_open(self, ride_id: int, alert_type: AlertType) -> bool:
        result = await self.session.execute(
            select(func.count())
            .select_from(RideAlertModel)
            .where(
                RideAlertModel.ride_id == ride_id,
                RideAlertModel.type == alert_type,
                RideAlertModel.resolved.is_(False),
            )
        )
        return (result.scalar() or 0) > 0
