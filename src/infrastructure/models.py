"""
SQLAlchemy ORM models  (maps to PostgreSQL).

Tables
------
* ``users``        -- riders, drivers and admins
* ``drivers``      -- vehicle, availability and last known position
  (one row per user with role ``driver``)
* ``rides``        -- ride bookings and their lifecycle
* ``ride_alerts``  -- admin alerts raised for rides
* ``ride_declines`` -- open requests a driver turned down

Indexes
-------
* **B-Tree** on ``status``, ``user_id``, ``driver_id``, ``pickup_h3_cell``
  and ``idempotency_key`` for the dashboards, dispatch and idempotent
  booking look-ups.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from src.domain.enums import (
    AlertSeverity,
    AlertType,
    CabType,
    PaymentMethod,
    RideStatus,
    UserRole,
)


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(20), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.USER, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __mapper_args__ = {"eager_defaults": True}


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    vehicle_model = Column(String(80), nullable=False)
    vehicle_color = Column(String(40), nullable=False)
    plate_number = Column(String(20), unique=True, nullable=False)
    cab_type = Column(Enum(CabType), default=CabType.STANDARD, nullable=False)
    rating = Column(Float, default=5.0, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)

    current_address = Column(String(255), nullable=True)
    current_lat = Column(Float, nullable=True)
    current_lng = Column(Float, nullable=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("UserModel", lazy="joined", innerjoin=True)

    __table_args__ = (Index("idx_drivers_available", "is_available"),)

    @property
    def name(self) -> str:
        return self.user.name if self.user else ""

    def can_take_rides(self) -> bool:
        """On duty with a known position."""
        return bool(self.is_available) and (
            self.current_lat is not None and self.current_lng is not None
        )


class RideModel(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    driver_id = Column(Integer, ForeignKey("drivers.id"), nullable=True)

    pickup_address = Column(String(255), nullable=False)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    pickup_h3_cell = Column(String(20), nullable=False)
    drop_address = Column(String(255), nullable=False)
    drop_lat = Column(Float, nullable=False)
    drop_lng = Column(Float, nullable=False)

    cab_type = Column(Enum(CabType), nullable=False)
    fare = Column(Float, nullable=False)
    distance_km = Column(Float, nullable=False)
    duration_min = Column(Integer, nullable=False)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    status = Column(Enum(RideStatus), default=RideStatus.PENDING, nullable=False)

    scheduled_time = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    arrived_at = Column(DateTime(timezone=True), nullable=True)
    start_time = Column(DateTime(timezone=True), nullable=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(Enum(UserRole), nullable=True)
    cancellation_reason = Column(String(255), nullable=True)

    start_odometer_km = Column(Float, nullable=True)
    end_odometer_km = Column(Float, nullable=True)
    rating = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)
    route_deviation = Column(Boolean, default=False, nullable=False)
    idempotency_key = Column(String(64), unique=True, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    driver = relationship("DriverModel", lazy="selectin")

    __mapper_args__ = {"eager_defaults": True}

    __table_args__ = (
        Index("idx_rides_status", "status"),
        Index("idx_rides_user", "user_id"),
        Index("idx_rides_driver", "driver_id"),
        Index("idx_rides_pickup_cell", "pickup_h3_cell"),
        Index("idx_rides_idempotency", "idempotency_key"),
    )

    @property
    def driver_name(self):
        return self.driver.name if self.driver else None


class RideAlertModel(Base):
    __tablename__ = "ride_alerts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ride_id = Column(Integer, ForeignKey("rides.id"), nullable=False)
    type = Column(Enum(AlertType), nullable=False)
    severity = Column(Enum(AlertSeverity), nullable=False)
    message = Column(String(255), nullable=False)
    location = Column(String(255), nullable=True)
    resolved = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_ride_alerts_ride", "ride_id"),
        Index("idx_ride_alerts_resolved", "resolved"),
    )

    __mapper_args__ = {"eager_defaults": True}


class RideDeclineModel(Base):
    """A driver turned down an open request; it is no longer offered to them."""

    __tablename__ = "ride_declines"

    ride_id = Column(Integer, ForeignKey("rides.id"), primary_key=True)
    driver_id = Column(Integer, ForeignKey("drivers.id"), primary_key=True)
    declined_at = Column(DateTime(timezone=True), nullable=False)
