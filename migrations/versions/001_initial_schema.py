"""Initial schema: users, drivers, rides, ride alerts and ride declines.

Revision ID: 001
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

RIDE_STATUS = (
    "PENDING",
    "CONFIRMED",
    "DRIVER_ASSIGNED",
    "ARRIVED",
    "IN_PROGRESS",
    "COMPLETED",
    "CANCELLED",
)
USER_ROLE = ("USER", "DRIVER", "ADMIN")
CAB_TYPE = ("ECONOMY", "STANDARD", "LUXURY")
PAYMENT_METHOD = ("CASH", "CARD", "WALLET", "UPI")
ALERT_TYPE = ("ROUTE_DEVIATION", "DRIVER_OFFLINE", "SOS")
ALERT_SEVERITY = ("LOW", "MEDIUM", "HIGH")


def _timestamp(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), **kwargs)


def upgrade() -> None:
    user_role = sa.Enum(*USER_ROLE, name="userrole")
    cab_type = sa.Enum(*CAB_TYPE, name="cabtype")

    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("role", user_role, nullable=False),
        _timestamp("created_at", server_default=sa.func.now()),
    )

    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column(
            "id", sa.Integer, sa.ForeignKey("users.id"), primary_key=True
        ),
        sa.Column("vehicle_model", sa.String(80), nullable=False),
        sa.Column("vehicle_color", sa.String(40), nullable=False),
        sa.Column("plate_number", sa.String(20), unique=True, nullable=False),
        sa.Column("cab_type", cab_type, nullable=False),
        sa.Column("rating", sa.Float, nullable=False, server_default="5.0"),
        sa.Column(
            "is_available", sa.Boolean, nullable=False, server_default=sa.true()
        ),
        sa.Column("current_address", sa.String(255), nullable=True),
        sa.Column("current_lat", sa.Float, nullable=True),
        sa.Column("current_lng", sa.Float, nullable=True),
        _timestamp("last_seen_at", nullable=True),
    )
    op.create_index("idx_drivers_available", "drivers", ["is_available"])

    # ── rides ─────────────────────────────────────────────────────────
    op.create_table(
        "rides",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), nullable=True
        ),
        sa.Column("pickup_address", sa.String(255), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("pickup_h3_cell", sa.String(20), nullable=False),
        sa.Column("drop_address", sa.String(255), nullable=False),
        sa.Column("drop_lat", sa.Float, nullable=False),
        sa.Column("drop_lng", sa.Float, nullable=False),
        sa.Column("cab_type", cab_type, nullable=False),
        sa.Column("fare", sa.Float, nullable=False),
        sa.Column("distance_km", sa.Float, nullable=False),
        sa.Column("duration_min", sa.Integer, nullable=False),
        sa.Column(
            "payment_method",
            sa.Enum(*PAYMENT_METHOD, name="paymentmethod"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(*RIDE_STATUS, name="ridestatus"),
            nullable=False,
        ),
        _timestamp("scheduled_time", nullable=True),
        _timestamp("accepted_at", nullable=True),
        _timestamp("arrived_at", nullable=True),
        _timestamp("start_time", nullable=True),
        _timestamp("end_time", nullable=True),
        _timestamp("cancelled_at", nullable=True),
        sa.Column("cancelled_by", user_role, nullable=True),
        sa.Column("cancellation_reason", sa.String(255), nullable=True),
        sa.Column("start_odometer_km", sa.Float, nullable=True),
        sa.Column("end_odometer_km", sa.Float, nullable=True),
        sa.Column("rating", sa.Integer, nullable=True),
        sa.Column("feedback", sa.Text, nullable=True),
        sa.Column(
            "route_deviation", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        sa.Column("idempotency_key", sa.String(64), unique=True, nullable=True),
        _timestamp("created_at", server_default=sa.func.now()),
        _timestamp("updated_at", server_default=sa.func.now()),
        sa.CheckConstraint(
            "end_time IS NULL OR start_time IS NULL OR end_time >= start_time",
            name="ck_rides_time_order",
        ),
        sa.CheckConstraint(
            "rating IS NULL OR rating BETWEEN 1 AND 5", name="ck_rides_rating"
        ),
    )
    op.create_index("idx_rides_status", "rides", ["status"])
    op.create_index("idx_rides_user", "rides", ["user_id"])
    op.create_index("idx_rides_driver", "rides", ["driver_id"])
    op.create_index("idx_rides_pickup_cell", "rides", ["pickup_h3_cell"])
    op.create_index("idx_rides_idempotency", "rides", ["idempotency_key"])

    # ── ride_alerts ───────────────────────────────────────────────────
    op.create_table(
        "ride_alerts",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "ride_id", sa.Integer, sa.ForeignKey("rides.id"), nullable=False
        ),
        sa.Column("type", sa.Enum(*ALERT_TYPE, name="alerttype"), nullable=False),
        sa.Column(
            "severity",
            sa.Enum(*ALERT_SEVERITY, name="alertseverity"),
            nullable=False,
        ),
        sa.Column("message", sa.String(255), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column(
            "resolved", sa.Boolean, nullable=False, server_default=sa.false()
        ),
        _timestamp("created_at", server_default=sa.func.now()),
        _timestamp("resolved_at", nullable=True),
    )
    op.create_index("idx_ride_alerts_ride", "ride_alerts", ["ride_id"])
    op.create_index("idx_ride_alerts_resolved", "ride_alerts", ["resolved"])

    # ── ride_declines ─────────────────────────────────────────────────
    op.create_table(
        "ride_declines",
        sa.Column(
            "ride_id", sa.Integer, sa.ForeignKey("rides.id"), primary_key=True
        ),
        sa.Column(
            "driver_id", sa.Integer, sa.ForeignKey("drivers.id"), primary_key=True
        ),
        _timestamp("declined_at", nullable=False),
    )


def downgrade() -> None:
    op.drop_table("ride_declines")
    op.drop_table("ride_alerts")
    op.drop_table("rides")
    op.drop_table("drivers")
    op.drop_table("users")
    for enum_name in (
        "alertseverity",
        "alerttype",
        "ridestatus",
        "paymentmethod",
        "cabtype",
        "userrole",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
