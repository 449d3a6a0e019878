"""Domain enumerations and state-transition rules."""

import enum


class RideStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DRIVER_ASSIGNED = "driver_assigned"
    ARRIVED = "arrived"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class RideAction(str, enum.Enum):
    ACCEPT = "accept"
    ARRIVE = "arrive"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"


class CabType(str, enum.Enum):
    ECONOMY = "economy"
    STANDARD = "standard"
    LUXURY = "luxury"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    WALLET = "wallet"
    UPI = "upi"


class UserRole(str, enum.Enum):
    USER = "user"
    DRIVER = "driver"
    ADMIN = "admin"


class AlertType(str, enum.Enum):
    ROUTE_DEVIATION = "route_deviation"
    DRIVER_OFFLINE = "driver_offline"
    SOS = "sos"


class AlertSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


TERMINAL_STATUSES = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})

# Statuses in which a driver is bound to the ride
DRIVER_BOUND_STATUSES = frozenset(
    {
        RideStatus.DRIVER_ASSIGNED,
        RideStatus.ARRIVED,
        RideStatus.IN_PROGRESS,
        RideStatus.COMPLETED,
    }
)

# Rider dashboard buckets
UPCOMING_STATUSES = frozenset(
    {
        RideStatus.PENDING,
        RideStatus.CONFIRMED,
        RideStatus.DRIVER_ASSIGNED,
        RideStatus.ARRIVED,
        RideStatus.IN_PROGRESS,
    }
)
HISTORY_STATUSES = TERMINAL_STATUSES

_NON_TERMINAL = frozenset(RideStatus) - TERMINAL_STATUSES

# Action table: action -> (statuses it may be applied from, resulting status)
RIDE_ACTIONS: dict[RideAction, tuple[frozenset[RideStatus], RideStatus]] = {
    RideAction.ACCEPT: (
        frozenset({RideStatus.PENDING, RideStatus.CONFIRMED}),
        RideStatus.DRIVER_ASSIGNED,
    ),
    RideAction.ARRIVE: (frozenset({RideStatus.DRIVER_ASSIGNED}), RideStatus.ARRIVED),
    RideAction.START: (frozenset({RideStatus.ARRIVED}), RideStatus.IN_PROGRESS),
    RideAction.COMPLETE: (frozenset({RideStatus.IN_PROGRESS}), RideStatus.COMPLETED),
    RideAction.CANCEL: (_NON_TERMINAL, RideStatus.CANCELLED),
}

# Roles allowed to perform each action
ACTION_ROLES: dict[RideAction, frozenset[UserRole]] = {
    RideAction.ACCEPT: frozenset({UserRole.DRIVER}),
    RideAction.ARRIVE: frozenset({UserRole.DRIVER}),
    RideAction.START: frozenset({UserRole.DRIVER}),
    RideAction.COMPLETE: frozenset({UserRole.DRIVER}),
    RideAction.CANCEL: frozenset({UserRole.USER, UserRole.ADMIN}),
}


def _build_transitions() -> dict[RideStatus, set[RideStatus]]:
    table: dict[RideStatus, set[RideStatus]] = {s: set() for s in RideStatus}
    for sources, target in RIDE_ACTIONS.values():
        for source in sources:
            table[source].add(target)
    return table


# State machine: maps current status -> set of valid next statuses
RIDE_TRANSITIONS: dict[RideStatus, set[RideStatus]] = _build_transitions()
