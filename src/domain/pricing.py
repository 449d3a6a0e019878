"""
Fare Engine
===========

Formula
-------
Fare = Base_Rate[cab_type] + Per_KM_Rate[cab_type] x Distance

Default tariffs (minor currency units):

============  =========  ===========
cab type      base rate  per-km rate
============  =========  ===========
economy             500          150
standard            800          250
luxury             1200          400
============  =========  ===========

Distance for estimates is the great-circle distance between pickup and
drop; duration is ``distance x minutes_per_km`` rounded up.

Complexity: O(1) per fare calculation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Optional

from .distance import haversine_km
from .entities import Location
from .enums import CabType

DEFAULT_BASE_RATES: dict[CabType, float] = {
    CabType.ECONOMY: 500.0,
    CabType.STANDARD: 800.0,
    CabType.LUXURY: 1200.0,
}

DEFAULT_PER_KM_RATES: dict[CabType, float] = {
    CabType.ECONOMY: 150.0,
    CabType.STANDARD: 250.0,
    CabType.LUXURY: 400.0,
}


def calculate_fare(cab_type: CabType | str, distance_km: float) -> float:
    """Fare with the default tariffs, e.g. ``calculate_fare('standard', 3.2) == 1600``."""
    return FareEngine().calculate_fare(cab_type, distance_km)


@dataclass(frozen=True)
class FareEstimate:
    cab_type: CabType
    distance_km: float
    duration_min: int
    fare: float


class FareEngine:
    """High-level API used by the booking service and the estimate endpoint."""

    def __init__(
        self,
        base_rates: Optional[Mapping[str, float]] = None,
        per_km_rates: Optional[Mapping[str, float]] = None,
        minutes_per_km: float = 2.0,
    ):
        self.base_rates = _by_cab_type(base_rates, DEFAULT_BASE_RATES)
        self.per_km_rates = _by_cab_type(per_km_rates, DEFAULT_PER_KM_RATES)
        self.minutes_per_km = minutes_per_km

    def calculate_fare(self, cab_type: CabType | str, distance_km: float) -> float:
        if distance_km < 0:
            raise ValueError("distance_km must be non-negative")
        cab_type = CabType(cab_type)
        raw = self.base_rates[cab_type] + self.per_km_rates[cab_type] * distance_km
        return round(raw, 2)

    def estimate_duration(self, distance_km: float) -> int:
        return max(1, math.ceil(distance_km * self.minutes_per_km))

    def estimate(
        self, pickup: Location, drop: Location, cab_type: CabType | str
    ) -> FareEstimate:
        distance = round(haversine_km(pickup.lat, pickup.lng, drop.lat, drop.lng), 2)
        return FareEstimate(
            cab_type=CabType(cab_type),
            distance_km=distance,
            duration_min=self.estimate_duration(distance),
            fare=self.calculate_fare(cab_type, distance),
        )


def _by_cab_type(
    rates: Optional[Mapping[str, float]], defaults: dict[CabType, float]
) -> dict[CabType, float]:
    table = dict(defaults)
    for key, value in (rates or {}).items():
        table[CabType(key)] = float(value)
    return table
