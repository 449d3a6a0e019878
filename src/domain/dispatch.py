"""
Nearby Ride Requests
====================

1. **Spatial Binning** -- every ride stores the H3 cell (resolution 7,
   ~5.16 km²) of its pickup point at booking time.
2. **Ring Search**     -- a driver sees requests whose pickup cell lies
   within ``k`` rings of the driver's own cell (``grid_disk``).
3. **Ranking**         -- candidates are ordered by great-circle distance
   from the driver to the pickup point.

Complexity
----------
Let N = candidate rides returned by the cell query.

* Ring expansion: O(k²) cells
* Ranking:        O(N log N)
"""

from __future__ import annotations

from typing import Any, Iterable

import h3

from .distance import haversine_km


def ride_h3_cell(lat: float, lng: float, resolution: int = 7) -> str:
    """Map a geo-point to an H3 hexagonal cell index.  O(1)."""
    return h3.latlng_to_cell(lat, lng, resolution)


def nearby_cells(lat: float, lng: float, rings: int = 2, resolution: int = 7) -> set[str]:
    """All cells within *rings* hexagon steps of the point's cell."""
    return set(h3.grid_disk(ride_h3_cell(lat, lng, resolution), rings))


def rank_by_pickup_distance(
    rides: Iterable[Any], lat: float, lng: float
) -> list[tuple[float, Any]]:
    """Pair each ride with its pickup distance from (lat, lng), nearest first."""
    ranked = [
        (round(haversine_km(lat, lng, r.pickup_lat, r.pickup_lng), 3), r)
        for r in rides
    ]
    ranked.sort(key=lambda pair: pair[0])
    return ranked
