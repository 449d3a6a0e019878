"""
Distance calculation using the Haversine formula.

Assumption
----------
We use great-circle (Haversine) distance instead of a real routing engine
(OSRM / Google Maps) to keep the project self-contained and runnable
locally without external API keys.  The planned route of a ride is
likewise approximated by the great-circle segment from pickup to drop.

Complexity: O(1) per call.
"""

import math

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def initial_bearing(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Initial bearing in **radians** from point 1 towards point 2."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlng = math.radians(lng2 - lng1)
    y = math.sin(dlng) * math.cos(lat2_r)
    x = math.cos(lat1_r) * math.sin(lat2_r) - math.sin(lat1_r) * math.cos(
        lat2_r
    ) * math.cos(dlng)
    return math.atan2(y, x)


def distance_from_route_km(
    point: tuple[float, float],
    start: tuple[float, float],
    end: tuple[float, float],
) -> float:
    """
    Shortest distance in **km** from *point* to the great-circle segment
    *start* -> *end*.

    Uses the cross-track distance when the point projects onto the
    segment, otherwise the distance to the nearer endpoint.
    """
    d_start_end = haversine_km(*start, *end)
    d_start_point = haversine_km(*start, *point)
    if d_start_end < 1e-6:
        return d_start_point

    delta = initial_bearing(*start, *point) - initial_bearing(*start, *end)
    # Behind the start of the route
    if math.cos(delta) < 0:
        return d_start_point

    angular = d_start_point / EARTH_RADIUS_KM
    cross_track = math.asin(math.sin(angular) * math.sin(delta))
    along_track = math.acos(
        max(-1.0, min(1.0, math.cos(angular) / math.cos(cross_track)))
    ) * EARTH_RADIUS_KM
    if along_track > d_start_end:
        return haversine_km(*end, *point)
    return abs(cross_track) * EARTH_RADIUS_KM
