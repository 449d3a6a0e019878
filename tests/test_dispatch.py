"""Tests for distance helpers and H3-based nearby request search."""

from types import SimpleNamespace

import h3
import pytest

from src.domain.dispatch import nearby_cells, rank_by_pickup_distance, ride_h3_cell
from src.domain.distance import distance_from_route_km, haversine_km

PICKUP = (18.5308, 73.8475)
DROP = (18.5793, 73.9089)


class TestHaversine:
    def test_zero_distance(self):
        assert haversine_km(*PICKUP, *PICKUP) == 0.0

    def test_one_degree_of_latitude(self):
        assert haversine_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)

    def test_symmetric(self):
        assert haversine_km(*PICKUP, *DROP) == pytest.approx(haversine_km(*DROP, *PICKUP))


class TestDistanceFromRoute:
    def test_point_on_route(self):
        midpoint = ((PICKUP[0] + DROP[0]) / 2, (PICKUP[1] + DROP[1]) / 2)
        assert distance_from_route_km(midpoint, PICKUP, DROP) < 0.05

    def test_point_beside_route(self):
        # Route due north along the meridian; point 0.02 deg (~2.1 km) east
        start, end = (18.50, 73.85), (18.60, 73.85)
        off = distance_from_route_km((18.55, 73.87), start, end)
        assert off == pytest.approx(haversine_km(18.55, 73.85, 18.55, 73.87), rel=0.01)

    def test_point_behind_start_uses_start(self):
        start, end = (18.50, 73.85), (18.60, 73.85)
        point = (18.45, 73.85)
        assert distance_from_route_km(point, start, end) == pytest.approx(
            haversine_km(*point, *start)
        )

    def test_point_past_end_uses_end(self):
        start, end = (18.50, 73.85), (18.60, 73.85)
        point = (18.65, 73.85)
        assert distance_from_route_km(point, start, end) == pytest.approx(
            haversine_km(*point, *end), rel=1e-3
        )

    def test_degenerate_route(self):
        assert distance_from_route_km(DROP, PICKUP, PICKUP) == pytest.approx(
            haversine_km(*PICKUP, *DROP)
        )


class TestNearbyCells:
    def test_cell_resolution(self):
        cell = ride_h3_cell(*PICKUP)
        assert h3.get_resolution(cell) == 7

    def test_ring_count(self):
        # k rings around a hexagon: 1 + 3k(k+1) cells
        assert len(nearby_cells(*PICKUP, rings=2)) == 19
        assert len(nearby_cells(*PICKUP, rings=0)) == 1

    def test_own_cell_included(self):
        assert ride_h3_cell(*PICKUP) in nearby_cells(*PICKUP)

    def test_far_city_excluded(self):
        mumbai = ride_h3_cell(19.0760, 72.8777)
        assert mumbai not in nearby_cells(*PICKUP)


class TestRanking:
    def test_nearest_pickup_first(self):
        far = SimpleNamespace(id=1, pickup_lat=DROP[0], pickup_lng=DROP[1])
        near = SimpleNamespace(id=2, pickup_lat=18.5310, pickup_lng=73.8480)
        ranked = rank_by_pickup_distance([far, near], *PICKUP)
        assert [ride.id for _, ride in ranked] == [2, 1]
        assert ranked[0][0] < ranked[1][0]

    def test_empty(self):
        assert rank_by_pickup_distance([], *PICKUP) == []
