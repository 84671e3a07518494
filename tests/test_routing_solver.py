import math
import random

import pytest

from shoproute.models.domain import Coordinate, Stop, StopRole
from shoproute.services.geospatial import direct_distance
from shoproute.services.routing.errors import InsufficientStops, ProviderUnavailable
from shoproute.services.routing.models import RouteResult
from shoproute.services.routing.solver import (
    best_order_exhaustive,
    floyd_warshall,
    solve_order,
    solve_visit_order,
)

INF = math.inf


class StraightLineClient:
    async def route(self, points, *, alternatives=False):
        distance = sum(direct_distance(a, b) for a, b in zip(points, points[1:]))
        return RouteResult(geometry=tuple(points), distance_meters=distance, duration_seconds=distance / 10)


class FailingClient:
    async def route(self, points, *, alternatives=False):
        raise ProviderUnavailable("offline")


def _stop(stop_id: str, lon: float, role: StopRole = StopRole.WAYPOINT) -> Stop:
    return Stop(id=stop_id, coordinate=Coordinate(0.0, lon), role=role)


def test_floyd_warshall_four_cycle():
    # A-B-C-D-A of length 1 each, diagonals A-C and B-D of length 2
    weights = [
        [0, 1, 2, 1],
        [1, 0, 1, 2],
        [2, 1, 0, 1],
        [1, 2, 1, 0],
    ]
    dist = floyd_warshall(weights)

    assert dist[0][3] == 1
    assert dist[0][2] == 2
    assert dist[1][3] == 2
    assert dist == weights


def test_floyd_warshall_shortcuts_through_intermediate_nodes():
    weights = [
        [0, 1, INF, 1],
        [1, 0, 1, INF],
        [INF, 1, 0, 1],
        [1, INF, 1, 0],
    ]
    dist = floyd_warshall(weights)

    assert dist[0][2] == 2
    assert weights[0][2] == INF


def test_floyd_warshall_keeps_unreachable_pairs_infinite():
    dist = floyd_warshall([[0, 5], [INF, 0]])
    assert dist[0][1] == 5
    assert dist[1][0] == INF


def test_floyd_warshall_requires_square_matrix():
    with pytest.raises(ValueError):
        floyd_warshall([[0, 1], [1]])


def test_exhaustive_tie_break_prefers_smaller_ids():
    # every inner ordering costs the same
    dist = [[0 if i == j else 1 for j in range(4)] for i in range(4)]
    ids = ["origin", "c", "b", "dest"]

    order, total = best_order_exhaustive(dist, ids, 0, 3)

    assert [ids[i] for i in order] == ["origin", "b", "c", "dest"]
    assert total == 3


def test_round_trip_tie_prefers_smaller_ids():
    # z sits on the origin, so every order and its reverse cost the same
    dist = [
        [0.0, 0.1, 0.3, 0.0],
        [0.1, 0.0, 0.2, 0.1],
        [0.3, 0.2, 0.0, 0.3],
        [0.0, 0.1, 0.3, 0.0],
    ]
    ids = ["origin", "a", "b", "z"]

    order, total = best_order_exhaustive(dist, ids, 0, 3)

    assert [ids[i] for i in order] == ["origin", "a", "b", "z"]
    assert total == pytest.approx(0.6)


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(20))
async def test_round_trip_with_direct_fallback_breaks_ties_by_id(seed):
    rng = random.Random(seed)
    home = Coordinate(rng.uniform(-60, 60), rng.uniform(-170, 170))
    stops = [Stop(id="origin", coordinate=home, role=StopRole.ORIGIN)]
    for stop_id in ("w1", "w2", "w3"):
        coordinate = Coordinate(home.latitude + rng.uniform(-0.2, 0.2), home.longitude + rng.uniform(-0.2, 0.2))
        stops.append(Stop(id=stop_id, coordinate=coordinate))
    stops.append(Stop(id="home", coordinate=home, role=StopRole.DESTINATION))

    result = await solve_visit_order(stops, FailingClient(), timeout=1.0)

    inner = result.visit_order[1:-1]
    # the reversed tour has the same length, so the smaller first id must win
    assert inner[0] < inner[-1]


def test_heuristic_above_exhaustive_limit_sorts_points_on_a_line():
    positions = [0, 7, 3, 9, 1, 5, 8, 2, 6, 4, 10, 11]
    ids = [f"s{index:02d}" for index in range(len(positions))]
    dist = [[abs(a - b) for b in positions] for a in positions]

    order, total, exhaustive = solve_order(dist, ids, 0, len(ids) - 1, max_exhaustive_stops=4)

    assert exhaustive is False
    assert [positions[i] for i in order] == sorted(positions)
    assert total == 11


def test_solve_order_is_deterministic():
    dist = [[abs(a - b) for b in range(6)] for a in range(6)]
    ids = ["o", "e", "d", "c", "b", "z"]
    first = solve_order(dist, ids)
    assert all(solve_order(dist, ids) == first for _ in range(5))


@pytest.mark.asyncio
async def test_solve_visit_order_reorders_waypoints():
    stops = [
        _stop("origin", 0.0, StopRole.ORIGIN),
        _stop("far", 0.8),
        _stop("near", 0.2),
        _stop("shop", 1.0, StopRole.DESTINATION),
    ]
    result = await solve_visit_order(stops, StraightLineClient(), timeout=1.0)

    assert result.visit_order == ("origin", "near", "far", "shop")
    assert result.fallback_edges == 0
    assert result.exhaustive is True
    assert result.total_distance_meters == pytest.approx(direct_distance(stops[0].coordinate, stops[3].coordinate))


@pytest.mark.asyncio
async def test_solve_visit_order_falls_back_to_direct_distances():
    stops = [_stop("origin", 0.0, StopRole.ORIGIN), _stop("w", 0.5), _stop("shop", 1.0, StopRole.DESTINATION)]

    result = await solve_visit_order(stops, FailingClient(), timeout=1.0)

    assert result.fallback_edges == 6
    assert result.visit_order == ("origin", "w", "shop")


@pytest.mark.asyncio
async def test_solve_visit_order_needs_two_stops():
    with pytest.raises(InsufficientStops):
        await solve_visit_order([_stop("origin", 0.0, StopRole.ORIGIN)], None)
