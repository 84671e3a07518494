"""All-pairs shortest path solver for multi-stop visiting order."""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
from typing import Sequence

from ...config import settings
from ...models.domain import Stop
from ..geospatial import direct_distance
from .client import RoutingClient, route_with_timeout
from .errors import InsufficientStops, RoutingError
from .models import SolverResult

logger = logging.getLogger(__name__)

Matrix = list[list[float]]
# Relative slack under which two order totals are considered tied.
TIE_TOLERANCE = 1e-9


def floyd_warshall(weights: Matrix) -> Matrix:
    """Return the all-pairs shortest distance matrix for a square weight matrix.

    Missing edges are expressed as ``math.inf``. The input is not modified.
    """
    n = len(weights)
    if any(len(row) != n for row in weights):
        raise ValueError("Weight matrix must be square.")

    dist = [list(row) for row in weights]
    for i in range(n):
        dist[i][i] = min(dist[i][i], 0.0)

    for k in range(n):
        row_k = dist[k]
        for i in range(n):
            d_ik = dist[i][k]
            if d_ik == math.inf:
                continue
            row_i = dist[i]
            for j in range(n):
                candidate = d_ik + row_k[j]
                if candidate < row_i[j]:
                    row_i[j] = candidate
    return dist


def path_length(order: Sequence[int], dist: Matrix) -> float:
    return sum(dist[a][b] for a, b in zip(order, order[1:]))


def best_order_exhaustive(dist: Matrix, ids: Sequence[str], start: int, end: int) -> tuple[list[int], float]:
    """Evaluate every ordering of the inner nodes between fixed endpoints.

    Inner nodes are permuted in ascending id order so the first minimum found is
    also the lexicographically smallest id sequence among equal totals. Totals
    within ``TIE_TOLERANCE`` of the best (relative) count as equal.
    """
    inner = sorted((i for i in range(len(ids)) if i not in (start, end)), key=lambda i: ids[i])
    best_order: list[int] | None = None
    best_total = math.inf
    for perm in itertools.permutations(inner):
        order = [start, *perm, end]
        total = path_length(order, dist)
        if best_order is None or total < best_total - TIE_TOLERANCE * max(1.0, best_total):
            best_total = total
            best_order = order
    if best_order is None:
        best_order = [start, end]
        best_total = dist[start][end]
    return best_order, best_total


def best_order_heuristic(dist: Matrix, ids: Sequence[str], start: int, end: int) -> tuple[list[int], float]:
    """Nearest-neighbour construction followed by 2-opt improvement.

    Used when the stop count is too large for permutation search. Ties are
    resolved by stop id so the result is deterministic.
    """
    remaining = {i for i in range(len(ids)) if i not in (start, end)}
    order = [start]
    current = start
    while remaining:
        nxt = min(remaining, key=lambda i: (dist[current][i], ids[i]))
        order.append(nxt)
        remaining.remove(nxt)
        current = nxt
    order.append(end)

    improved = True
    while improved:
        improved = False
        for i in range(1, len(order) - 2):
            for j in range(i + 1, len(order) - 1):
                candidate = order[:i] + order[i : j + 1][::-1] + order[j + 1 :]
                if path_length(candidate, dist) < path_length(order, dist) - 1e-9:
                    order = candidate
                    improved = True
    return order, path_length(order, dist)


def solve_order(
    dist: Matrix,
    ids: Sequence[str],
    start: int = 0,
    end: int | None = None,
    max_exhaustive_stops: int | None = None,
) -> tuple[list[int], float, bool]:
    """Pick the visiting order minimizing total distance with fixed endpoints.

    Returns ``(order, total, exhaustive)``.
    """
    end = len(ids) - 1 if end is None else end
    limit = max_exhaustive_stops if max_exhaustive_stops is not None else settings.solver_max_exhaustive_stops
    if len(ids) <= limit:
        order, total = best_order_exhaustive(dist, ids, start, end)
        return order, total, True
    logger.info("Stop count %d exceeds exhaustive limit %d, using nearest-neighbour + 2-opt", len(ids), limit)
    order, total = best_order_heuristic(dist, ids, start, end)
    return order, total, False


async def build_weight_matrix(
    stops: Sequence[Stop],
    client: RoutingClient | None,
    *,
    timeout: float | None = None,
    max_parallel: int | None = None,
) -> tuple[Matrix, int]:
    """Pairwise routed distances between stops.

    Every ordered pair is routed concurrently; a failed pair falls back to the
    straight-line distance. Returns the matrix and the number of fallback edges.
    """
    n = len(stops)
    weights: Matrix = [[0.0] * n for _ in range(n)]
    pairs = [(i, j) for i in range(n) for j in range(n) if i != j]
    if client is None:
        for i, j in pairs:
            weights[i][j] = direct_distance(stops[i].coordinate, stops[j].coordinate)
        return weights, len(pairs)

    semaphore = asyncio.Semaphore(max_parallel or settings.osrm_max_parallel_requests)
    timeout = settings.osrm_timeout_seconds if timeout is None else timeout

    async def edge(i: int, j: int) -> tuple[int, int, float, bool]:
        async with semaphore:
            try:
                result = await route_with_timeout(
                    client, [stops[i].coordinate, stops[j].coordinate], timeout=timeout
                )
                return i, j, result.distance_meters, False
            except RoutingError as exc:
                logger.warning(
                    "Routing failed for edge %s -> %s (%s), using direct distance",
                    stops[i].id,
                    stops[j].id,
                    exc.kind,
                )
                return i, j, direct_distance(stops[i].coordinate, stops[j].coordinate), True

    fallback_edges = 0
    for i, j, value, fell_back in await asyncio.gather(*(edge(i, j) for i, j in pairs)):
        weights[i][j] = value
        fallback_edges += int(fell_back)
    return weights, fallback_edges


async def solve_visit_order(
    stops: Sequence[Stop],
    client: RoutingClient | None,
    *,
    timeout: float | None = None,
    max_parallel: int | None = None,
    max_exhaustive_stops: int | None = None,
) -> SolverResult:
    """Lowest-total-distance visiting order with the first and last stop fixed."""
    if len(stops) < 2:
        raise InsufficientStops("At least two stops are required to solve a visiting order.")

    weights, fallback_edges = await build_weight_matrix(
        stops, client, timeout=timeout, max_parallel=max_parallel
    )
    dist = floyd_warshall(weights)
    ids = [stop.id for stop in stops]
    order, total, exhaustive = solve_order(dist, ids, 0, len(stops) - 1, max_exhaustive_stops)

    if fallback_edges:
        logger.warning("Solver used direct-distance fallback for %d/%d edges", fallback_edges, len(stops) * (len(stops) - 1))
    return SolverResult(
        visit_order=tuple(ids[i] for i in order),
        total_distance_meters=total,
        fallback_edges=fallback_edges,
        exhaustive=exhaustive,
    )
