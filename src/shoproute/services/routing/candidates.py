"""Candidate route generation for a planning request."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass, field, replace
from typing import Optional

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import direct_distance
from .client import RoutingClient, route_with_timeout
from .errors import InvalidCoordinates, RoutingError
from .models import PlanningRequest, RouteCandidate, RouteResult, SolverResult, Strategy
from .solver import solve_visit_order

logger = logging.getLogger(__name__)

# Point-to-point requests with alternatives are topped up to this many road routes.
MAX_ROUTE_OPTIONS = 3
# Sideways shifts of the midpoint, in degrees (roughly 300 to 550 m).
DETOUR_OFFSETS_DEG = (0.003, -0.003, 0.005, -0.005)
# Detours longer than this multiple of the straight-line distance are dropped.
DETOUR_MAX_RATIO = 2.0


@dataclass(slots=True)
class GenerationResult:
    candidates: list[RouteCandidate]
    solver: Optional[SolverResult] = None
    failures: dict[str, str] = field(default_factory=dict)


async def _try_route(
    client: RoutingClient | None,
    request: PlanningRequest,
    stop_ids: tuple[str, ...],
    *,
    label: str,
    timeout: float,
    alternatives: bool = False,
    failures: dict[str, str],
) -> RouteResult | None:
    if client is None:
        failures[label] = "provider_unavailable"
        return None
    by_id = {stop.id: stop for stop in request.stops}
    points = [by_id[stop_id].coordinate for stop_id in stop_ids]
    try:
        return await route_with_timeout(client, points, timeout=timeout, alternatives=alternatives)
    except RoutingError as exc:
        logger.warning("Request %s: %s route failed (%s): %s", request.request_id, label, exc.kind, exc)
        failures[label] = exc.kind
        return None


def _direct_candidate(request: PlanningRequest) -> RouteCandidate:
    origin, destination = request.origin, request.destination
    return RouteCandidate(
        id=0,
        name="Direct line",
        strategy=Strategy.DIRECT,
        visit_order=(origin.id, destination.id),
        geometry=(origin.coordinate, destination.coordinate),
        distance_meters=direct_distance(origin.coordinate, destination.coordinate),
        duration_seconds=None,
    )


def _routed_candidate(
    name: str,
    strategy: Strategy,
    visit_order: tuple[str, ...],
    result: RouteResult,
    aux_distance: float | None = None,
) -> RouteCandidate:
    return RouteCandidate(
        id=0,
        name=name,
        strategy=strategy,
        visit_order=visit_order,
        geometry=result.geometry,
        distance_meters=result.distance_meters,
        duration_seconds=result.duration_seconds,
        aux_distance_meters=aux_distance,
    )


def detour_waypoints(origin: Coordinate, destination: Coordinate, count: int) -> list[Coordinate]:
    """Midpoints of the straight line shifted perpendicular to it, nearest offsets first."""
    d_lat = destination.latitude - origin.latitude
    d_lon = destination.longitude - origin.longitude
    length = math.hypot(d_lat, d_lon)
    if length == 0:
        return []
    perp_lat, perp_lon = -d_lon / length, d_lat / length
    mid_lat = (origin.latitude + destination.latitude) / 2
    mid_lon = (origin.longitude + destination.longitude) / 2

    waypoints = []
    for offset in DETOUR_OFFSETS_DEG[:count]:
        try:
            waypoints.append(Coordinate(mid_lat + perp_lat * offset, mid_lon + perp_lon * offset))
        except InvalidCoordinates:
            continue  # shifted past a pole or the antimeridian
    return waypoints


async def _detour_routes(
    client: RoutingClient,
    request: PlanningRequest,
    needed: int,
    *,
    timeout: float,
) -> list[RouteResult]:
    """Road routes forced through offset midpoints, at most ``needed`` of them.

    Routes longer than ``DETOUR_MAX_RATIO`` times the straight line are discarded.
    Results keep offset order whatever order the calls finish in.
    """
    origin, destination = request.origin.coordinate, request.destination.coordinate
    limit = DETOUR_MAX_RATIO * direct_distance(origin, destination)

    async def via(waypoint: Coordinate) -> RouteResult | None:
        try:
            return await route_with_timeout(client, [origin, waypoint, destination], timeout=timeout)
        except RoutingError as exc:
            logger.warning("Request %s: detour via %s failed (%s)", request.request_id, waypoint.as_lat_lon(), exc.kind)
            return None

    waypoints = detour_waypoints(origin, destination, needed * 3)
    results = await asyncio.gather(*(via(waypoint) for waypoint in waypoints))
    accepted = [result for result in results if result is not None and result.distance_meters <= limit]
    logger.info("Request %s: %d of %d detour routes accepted", request.request_id, len(accepted), len(waypoints))
    return accepted[:needed]


def _number(candidates: list[RouteCandidate]) -> list[RouteCandidate]:
    """Assign ids 1..N in generation order."""
    return [replace(c, id=index) for index, c in enumerate(candidates, start=1)]


async def generate_candidates(
    request: PlanningRequest,
    client: RoutingClient | None,
    *,
    timeout: float | None = None,
    max_parallel: int | None = None,
    max_exhaustive_stops: int | None = None,
) -> GenerationResult:
    """Build the direct, routed and optimal multi-stop candidates for ``request``.

    Routing failures only drop the affected candidate; the direct candidate is
    always present.
    """
    timeout = settings.osrm_timeout_seconds if timeout is None else timeout
    failures: dict[str, str] = {}
    origin, destination = request.origin, request.destination
    waypoints = request.waypoints
    generated: list[RouteCandidate] = [_direct_candidate(request)]

    if not waypoints:
        pair = (origin.id, destination.id)
        result = await _try_route(
            client,
            request,
            pair,
            label="routed",
            timeout=timeout,
            alternatives=request.include_alternatives,
            failures=failures,
        )
        if result is not None:
            generated.append(_routed_candidate("Road route", Strategy.ROUTED, pair, result))
            alternatives = list(result.alternatives)
            needed = MAX_ROUTE_OPTIONS - 1 - len(alternatives)
            if request.include_alternatives and needed > 0:
                alternatives.extend(await _detour_routes(client, request, needed, timeout=timeout))
            for index, alternative in enumerate(alternatives, start=1):
                generated.append(_routed_candidate(f"Alternative route {index}", Strategy.ROUTED, pair, alternative))
        return GenerationResult(candidates=_number(generated), failures=failures)

    input_order = (origin.id, *(stop.id for stop in waypoints), destination.id)
    ordered_stops = (origin, *waypoints, destination)

    solver_result, baseline = await asyncio.gather(
        solve_visit_order(
            ordered_stops,
            client,
            timeout=timeout,
            max_parallel=max_parallel,
            max_exhaustive_stops=max_exhaustive_stops,
        ),
        _try_route(client, request, input_order, label="routed", timeout=timeout, failures=failures),
    )

    optimal_order = solver_result.visit_order
    if optimal_order == input_order:
        # Same sequence, so the baseline call already routed the optimal order.
        logger.info("Request %s: input order is already optimal, omitting baseline", request.request_id)
        optimal = baseline
        if optimal is None and "routed" in failures:
            failures["optimal_multi_stop"] = failures.pop("routed")
        baseline = None
    else:
        optimal = await _try_route(
            client, request, optimal_order, label="optimal_multi_stop", timeout=timeout, failures=failures
        )

    if baseline is not None:
        generated.append(_routed_candidate("Route in selected order", Strategy.ROUTED, input_order, baseline))
    if optimal is not None:
        generated.append(
            _routed_candidate(
                "Optimized multi-stop route",
                Strategy.OPTIMAL_MULTI_STOP,
                optimal_order,
                optimal,
                aux_distance=solver_result.total_distance_meters,
            )
        )
    return GenerationResult(candidates=_number(generated), solver=solver_result, failures=failures)
