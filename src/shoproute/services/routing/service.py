"""Routing orchestration service."""

from __future__ import annotations

import asyncio
import functools
import logging
from collections import Counter, OrderedDict
from typing import Optional, Sequence

from ...config import settings
from ...models.domain import Coordinate, Stop, StopRole
from .candidates import generate_candidates
from .client import RoutingClient
from .errors import InsufficientStops, InvalidStops, OriginUnavailable, RequestSuperseded
from .models import PlanningNotice, PlanningOutcome, PlanningRequest, RouteCandidate, SolverResult, Strategy
from .osrm_client import OSRMClient
from .scoring import ScoringWeights, rank_candidates
from .selection import RouteSelection

logger = logging.getLogger(__name__)

MAX_SESSIONS = 1000


@functools.lru_cache(maxsize=1)
def get_routing_client() -> Optional[RoutingClient]:
    """Shared OSRM client, or None when no provider is configured."""
    try:
        return OSRMClient()
    except ValueError as e:
        logger.warning("OSRM client initialization failed: %s. Only direct routes will be produced.", e)
        return None


def validate_stops(stops: Sequence[Stop], max_stops: int | None = None) -> None:
    max_stops = max_stops or settings.max_stops_per_request
    if len(stops) < 2:
        raise InsufficientStops(f"A route needs at least 2 stops, got {len(stops)}.")
    if len(stops) > max_stops:
        raise InvalidStops(f"A route supports at most {max_stops} stops, got {len(stops)}.")
    origins = [stop for stop in stops if stop.role is StopRole.ORIGIN]
    if len(origins) != 1:
        raise InvalidStops(f"Exactly one origin stop is required, got {len(origins)}.")
    duplicates = [stop_id for stop_id, count in Counter(stop.id for stop in stops).items() if count > 1]
    if duplicates:
        raise InvalidStops(f"Stop ids must be unique: {', '.join(sorted(duplicates))}.")


def build_planning_request(
    origin: Optional[Coordinate],
    destinations: Sequence[Stop],
    waypoints: Sequence[Stop] = (),
    *,
    origin_label: str = "Your location",
    include_alternatives: bool = False,
    request_id: str | None = None,
) -> PlanningRequest:
    """Assemble ``[origin, *waypoints, *destinations]`` into a planning request."""
    if origin is None:
        raise OriginUnavailable("No origin available: the current position could not be determined.")
    stops = (
        Stop(id="origin", coordinate=origin, label=origin_label, role=StopRole.ORIGIN),
        *waypoints,
        *destinations,
    )
    validate_stops(stops)
    kwargs = {"request_id": request_id} if request_id else {}
    return PlanningRequest(stops=stops, include_alternatives=include_alternatives, **kwargs)


def is_degraded(
    candidates: Sequence[RouteCandidate],
    solver: Optional[SolverResult],
    ratio: float | None = None,
) -> bool:
    """True when the plan leaned on straight-line fallbacks.

    That is when the solver total diverges from the routed multi-stop distance
    by more than ``ratio``, when any solver edge fell back, or when no road
    route could be produced at all.
    """
    ratio = settings.degraded_accuracy_ratio if ratio is None else ratio
    if solver is not None and solver.fallback_edges:
        return True
    if candidates and all(c.strategy is Strategy.DIRECT for c in candidates):
        return True
    for candidate in candidates:
        if candidate.aux_distance_meters is None or candidate.distance_meters <= 0:
            continue
        gap = abs(candidate.aux_distance_meters - candidate.distance_meters) / candidate.distance_meters
        if gap > ratio:
            return True
    return False


def _notice(candidates: Sequence[RouteCandidate]) -> PlanningNotice:
    if all(c.strategy is Strategy.DIRECT for c in candidates):
        return PlanningNotice(
            success=True,
            message="Road routing is unavailable; showing the straight-line distance only.",
        )
    return PlanningNotice(success=True, message=f"Found {len(candidates)} route options.")


async def plan_routes(
    request: PlanningRequest,
    client: Optional[RoutingClient],
    *,
    weights: ScoringWeights | None = None,
    timeout: float | None = None,
    max_parallel: int | None = None,
    max_exhaustive_stops: int | None = None,
) -> PlanningOutcome:
    """Generate, score and rank the candidate routes for one request."""
    validate_stops(request.stops)
    logger.info(
        "Planning request %s: %d stops (%d waypoints)",
        request.request_id,
        len(request.stops),
        len(request.waypoints),
    )

    generation = await generate_candidates(
        request,
        client,
        timeout=timeout,
        max_parallel=max_parallel,
        max_exhaustive_stops=max_exhaustive_stops,
    )
    ranked = rank_candidates(generation.candidates, weights)
    recommended = next(c for c in ranked if c.recommended)
    degraded = is_degraded(ranked, generation.solver)

    logger.info(
        "Routes prepared for %s: %s",
        request.request_id,
        [(c.rank, c.strategy.value, round(c.distance_meters), round(c.score, 3)) for c in ranked],
    )

    metadata: dict = {"total_routes": len(ranked), "has_alternatives": len(ranked) > 1}
    if generation.failures:
        metadata["failures"] = dict(generation.failures)
    return PlanningOutcome(
        request_id=request.request_id,
        candidates=ranked,
        recommended_id=recommended.id,
        notice=_notice(ranked),
        solver=generation.solver,
        degraded=degraded,
        metadata=metadata,
    )


class PlanningSession:
    """Candidate set and selection for one user, fed by successive requests.

    A newer request cancels the one still in flight; results of a superseded
    request are discarded and never reach the selection state.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.selection = RouteSelection()
        self.last_outcome: Optional[PlanningOutcome] = None
        self._current_request_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def current_request_id(self) -> Optional[str]:
        return self._current_request_id

    def is_current(self, request_id: str) -> bool:
        return self._current_request_id == request_id

    async def submit(
        self,
        request: PlanningRequest,
        client: Optional[RoutingClient],
        *,
        auto_select: bool = False,
        **plan_options,
    ) -> PlanningOutcome:
        previous = self._task
        if previous is not None and not previous.done():
            logger.info("Session %s: cancelling superseded request %s", self.session_id, self._current_request_id)
            previous.cancel()

        self._current_request_id = request.request_id
        self.selection.clear()
        task = asyncio.create_task(plan_routes(request, client, **plan_options))
        self._task = task

        try:
            outcome = await task
        except asyncio.CancelledError:
            if not self.is_current(request.request_id):
                raise RequestSuperseded(request.request_id) from None
            raise
        finally:
            if self._task is task:
                self._task = None

        if not self.is_current(request.request_id):
            logger.info("Session %s: discarding result of superseded request %s", self.session_id, request.request_id)
            raise RequestSuperseded(request.request_id)

        self.selection.replace(outcome.candidates, auto_select=auto_select)
        self.last_outcome = outcome
        return outcome


class SessionRegistry:
    """In-memory planning sessions keyed by session id."""

    def __init__(self, max_sessions: int = MAX_SESSIONS) -> None:
        self.max_sessions = max_sessions
        self._sessions: OrderedDict[str, PlanningSession] = OrderedDict()

    def get_or_create(self, session_id: str) -> PlanningSession:
        session = self._sessions.get(session_id)
        if session is None:
            session = PlanningSession(session_id)
            self._sessions[session_id] = session
            while len(self._sessions) > self.max_sessions:
                self._sessions.popitem(last=False)
        self._sessions.move_to_end(session_id)
        return session

    def get(self, session_id: str) -> PlanningSession:
        """Return an existing session; raises KeyError when unknown."""
        session = self._sessions[session_id]
        self._sessions.move_to_end(session_id)
        return session

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)


sessions = SessionRegistry()
