"""Routing domain models."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from ...models.domain import Coordinate, Stop, StopRole

RouteGeometry = tuple[Coordinate, ...]


class Strategy(str, Enum):
    DIRECT = "direct"
    ROUTED = "routed"
    OPTIMAL_MULTI_STOP = "optimal_multi_stop"


# Tie-break preference when scores are equal; lower sorts first.
STRATEGY_PRIORITY = {
    Strategy.OPTIMAL_MULTI_STOP: 0,
    Strategy.ROUTED: 1,
    Strategy.DIRECT: 2,
}


@dataclass(frozen=True, slots=True)
class RouteResult:
    """A routed path returned by a routing provider."""

    geometry: RouteGeometry
    distance_meters: float
    duration_seconds: float
    alternatives: tuple["RouteResult", ...] = ()


@dataclass(frozen=True, slots=True)
class RouteCandidate:
    id: int
    name: str
    strategy: Strategy
    visit_order: tuple[str, ...]
    geometry: RouteGeometry
    distance_meters: float
    duration_seconds: Optional[float] = None
    aux_distance_meters: Optional[float] = None
    score: float = 0.0
    rank: int = 0
    recommended: bool = False

    def with_ranking(self, *, score: float, rank: int, recommended: bool) -> "RouteCandidate":
        return replace(self, score=score, rank=rank, recommended=recommended)


@dataclass(frozen=True, slots=True)
class SolverResult:
    visit_order: tuple[str, ...]
    total_distance_meters: float
    fallback_edges: int = 0
    exhaustive: bool = True


@dataclass(frozen=True, slots=True)
class PlanningRequest:
    stops: tuple[Stop, ...]
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    include_alternatives: bool = False

    @property
    def origin(self) -> Stop:
        return next(stop for stop in self.stops if stop.role is StopRole.ORIGIN)

    @property
    def destination(self) -> Stop:
        """The last non-origin stop; an explicit destination role wins when present."""
        destinations = [stop for stop in self.stops if stop.role is StopRole.DESTINATION]
        if destinations:
            return destinations[-1]
        return [stop for stop in self.stops if stop.role is not StopRole.ORIGIN][-1]

    @property
    def waypoints(self) -> tuple[Stop, ...]:
        origin, destination = self.origin, self.destination
        return tuple(stop for stop in self.stops if stop is not origin and stop is not destination)


@dataclass(frozen=True, slots=True)
class PlanningNotice:
    """Success/failure message handed to the notification layer."""

    success: bool
    message: str


@dataclass(slots=True)
class PlanningOutcome:
    request_id: str
    candidates: list[RouteCandidate]
    recommended_id: Optional[int]
    notice: PlanningNotice
    solver: Optional[SolverResult] = None
    degraded: bool = False
    metadata: dict = field(default_factory=dict)

    @property
    def recommended(self) -> Optional[RouteCandidate]:
        return next((c for c in self.candidates if c.id == self.recommended_id), None)
