"""Routing request/response schemas."""

from __future__ import annotations

from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, model_validator

from ..models.domain import Coordinate, Stop, StopRole
from ..services.routing.models import PlanningOutcome, RouteCandidate
from ..services.routing.osrm_client import encode_polyline


class CoordinateModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


class StopModel(CoordinateModel):
    id: str = Field(..., min_length=1, description="Identifier unique within the request (e.g. the shop id).")
    label: str = ""

    def to_domain(self, role: StopRole) -> Stop:
        return Stop(id=self.id, coordinate=Coordinate(self.latitude, self.longitude), label=self.label, role=role)


class PlanRequest(BaseModel):
    session_id: Optional[str] = Field(
        default=None,
        description="Planning session; a new request on the same session cancels the previous one.",
    )
    origin: Optional[CoordinateModel] = Field(
        default=None,
        description="Current position from the geolocation provider.",
    )
    destinations: List[StopModel] = Field(..., min_length=1)
    waypoints: List[StopModel] = Field(default_factory=list)
    include_alternatives: bool = Field(
        default=False,
        description="Ask the routing provider for alternative routes (point-to-point requests only).",
    )
    auto_select: bool = Field(default=False, description="Select the recommended candidate once planning completes.")


class CandidateModel(BaseModel):
    id: int
    name: str
    strategy: str
    visit_order: List[str]
    geometry: List[Tuple[float, float]] = Field(..., description="Polyline as [latitude, longitude] pairs.")
    polyline: str = Field(..., description="Geometry encoded with the Google polyline algorithm (precision 5).")
    distance_meters: float
    duration_seconds: Optional[float] = None
    aux_distance_meters: Optional[float] = None
    score: float
    rank: int
    recommended: bool

    @classmethod
    def from_domain(cls, candidate: RouteCandidate) -> "CandidateModel":
        points = [point.as_lat_lon() for point in candidate.geometry]
        return cls(
            id=candidate.id,
            name=candidate.name,
            strategy=candidate.strategy.value,
            visit_order=list(candidate.visit_order),
            geometry=points,
            polyline=encode_polyline(points),
            distance_meters=candidate.distance_meters,
            duration_seconds=candidate.duration_seconds,
            aux_distance_meters=candidate.aux_distance_meters,
            score=candidate.score,
            rank=candidate.rank,
            recommended=candidate.recommended,
        )


class SolverSummaryModel(BaseModel):
    visit_order: List[str]
    total_distance_meters: float
    fallback_edges: int
    exhaustive: bool


class NoticeModel(BaseModel):
    success: bool
    message: str


class PlanResponse(BaseModel):
    session_id: str
    request_id: str
    candidates: List[CandidateModel]
    recommended_id: Optional[int]
    selected_id: Optional[int] = None
    degraded: bool = False
    solver: Optional[SolverSummaryModel] = None
    notice: NoticeModel
    metadata: dict = Field(default_factory=dict)

    @classmethod
    def from_outcome(cls, session_id: str, outcome: PlanningOutcome, selected_id: Optional[int]) -> "PlanResponse":
        solver = outcome.solver
        return cls(
            session_id=session_id,
            request_id=outcome.request_id,
            candidates=[CandidateModel.from_domain(c) for c in outcome.candidates],
            recommended_id=outcome.recommended_id,
            selected_id=selected_id,
            degraded=outcome.degraded,
            solver=SolverSummaryModel(
                visit_order=list(solver.visit_order),
                total_distance_meters=solver.total_distance_meters,
                fallback_edges=solver.fallback_edges,
                exhaustive=solver.exhaustive,
            )
            if solver
            else None,
            notice=NoticeModel(success=outcome.notice.success, message=outcome.notice.message),
            metadata=outcome.metadata,
        )


class GetRouteRequest(BaseModel):
    user_latitude: float = Field(..., ge=-90, le=90)
    user_longitude: float = Field(..., ge=-180, le=180)
    shop_id: Optional[str] = Field(default=None, description="Catalogue id; takes precedence over shop coordinates.")
    shop_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    shop_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    include_alternatives: bool = True

    @model_validator(mode="after")
    def _require_shop(self) -> "GetRouteRequest":
        if self.shop_id is None and (self.shop_latitude is None or self.shop_longitude is None):
            raise ValueError("Either shop_id or both shop_latitude and shop_longitude are required.")
        return self


class RouteData(BaseModel):
    main: CandidateModel
    alternatives: List[CandidateModel]


class RouteMeta(BaseModel):
    total_routes: int
    has_alternatives: bool
    degraded: bool = False


class GetRouteResponse(BaseModel):
    success: bool
    data: RouteData
    meta: RouteMeta


class SelectRequest(BaseModel):
    candidate_id: int


class SelectionResponse(BaseModel):
    session_id: str
    selected_id: Optional[int]
    candidate: Optional[CandidateModel] = None
