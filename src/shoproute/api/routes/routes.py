"""Routing endpoints."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import PlainTextResponse

from ...data.shops_repository import get_shop
from ...models.domain import Coordinate, Stop, StopRole
from ...schemas.routing import (
    CandidateModel,
    GetRouteRequest,
    GetRouteResponse,
    PlanRequest,
    PlanResponse,
    RouteData,
    RouteMeta,
    SelectionResponse,
    SelectRequest,
)
from ...services.outputs.routing_formatter import candidates_to_csv, candidates_to_geojson
from ...services.routing import service as routing_service
from ...services.routing.models import Strategy
from ...services.routing.errors import (
    InsufficientStops,
    InvalidCoordinates,
    InvalidStops,
    OriginUnavailable,
    RequestSuperseded,
    UnknownCandidate,
)

router = APIRouter(prefix="/routes", tags=["routes"])
logger = logging.getLogger(__name__)


def _get_session(session_id: str) -> routing_service.PlanningSession:
    try:
        return routing_service.sessions.get(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown session '{session_id}'.") from exc


@router.post("/plan", response_model=PlanResponse, status_code=status.HTTP_200_OK)
async def plan(payload: PlanRequest) -> PlanResponse:
    session_id = payload.session_id or uuid.uuid4().hex
    try:
        request = routing_service.build_planning_request(
            payload.origin.to_domain() if payload.origin else None,
            destinations=[stop.to_domain(StopRole.DESTINATION) for stop in payload.destinations],
            waypoints=[stop.to_domain(StopRole.WAYPOINT) for stop in payload.waypoints],
            include_alternatives=payload.include_alternatives,
        )
        session = routing_service.sessions.get_or_create(session_id)
        outcome = await session.submit(
            request,
            routing_service.get_routing_client(),
            auto_select=payload.auto_select,
        )
    except (InsufficientStops, InvalidStops, InvalidCoordinates, OriginUnavailable) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"success": False, "message": f"No route could be computed: {exc}"},
        ) from exc
    except RequestSuperseded as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Error planning routes: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to plan routes: {exc}",
        ) from exc

    return PlanResponse.from_outcome(session_id, outcome, session.selection.current_selection())


def _shop_stop(payload: GetRouteRequest) -> Stop:
    if payload.shop_id is None:
        return Stop(
            id="shop",
            coordinate=Coordinate(payload.shop_latitude, payload.shop_longitude),
            label="Shop",
            role=StopRole.DESTINATION,
        )
    try:
        shop = get_shop(payload.shop_id)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if shop is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown shop '{payload.shop_id}'.")
    return Stop(id=shop.shop_id, coordinate=shop.coordinate, label=shop.name, role=StopRole.DESTINATION)


@router.post("/get-route", response_model=GetRouteResponse, status_code=status.HTTP_200_OK)
async def get_route(payload: GetRouteRequest) -> GetRouteResponse:
    """Route from the user's position to one shop: main route plus up to two alternatives."""
    shop_stop = _shop_stop(payload)
    try:
        request = routing_service.build_planning_request(
            Coordinate(payload.user_latitude, payload.user_longitude),
            destinations=[shop_stop],
            include_alternatives=payload.include_alternatives,
        )
        outcome = await routing_service.plan_routes(request, routing_service.get_routing_client())
    except (InvalidCoordinates, InvalidStops) as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"success": False, "message": "Invalid coordinates provided", "errors": str(exc)},
        ) from exc
    except Exception as exc:
        logger.exception("Error calculating route: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"success": False, "message": f"Error calculating route: {exc}"},
        ) from exc

    main = outcome.recommended
    others = [
        CandidateModel.from_domain(c)
        for c in outcome.candidates
        if c.id != main.id and c.strategy is not Strategy.DIRECT
    ]
    return GetRouteResponse(
        success=True,
        data=RouteData(main=CandidateModel.from_domain(main), alternatives=others[:2]),
        meta=RouteMeta(
            total_routes=len(outcome.candidates),
            has_alternatives=bool(others),
            degraded=outcome.degraded,
        ),
    )


@router.post("/sessions/{session_id}/select", response_model=SelectionResponse, status_code=status.HTTP_200_OK)
def select_candidate(session_id: str, payload: SelectRequest) -> SelectionResponse:
    session = _get_session(session_id)
    try:
        candidate = session.selection.select(payload.candidate_id)
    except UnknownCandidate as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return SelectionResponse(
        session_id=session_id,
        selected_id=candidate.id,
        candidate=CandidateModel.from_domain(candidate),
    )


@router.get("/sessions/{session_id}/selection", response_model=SelectionResponse, status_code=status.HTTP_200_OK)
def current_selection(session_id: str) -> SelectionResponse:
    session = _get_session(session_id)
    candidate = session.selection.selected_candidate()
    return SelectionResponse(
        session_id=session_id,
        selected_id=session.selection.current_selection(),
        candidate=CandidateModel.from_domain(candidate) if candidate else None,
    )


@router.get("/sessions/{session_id}/export", status_code=status.HTTP_200_OK)
def export_candidates(
    session_id: str,
    format: str = Query(default="geojson", pattern="^(geojson|csv)$"),
):
    """Current candidate set as a GeoJSON FeatureCollection or a CSV summary."""
    session = _get_session(session_id)
    candidates = session.selection.candidates
    if not candidates:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No routes planned for this session yet.")
    if format == "csv":
        return PlainTextResponse(candidates_to_csv(candidates), media_type="text/csv")
    return candidates_to_geojson(
        candidates,
        metadata={
            "session_id": session_id,
            "request_id": session.current_request_id,
            "selected_id": session.selection.current_selection(),
        },
    )
