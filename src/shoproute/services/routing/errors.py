"""Exceptions raised by the route planning engine."""

from __future__ import annotations


class RoutePlanningError(Exception):
    """Base class for all planning errors."""


class RoutingError(RoutePlanningError):
    """A routing provider call failed. Always recoverable by falling back to direct distance."""

    kind = "routing_error"


class ProviderUnavailable(RoutingError):
    kind = "provider_unavailable"


class NoRouteFound(RoutingError):
    kind = "no_route_found"


class RoutingTimeout(RoutingError):
    kind = "timeout"


class UnknownCandidate(RoutePlanningError):
    def __init__(self, candidate_id: int) -> None:
        super().__init__(f"Candidate {candidate_id} is not part of the current route set.")
        self.candidate_id = candidate_id


class InvalidCoordinates(RoutePlanningError, ValueError):
    pass


class InsufficientStops(RoutePlanningError, ValueError):
    pass


class InvalidStops(RoutePlanningError, ValueError):
    pass


class OriginUnavailable(RoutePlanningError, ValueError):
    """The geolocation provider could not supply a starting position."""


class RequestSuperseded(RoutePlanningError):
    """A newer planning request replaced this one before it finished."""

    def __init__(self, request_id: str) -> None:
        super().__init__(f"Planning request '{request_id}' was superseded by a newer request.")
        self.request_id = request_id
