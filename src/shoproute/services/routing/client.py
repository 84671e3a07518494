"""Routing provider contract shared by the solver and the candidate generator."""

from __future__ import annotations

import asyncio
from typing import Protocol, Sequence

from ...models.domain import Coordinate
from .errors import RoutingTimeout
from .models import RouteResult


class RoutingClient(Protocol):
    """Anything that can route an ordered coordinate sequence.

    Implementations raise ``ProviderUnavailable``, ``NoRouteFound`` or
    ``RoutingTimeout`` on failure and never reorder the points they are given.
    """

    async def route(self, points: Sequence[Coordinate], *, alternatives: bool = False) -> RouteResult:
        ...


async def route_with_timeout(
    client: RoutingClient,
    points: Sequence[Coordinate],
    *,
    timeout: float | None,
    alternatives: bool = False,
) -> RouteResult:
    """Call ``client.route`` bounded by ``timeout`` seconds."""
    if len(points) < 2:
        raise ValueError("At least two coordinates are required for a route.")
    if timeout is None:
        return await client.route(points, alternatives=alternatives)
    try:
        return await asyncio.wait_for(client.route(points, alternatives=alternatives), timeout)
    except asyncio.TimeoutError as exc:
        raise RoutingTimeout(f"Routing request with {len(points)} points exceeded {timeout:.1f}s.") from exc
