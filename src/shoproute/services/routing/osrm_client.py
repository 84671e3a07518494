"""HTTP client for interacting with OSRM services."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from typing import Sequence

import httpx

from ...config import settings
from ...models.domain import Coordinate
from ..geospatial import direct_distance
from .errors import NoRouteFound, ProviderUnavailable, RoutingTimeout
from .models import RouteGeometry, RouteResult

# OSRM answers these codes when the points are not connected by the road network.
NO_ROUTE_CODES = frozenset({"NoRoute", "NoSegment", "NoMatch", "NoTrips"})
# Snapped endpoints further than this from the requested point get an explicit connector.
ENDPOINT_TOLERANCE_METERS = 1.0
DEFAULT_CACHE_SIZE = 512

logger = logging.getLogger(__name__)


class RouteCache:
    """Small in-memory TTL cache for routing responses."""

    def __init__(self, ttl_seconds: float, max_entries: int = DEFAULT_CACHE_SIZE) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: OrderedDict[tuple, tuple[float, RouteResult]] = OrderedDict()

    def get(self, key: tuple) -> RouteResult | None:
        if self.ttl_seconds <= 0:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < time.monotonic():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def put(self, key: tuple, value: RouteResult) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = (time.monotonic() + self.ttl_seconds, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        cache_ttl_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.attempt_timeout = _attempt_timeout(self.timeout, self.max_retries, self.backoff_seconds)
        ttl = cache_ttl_seconds if cache_ttl_seconds is not None else settings.route_cache_ttl_seconds
        self.cache = RouteCache(ttl)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.attempt_timeout, connect=min(self.attempt_timeout, 5.0)),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OSRMClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _cache_key(self, points: Sequence[Coordinate], alternatives: bool) -> tuple:
        rounded = tuple((round(p.latitude, 6), round(p.longitude, 6)) for p in points)
        return (self.profile, rounded, alternatives)

    async def route(self, points: Sequence[Coordinate], *, alternatives: bool = False) -> RouteResult:
        """Get the road route through ``points`` in the given order.

        Returns the primary route; provider alternatives (point-to-point only)
        are attached to ``RouteResult.alternatives`` when requested.
        """
        if len(points) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")
        alternatives = alternatives and len(points) == 2

        key = self._cache_key(points, alternatives)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("OSRM route cache hit for %d points", len(points))
            return cached

        coordinate_str = ";".join(f"{p.longitude},{p.latitude}" for p in points)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
            "alternatives": "true" if alternatives else "false",
        }
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"

        data = await self._get_json(url, params)
        result = parse_route_response(data, points)
        self.cache.put(key, result)
        return result

    async def _get_json(self, url: str, params: dict) -> dict:
        client = self._get_client()
        attempt = 0
        while True:
            try:
                response = await client.get(url, params=params)
                payload = _json_or_none(response)
                if payload is not None and payload.get("code") in NO_ROUTE_CODES:
                    raise NoRouteFound(payload.get("message") or f"OSRM returned {payload['code']}.")
                response.raise_for_status()
                if payload is None:
                    raise ProviderUnavailable("OSRM returned a non-JSON response.")
                return payload
            except httpx.HTTPStatusError as e:
                status_code = e.response.status_code
                if status_code < 500 and status_code != 429:
                    raise ProviderUnavailable(f"OSRM rejected the request ({status_code}).") from e
                attempt += 1
                if attempt > self.max_retries:
                    raise ProviderUnavailable(f"OSRM service error ({status_code}) at {self.base_url}.") from e
                await asyncio.sleep(self.backoff_seconds * attempt)
            except httpx.TimeoutException as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.warning("OSRM route request timed out after %d attempts: %s", self.max_retries, e)
                    raise RoutingTimeout(f"OSRM route request timed out: {e}") from e
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug("OSRM route timeout, retrying in %.1fs (attempt %d/%d)", wait_time, attempt, self.max_retries)
                await asyncio.sleep(wait_time)
            except (httpx.ConnectError, httpx.NetworkError, OSError) as e:
                attempt += 1
                if attempt > self.max_retries:
                    raise ProviderUnavailable(f"Failed to connect to OSRM service at {self.base_url}: {e}") from e
                wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                logger.debug("OSRM network error, retrying in %.1fs (attempt %d/%d): %s", wait_time, attempt, self.max_retries, e)
                await asyncio.sleep(wait_time)
            except httpx.HTTPError as e:
                raise ProviderUnavailable(f"OSRM request failed: {e}") from e


def _attempt_timeout(total: float, max_retries: int, backoff_seconds: float) -> float:
    """Per-attempt HTTP timeout so that every attempt and backoff fit in ``total``."""
    attempts = max_retries + 1
    backoff_total = sum(backoff_seconds * (2**i) for i in range(max_retries))
    budget = total - backoff_total
    if budget <= 0:
        return total / attempts
    return budget / attempts


def _json_or_none(response: httpx.Response) -> dict | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def parse_route_response(data: dict, points: Sequence[Coordinate]) -> RouteResult:
    """Convert an OSRM ``/route`` payload into a ``RouteResult``."""
    code = data.get("code")
    if code in NO_ROUTE_CODES:
        raise NoRouteFound(data.get("message") or f"OSRM returned {code}.")
    if code != "Ok":
        raise ProviderUnavailable(f"OSRM route request failed: {data.get('message', code or 'unknown error')}")

    routes = data.get("routes") or []
    if not routes:
        raise NoRouteFound("OSRM returned no routes.")

    parsed: list[RouteResult] = []
    for route in routes:
        try:
            distance = float(route["distance"])
            duration = float(route["duration"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderUnavailable("OSRM route is missing distance/duration.") from exc
        if distance < 0 or duration < 0:
            raise ProviderUnavailable("OSRM returned a negative distance or duration.")
        geometry = _build_geometry(route.get("geometry"), points)
        parsed.append(RouteResult(geometry=geometry, distance_meters=distance, duration_seconds=duration))

    primary, *others = parsed
    return RouteResult(
        geometry=primary.geometry,
        distance_meters=primary.distance_meters,
        duration_seconds=primary.duration_seconds,
        alternatives=tuple(others),
    )


def _build_geometry(raw_geometry, points: Sequence[Coordinate]) -> RouteGeometry:
    if isinstance(raw_geometry, str):
        decoded = decode_polyline(raw_geometry)
    elif isinstance(raw_geometry, dict):
        # GeoJSON LineString, [lon, lat] order
        decoded = [(lat, lon) for lon, lat in raw_geometry.get("coordinates", [])]
    else:
        decoded = []

    path = [Coordinate(lat, lon) for lat, lon in decoded]
    start, end = points[0], points[-1]
    if not path:
        return tuple(points)
    if direct_distance(path[0], start) > ENDPOINT_TOLERANCE_METERS:
        path.insert(0, start)
    if direct_distance(path[-1], end) > ENDPOINT_TOLERANCE_METERS:
        path.append(end)
    if len(path) < 2:
        path = [start, end]
    return tuple(path)


def decode_polyline(polyline: str, precision: int = 5) -> list[tuple[float, float]]:
    """Decode Google polyline string to list of (lat, lon) coordinates.

    OSRM uses Google's polyline encoding format for route geometry.
    """
    coordinates = []
    index = 0
    lat = 0
    lon = 0
    factor = 10**precision

    while index < len(polyline):
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                b = ord(polyline[index]) - 63
                index += 1
                result |= (b & 0x1F) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if (result & 1) else (result >> 1))
        lat += deltas[0]
        lon += deltas[1]
        coordinates.append((lat / factor, lon / factor))

    return coordinates


def encode_polyline(coordinates: Sequence[tuple[float, float]], precision: int = 5) -> str:
    """Encode (lat, lon) pairs with Google's polyline algorithm."""
    factor = 10**precision
    output: list[str] = []
    prev_lat = 0
    prev_lon = 0
    for lat, lon in coordinates:
        lat_i = int(round(lat * factor))
        lon_i = int(round(lon * factor))
        for delta in (lat_i - prev_lat, lon_i - prev_lon):
            value = ~(delta << 1) if delta < 0 else (delta << 1)
            while value >= 0x20:
                output.append(chr((0x20 | (value & 0x1F)) + 63))
                value >>= 5
            output.append(chr(value + 63))
        prev_lat, prev_lon = lat_i, lon_i
    return "".join(output)


async def check_health(base_url: str | None = None, transport: httpx.AsyncBaseTransport | None = None) -> bool:
    """Check OSRM service health by routing between two nearby points.

    Public OSRM endpoints may not have a /health endpoint, so we test
    connectivity by making a minimal route request.
    """
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    test_coords = "13.388860,52.517037;13.385983,52.496891"
    url = f"{base.rstrip('/')}/route/v1/{settings.osrm_profile}/{test_coords}"
    try:
        async with httpx.AsyncClient(timeout=5.0, transport=transport) as client:
            response = await client.get(url, params={"overview": "false"})
            response.raise_for_status()
            data = response.json()
        return data.get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
