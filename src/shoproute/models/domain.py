"""Domain models for coordinates, stops and shops."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..services.routing.errors import InvalidCoordinates


@dataclass(frozen=True, slots=True)
class Coordinate:
    """Immutable WGS84 position."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        lat, lon = self.latitude, self.longitude
        if not (isinstance(lat, (int, float)) and isinstance(lon, (int, float))):
            raise InvalidCoordinates(f"Coordinates must be numeric, got ({lat!r}, {lon!r}).")
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise InvalidCoordinates(f"Coordinates must be finite, got ({lat}, {lon}).")
        if lat < -90 or lat > 90:
            raise InvalidCoordinates(f"Latitude {lat} is outside [-90, 90].")
        if lon < -180 or lon > 180:
            raise InvalidCoordinates(f"Longitude {lon} is outside [-180, 180].")

    def as_lat_lon(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    def as_lon_lat(self) -> tuple[float, float]:
        return (self.longitude, self.latitude)


class StopRole(str, Enum):
    ORIGIN = "origin"
    DESTINATION = "destination"
    WAYPOINT = "waypoint"


@dataclass(frozen=True, slots=True)
class Stop:
    """A point a route must pass through."""

    id: str
    coordinate: Coordinate
    label: str = ""
    role: StopRole = StopRole.WAYPOINT


@dataclass(slots=True)
class Shop:
    """Represents a shop location from the catalogue."""

    shop_id: str
    name: str
    latitude: float
    longitude: float
    address: Optional[str] = None

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)
