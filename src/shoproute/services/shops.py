"""Shop lookups around a position or inside an area."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from shapely.geometry import Point, Polygon

from ..config import settings
from ..models.domain import Shop
from .geospatial import bearing_degrees, haversine_km


@dataclass(slots=True)
class NearbyShop:
    shop: Shop
    distance_km: float
    bearing: float


def find_nearest_shops(
    shops: Sequence[Shop],
    latitude: float,
    longitude: float,
    radius_km: float | None = None,
    limit: int | None = None,
) -> list[NearbyShop]:
    """Shops within ``radius_km`` of the position, closest first."""
    radius_km = settings.nearest_shops_radius_km if radius_km is None else radius_km
    limit = settings.nearest_shops_limit if limit is None else limit

    nearby = []
    for shop in shops:
        distance = haversine_km(latitude, longitude, shop.latitude, shop.longitude)
        if distance <= radius_km:
            nearby.append(
                NearbyShop(
                    shop=shop,
                    distance_km=distance,
                    bearing=bearing_degrees(latitude, longitude, shop.latitude, shop.longitude),
                )
            )
    nearby.sort(key=lambda item: (item.distance_km, item.shop.shop_id))
    return nearby[:limit]


def find_shops_in_area(shops: Sequence[Shop], polygon_coords: Sequence[tuple[float, float]]) -> list[Shop]:
    """Shops inside the polygon given as (lat, lon) vertices."""
    if len(polygon_coords) < 3:
        raise ValueError("An area needs at least 3 vertices.")
    polygon = Polygon([(lon, lat) for lat, lon in polygon_coords])
    if not polygon.is_valid:
        raise ValueError("Area polygon is self-intersecting or degenerate.")
    return [shop for shop in shops if polygon.covers(Point(shop.longitude, shop.latitude))]
