"""Serializers for routing outputs."""

from __future__ import annotations

import csv
import io
from typing import Sequence

from ..routing.models import RouteCandidate


def candidate_to_feature(candidate: RouteCandidate) -> dict:
    """GeoJSON ``Feature`` for one candidate; coordinates are ``[lon, lat]``."""
    return {
        "type": "Feature",
        "id": candidate.id,
        "geometry": {
            "type": "LineString",
            "coordinates": [[point.longitude, point.latitude] for point in candidate.geometry],
        },
        "properties": {
            "name": candidate.name,
            "strategy": candidate.strategy.value,
            "visit_order": list(candidate.visit_order),
            "distance_meters": candidate.distance_meters,
            "duration_seconds": candidate.duration_seconds,
            "aux_distance_meters": candidate.aux_distance_meters,
            "score": candidate.score,
            "rank": candidate.rank,
            "recommended": candidate.recommended,
        },
    }


def candidates_to_geojson(candidates: Sequence[RouteCandidate], metadata: dict | None = None) -> dict:
    collection = {
        "type": "FeatureCollection",
        "features": [candidate_to_feature(candidate) for candidate in sorted(candidates, key=lambda c: c.rank)],
    }
    if metadata:
        collection["metadata"] = metadata
    return collection


def candidates_to_csv(candidates: Sequence[RouteCandidate]) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "rank",
        "id",
        "name",
        "strategy",
        "visit_order",
        "distance_meters",
        "duration_seconds",
        "aux_distance_meters",
        "score",
        "recommended",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for candidate in sorted(candidates, key=lambda c: c.rank):
        writer.writerow(
            {
                "rank": candidate.rank,
                "id": candidate.id,
                "name": candidate.name,
                "strategy": candidate.strategy.value,
                "visit_order": ">".join(candidate.visit_order),
                "distance_meters": round(candidate.distance_meters, 1),
                "duration_seconds": "" if candidate.duration_seconds is None else round(candidate.duration_seconds, 1),
                "aux_distance_meters": ""
                if candidate.aux_distance_meters is None
                else round(candidate.aux_distance_meters, 1),
                "score": round(candidate.score, 6),
                "recommended": candidate.recommended,
            }
        )
    return buffer.getvalue()
