"""Shop lookup endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, status

from ...data.shops_repository import load_shops
from ...schemas.shops import NearestShopsRequest, ShopModel, ShopsInAreaRequest, ShopsResponse
from ...services.shops import find_nearest_shops, find_shops_in_area

router = APIRouter(prefix="/shops", tags=["shops"])
logger = logging.getLogger(__name__)


def _catalogue():
    try:
        return load_shops()
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    except ValueError as exc:
        logger.exception("Shop catalogue could not be parsed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to load shops: {exc}",
        ) from exc


@router.post("/nearest", response_model=ShopsResponse, status_code=status.HTTP_200_OK)
def nearest_shops(payload: NearestShopsRequest) -> ShopsResponse:
    nearby = find_nearest_shops(
        _catalogue(),
        payload.latitude,
        payload.longitude,
        radius_km=payload.radius,
        limit=payload.limit,
    )
    data = [
        ShopModel(
            id=item.shop.shop_id,
            name=item.shop.name,
            address=item.shop.address,
            latitude=item.shop.latitude,
            longitude=item.shop.longitude,
            distance_km=round(item.distance_km, 2),
            bearing=round(item.bearing, 1),
        )
        for item in nearby
    ]
    return ShopsResponse(
        data=data,
        meta={
            "total": len(data),
            "radius_km": payload.radius,
            "user_coordinates": {"latitude": payload.latitude, "longitude": payload.longitude},
        },
    )


@router.post("/in-area", response_model=ShopsResponse, status_code=status.HTTP_200_OK)
def shops_in_area(payload: ShopsInAreaRequest) -> ShopsResponse:
    """Shops located inside a drawn polygon."""
    vertices = [(point.latitude, point.longitude) for point in payload.polygon]
    try:
        shops = find_shops_in_area(_catalogue(), vertices)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    data = [
        ShopModel(
            id=shop.shop_id,
            name=shop.name,
            address=shop.address,
            latitude=shop.latitude,
            longitude=shop.longitude,
        )
        for shop in shops
    ]
    return ShopsResponse(data=data, meta={"total": len(data)})
