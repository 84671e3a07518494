"""Shop lookup schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from .routing import CoordinateModel


class NearestShopsRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius: Optional[float] = Field(default=None, ge=0.1, le=100, description="Search radius in kilometers.")
    limit: Optional[int] = Field(default=None, ge=1, le=50)


class ShopsInAreaRequest(BaseModel):
    polygon: List[CoordinateModel] = Field(..., min_length=3)


class ShopModel(BaseModel):
    id: str
    name: str
    address: Optional[str] = None
    latitude: float
    longitude: float
    distance_km: Optional[float] = None
    bearing: Optional[float] = None


class ShopsResponse(BaseModel):
    success: bool = True
    data: List[ShopModel]
    meta: dict = Field(default_factory=dict)
