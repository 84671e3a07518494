"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...config import settings
from ...data.shops_repository import load_shops
from ...services.routing.osrm_client import check_health

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
async def health_osrm() -> dict:
    """Check OSRM service health."""
    healthy = await check_health()
    return {"service": "osrm", "base_url": settings.osrm_base_url, "healthy": healthy}


@router.get("/health/shops", status_code=status.HTTP_200_OK)
def health_shops() -> dict:
    """Report whether the shop catalogue can be loaded."""
    try:
        shops = load_shops()
    except (FileNotFoundError, ValueError) as exc:
        return {"configured": False, "shops_file": str(settings.shops_file), "error": str(exc)}
    return {"configured": True, "shops_file": str(settings.shops_file), "shops_count": len(shops)}
