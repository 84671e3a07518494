"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="SHOPROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Shop Route Planner API"
    api_prefix: str = "/api"
    shops_file: Path = Field(
        default=Path("data/shops.csv"),
        description="Shop catalogue (CSV or XLSX) with name, address and coordinates.",
    )
    osrm_base_url: Optional[str] = Field(
        default="http://router.project-osrm.org",
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "walking", "cycling"] = Field(
        default="driving",
        description="OSRM profile to use when computing routes.",
    )
    osrm_timeout_seconds: float = Field(default=10.0, gt=0.0)
    osrm_max_retries: int = Field(default=2, ge=0)
    osrm_backoff_seconds: float = Field(default=0.5, ge=0.0)
    osrm_max_parallel_requests: int = Field(default=8, ge=1)
    route_cache_ttl_seconds: int = Field(
        default=3600,
        ge=0,
        description="How long identical routing requests are served from memory. 0 disables the cache.",
    )
    max_stops_per_request: int = Field(default=25, ge=2)
    solver_max_exhaustive_stops: int = Field(
        default=10,
        ge=2,
        description="Above this stop count the solver switches from permutation search to nearest-neighbour + 2-opt.",
    )
    scoring_distance_weight: float = Field(default=0.6, ge=0.0)
    scoring_duration_weight: float = Field(default=0.4, ge=0.0)
    scoring_multi_stop_bonus: float = Field(default=0.05, ge=0.0, le=1.0)
    degraded_accuracy_ratio: float = Field(
        default=0.25,
        ge=0.0,
        description="Relative gap between solver total and routed distance that flags a degraded plan.",
    )
    nearest_shops_radius_km: float = Field(default=10.0, gt=0.0)
    nearest_shops_limit: int = Field(default=10, ge=1)
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:8000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("shops_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_origins(cls, value: Any) -> tuple[str, ...]:
        """Accept a JSON array or a comma-separated string from the environment."""
        if isinstance(value, (tuple, list)):
            return tuple(str(item) for item in value)
        if not isinstance(value, str):
            return tuple()
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return tuple(str(item) for item in parsed)
        return tuple(item.strip() for item in value.split(",") if item.strip())


settings = Settings()
