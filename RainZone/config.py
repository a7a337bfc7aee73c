"""Engine configuration loaded from .env / RAINZONE_* environment variables."""
import logging
import os
from dataclasses import dataclass, fields
from typing import Optional

from dotenv import load_dotenv

from geo_grid import precision_for_step


@dataclass
class ZoneEngineConfig:
    """
    Tunables for sampling, contouring, caching and upstream calls.

    Attributes:
        grid_step: Sampling lattice spacing in degrees; also fixes coordinate precision
        zoom: Radar tile zoom level
        search_radius: Half-width in degrees of the box sampled around a query point
        zone_ttl_seconds: Lifetime of cached zones (shorter than the radar refresh)
        min_intensity: Minimum rain rate in mm/hr counted as precipitation
        tightness: Initial concave hull tightness (1.0 = tightest)
        tightness_step: How much the hull loosens per retry
        tightness_floor: Loosest hull tried before giving up
        http_timeout: Per-request timeout in seconds for every outbound call
        max_workers: Maximum concurrent tile/station fetches
        timestamp_ttl_seconds: How long a fetched radar timestamp is reused
        max_retries: Attempts for radar timestamp lookups
        retry_delay_seconds: Base delay between timestamp attempts
        negative_cache_ttl_seconds: Lifetime of cached "not raining" answers (0 disables)
        negative_cache_radius: Half-width in degrees of a cached "not raining" square
        nws_user_agent: User-Agent sent to api.weather.gov
    """
    grid_step: float = 0.2
    zoom: int = 6
    search_radius: float = 2.0
    zone_ttl_seconds: float = 900.0
    min_intensity: float = 0.1
    tightness: float = 0.85
    tightness_step: float = 0.15
    tightness_floor: float = 0.5
    http_timeout: float = 10.0
    max_workers: int = 5
    timestamp_ttl_seconds: float = 60.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.0
    negative_cache_ttl_seconds: float = 0.0
    negative_cache_radius: float = 0.1
    nws_user_agent: str = "RainZone"

    @property
    def precision(self) -> int:
        """Decimal places used when rounding coordinates, derived from grid_step."""
        return precision_for_step(self.grid_step)


def load_config(env_file: Optional[str] = None) -> ZoneEngineConfig:
    """
    Build a config from defaults overridden by RAINZONE_<FIELD> variables.

    Example: RAINZONE_GRID_STEP=0.1 RAINZONE_ZONE_TTL_SECONDS=600

    Raises:
        SystemExit: If a variable cannot be parsed as the field's type
    """
    load_dotenv(env_file)
    overrides = {}
    for f in fields(ZoneEngineConfig):
        name = f"RAINZONE_{f.name.upper()}"
        raw = os.getenv(name)
        if raw is None or raw == "":
            continue
        field_type = type(f.default)
        try:
            overrides[f.name] = field_type(raw)
        except ValueError as exc:
            raise SystemExit(f"Invalid {name}={raw!r}: {exc}") from exc

    config = ZoneEngineConfig(**overrides)
    if config.grid_step <= 0:
        raise SystemExit(f"Invalid RAINZONE_GRID_STEP={config.grid_step}: must be positive")
    logging.info(
        "Configuration loaded: grid_step=%s zoom=%s radius=%s ttl=%ss",
        config.grid_step, config.zoom, config.search_radius, config.zone_ttl_seconds,
    )
    return config
