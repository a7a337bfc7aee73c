"""
Batch tooling: region zones, radar snapshots and mock post placement.

Used for cache warming and for building reproducible demo data; every
zone here is produced by the same contour generator the resolver uses.
"""
import json
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from contour_generator import (
    DEFAULT_MIN_INTENSITY,
    DEFAULT_TIGHTNESS,
    TIGHTNESS_FLOOR,
    TIGHTNESS_STEP,
    generate_polygon,
)
from radar_tile_sampler import RadarTileSampler
from region_detector import find_top_regions
from zone_cache import ZoneCache
from zone_data import BoundingBox, Coordinate, PrecipitationGrid, PrecipitationSample, RainZone, Region
from zone_errors import InvalidInputError, NoPrecipitationError, PointNotEnclosedError


@dataclass
class RadarSnapshot:
    """A stored precipitation grid for one named region."""
    region_name: str
    snapshot_timestamp: int
    center: Coordinate
    grid: PrecipitationGrid
    grid_resolution: float = 0.5
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        bounds = self.grid.bounds
        return {
            "region_name": self.region_name,
            "snapshot_timestamp": self.snapshot_timestamp,
            "center_lat": self.center.latitude,
            "center_lng": self.center.longitude,
            "grid_resolution": self.grid_resolution,
            "bounds": {
                "min_lat": bounds.min_lat,
                "max_lat": bounds.max_lat,
                "min_lng": bounds.min_lng,
                "max_lng": bounds.max_lng,
            },
            "points": [
                {"lat": s.latitude, "lng": s.longitude, "precip_mm": s.intensity}
                for s in self.grid.samples
            ],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RadarSnapshot":
        try:
            samples = [
                PrecipitationSample(float(p["lat"]), float(p["lng"]), float(p["precip_mm"]))
                for p in data["points"]
            ]
            timestamp = int(data["snapshot_timestamp"])
            grid = PrecipitationGrid(
                samples=samples,
                bounds=BoundingBox(**data["bounds"]),
                timestamp=timestamp,
            )
            return cls(
                region_name=data["region_name"],
                snapshot_timestamp=timestamp,
                center=Coordinate(float(data["center_lat"]), float(data["center_lng"])),
                grid=grid,
                grid_resolution=float(data.get("grid_resolution", 0.5)),
                metadata=data.get("metadata") or {},
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInputError(f"Malformed radar snapshot: {e}") from e


def save_snapshot(path: str, snapshot: RadarSnapshot) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot.to_dict(), f, indent=2)
    logging.info(f"Saved snapshot '{snapshot.region_name}' ({len(snapshot.grid.samples)} points) to {path}")


def load_snapshot(path: str) -> RadarSnapshot:
    with open(path, encoding="utf-8") as f:
        return RadarSnapshot.from_dict(json.load(f))


def zone_from_snapshot(snapshot: RadarSnapshot, ttl_seconds: float = 900) -> Optional[RainZone]:
    """Regenerate the zone around a snapshot's center, or None if it isn't raining there."""
    try:
        return generate_polygon(
            snapshot.grid,
            snapshot.center,
            ttl_seconds=ttl_seconds,
            key=f"snapshot:{snapshot.region_name}@{snapshot.snapshot_timestamp}",
            label=snapshot.region_name,
        )
    except (NoPrecipitationError, PointNotEnclosedError) as e:
        logging.info(f"No zone for snapshot '{snapshot.region_name}': {e}")
        return None


def generate_region_zones(
    sampler: RadarTileSampler,
    bbox: BoundingBox,
    timestamp: int,
    grid_step: float = 0.5,
    zoom: int = 4,
    count: int = 3,
    min_cluster_size: int = 10,
    distance_threshold: float = 5.0,
    ttl_seconds: float = 900,
    cache: Optional[ZoneCache] = None,
    min_intensity: float = DEFAULT_MIN_INTENSITY,
    tightness: float = DEFAULT_TIGHTNESS,
    tightness_step: float = TIGHTNESS_STEP,
    tightness_floor: float = TIGHTNESS_FLOOR
) -> List[Tuple[Region, RainZone]]:
    """
    Find the top rain regions in a wide box and build a zone for each.

    Each zone is contoured from its own region's samples around the
    region's most intense sample. When `cache` is given the zones are
    written into it. A region whose samples all fall below
    `min_intensity`, or whose hull cannot enclose its peak, is skipped.

    Raises:
        NoPrecipitationError: If the box holds no precipitation at all
        RadarProviderError: If every radar tile failed
    """
    grid = sampler.sample(bbox, grid_step, zoom, timestamp)
    regions = find_top_regions(
        grid.samples,
        count=count,
        min_cluster_size=min_cluster_size,
        distance_threshold=distance_threshold,
    )

    results = []
    for region in regions:
        region_grid = PrecipitationGrid(samples=region.samples, bounds=bbox, timestamp=timestamp)
        peak = region.peak
        try:
            zone = generate_polygon(
                region_grid,
                (peak.latitude, peak.longitude),
                min_intensity=min_intensity,
                tightness=tightness,
                tightness_step=tightness_step,
                tightness_floor=tightness_floor,
                ttl_seconds=ttl_seconds,
                key=f"region:{region.rank}@{timestamp}",
                label=region.name,
            )
        except (NoPrecipitationError, PointNotEnclosedError) as e:
            logging.warning(f"Skipping {region.name}: {e}")
            continue
        if cache is not None:
            zone = cache.put(zone, ttl_seconds).zone
        logging.info(
            f"{region.name}: {region.point_count} points, total {region.total_intensity:.1f} mm/hr, "
            f"center ({region.center.latitude:.2f}, {region.center.longitude:.2f})"
        )
        results.append((region, zone))
    return results


def random_point_in_zone(zone: RainZone, rng: Optional[random.Random] = None, max_attempts: int = 10000) -> Coordinate:
    """
    Rejection-sample a uniformly random point inside a zone.

    Raises:
        InvalidInputError: If no point was found within max_attempts
    """
    rng = rng or random.Random()
    min_lng, min_lat, max_lng, max_lat = zone.geometry.bounds
    for _ in range(max_attempts):
        lat = min_lat + rng.random() * (max_lat - min_lat)
        lng = min_lng + rng.random() * (max_lng - min_lng)
        if zone.contains(lat, lng):
            return Coordinate(lat, lng)
    raise InvalidInputError(f"No point found inside zone {zone.key} after {max_attempts} attempts")
