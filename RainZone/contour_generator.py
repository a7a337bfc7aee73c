"""
Contour generation - rain area polygons from precipitation samples.

The boundary is a concave hull of the significant samples. `tightness`
runs from 1.0 (tightest fit) down towards 0.0 (convex hull); it maps onto
the GEOS concave hull edge-length ratio as ratio = 1 - tightness.
"""
import logging
import time
from typing import Optional, Union

import shapely
from shapely.geometry import MultiPoint, MultiPolygon, Point, Polygon

from zone_data import Coordinate, PrecipitationGrid, RainZone
from zone_errors import InvalidInputError, NoPrecipitationError, PointNotEnclosedError

DEFAULT_MIN_INTENSITY = 0.1
DEFAULT_TIGHTNESS = 0.85
TIGHTNESS_STEP = 0.15
TIGHTNESS_FLOOR = 0.5
DEFAULT_ZONE_TTL = 900


def concave_hull(points: MultiPoint, tightness: float):
    """Concave hull of `points`; may degenerate to a Point or LineString."""
    ratio = min(max(1.0 - tightness, 0.0), 1.0)
    return shapely.concave_hull(points, ratio=ratio, allow_holes=False)


def generate_polygon(
    grid: PrecipitationGrid,
    target: Union[Coordinate, tuple],
    min_intensity: float = DEFAULT_MIN_INTENSITY,
    tightness: float = DEFAULT_TIGHTNESS,
    tightness_step: float = TIGHTNESS_STEP,
    tightness_floor: float = TIGHTNESS_FLOOR,
    ttl_seconds: float = DEFAULT_ZONE_TTL,
    key: Optional[str] = None,
    label: Optional[str] = None,
    now: Optional[float] = None
) -> RainZone:
    """
    Build the rain zone polygon that contains `target`.

    Starts at `tightness` and loosens by `tightness_step` until the hull
    covers the target (boundary counts as inside) or the next tightness
    would fall below `tightness_floor`.

    Args:
        grid: Sampled precipitation
        target: (latitude, longitude) the zone must contain
        min_intensity: Samples below this rate (mm/hr) are ignored
        tightness: Initial hull tightness, 1.0 = tightest
        tightness_step: Amount to loosen per retry
        tightness_floor: Loosest tightness tried
        ttl_seconds: Lifetime given to the returned zone
        key: Optional cache key stored on the zone
        label: Optional human-readable label
        now: Generation time (defaults to time.time())

    Returns:
        RainZone tagged with the tightness actually used

    Raises:
        NoPrecipitationError: If no sample reaches min_intensity
        PointNotEnclosedError: If no hull down to the floor covers the target
    """
    if tightness_step <= 0:
        raise InvalidInputError(f"Tightness step must be positive, got {tightness_step}")
    if ttl_seconds <= 0:
        raise InvalidInputError(f"Zone TTL must be positive, got {ttl_seconds}")

    target_lat, target_lng = target
    precip = [s for s in grid.samples if s.intensity >= min_intensity]
    if not precip:
        raise NoPrecipitationError(f"No samples >= {min_intensity} mm/hr")

    points = MultiPoint([(s.longitude, s.latitude) for s in precip])
    target_point = Point(target_lng, target_lat)

    current = tightness
    while current >= tightness_floor:
        hull = concave_hull(points, current)
        # fewer than 3 non-collinear samples give a point or line, never a zone
        if isinstance(hull, (Polygon, MultiPolygon)) and hull.area > 0 and hull.covers(target_point):
            logging.debug(f"Hull at tightness {current:.2f} contains ({target_lat}, {target_lng})")
            generated_at = time.time() if now is None else now
            intensities = [s.intensity for s in precip]
            return RainZone(
                geometry=hull,
                generated_at=generated_at,
                expires_at=generated_at + ttl_seconds,
                key=key,
                label=label,
                tightness=current,
                radar_timestamp=grid.timestamp,
                max_intensity=max(intensities),
                total_intensity=sum(intensities),
                sample_count=len(precip),
            )
        logging.debug(f"Hull at tightness {current:.2f} ({hull.geom_type}) misses target, loosening")
        current = round(current - tightness_step, 6)

    raise PointNotEnclosedError(
        f"({target_lat}, {target_lng}) not inside any hull down to tightness {tightness_floor}"
    )
