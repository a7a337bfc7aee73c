"""Rain zone domain model - pure data structures independent of any API."""
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Union

from shapely.geometry import MultiPolygon, Point, Polygon

from zone_errors import InvalidInputError

ZoneGeometry = Union[Polygon, MultiPolygon]

RAINING = "raining"
NOT_RAINING = "not_raining"


class Coordinate(NamedTuple):
    """A (latitude, longitude) pair in degrees."""
    latitude: float
    longitude: float

    def to_point(self) -> Point:
        """Shapely point in (longitude, latitude) order."""
        return Point(self.longitude, self.latitude)


class PrecipitationSample(NamedTuple):
    latitude: float
    longitude: float
    intensity: float  # mm/hr, >= 0


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned lat/lng box, inclusive on every edge."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def __post_init__(self):
        if self.min_lat > self.max_lat or self.min_lng > self.max_lng:
            raise InvalidInputError(f"Inverted bounding box: {self}")

    def contains(self, latitude: float, longitude: float) -> bool:
        return (self.min_lat <= latitude <= self.max_lat and
                self.min_lng <= longitude <= self.max_lng)


@dataclass
class PrecipitationGrid:
    """Samples drawn from a bounding box. Every sample lies inside `bounds`."""
    samples: List[PrecipitationSample]
    bounds: BoundingBox
    timestamp: Optional[int] = None  # radar frame the samples came from

    def __post_init__(self):
        for sample in self.samples:
            if not self.bounds.contains(sample.latitude, sample.longitude):
                raise InvalidInputError(f"Sample {sample} outside grid bounds {self.bounds}")


@dataclass
class RainZone:
    """
    Polygon covering an area that is currently experiencing precipitation.

    Geometry is planar and stored in (longitude, latitude) order, the same
    order GeoJSON uses. It is either a Polygon or a MultiPolygon; every
    consumer of `geometry` must handle both.
    """
    geometry: ZoneGeometry
    generated_at: float  # UNIX timestamp
    expires_at: float  # UNIX timestamp
    key: Optional[str] = None
    label: Optional[str] = None
    tightness: Optional[float] = None
    radar_timestamp: Optional[int] = None
    max_intensity: Optional[float] = None
    total_intensity: Optional[float] = None
    sample_count: Optional[int] = None

    def __post_init__(self):
        if not isinstance(self.geometry, (Polygon, MultiPolygon)):
            raise InvalidInputError(f"Zone geometry must be a polygon, got {self.geometry.geom_type}")
        if self.expires_at <= self.generated_at:
            raise InvalidInputError("Zone must expire after it was generated")

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if this zone is no longer readable (expires_at <= now)."""
        if now is None:
            now = time.time()
        return self.expires_at <= now

    def contains(self, latitude: float, longitude: float) -> bool:
        """Containment test; points on the boundary count as inside."""
        return self.geometry.covers(Point(longitude, latitude))

    @property
    def polygon(self) -> List[Tuple[float, float]]:
        """Outer ring of the zone's main polygon as (longitude, latitude) pairs."""
        return self.rings()[0][0]

    def rings(self) -> List[List[List[Tuple[float, float]]]]:
        """All rings, grouped per polygon. The first ring of each group is the shell."""
        geometry = self.geometry
        if isinstance(geometry, Polygon):
            return [_polygon_rings(geometry)]
        if isinstance(geometry, MultiPolygon):
            # largest part first so `polygon` is the dominant cell
            parts = sorted(geometry.geoms, key=lambda part: part.area, reverse=True)
            return [_polygon_rings(part) for part in parts]
        raise TypeError(f"Unsupported zone geometry: {type(geometry).__name__}")

    def to_geojson(self) -> Dict[str, Any]:
        """GeoJSON geometry object with [longitude, latitude] positions."""
        geometry = self.geometry
        if isinstance(geometry, Polygon):
            return {
                "type": "Polygon",
                "coordinates": _as_lists(_polygon_rings(geometry)),
            }
        if isinstance(geometry, MultiPolygon):
            return {
                "type": "MultiPolygon",
                "coordinates": [_as_lists(_polygon_rings(part)) for part in geometry.geoms],
            }
        raise TypeError(f"Unsupported zone geometry: {type(geometry).__name__}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "label": self.label,
            "generated_at": self.generated_at,
            "expires_at": self.expires_at,
            "radar_timestamp": self.radar_timestamp,
            "tightness": self.tightness,
            "max_intensity": self.max_intensity,
            "total_intensity": self.total_intensity,
            "sample_count": self.sample_count,
            "polygon": self.to_geojson(),
        }


@dataclass
class ZoneCacheEntry:
    zone: RainZone
    is_raining: bool
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return self.expires_at <= now


@dataclass
class Region:
    """A cluster of samples found by the region detector."""
    name: str  # e.g., "Region 1"
    rank: int  # 1 = most total precipitation
    center: Coordinate
    samples: List[PrecipitationSample]
    total_intensity: float
    max_intensity: float

    @property
    def point_count(self) -> int:
        return len(self.samples)

    @property
    def peak(self) -> PrecipitationSample:
        """The most intense member sample."""
        return max(self.samples, key=lambda sample: sample.intensity)


@dataclass
class Resolution:
    """Outcome of resolving a point: raining inside `zone`, or not raining."""
    status: str  # RAINING or NOT_RAINING
    zone: Optional[RainZone] = None
    from_cache: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_raining(self) -> bool:
        return self.status == RAINING

    @classmethod
    def raining(cls, zone: RainZone, from_cache: bool = False) -> "Resolution":
        return cls(status=RAINING, zone=zone, from_cache=from_cache)

    @classmethod
    def not_raining(cls, from_cache: bool = False, **details) -> "Resolution":
        return cls(status=NOT_RAINING, from_cache=from_cache, details=details)


def _polygon_rings(polygon: Polygon) -> List[List[Tuple[float, float]]]:
    rings = [list(polygon.exterior.coords)]
    rings.extend(list(interior.coords) for interior in polygon.interiors)
    return [[(float(x), float(y)) for x, y, *_ in ring] for ring in rings]


def _as_lists(rings: List[List[Tuple[float, float]]]) -> List[List[List[float]]]:
    return [[[x, y] for x, y in ring] for ring in rings]
