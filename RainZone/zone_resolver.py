"""Per-request rain zone resolution: cache first, radar sampling on a miss."""
import logging
from typing import Optional

from shapely.geometry import box

from config import ZoneEngineConfig
from contour_generator import generate_polygon
from geo_grid import bounding_box_around, round_coordinate, validate_coordinate
from radar_provider import RadarProviderError
from radar_tile_sampler import RadarTileSampler
from radar_timestamp_service import RadarTimestampService
from zone_cache import ZoneCache
from zone_data import BoundingBox, RainZone, Resolution
from zone_errors import NoPrecipitationError, PointNotEnclosedError, ServiceUnavailableError


class ZoneResolver:
    """
    Answers "is it raining here, and over which area?" for a single point.

    A point inside a live cached zone is answered without any network call.
    On a miss the resolver samples radar tiles in a box around the point,
    builds the contour containing it, caches it and returns it.

    Two callers missing the cache at the same time both compute the zone;
    the second write replaces the first.

    Expired zones are skipped on lookup but stay in the cache; a long-lived
    host should call `cache.purge_expired()` periodically (or
    `purge_expired_zones()` here).
    """

    def __init__(
        self,
        sampler: RadarTileSampler,
        timestamps: RadarTimestampService,
        cache: ZoneCache,
        config: Optional[ZoneEngineConfig] = None
    ):
        """
        Initialize resolver.

        Args:
            sampler: Radar tile sampler used on cache misses
            timestamps: Source of the latest radar frame
            cache: Shared zone cache
            config: Engine settings (defaults to ZoneEngineConfig())
        """
        self.sampler = sampler
        self.timestamps = timestamps
        self.cache = cache
        self.config = config or ZoneEngineConfig()

    def resolve(self, latitude: float, longitude: float) -> Resolution:
        """
        Resolve the rain zone containing a point.

        Returns:
            Resolution: raining with its zone, or not raining

        Raises:
            InvalidInputError: If the coordinate is out of range (before any network call)
            ServiceUnavailableError: If radar data could not be obtained
        """
        point = validate_coordinate(latitude, longitude)

        entry = self.cache.lookup_entry(point.latitude, point.longitude)
        if entry is not None:
            if entry.is_raining:
                logging.info(f"Cache HIT: rain zone {entry.zone.key} covers {point.latitude}, {point.longitude}")
                return Resolution.raining(entry.zone, from_cache=True)
            logging.info(f"Cache HIT: no rain at {point.latitude}, {point.longitude}")
            return Resolution.not_raining(from_cache=True)

        logging.info(f"Cache MISS: sampling radar around {point.latitude}, {point.longitude}")
        try:
            zone = self._compute_zone(point.latitude, point.longitude)
        except RadarProviderError as e:
            logging.error(f"Radar unavailable for {point.latitude}, {point.longitude}: {e}")
            raise ServiceUnavailableError(f"Radar service unavailable: {e}") from e
        except (NoPrecipitationError, PointNotEnclosedError) as e:
            logging.info(f"Not raining at {point.latitude}, {point.longitude}: {e}")
            self._cache_not_raining(point.latitude, point.longitude)
            return Resolution.not_raining(reason=type(e).__name__)

        entry = self.cache.put(zone, self.config.zone_ttl_seconds)
        zone = entry.zone
        logging.info(f"Computed rain zone {zone.key} from {zone.sample_count} samples (tightness={zone.tightness})")
        return Resolution.raining(zone)

    def purge_expired_zones(self) -> int:
        """Drop expired cache entries; returns how many were removed."""
        return self.cache.purge_expired()

    def search_box(self, latitude: float, longitude: float) -> BoundingBox:
        """
        Box sampled around a point.

        The center is snapped to the configured coordinate precision so
        nearby callers sample the same box and share a cache key.
        """
        precision = self.config.precision
        center_lat = round_coordinate(latitude, precision)
        center_lng = round_coordinate(longitude, precision)
        return bounding_box_around(center_lat, center_lng, self.config.search_radius)

    def _compute_zone(self, latitude: float, longitude: float) -> RainZone:
        bbox = self.search_box(latitude, longitude)
        timestamp = self.timestamps.get_latest()
        grid = self.sampler.sample(bbox, self.config.grid_step, self.config.zoom, timestamp)
        return generate_polygon(
            grid,
            (latitude, longitude),
            min_intensity=self.config.min_intensity,
            tightness=self.config.tightness,
            tightness_step=self.config.tightness_step,
            tightness_floor=self.config.tightness_floor,
            ttl_seconds=self.config.zone_ttl_seconds,
            key=self._zone_key(bbox, timestamp),
        )

    def _zone_key(self, bbox: BoundingBox, timestamp: int) -> str:
        p = self.config.precision
        return (
            f"{bbox.min_lat:.{p}f},{bbox.min_lng:.{p}f},"
            f"{bbox.max_lat:.{p}f},{bbox.max_lng:.{p}f}@{timestamp}"
        )

    def _cache_not_raining(self, latitude: float, longitude: float) -> None:
        ttl = self.config.negative_cache_ttl_seconds
        if ttl <= 0:
            return
        radius = self.config.negative_cache_radius
        square = bounding_box_around(latitude, longitude, radius)
        now = self.cache.now()
        zone = RainZone(
            geometry=box(square.min_lng, square.min_lat, square.max_lng, square.max_lat),
            generated_at=now,
            expires_at=now + ttl,
            key=f"dry:{latitude:.4f},{longitude:.4f}",
        )
        self.cache.put(zone, ttl, is_raining=False)
