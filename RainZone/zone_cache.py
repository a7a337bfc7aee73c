"""Time-expiring, geometry-aware cache of rain zones."""
import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, Optional

from shapely.geometry import Point

from zone_data import RainZone, ZoneCacheEntry
from zone_errors import InvalidInputError


def zone_key(zone: RainZone) -> str:
    """Cache key for a zone: its own key, or one derived from its bounds and radar frame."""
    if zone.key:
        return zone.key
    min_x, min_y, max_x, max_y = zone.geometry.bounds
    return f"{min_y:.4f},{min_x:.4f},{max_y:.4f},{max_x:.4f}@{zone.radar_timestamp}"


class ZoneCache:
    """
    In-process zone cache looked up by spatial containment.

    Entries are keyed by zone key, so writing the same zone twice replaces
    the first entry. Expired entries are invisible to lookups and are
    reclaimed by purge_expired().

    The lock only guards the entry dictionary. Geometry tests run on a
    snapshot outside the lock, so concurrent resolvers never wait on each
    other's containment checks.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        """
        Args:
            clock: Time source returning UNIX seconds, injectable for tests
        """
        self._clock = clock
        self._entries: Dict[str, ZoneCacheEntry] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def put(self, zone: RainZone, ttl_seconds: float, is_raining: bool = True) -> ZoneCacheEntry:
        """
        Store a zone for `ttl_seconds` from now, replacing any entry with the same key.

        Returns:
            The stored entry

        Raises:
            InvalidInputError: If ttl_seconds is not positive
        """
        if ttl_seconds <= 0:
            raise InvalidInputError(f"Cache TTL must be positive, got {ttl_seconds}")

        now = self._clock()
        key = zone_key(zone)
        generated_at = min(zone.generated_at, now)
        stored = replace(zone, key=key, generated_at=generated_at, expires_at=now + ttl_seconds)
        entry = ZoneCacheEntry(zone=stored, is_raining=is_raining, expires_at=stored.expires_at)
        with self._lock:
            self._entries[key] = entry
        logging.debug(f"Cached zone {key} (raining={is_raining}, ttl={ttl_seconds}s)")
        return entry

    def lookup_entry(self, latitude: float, longitude: float) -> Optional[ZoneCacheEntry]:
        """
        Find the freshest live entry whose zone contains the point.

        Returns:
            ZoneCacheEntry, or None on a miss
        """
        now = self._clock()
        with self._lock:
            candidates = list(self._entries.values())

        point = Point(longitude, latitude)
        best: Optional[ZoneCacheEntry] = None
        for entry in candidates:
            if entry.is_expired(now):
                continue
            min_x, min_y, max_x, max_y = entry.zone.geometry.bounds
            if not (min_x <= longitude <= max_x and min_y <= latitude <= max_y):
                continue
            if not entry.zone.geometry.covers(point):
                continue
            if best is None or entry.zone.generated_at > best.zone.generated_at:
                best = entry
        return best

    def lookup_containing(self, latitude: float, longitude: float) -> Optional[RainZone]:
        """Freshest live zone containing the point, or None."""
        entry = self.lookup_entry(latitude, longitude)
        return entry.zone if entry else None

    def purge_expired(self) -> int:
        """
        Delete every expired entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logging.info(f"Purged {len(expired)} expired zone(s)")
        return len(expired)
