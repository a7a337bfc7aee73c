"""Tests for the zone cache."""
import threading
import pytest
from shapely.geometry import box
from zone_cache import ZoneCache, zone_key
from zone_data import RainZone
from zone_errors import InvalidInputError


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ZoneCache(clock=clock)


def make_zone(min_lat=39.0, max_lat=41.0, min_lng=-88.0, max_lng=-86.0, key=None, generated_at=900.0):
    return RainZone(
        geometry=box(min_lng, min_lat, max_lng, max_lat),
        generated_at=generated_at,
        expires_at=generated_at + 600,
        key=key,
        radar_timestamp=1700000600,
    )


def test_put_then_lookup_containing(cache):
    cache.put(make_zone(key="a"), ttl_seconds=600)

    zone = cache.lookup_containing(40.0, -87.0)

    assert zone is not None
    assert zone.key == "a"
    assert zone.expires_at == 1600.0


def test_lookup_miss_outside_zone(cache):
    cache.put(make_zone(key="a"), ttl_seconds=600)

    assert cache.lookup_containing(45.0, -87.0) is None
    # lat/lng swapped must not match: containment is (longitude, latitude)
    assert cache.lookup_containing(-87.0, 40.0) is None


def test_lookup_on_boundary_hits(cache):
    cache.put(make_zone(key="a"), ttl_seconds=600)

    assert cache.lookup_containing(41.0, -86.0) is not None


def test_lookup_never_returns_expired(cache, clock):
    cache.put(make_zone(key="a"), ttl_seconds=600)

    clock.now = 1599.999
    assert cache.lookup_containing(40.0, -87.0) is not None
    clock.now = 1600.0  # expires_at == now counts as expired
    assert cache.lookup_containing(40.0, -87.0) is None


def test_lookup_prefers_freshest(cache, clock):
    cache.put(make_zone(key="old", generated_at=100.0), ttl_seconds=600)
    clock.now = 1100.0
    cache.put(make_zone(key="new", generated_at=1050.0, min_lat=39.5), ttl_seconds=600)

    assert cache.lookup_containing(40.0, -87.0).key == "new"
    # only the older zone covers this point
    assert cache.lookup_containing(39.2, -87.0).key == "old"


def test_put_is_upsert(cache, clock):
    cache.put(make_zone(key="a"), ttl_seconds=60)
    clock.now = 1050.0
    cache.put(make_zone(key="a"), ttl_seconds=600)

    assert len(cache) == 1
    assert cache.lookup_containing(40.0, -87.0).expires_at == 1650.0


def test_derived_key_for_unkeyed_zone(cache):
    zone = make_zone()
    cache.put(zone, ttl_seconds=60)
    cache.put(make_zone(), ttl_seconds=60)

    assert len(cache) == 1
    assert zone_key(zone) == "39.0000,-88.0000,41.0000,-86.0000@1700000600"


def test_purge_expired(cache, clock):
    cache.put(make_zone(key="short"), ttl_seconds=10)
    cache.put(make_zone(key="long"), ttl_seconds=1000)

    clock.now = 1500.0
    assert cache.purge_expired() == 1
    assert cache.purge_expired() == 0
    assert len(cache) == 1


def test_concurrent_purge_is_safe(cache, clock):
    for i in range(50):
        cache.put(make_zone(key=f"z{i}"), ttl_seconds=10)
    clock.now = 2000.0

    removed = []
    threads = [threading.Thread(target=lambda: removed.append(cache.purge_expired())) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(removed) == 50
    assert len(cache) == 0


def test_negative_entry(cache):
    cache.put(make_zone(key="dry"), ttl_seconds=60, is_raining=False)

    entry = cache.lookup_entry(40.0, -87.0)

    assert entry.is_raining is False


def test_non_positive_ttl_rejected(cache):
    with pytest.raises(InvalidInputError):
        cache.put(make_zone(key="a"), ttl_seconds=0)
