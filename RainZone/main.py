"""Command-line driver for the rain zone engine: resolve, warm, regions, stations."""
import argparse
import json
import logging
import sys
from typing import List, Optional, Tuple

from config import ZoneEngineConfig, load_config
from demo_zones import generate_region_zones, random_point_in_zone
from nws_provider import NWSProvider
from radar_provider import RadarProviderError
from radar_tile_sampler import RadarTileSampler
from radar_timestamp_service import RadarTimestampService
from rainviewer_provider import RainViewerProvider
from zone_cache import ZoneCache
from zone_data import BoundingBox
from zone_errors import InvalidInputError, NoPrecipitationError, ServiceUnavailableError
from zone_resolver import ZoneResolver

EXIT_UNAVAILABLE = 3


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser("Rain zone engine")
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--env-file", default=None, help="Path to a .env file with RAINZONE_* settings")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="command", required=True)

    resolve = sub.add_parser("resolve", help="Resolve the rain zone at one point")
    resolve.add_argument("lat", type=float)
    resolve.add_argument("lng", type=float)

    warm = sub.add_parser("warm", help="Resolve several points to warm the zone cache")
    warm.add_argument("points", nargs="+", help="lat,lng pairs")

    regions = sub.add_parser("regions", help="Find the top rain regions in a box")
    regions.add_argument("min_lat", type=float)
    regions.add_argument("max_lat", type=float)
    regions.add_argument("min_lng", type=float)
    regions.add_argument("max_lng", type=float)
    regions.add_argument("--count", type=int, default=3)
    regions.add_argument("--grid-step", type=float, default=0.5)
    regions.add_argument("--zoom", type=int, default=4)
    regions.add_argument("--min-cluster-size", type=int, default=10)
    regions.add_argument("--distance-threshold", type=float, default=5.0)
    regions.add_argument("--mock-posts", type=int, default=0, help="Random points to place in each zone")

    stations = sub.add_parser("stations", help="Check NWS observation stations near a point")
    stations.add_argument("lat", type=float)
    stations.add_argument("lng", type=float)
    return parser.parse_args(argv)


def setup_logging(log_file: Optional[str], verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        handlers=handlers
    )


def build_resolver(config: ZoneEngineConfig, cache: Optional[ZoneCache] = None) -> ZoneResolver:
    provider = RainViewerProvider(timeout=config.http_timeout)
    timestamps = RadarTimestampService(
        provider=provider,
        cache_ttl_seconds=config.timestamp_ttl_seconds,
        max_retries=config.max_retries,
        retry_delay_seconds=config.retry_delay_seconds,
    )
    sampler = RadarTileSampler(
        provider=provider,
        max_workers=config.max_workers,
        min_intensity=config.min_intensity,
    )
    resolver = ZoneResolver(sampler, timestamps, cache or ZoneCache(), config)
    logging.info("Zone resolver ready (zone ttl=%ss, radius=%s deg)", config.zone_ttl_seconds, config.search_radius)
    return resolver


def parse_point(text: str) -> Tuple[float, float]:
    try:
        lat_text, lng_text = text.split(",")
        return float(lat_text), float(lng_text)
    except ValueError as exc:
        raise SystemExit(f"Invalid point {text!r}, expected LAT,LNG") from exc


def resolve_point(resolver: ZoneResolver, lat: float, lng: float) -> dict:
    try:
        resolution = resolver.resolve(lat, lng)
    except ServiceUnavailableError as err:
        logging.error("Weather service unavailable: %s", err)
        return {"latitude": lat, "longitude": lng, "error": "service_unavailable", "reason": str(err)}
    result = {
        "latitude": lat,
        "longitude": lng,
        "is_raining": resolution.is_raining,
        "from_cache": resolution.from_cache,
    }
    if resolution.zone is not None:
        result["zone"] = resolution.zone.to_dict()
    return result


def run_regions(config: ZoneEngineConfig, args: argparse.Namespace) -> List[dict]:
    provider = RainViewerProvider(timeout=config.http_timeout)
    timestamps = RadarTimestampService(provider, max_retries=config.max_retries)
    sampler = RadarTileSampler(provider, max_workers=config.max_workers, min_intensity=config.min_intensity)
    bbox = BoundingBox(args.min_lat, args.max_lat, args.min_lng, args.max_lng)

    try:
        zones = generate_region_zones(
            sampler,
            bbox,
            timestamps.get_latest(),
            grid_step=args.grid_step,
            zoom=args.zoom,
            count=args.count,
            min_cluster_size=args.min_cluster_size,
            distance_threshold=args.distance_threshold,
            ttl_seconds=config.zone_ttl_seconds,
            min_intensity=config.min_intensity,
            tightness=config.tightness,
            tightness_step=config.tightness_step,
            tightness_floor=config.tightness_floor,
        )
    except NoPrecipitationError:
        logging.info("No precipitation in %s", bbox)
        return []

    output = []
    for region, zone in zones:
        entry = {
            "name": region.name,
            "center": list(region.center),
            "point_count": region.point_count,
            "total_intensity": region.total_intensity,
            "max_intensity": region.max_intensity,
            "zone": zone.to_dict(),
        }
        if args.mock_posts:
            entry["mock_posts"] = [list(random_point_in_zone(zone)) for _ in range(args.mock_posts)]
        output.append(entry)
    return output


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_file, args.verbose)
    config = load_config(args.env_file)

    try:
        if args.command == "resolve":
            result = resolve_point(build_resolver(config), args.lat, args.lng)
            print(json.dumps(result, indent=2))
            return EXIT_UNAVAILABLE if "error" in result else 0

        if args.command == "warm":
            resolver = build_resolver(config)
            results = [resolve_point(resolver, *parse_point(p)) for p in args.points]
            print(json.dumps(results, indent=2))
            resolver.purge_expired_zones()
            logging.info("Cache holds %s zone(s) after warming", len(resolver.cache))
            return 0

        if args.command == "regions":
            print(json.dumps(run_regions(config, args), indent=2))
            return 0

        if args.command == "stations":
            nws = NWSProvider(config.nws_user_agent, config.http_timeout, config.max_workers)
            print(json.dumps({"latitude": args.lat, "longitude": args.lng,
                              "is_raining": nws.is_raining(args.lat, args.lng)}, indent=2))
            return 0
    except InvalidInputError as err:
        logging.error("Invalid input: %s", err)
        return 2
    except RadarProviderError as err:
        logging.error("Weather service unavailable: %s", err)
        return EXIT_UNAVAILABLE
    return 1


if __name__ == "__main__":
    sys.exit(main())
