"""National Weather Service (api.weather.gov) client for station-based rain checks."""
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from shapely.geometry import MultiPolygon, Polygon, shape

from radar_provider import HttpError, RadarProviderError
from zone_data import ZoneGeometry


class OutsideCoverageError(RadarProviderError):
    """Raised when the NWS has no grid data for a point (outside the US)."""
    pass


@dataclass
class PointData:
    zone_id: str
    zone_url: str
    stations_url: str
    grid_id: Optional[str] = None
    grid_x: Optional[int] = None
    grid_y: Optional[int] = None


@dataclass
class Station:
    id: str
    name: str
    latitude: float
    longitude: float


@dataclass
class ForecastZone:
    zone_id: str
    zone_name: Optional[str]
    geometry: ZoneGeometry


class NWSProvider:
    """
    Client for the NWS API.

    Besides point metadata and forecast zone outlines, it offers a rain
    check that fans out over nearby observation stations and reports rain
    if any station measured precipitation in the last 1 or 3 hours.
    """

    BASE_URL = "https://api.weather.gov"
    MAX_STATIONS = 10

    def __init__(self, user_agent: str = "RainZone", timeout: float = 10, max_workers: int = 5):
        """
        Initialize NWS client.

        Args:
            user_agent: Identifying User-Agent (required by api.weather.gov)
            timeout: HTTP request timeout in seconds
            max_workers: Maximum concurrent station checks
        """
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_workers = max_workers

    def _get_json(self, url: str) -> Dict[str, Any]:
        try:
            logging.debug(f"NWS request: {url}")
            response = requests.get(
                url,
                headers={"User-Agent": self.user_agent, "Accept": "application/geo+json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during NWS request: {e}")
            raise RadarProviderError(f"Network error: {str(e)}")

        if not response.ok:
            raise HttpError(response.status_code, f"NWS HTTP {response.status_code}: {url}")
        try:
            return response.json()
        except ValueError as e:
            raise RadarProviderError(f"Failed to parse response: {str(e)}")

    def get_point_data(self, latitude: float, longitude: float) -> PointData:
        """
        Look up the forecast zone and observation stations URL for a point.

        Raises:
            OutsideCoverageError: If the point is outside NWS coverage (HTTP 404)
            RadarProviderError: For other failures
        """
        try:
            body = self._get_json(f"{self.BASE_URL}/points/{latitude:.4f},{longitude:.4f}")
        except HttpError as e:
            if e.status_code == 404:
                raise OutsideCoverageError(f"No NWS coverage at {latitude}, {longitude}") from e
            raise

        try:
            properties = body["properties"]
            zone_url = properties["forecastZone"]
            return PointData(
                zone_id=zone_url.rstrip("/").split("/")[-1],
                zone_url=zone_url,
                stations_url=properties["observationStations"],
                grid_id=properties.get("gridId"),
                grid_x=properties.get("gridX"),
                grid_y=properties.get("gridY"),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise RadarProviderError(f"Failed to parse point data: {str(e)}")

    def get_stations(self, stations_url: str) -> List[Station]:
        """Nearest observation stations (at most MAX_STATIONS), closest first."""
        body = self._get_json(stations_url)
        try:
            return [_parse_station(feature) for feature in body["features"][:self.MAX_STATIONS]]
        except (KeyError, IndexError, TypeError) as e:
            raise RadarProviderError(f"Failed to parse stations: {str(e)}")

    def check_station_precipitation(self, station: Station) -> bool:
        """True if the station's latest observation reports precipitation."""
        body = self._get_json(f"{self.BASE_URL}/stations/{station.id}/observations/latest")
        properties = body.get("properties") or {}
        for field_name in ("precipitationLastHour", "precipitationLast3Hours"):
            value = (properties.get(field_name) or {}).get("value")
            if value is not None and value > 0:
                return True
        return False

    def check_stations_for_rain(self, stations: List[Station]) -> bool:
        """
        Check stations in parallel; True if ANY station reports precipitation.

        A station that errors or times out counts as "no rain" for that station.
        """
        if not stations:
            return False

        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            future_to_station = {
                executor.submit(self.check_station_precipitation, station): station
                for station in stations
            }
            for future in as_completed(future_to_station):
                station = future_to_station[future]
                try:
                    if future.result():
                        logging.info(f"Station {station.id} reports precipitation")
                        return True
                except RadarProviderError as e:
                    logging.warning(f"Station {station.id} check failed: {e}")
            return False
        finally:
            # stop remaining checks once the answer is known
            executor.shutdown(wait=False, cancel_futures=True)

    def is_raining(self, latitude: float, longitude: float) -> bool:
        """Station-based rain check for a point."""
        point = self.get_point_data(latitude, longitude)
        return self.check_stations_for_rain(self.get_stations(point.stations_url))

    def get_zone_geometry(self, zone_url: str) -> ForecastZone:
        """
        Fetch a forecast zone outline.

        Raises:
            RadarProviderError: If the zone has no polygonal geometry
        """
        body = self._get_json(zone_url)
        geometry = parse_zone_geometry(body.get("geometry"))
        return ForecastZone(
            zone_id=zone_url.rstrip("/").split("/")[-1],
            zone_name=(body.get("properties") or {}).get("name"),
            geometry=geometry,
        )


def parse_zone_geometry(geojson: Optional[Dict[str, Any]]) -> ZoneGeometry:
    """Convert a GeoJSON geometry into a Polygon or MultiPolygon."""
    if not geojson:
        raise RadarProviderError("Zone response has no geometry")
    geometry_type = geojson.get("type")
    if geometry_type not in ("Polygon", "MultiPolygon"):
        raise RadarProviderError(f"Unsupported zone geometry type: {geometry_type}")
    geometry = shape(geojson)
    if isinstance(geometry, (Polygon, MultiPolygon)):
        return geometry
    raise RadarProviderError(f"Unsupported zone geometry: {geometry.geom_type}")


def _parse_station(feature: Dict[str, Any]) -> Station:
    longitude, latitude = feature["geometry"]["coordinates"][:2]
    properties = feature["properties"]
    return Station(
        id=properties["stationIdentifier"],
        name=properties.get("name", ""),
        latitude=float(latitude),
        longitude=float(longitude),
    )
