"""Tests for the NWS provider."""
import pytest
import requests
from unittest.mock import Mock, patch
from shapely.geometry import MultiPolygon, Polygon
from nws_provider import NWSProvider, OutsideCoverageError, Station, parse_zone_geometry
from radar_provider import RadarProviderError, HttpError


@pytest.fixture
def provider():
    return NWSProvider(user_agent="RainZoneTests", timeout=5, max_workers=3)


def json_response(data, status=200):
    response = Mock()
    response.ok = 200 <= status < 300
    response.status_code = status
    response.json.return_value = data
    return response


def observation(precip_1h=None, precip_3h=None):
    return json_response({
        "properties": {
            "precipitationLastHour": {"unitCode": "wmoUnit:m", "value": precip_1h},
            "precipitationLast3Hours": {"unitCode": "wmoUnit:m", "value": precip_3h},
        }
    })


def stations(*ids):
    return [Station(id=i, name=i, latitude=39.8, longitude=-96.6) for i in ids]


def route(responses):
    """side_effect serving responses by URL suffix."""
    def _get(url, headers=None, timeout=None):
        for suffix, response in responses.items():
            if url.endswith(suffix):
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected url {url}")
    return _get


def test_get_point_data(provider):
    body = {
        "properties": {
            "forecastZone": "https://api.weather.gov/zones/forecast/KSZ009",
            "observationStations": "https://api.weather.gov/gridpoints/TOP/32,81/stations",
            "gridId": "TOP",
            "gridX": 32,
            "gridY": 81,
        }
    }
    with patch('nws_provider.requests.get') as mock_get:
        mock_get.return_value = json_response(body)

        point = provider.get_point_data(39.7456, -97.0892)

        assert point.zone_id == "KSZ009"
        assert point.stations_url.endswith("/stations")
        assert (point.grid_id, point.grid_x, point.grid_y) == ("TOP", 32, 81)
        assert mock_get.call_args.kwargs["headers"]["User-Agent"] == "RainZoneTests"
        assert mock_get.call_args.kwargs["timeout"] == 5


def test_get_point_data_outside_us(provider):
    with patch('nws_provider.requests.get') as mock_get:
        mock_get.return_value = json_response({"title": "Data Unavailable"}, status=404)

        with pytest.raises(OutsideCoverageError):
            provider.get_point_data(0.0, 0.0)


def test_get_stations_limits_to_ten(provider):
    features = [
        {
            "geometry": {"type": "Point", "coordinates": [-96.6 - i * 0.1, 39.8]},
            "properties": {"stationIdentifier": f"K{i:03d}", "name": f"Station {i}"},
        }
        for i in range(15)
    ]
    with patch('nws_provider.requests.get') as mock_get:
        mock_get.return_value = json_response({"features": features})

        result = provider.get_stations("https://api.weather.gov/gridpoints/TOP/32,81/stations")

        assert len(result) == 10
        assert result[0].id == "K000"
        assert result[0].latitude == 39.8
        assert result[0].longitude == -96.6


def test_any_station_with_rain_means_raining(provider):
    responses = {
        "/stations/DRY1/observations/latest": observation(0.0, 0.0),
        "/stations/WET/observations/latest": observation(None, 0.0013),
        "/stations/DRY2/observations/latest": observation(None, None),
    }
    with patch('nws_provider.requests.get', side_effect=route(responses)):
        assert provider.check_stations_for_rain(stations("DRY1", "WET", "DRY2")) is True


def test_no_station_with_rain(provider):
    responses = {
        "/stations/DRY1/observations/latest": observation(0.0, 0.0),
        "/stations/DRY2/observations/latest": observation(None, None),
    }
    with patch('nws_provider.requests.get', side_effect=route(responses)):
        assert provider.check_stations_for_rain(stations("DRY1", "DRY2")) is False


def test_failing_station_counts_as_dry(provider):
    responses = {
        "/stations/DOWN/observations/latest": requests.exceptions.Timeout("timed out"),
        "/stations/ERR/observations/latest": json_response({}, status=500),
        "/stations/WET/observations/latest": observation(0.002, None),
    }
    with patch('nws_provider.requests.get', side_effect=route(responses)):
        assert provider.check_stations_for_rain(stations("DOWN", "ERR")) is False
        assert provider.check_stations_for_rain(stations("DOWN", "ERR", "WET")) is True


def test_no_stations(provider):
    assert provider.check_stations_for_rain([]) is False


def test_get_zone_geometry_polygon(provider):
    body = {
        "geometry": {
            "type": "Polygon",
            "coordinates": [[[-97.0, 39.0], [-96.0, 39.0], [-96.0, 40.0], [-97.0, 40.0], [-97.0, 39.0]]],
        },
        "properties": {"name": "Washington"},
    }
    with patch('nws_provider.requests.get') as mock_get:
        mock_get.return_value = json_response(body)

        zone = provider.get_zone_geometry("https://api.weather.gov/zones/forecast/KSZ009")

        assert zone.zone_id == "KSZ009"
        assert zone.zone_name == "Washington"
        assert isinstance(zone.geometry, Polygon)


def test_parse_zone_geometry_multipolygon():
    geometry = parse_zone_geometry({
        "type": "MultiPolygon",
        "coordinates": [
            [[[0, 0], [1, 0], [1, 1], [0, 0]]],
            [[[5, 5], [6, 5], [6, 6], [5, 5]]],
        ],
    })
    assert isinstance(geometry, MultiPolygon)


@pytest.mark.parametrize("geojson", [None, {"type": "Point", "coordinates": [0, 0]}])
def test_parse_zone_geometry_rejects_non_polygons(geojson):
    with pytest.raises(RadarProviderError):
        parse_zone_geometry(geojson)


def test_http_error_propagates(provider):
    with patch('nws_provider.requests.get') as mock_get:
        mock_get.return_value = json_response({}, status=503)

        with pytest.raises(HttpError) as exc_info:
            provider.get_stations("https://api.weather.gov/gridpoints/TOP/32,81/stations")
        assert exc_info.value.status_code == 503
