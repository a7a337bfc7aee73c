"""
Grid and coordinate utilities.

Coordinate rounding, lattice generation over a bounding box, and the
Web Mercator slippy-map projection used to locate radar tile pixels.
"""
import math
from typing import List, NamedTuple

from zone_data import BoundingBox, Coordinate
from zone_errors import InvalidInputError

TILE_SIZE = 256
# Web Mercator is undefined at the poles; tiles stop at this latitude.
MAX_MERCATOR_LAT = 85.05112878

# Absorbs float error in (max - min) / step so exact multiples are not lost.
_STEP_EPSILON = 1e-9


class TilePosition(NamedTuple):
    tile_x: int
    tile_y: int
    pixel_x: int
    pixel_y: int


def validate_coordinate(latitude: float, longitude: float) -> Coordinate:
    """
    Check that a coordinate is finite and in range.

    Raises:
        InvalidInputError: If latitude is outside [-90, 90] or longitude outside [-180, 180]
    """
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(f"Invalid coordinate ({latitude!r}, {longitude!r})") from exc
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidInputError(f"Coordinate must be finite: ({lat}, {lng})")
    if not -90.0 <= lat <= 90.0:
        raise InvalidInputError(f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidInputError(f"Longitude out of range: {lng}")
    return Coordinate(lat, lng)


def precision_for_step(grid_step: float) -> int:
    """
    Decimal places needed to represent a grid step.

    0.1 -> 1, 0.01 -> 2, 0.2 -> 1, 1.0 -> 0.
    """
    if grid_step <= 0:
        raise InvalidInputError(f"Grid step must be positive, got {grid_step}")
    return max(0, round(-math.log10(grid_step)))


def round_coordinate(value: float, precision: int) -> float:
    """Round a coordinate to `precision` decimal places."""
    return round(float(value), precision)


def generate_grid_points(
    min_lat: float,
    max_lat: float,
    min_lng: float,
    max_lng: float,
    step: float
) -> List[Coordinate]:
    """
    Generate the lattice of points covering a bounding box.

    The lattice starts at (min_lat, min_lng) and advances by `step` in both
    directions without ever passing max_lat / max_lng. Each axis contributes
    floor((max - min) / step) + 1 values.

    Args:
        min_lat: Southern edge
        max_lat: Northern edge
        min_lng: Western edge
        max_lng: Eastern edge
        step: Lattice spacing in degrees

    Returns:
        List of Coordinate, row by row from south to north

    Raises:
        InvalidInputError: If step is not positive or the box is inverted
    """
    if not step > 0:
        raise InvalidInputError(f"Grid step must be positive, got {step}")
    if min_lat > max_lat or min_lng > max_lng:
        raise InvalidInputError(
            f"Inverted bounding box: lat {min_lat}..{max_lat}, lng {min_lng}..{max_lng}"
        )

    lats = _axis_values(min_lat, max_lat, step)
    lngs = _axis_values(min_lng, max_lng, step)
    return [Coordinate(lat, lng) for lat in lats for lng in lngs]


def _axis_values(start: float, stop: float, step: float) -> List[float]:
    count = math.floor((stop - start) / step + _STEP_EPSILON) + 1
    # index-based so float error does not accumulate along the axis
    return [min(start + i * step, stop) for i in range(count)]


def bounding_box_around(latitude: float, longitude: float, radius: float) -> BoundingBox:
    """Square box of +/- `radius` degrees around a point, clamped to valid ranges."""
    if radius <= 0:
        raise InvalidInputError(f"Search radius must be positive, got {radius}")
    return BoundingBox(
        min_lat=max(latitude - radius, -90.0),
        max_lat=min(latitude + radius, 90.0),
        min_lng=max(longitude - radius, -180.0),
        max_lng=min(longitude + radius, 180.0),
    )


def tile_count(zoom: int) -> int:
    """Number of tiles covering the world at a zoom level."""
    return (2 ** zoom) ** 2


def lat_lng_to_tile(latitude: float, longitude: float, zoom: int, tile_size: int = TILE_SIZE) -> TilePosition:
    """
    Project a coordinate onto the Web Mercator (EPSG:3857) tile grid.

    Args:
        latitude: Latitude in degrees (clamped to the Mercator limit)
        longitude: Longitude in degrees
        zoom: Slippy-map zoom level
        tile_size: Tile edge in pixels

    Returns:
        TilePosition with pixel coordinates clamped to [0, tile_size - 1]
    """
    if zoom < 0:
        raise InvalidInputError(f"Zoom must be >= 0, got {zoom}")
    n = 2 ** zoom
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, latitude))
    lat_rad = math.radians(lat)

    x = (longitude + 180.0) / 360.0 * n
    y = (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi) / 2.0 * n

    # longitude 180 lands on the far edge; keep it on the last tile
    tile_x = min(int(math.floor(x)), n - 1)
    tile_y = max(0, min(int(math.floor(y)), n - 1))

    pixel_x = _clamp_pixel(math.floor((x - tile_x) * tile_size), tile_size)
    pixel_y = _clamp_pixel(math.floor((y - tile_y) * tile_size), tile_size)
    return TilePosition(tile_x, tile_y, pixel_x, pixel_y)


def _clamp_pixel(value: int, tile_size: int) -> int:
    return max(0, min(int(value), tile_size - 1))
