"""Tests for grid and coordinate utilities."""
import math
import pytest
from geo_grid import (
    bounding_box_around,
    generate_grid_points,
    lat_lng_to_tile,
    precision_for_step,
    round_coordinate,
    tile_count,
    validate_coordinate,
)
from zone_errors import InvalidInputError


@pytest.mark.parametrize("step, expected", [(1.0, 0), (0.1, 1), (0.2, 1), (0.01, 2), (0.001, 3)])
def test_precision_for_step(step, expected):
    assert precision_for_step(step) == expected


def test_precision_rejects_non_positive_step():
    with pytest.raises(InvalidInputError):
        precision_for_step(0)


@pytest.mark.parametrize("value", [52.527, 13.46, -87.04999, 0.0, 179.99, -89.951])
@pytest.mark.parametrize("precision", [0, 1, 2, 4])
def test_round_coordinate_idempotent(value, precision):
    once = round_coordinate(value, precision)
    assert round_coordinate(once, precision) == once


def test_round_coordinate_values():
    assert round_coordinate(52.527, 1) == 52.5
    assert round_coordinate(13.46, 1) == 13.5


def test_grid_points_count_and_edges():
    """Test lattice includes min, never exceeds max, and has the expected size."""
    points = generate_grid_points(40.0, 41.0, -87.0, -86.0, 0.25)

    assert len(points) == 5 * 5
    assert points[0] == (40.0, -87.0)
    assert all(40.0 <= p.latitude <= 41.0 for p in points)
    assert all(-87.0 <= p.longitude <= -86.0 for p in points)


def test_grid_points_step_not_dividing_box():
    points = generate_grid_points(0.0, 1.0, 0.0, 0.5, 0.3)
    lats = sorted({p.latitude for p in points})
    lngs = sorted({p.longitude for p in points})

    assert len(lats) == math.floor(1.0 / 0.3) + 1
    assert len(lngs) == math.floor(0.5 / 0.3) + 1
    assert max(lats) <= 1.0
    assert max(lngs) <= 0.5


def test_grid_points_float_step_keeps_exact_multiples():
    """0.2 steps over 4 degrees must include the far edge despite float error."""
    points = generate_grid_points(38.0, 42.0, -89.0, -85.0, 0.2)
    lats = sorted({p.latitude for p in points})

    assert len(lats) == 21
    assert lats[-1] == pytest.approx(42.0)
    assert lats[-1] <= 42.0


def test_grid_points_degenerate_box():
    assert generate_grid_points(40.0, 40.0, -87.0, -87.0, 0.5) == [(40.0, -87.0)]


@pytest.mark.parametrize("step", [0, -0.1])
def test_grid_points_invalid_step(step):
    with pytest.raises(InvalidInputError):
        generate_grid_points(40.0, 41.0, -87.0, -86.0, step)


def test_tile_count_quadruples_per_zoom():
    for zoom in range(0, 12):
        assert tile_count(zoom + 1) == 4 * tile_count(zoom)


def test_tile_subdivides_parent():
    """A point's tile at zoom+1 is one of the four children of its tile at zoom."""
    for zoom in range(0, 10):
        parent = lat_lng_to_tile(40.0, -87.0, zoom)
        child = lat_lng_to_tile(40.0, -87.0, zoom + 1)
        assert child.tile_x // 2 == parent.tile_x
        assert child.tile_y // 2 == parent.tile_y


def test_lat_lng_to_tile_known_values():
    # zoom 0 is a single tile; the origin sits in its middle
    assert lat_lng_to_tile(0.0, 0.0, 0) == (0, 0, 128, 128)
    # north-west quadrant at zoom 1
    position = lat_lng_to_tile(40.0, -87.0, 1)
    assert (position.tile_x, position.tile_y) == (0, 0)


@pytest.mark.parametrize("lat, lng", [(85.1, 180.0), (-85.1, -180.0), (90.0, 0.0), (-90.0, 179.999)])
def test_lat_lng_to_tile_clamps_pixels(lat, lng):
    for zoom in (0, 3, 6):
        position = lat_lng_to_tile(lat, lng, zoom)
        n = 2 ** zoom
        assert 0 <= position.tile_x < n
        assert 0 <= position.tile_y < n
        assert 0 <= position.pixel_x <= 255
        assert 0 <= position.pixel_y <= 255


def test_validate_coordinate():
    assert validate_coordinate(40, -87) == (40.0, -87.0)
    for lat, lng in [(91, 0), (0, 181), (float("nan"), 0), ("abc", 0), (None, 0)]:
        with pytest.raises(InvalidInputError):
            validate_coordinate(lat, lng)


def test_bounding_box_around_clamps():
    bbox = bounding_box_around(89.0, 179.0, 2.0)

    assert bbox.max_lat == 90.0
    assert bbox.max_lng == 180.0
    assert bbox.min_lat == 87.0
    assert bbox.min_lng == 177.0
