"""
Radar tile sampling.

Turns a bounding box into precipitation samples by reading pixel colors
from rendered radar tiles. Points are grouped per tile so each tile is
downloaded once, and tiles are fetched in parallel with bounded concurrency.
"""
import io
import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Tuple

from PIL import Image, UnidentifiedImageError

from geo_grid import TILE_SIZE, generate_grid_points, lat_lng_to_tile
from radar_provider import RadarProviderBase, RadarProviderError
from zone_data import BoundingBox, Coordinate, PrecipitationGrid, PrecipitationSample
from zone_errors import NoGridPointsError, NoPrecipitationError

# Pixels with alpha below this are "no echo".
TRANSPARENT_ALPHA = 10

TileKey = Tuple[int, int]
RGBA = Tuple[int, int, int, int]


def color_to_dbz(color: RGBA) -> float:
    """
    Convert an RGBA pixel from the Universal Blue scheme to reflectivity.

    Reference points of the scheme:
    20 dBZ blue (#00a3e0), 35 dBZ yellow (#ffee00),
    50 dBZ red (#c10000), 65+ dBZ white.

    Args:
        color: (r, g, b, a) tuple, 0-255 each

    Returns:
        Approximate reflectivity in dBZ (0.0 for no echo)
    """
    r, g, b, alpha = color
    if alpha < TRANSPARENT_ALPHA:
        return 0.0

    if r > 240 and g > 240 and b > 240:
        # White: extreme precipitation
        return 65.0
    elif r > 180 and g < 50 and b < 50:
        # Red: very heavy rain
        return 50.0
    elif r > 200 and g > 200 and b < 100:
        # Yellow/orange: heavy rain
        return 35.0
    elif r < 100 and g > 150 and b < 100:
        # Green: moderate to heavy
        return 30.0
    elif r < 100 and g > 100 and b > 150:
        # Blue: moderate rain. Checked before cyan, so saturated cyan
        # (r < 100) reads as 20 dBZ; only muted cyan reaches the next band.
        return 20.0
    elif r < 150 and g > 150 and b > 150:
        # Cyan: light rain
        return 15.0

    brightness = (r + g + b) / 3.0
    if r < 150 and g < 150 and b < 150:
        # Dark/muted: very light precipitation, 0-10 dBZ
        return brightness / 255.0 * 10.0
    return brightness / 255.0 * 40.0


def dbz_to_mm_per_hour(dbz: float) -> float:
    """
    Marshall-Palmer Z-R relationship: Z = 200 * R^1.6, Z = 10^(dBZ/10).

    Returns:
        Rain rate in mm/hr (0.0 for dBZ <= 0)
    """
    if dbz <= 0:
        return 0.0
    z = 10 ** (dbz / 10.0)
    return max((z / 200.0) ** (1.0 / 1.6), 0.0)


def decode_tile(image_bytes: bytes) -> Image.Image:
    """
    Decode tile bytes into an RGBA raster.

    Raises:
        RadarProviderError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            return image.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise RadarProviderError(f"Failed to decode tile image: {e}")


def read_pixel(image: Image.Image, pixel_x: int, pixel_y: int) -> RGBA:
    """Read one pixel as RGBA; out-of-range reads count as transparent."""
    if not (0 <= pixel_x < image.width and 0 <= pixel_y < image.height):
        return (0, 0, 0, 0)
    value = image.getpixel((pixel_x, pixel_y))
    if len(value) == 3:
        r, g, b = value
        return (int(r), int(g), int(b), 255)
    r, g, b, a = value
    return (int(r), int(g), int(b), int(a))


class RadarTileSampler:
    """
    Samples precipitation intensity on a regular lattice from radar tiles.

    No caching happens here; every call downloads the tiles it needs.
    """

    def __init__(
        self,
        provider: RadarProviderBase,
        max_workers: int = 5,
        min_intensity: float = 0.1,
        tile_size: int = TILE_SIZE
    ):
        """
        Initialize sampler.

        Args:
            provider: Radar tile source
            max_workers: Maximum concurrent tile downloads
            min_intensity: Samples below this rate (mm/hr) are discarded
            tile_size: Tile edge in pixels, must match the provider's tiles
        """
        self.provider = provider
        self.max_workers = max_workers
        self.min_intensity = min_intensity
        self.tile_size = tile_size

    def sample(
        self,
        bbox: BoundingBox,
        grid_step: float,
        zoom: int,
        timestamp: int
    ) -> PrecipitationGrid:
        """
        Sample precipitation over a bounding box.

        Args:
            bbox: Area to sample
            grid_step: Lattice spacing in degrees
            zoom: Tile zoom level
            timestamp: Radar frame to read

        Returns:
            PrecipitationGrid with samples at or above min_intensity

        Raises:
            InvalidInputError: If grid_step is not positive
            NoGridPointsError: If the box produces no lattice points
            NoPrecipitationError: If no sample reaches min_intensity
            RadarProviderError: If every tile failed to download or decode
        """
        grid_points = generate_grid_points(
            bbox.min_lat, bbox.max_lat, bbox.min_lng, bbox.max_lng, grid_step
        )
        if not grid_points:
            raise NoGridPointsError(f"No grid points in {bbox}")

        points_by_tile = self.group_points_by_tile(grid_points, zoom)
        logging.info(
            f"Sampling {len(grid_points)} grid points across {len(points_by_tile)} tiles "
            f"(zoom={zoom}, frame={timestamp})"
        )

        samples: List[PrecipitationSample] = []
        failures = 0
        executor = ThreadPoolExecutor(max_workers=self.max_workers)
        try:
            future_to_tile = {
                executor.submit(self._sample_tile, tile, zoom, timestamp, points): tile
                for tile, points in points_by_tile.items()
            }
            for future in as_completed(future_to_tile):
                tile_x, tile_y = future_to_tile[future]
                try:
                    samples.extend(future.result())
                except RadarProviderError as e:
                    failures += 1
                    logging.warning(f"Failed to sample tile {tile_x},{tile_y}: {e}")
        except BaseException:
            # caller gave up; drop this request's pending downloads
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        else:
            executor.shutdown(wait=True)

        if failures == len(points_by_tile):
            raise RadarProviderError(f"All {failures} radar tiles failed for frame {timestamp}")

        samples = [s for s in samples if s.intensity >= self.min_intensity]
        if not samples:
            raise NoPrecipitationError(f"No precipitation >= {self.min_intensity} mm/hr in {bbox}")

        logging.info(f"Sampled {len(samples)} precipitation points ({failures} tiles failed)")
        return PrecipitationGrid(samples=samples, bounds=bbox, timestamp=timestamp)

    def group_points_by_tile(self, grid_points: List[Coordinate], zoom: int) -> Dict[TileKey, List[Coordinate]]:
        """Group lattice points by the tile they fall in."""
        points_by_tile: Dict[TileKey, List[Coordinate]] = defaultdict(list)
        for point in grid_points:
            position = lat_lng_to_tile(point.latitude, point.longitude, zoom, self.tile_size)
            points_by_tile[(position.tile_x, position.tile_y)].append(point)
        return dict(points_by_tile)

    def _sample_tile(
        self,
        tile: TileKey,
        zoom: int,
        timestamp: int,
        points: List[Coordinate]
    ) -> List[PrecipitationSample]:
        tile_x, tile_y = tile
        logging.debug(f"Sampling tile {tile_x},{tile_y} at zoom {zoom} with {len(points)} points")
        image = decode_tile(self.provider.fetch_tile(zoom, tile_x, tile_y, timestamp))

        results = []
        for point in points:
            position = lat_lng_to_tile(point.latitude, point.longitude, zoom, self.tile_size)
            color = read_pixel(image, position.pixel_x, position.pixel_y)
            intensity = dbz_to_mm_per_hour(color_to_dbz(color))
            results.append(PrecipitationSample(point.latitude, point.longitude, intensity))
        return results
