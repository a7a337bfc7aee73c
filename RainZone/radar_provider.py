"""Radar provider abstraction - allows swapping different radar tile sources."""
from abc import ABC, abstractmethod

from zone_errors import HttpError, RadarProviderError

__all__ = ["RadarProviderBase", "RadarProviderError", "HttpError"]


class RadarProviderBase(ABC):
    """Abstract base class for rendered radar tile sources."""

    @abstractmethod
    def get_latest_timestamp(self) -> int:
        """
        Fetch the newest radar frame available upstream.

        Returns:
            int: UNIX timestamp identifying the radar frame

        Raises:
            RadarProviderError: If the provider fails to answer
        """
        pass

    @abstractmethod
    def fetch_tile(self, zoom: int, tile_x: int, tile_y: int, timestamp: int) -> bytes:
        """
        Fetch one rendered radar tile.

        Args:
            zoom: Slippy-map zoom level
            tile_x: Tile column
            tile_y: Tile row
            timestamp: Radar frame from get_latest_timestamp()

        Returns:
            bytes: Encoded raster image (PNG)

        Raises:
            HttpError: If the tile server answers with a non-2xx status
            RadarProviderError: If the request fails in transport
        """
        pass
