"""RainViewer radar tile provider implementation."""
import logging
import requests
from radar_provider import RadarProviderBase, RadarProviderError, HttpError


class RainViewerProvider(RadarProviderBase):
    """
    Radar provider using the public RainViewer tile cache.

    Frame list: https://api.rainviewer.com/public/weather-maps.json
    Tiles are 256px PNGs in the "Universal Blue" color scheme, which is the
    scheme the sampler's color table is calibrated against.
    """

    MAPS_URL = "https://api.rainviewer.com/public/weather-maps.json"
    TILE_HOST = "https://tilecache.rainviewer.com"

    def __init__(
        self,
        timeout: float = 10,
        tile_size: int = 256,
        color_scheme: int = 2,
        smooth: int = 1,
        snow: int = 1
    ):
        """
        Initialize RainViewer provider.

        Args:
            timeout: HTTP request timeout in seconds (applies to every request)
            tile_size: Tile edge in pixels (256 or 512)
            color_scheme: RainViewer color scheme ID (2 = Universal Blue)
            smooth: 1 to request smoothed tiles
            snow: 1 to render snow in its own palette
        """
        self.timeout = timeout
        self.tile_size = tile_size
        self.color_scheme = color_scheme
        self.smooth = smooth
        self.snow = snow

    def get_latest_timestamp(self) -> int:
        """
        Fetch the newest past radar frame from the weather-maps index.

        Returns:
            int: UNIX timestamp of the newest radar frame

        Raises:
            RadarProviderError: If the request fails or the index is malformed
        """
        try:
            logging.info(f"Fetching radar frame index: {self.MAPS_URL}")
            response = requests.get(self.MAPS_URL, timeout=self.timeout)
            logging.debug(f"Frame index response status: {response.status_code}")

            if not response.ok:
                logging.error(f"Frame index request failed with status {response.status_code}")
                raise HttpError(
                    response.status_code,
                    f"HTTP {response.status_code}: {response.text[:200]}"
                )

            data = response.json()
            past = data.get("radar", {}).get("past", [])
            if not past:
                logging.error("Frame index missing 'radar.past' frames")
                raise RadarProviderError("Response missing 'radar.past' frames")

            timestamp = int(past[-1]["time"])
            logging.info(f"Latest radar frame: {timestamp}")
            return timestamp

        except requests.exceptions.RequestException as e:
            logging.error(f"Network error during frame index request: {e}")
            raise RadarProviderError(f"Network error: {str(e)}")
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logging.error(f"Failed to parse frame index: {e}", exc_info=True)
            raise RadarProviderError(f"Failed to parse response: {str(e)}")

    def tile_url(self, zoom: int, tile_x: int, tile_y: int, timestamp: int) -> str:
        # {host}/v2/radar/{ts}/{size}/{z}/{x}/{y}/{scheme}/{smooth}_{snow}.png
        return (
            f"{self.TILE_HOST}/v2/radar/{timestamp}/{self.tile_size}/"
            f"{zoom}/{tile_x}/{tile_y}/{self.color_scheme}/{self.smooth}_{self.snow}.png"
        )

    def fetch_tile(self, zoom: int, tile_x: int, tile_y: int, timestamp: int) -> bytes:
        """
        Download one radar tile.

        Returns:
            bytes: PNG image data

        Raises:
            HttpError: If the tile server answers with a non-2xx status
            RadarProviderError: If the request fails in transport
        """
        url = self.tile_url(zoom, tile_x, tile_y, timestamp)
        try:
            logging.debug(f"Fetching radar tile: {url}")
            response = requests.get(url, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logging.warning(f"Network error fetching tile {tile_x},{tile_y}: {e}")
            raise RadarProviderError(f"Network error: {str(e)}")

        if not response.ok:
            raise HttpError(
                response.status_code,
                f"Tile {zoom}/{tile_x}/{tile_y} returned HTTP {response.status_code}"
            )
        return response.content
