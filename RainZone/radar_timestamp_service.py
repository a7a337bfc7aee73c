"""Latest radar frame lookup with caching and retries."""
import logging
import time
from typing import Callable, Optional
from radar_provider import RadarProviderBase, RadarProviderError, HttpError


class RadarTimestampService:
    """
    Service that wraps a radar provider's frame index with caching and retries.

    Radar frames refresh roughly every 10 minutes, so the latest timestamp is
    cached briefly (default: 60 seconds) instead of being fetched on every
    cache miss in the resolver.
    """

    def __init__(
        self,
        provider: RadarProviderBase,
        cache_ttl_seconds: float = 60,
        max_retries: int = 3,
        retry_delay_seconds: float = 1.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize timestamp service.

        Args:
            provider: Radar provider to query
            cache_ttl_seconds: How long to reuse a fetched timestamp
            max_retries: Maximum number of attempts on transient errors
            retry_delay_seconds: Base delay between attempts (grows linearly)
            clock: Time source, injectable for tests
            sleep: Sleep function, injectable for tests
        """
        self.provider = provider
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_retries = max_retries
        self.retry_delay_seconds = retry_delay_seconds
        self._clock = clock
        self._sleep = sleep

        self._cached_timestamp: Optional[int] = None
        self._cache_time: float = 0.0

    def get_latest(self) -> int:
        """
        Get the latest radar timestamp, using cache if still fresh.

        Returns:
            int: Radar frame timestamp (may be cached)

        Raises:
            RadarProviderError: If all retries fail and no timestamp was ever fetched
        """
        current_time = self._clock()

        if self._cached_timestamp is not None:
            cache_age = current_time - self._cache_time
            if cache_age < self.cache_ttl_seconds:
                logging.debug(f"Using cached radar timestamp (age: {cache_age:.1f}s, TTL: {self.cache_ttl_seconds}s)")
                return self._cached_timestamp
            logging.debug(f"Radar timestamp expired (age: {cache_age:.1f}s), fetching new one")

        last_error = None
        for attempt in range(self.max_retries):
            try:
                logging.debug(f"Radar timestamp fetch attempt {attempt + 1}/{self.max_retries}")
                timestamp = self.provider.get_latest_timestamp()
                self._cached_timestamp = timestamp
                self._cache_time = current_time
                return timestamp
            except RadarProviderError as e:
                last_error = e
                logging.warning(f"Radar timestamp attempt {attempt + 1} failed: {e}")
                # 4xx means the request itself is wrong; retrying won't help
                if isinstance(e, HttpError) and 400 <= e.status_code < 500:
                    logging.error("Non-retryable error (4xx), stopping retries")
                    break
                if attempt < self.max_retries - 1:
                    retry_delay = self.retry_delay_seconds * (attempt + 1)
                    logging.info(f"Retrying in {retry_delay}s...")
                    self._sleep(retry_delay)

        if self._cached_timestamp is not None:
            cache_age = current_time - self._cache_time
            logging.warning(f"All retries failed, using stale radar timestamp (age: {cache_age:.1f}s)")
            return self._cached_timestamp

        logging.error(f"Failed to fetch radar timestamp after {self.max_retries} attempts")
        raise RadarProviderError(
            f"Failed to fetch radar timestamp after {self.max_retries} attempts: {last_error}"
        ) from last_error
