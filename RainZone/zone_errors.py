"""Exceptions raised by the rain zone engine."""
from typing import Optional


class RainZoneError(Exception):
    """Base exception for all rain zone errors."""
    pass


class InvalidInputError(RainZoneError, ValueError):
    """Raised for bad coordinates, non-positive steps/TTLs or malformed data."""
    pass


class NoGridPointsError(RainZoneError):
    """Raised when a bounding box yields no grid points to sample."""
    pass


class NoPrecipitationError(RainZoneError):
    """Raised when no sample reaches the minimum intensity."""
    pass


class PointNotEnclosedError(RainZoneError):
    """Raised when no hull down to the tightness floor contains the target point."""
    pass


class RadarProviderError(RainZoneError):
    """Raised when an upstream weather source cannot be reached or parsed."""
    pass


class HttpError(RadarProviderError):
    """Raised when an upstream weather source answers with a non-2xx status."""

    def __init__(self, status_code: int, message: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message or f"HTTP {status_code}")


class ServiceUnavailableError(RainZoneError):
    """
    Raised by the resolver when rain status is unknown.

    Always chained to the provider error that caused it. Callers should
    report "service unavailable" and retry later, never "not raining".
    """
    retryable = True
