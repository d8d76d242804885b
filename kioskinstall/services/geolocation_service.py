import logging
from enum import Enum
from typing import Optional

from pydantic import ValidationError

from kioskinstall.domain.project import GeoLocation

logger = logging.getLogger(__name__)


class GeolocationErrorKind(str, Enum):
    UNAVAILABLE = "UNAVAILABLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    TIMEOUT = "TIMEOUT"


ERROR_MESSAGES = {
    GeolocationErrorKind.PERMISSION_DENIED: "Unable to retrieve location. Please enable GPS.",
    GeolocationErrorKind.UNAVAILABLE: "Unable to retrieve location. Please enable GPS.",
    GeolocationErrorKind.TIMEOUT: "Location request timed out. Move to an open area and try again.",
}


class GeolocationError(Exception):
    status_code = 422

    def __init__(self, kind, message=None):
        kind = GeolocationErrorKind(kind)
        message = message or ERROR_MESSAGES[kind]
        super().__init__(message)
        self.kind = kind
        self.message = message


class DeviceLocationProvider:
    """
    Location provider backed by the reading the device posted.

    The device performs the platform location call with high accuracy
    enabled and reports either coordinates or the platform error code.
    """

    def __init__(self, latitude=None, longitude=None, error: Optional[str] = None):
        self.latitude = latitude
        self.longitude = longitude
        self.error = error

    @classmethod
    def from_payload(cls, payload: dict) -> "DeviceLocationProvider":
        return cls(
            latitude=payload.get('latitude'),
            longitude=payload.get('longitude'),
            error=payload.get('error'),
        )

    def current_position(self, high_accuracy: bool = True) -> GeoLocation:
        if self.error:
            try:
                kind = GeolocationErrorKind(self.error)
            except ValueError:
                kind = GeolocationErrorKind.UNAVAILABLE
            raise GeolocationError(kind)
        if self.latitude is None or self.longitude is None:
            raise GeolocationError(GeolocationErrorKind.UNAVAILABLE)
        try:
            return GeoLocation(lat=self.latitude, lng=self.longitude)
        except ValidationError as e:
            logger.warning(f"Rejected device location reading: {e}")
            raise GeolocationError(GeolocationErrorKind.UNAVAILABLE) from e


class GeolocationAcquirer:
    """One-shot location reading. No retries; failures surface to the caller."""

    def __init__(self, provider):
        self.provider = provider

    def acquire(self) -> GeoLocation:
        try:
            location = self.provider.current_position(high_accuracy=True)
        except GeolocationError as e:
            logger.info(f"Location acquisition failed: {e.kind.value}")
            raise
        logger.debug(f"Location acquired: {location.lat:.6f}, {location.lng:.6f}")
        return location
