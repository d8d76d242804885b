import logging
import threading
import uuid
from enum import Enum
from typing import Callable, Optional

from kioskinstall.domain.project import CapturedImage, GeoLocation, ImageCategory
from kioskinstall.services.geolocation_service import GeolocationError
from kioskinstall.services.watermark_service import FrameWatermarker, WatermarkError
from kioskinstall.utils.image_utils import encode_data_url
from kioskinstall.utils.timezone_utils import format_capture_timestamp, utc_now

logger = logging.getLogger(__name__)

WAITING_FOR_LOCATION_MESSAGE = "Waiting for GPS location..."


class CaptureState(str, Enum):
    AWAITING_LOCATION = "AWAITING_LOCATION"
    READY = "READY"
    CAPTURING = "CAPTURING"
    EMITTED = "EMITTED"


class CaptureError(Exception):
    status_code = 422

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class CaptureNotReadyError(CaptureError):
    status_code = 409


class CaptureSession:
    """
    One capture cycle for a photo category.

    The trigger stays disabled until a location reading exists. Each
    successful shot is watermarked, emitted to ``on_emit`` and the session
    returns to READY for the next shot.
    """

    def __init__(
        self,
        category: ImageCategory,
        watermarker: FrameWatermarker,
        on_emit: Callable[[CapturedImage], None],
        clock: Callable = utc_now,
        id_factory: Optional[Callable[[], str]] = None,
        timestamp_formatter: Callable = format_capture_timestamp,
    ):
        self.category = category
        self.watermarker = watermarker
        self.on_emit = on_emit
        self.clock = clock
        self.id_factory = id_factory or (lambda: uuid.uuid4().hex)
        self.timestamp_formatter = timestamp_formatter
        self.state = CaptureState.AWAITING_LOCATION
        self.location: Optional[GeoLocation] = None
        self.error_message: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def can_trigger(self) -> bool:
        return self.state is CaptureState.READY

    def locate(self, acquirer) -> GeoLocation:
        """Acquire the location used for every shot in this session."""
        if self.state is CaptureState.CAPTURING:
            raise CaptureNotReadyError("Capture already in progress")
        try:
            location = acquirer.acquire()
        except GeolocationError as e:
            self.error_message = e.message
            raise
        self.location = location
        self.error_message = None
        self.state = CaptureState.READY
        return location

    def trigger(self, grab_frame: Callable[[], bytes]) -> CapturedImage:
        """
        Grab a frame, watermark it and emit the finished image.

        Raises:
            CaptureNotReadyError: no location yet or a capture is in flight
            CaptureError: the frame could not be grabbed or stamped
        """
        with self._lock:
            if self.state is CaptureState.AWAITING_LOCATION or self.location is None:
                raise CaptureNotReadyError(self.error_message or WAITING_FOR_LOCATION_MESSAGE)
            if self.state is CaptureState.CAPTURING:
                raise CaptureNotReadyError("Capture already in progress")
            self.state = CaptureState.CAPTURING

        # every exit path leaves the session READY for the next shot
        try:
            try:
                raw_frame = grab_frame()
            except Exception as e:
                logger.warning(f"Frame grab failed for {self.category.value}: {e}")
                raise CaptureError("Unable to read camera frame") from e

            captured_at = self.clock()
            timestamp = self.timestamp_formatter(captured_at)
            try:
                stamped = self.watermarker.stamp(raw_frame, self.location, timestamp)
            except WatermarkError as e:
                logger.warning(f"Watermark failed for {self.category.value}: {e.message}")
                raise CaptureError(e.message) from e

            image = CapturedImage(
                id=self.id_factory(),
                data_url=encode_data_url(stamped),
                timestamp=timestamp,
                location=self.location,
                category=self.category,
            )
            self.state = CaptureState.EMITTED
            self.on_emit(image)
        finally:
            self.state = CaptureState.READY
        return image

    def describe(self) -> dict:
        return {
            'category': self.category.value,
            'state': self.state.value,
            'can_trigger': self.can_trigger,
            'location': self.location.model_dump() if self.location else None,
            'error': self.error_message,
        }
