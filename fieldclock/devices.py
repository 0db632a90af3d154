"""Kiosk hardware: an OpenCV camera and a geolocator pinned to the kiosk's position."""
import asyncio
import logging
import threading

import cv2

from fieldclock.errors import CameraUnavailable, LocationUnavailable
from fieldclock.geofence import Coordinate, check_coordinate

logger = logging.getLogger(__name__)


class OpenCVStream:
    """Wraps an open ``cv2.VideoCapture``.

    Reads run in a worker thread; ``stop()`` waits for a read in progress before
    releasing the device, and reads after ``stop()`` fail instead of touching it.
    """

    def __init__(self, cap):
        self.cap = cap
        self.released = False
        self._lock = threading.Lock()

    def _read(self):
        with self._lock:
            if self.released:
                raise CameraUnavailable("Camera was released.")
            return self.cap.read()

    def _grab(self, quality):
        success, frame = self._read()
        if not success:
            raise CameraUnavailable("Could not read a frame from the camera.")
        ok, buffer = cv2.imencode(
            ".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality * 100)]
        )
        if not ok:
            raise CameraUnavailable("Could not encode the captured frame.")
        return buffer.tobytes()

    async def grab_frame(self, quality):
        return await asyncio.to_thread(self._grab, quality)

    def stop(self):
        with self._lock:
            if self.released:
                return
            self.released = True
            self.cap.release()


class OpenCVCamera:
    """Opens a local capture device. ``facing`` is ignored; kiosks have a single camera."""

    def __init__(self, index=0):
        self.index = index

    def _open(self, width, height):
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise CameraUnavailable("Cannot open camera.")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        return cap

    async def open(self, width, height, facing):
        cap = await asyncio.to_thread(self._open, width, height)
        logger.info("Camera %s opened at %sx%s", self.index, width, height)
        return OpenCVStream(cap)


class FixedGeolocator:
    def __init__(self, latitude=None, longitude=None):
        self.latitude = latitude
        self.longitude = longitude

    async def current_position(self, high_accuracy=True, timeout=10.0):
        if self.latitude is None or self.longitude is None:
            raise LocationUnavailable("Kiosk position is not configured.")
        return check_coordinate(Coordinate(self.latitude, self.longitude))
