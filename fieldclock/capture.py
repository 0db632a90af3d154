"""Selfie and location capture flow.

The orchestrator drives one capture at a time through::

    idle -> requesting_camera -> live_preview -> captured -> uploading -> done

with ``error`` reachable from every step. Location is always resolved before the
frame is grabbed, and the pair is kept or dropped together. ``cancel()`` releases
the camera synchronously from any state; anything still awaited when the flow is
cancelled is ignored once it completes.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol, Union

from fieldclock.errors import (
    AttendanceError,
    CameraUnavailable,
    CaptureBusy,
    LocationUnavailable,
    UploadFailed,
)
from fieldclock.geofence import Coordinate
from fieldclock.storage import SELFIE_CONTENT_TYPE, ObjectStorage, selfie_key

logger = logging.getLogger(__name__)

FRAME_WIDTH = 640
FRAME_HEIGHT = 480
FACING_MODE = "user"
JPEG_QUALITY = 0.8
LOCATION_TIMEOUT_SECONDS = 10.0


class CameraStream(Protocol):
    async def grab_frame(self, quality: float) -> bytes: ...

    def stop(self) -> None: ...


class Camera(Protocol):
    async def open(self, width: int, height: int, facing: str) -> CameraStream: ...


class Geolocator(Protocol):
    async def current_position(self, high_accuracy: bool, timeout: float) -> Coordinate: ...


class CaptureState(str, enum.Enum):
    IDLE = "idle"
    REQUESTING_CAMERA = "requesting_camera"
    LIVE_PREVIEW = "live_preview"
    CAPTURED = "captured"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


class CaptureAction(str, enum.Enum):
    CLOCK_IN = "clock_in"
    CLOCK_OUT = "clock_out"


@dataclass
class CaptureSession:
    stream: Optional[CameraStream] = None
    image: Optional[bytes] = None
    location: Optional[Coordinate] = None
    error: Optional[AttendanceError] = None

    @property
    def has_capture(self):
        return self.image is not None and self.location is not None


@dataclass(frozen=True)
class CaptureResult:
    selfie_url: str
    location: Coordinate


SuccessCallback = Callable[[str, Coordinate], Union[None, Awaitable[None]]]


class CaptureOrchestrator:
    def __init__(
        self,
        employee_id: str,
        action: CaptureAction,
        camera: Camera,
        geolocator: Geolocator,
        storage: ObjectStorage,
        on_success: Optional[SuccessCallback] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.employee_id = employee_id
        self.action = CaptureAction(action)
        self.camera = camera
        self.geolocator = geolocator
        self.storage = storage
        self.on_success = on_success
        self.clock = clock
        self.state = CaptureState.IDLE
        self.session = CaptureSession()
        # bumped on every cancel/retake so late results from a torn down flow are dropped
        self._generation = 0
        self._capturing = False

    @property
    def error(self) -> Optional[AttendanceError]:
        return self.session.error

    # ---------------------------------------- transitions
    async def start(self):
        if self._capturing or self.state not in (
            CaptureState.IDLE,
            CaptureState.ERROR,
            CaptureState.DONE,
        ):
            raise CaptureBusy()
        if self.session.stream is not None:
            self._release_stream()

        self.session = CaptureSession()
        self.state = CaptureState.REQUESTING_CAMERA
        generation = self._generation
        try:
            stream = await self.camera.open(FRAME_WIDTH, FRAME_HEIGHT, FACING_MODE)
        except Exception as e:
            if generation != self._generation:
                return
            logger.error(f"Error accessing camera: {e}")
            self._fail(CameraUnavailable())
            return

        if generation != self._generation:
            # cancelled while the camera was being opened
            stream.stop()
            return
        self.session.stream = stream
        self.state = CaptureState.LIVE_PREVIEW

    async def capture(self):
        live = self.session.stream is not None
        if self._capturing or not live or self.state not in (
            CaptureState.LIVE_PREVIEW,
            CaptureState.ERROR,
        ):
            raise CaptureBusy()

        self._capturing = True
        generation = self._generation
        try:
            await self._capture()
        finally:
            # a cancelled capture already handed the flag back in cancel()
            if generation == self._generation:
                self._capturing = False

    async def _capture(self):
        self.session.error = None
        generation = self._generation
        try:
            location = await asyncio.wait_for(
                self.geolocator.current_position(
                    high_accuracy=True, timeout=LOCATION_TIMEOUT_SECONDS
                ),
                timeout=LOCATION_TIMEOUT_SECONDS,
            )
        except Exception as e:
            if generation != self._generation:
                return
            logger.error(f"Error resolving location: {e!r}")
            self._fail(LocationUnavailable())
            return
        if generation != self._generation:
            return

        try:
            image = await self.session.stream.grab_frame(JPEG_QUALITY)
        except Exception as e:
            if generation != self._generation:
                return
            logger.error(f"Error capturing photo: {e}")
            self._fail(CameraUnavailable("Failed to capture photo. Please try again."))
            return
        if generation != self._generation:
            return

        self.session.image = image
        self.session.location = location
        self._release_stream()
        self.state = CaptureState.CAPTURED

    async def confirm(self) -> Optional[CaptureResult]:
        if self._capturing or not self.session.has_capture or self.state not in (
            CaptureState.CAPTURED,
            CaptureState.ERROR,
        ):
            raise CaptureBusy()

        self.state = CaptureState.UPLOADING
        self.session.error = None
        generation = self._generation
        now = self.clock() if self.clock else None
        key = selfie_key(self.employee_id, self.action.value, now)
        try:
            url = await self.storage.upload(key, self.session.image, SELFIE_CONTENT_TYPE)
        except Exception as e:
            if generation != self._generation:
                return None
            logger.error(f"Error uploading selfie {key}: {e}")
            self._fail(UploadFailed())
            return None

        if generation != self._generation:
            logger.info("Upload of %s finished after the capture was closed", key)
            return None

        result = CaptureResult(selfie_url=url, location=self.session.location)
        self.session = CaptureSession()
        self.state = CaptureState.DONE
        logger.info("Selfie for %s %s uploaded to %s", self.employee_id, self.action.value, url)

        if self.on_success is not None:
            outcome = self.on_success(result.selfie_url, result.location)
            if asyncio.iscoroutine(outcome):
                await outcome
        return result

    async def retake(self):
        if self._capturing or self.state not in (CaptureState.CAPTURED, CaptureState.ERROR):
            raise CaptureBusy()
        self._generation += 1
        self._release_stream()
        self.session = CaptureSession()
        self.state = CaptureState.IDLE
        await self.start()

    def cancel(self):
        self._generation += 1
        self._capturing = False
        self._release_stream()
        self.session = CaptureSession()
        self.state = CaptureState.IDLE

    # ---------------------------------------- helpers
    def _release_stream(self):
        stream, self.session.stream = self.session.stream, None
        if stream is not None:
            stream.stop()

    def _fail(self, error: AttendanceError):
        self.session.error = error
        self.state = CaptureState.ERROR
