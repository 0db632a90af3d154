"""Attendance error taxonomy.

Every error carries a ``kind`` and a message that can be shown to the user as-is.
None of them is fatal: the user can always start over from an idle capture.
"""


class AttendanceError(Exception):
    kind = "attendance_error"
    message = "Something went wrong. Please try again."

    def __init__(self, message=None):
        self.message = message or self.message
        super().__init__(self.message)


class CameraUnavailable(AttendanceError):
    kind = "camera_unavailable"
    message = "Camera access denied. Please allow camera permissions."


class LocationUnavailable(AttendanceError):
    kind = "location_unavailable"
    message = "Could not get your location. Please allow location access and try again."


class UploadFailed(AttendanceError):
    kind = "upload_failed"
    message = "Failed to upload selfie. Please try again."


class PersistenceFailed(AttendanceError):
    kind = "persistence_failed"
    message = "Failed to save attendance. Please try again."


class InvalidCoordinate(AttendanceError, ValueError):
    kind = "invalid_coordinate"
    message = "Latitude must be within [-90, 90] and longitude within [-180, 180]."


class NotClockedIn(AttendanceError):
    kind = "not_clocked_in"
    message = "You have not clocked in today."


class AlreadyClockedIn(AttendanceError):
    kind = "already_clocked_in"
    message = "You have already clocked in today."


class CaptureBusy(AttendanceError):
    kind = "capture_busy"
    message = "A capture is already in progress."
