from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from fieldclock.models.attendanceRecord import AttendanceStatus
from fieldclock.schemas.geofence import CoordinateIn


class ClockInRequest(CoordinateIn):
    selfie_url: str


class ClockOutRequest(CoordinateIn):
    selfie_url: str | None = None


class SelfieUploaded(BaseModel):
    url: str


class AttendanceRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    employee_id: str
    date: date
    clock_in: datetime | None = None
    clock_out: datetime | None = None
    status: AttendanceStatus
    selfie_url: str | None = None
    clock_out_selfie_url: str | None = None
    clock_in_latitude: float | None = None
    clock_in_longitude: float | None = None
    clock_out_latitude: float | None = None
    clock_out_longitude: float | None = None
    notes: str | None = None


class AdminAttendanceOut(AttendanceRecordOut):
    username: str | None = None


class AttendanceSummary(BaseModel):
    date: date
    total: int
    present: int
    late: int
    absent: int
    early_departure: int
