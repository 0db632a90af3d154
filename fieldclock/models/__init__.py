from fieldclock.models.user import User
from fieldclock.models.worksite import WorkSiteConfig
from fieldclock.models.attendanceRecord import AttendanceRecord, AttendanceStatus

__all__ = ["User", "WorkSiteConfig", "AttendanceRecord", "AttendanceStatus"]
