import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldclock.errors import AlreadyClockedIn, NotClockedIn, PersistenceFailed
from fieldclock.geofence import Coordinate, check_coordinate
from fieldclock.models import AttendanceRecord, AttendanceStatus

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 30


def utcnow():
    return datetime.now(timezone.utc)


class AttendanceRecorder:
    """Turns verified selfie/location pairs into the day's attendance record.

    One record exists per employee and calendar day of the organization's timezone.
    Clock-in creates it with status ``present``; clock-out only adds the clock-out
    fields. Status is never reclassified here.
    """

    def __init__(
        self,
        db: Session,
        tz: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
        allow_overwrite: bool = True,
    ):
        self.db = db
        self.tz = ZoneInfo(tz)
        self.clock = clock or utcnow
        self.allow_overwrite = allow_overwrite

    def today(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def record_for(self, employee_id: str, day: date) -> Optional[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
            .filter(AttendanceRecord.employee_id == employee_id, AttendanceRecord.date == day)
            .first()
        )

    def today_record(self, employee_id: str) -> Optional[AttendanceRecord]:
        return self.record_for(employee_id, self.today())

    def clock_in(
        self, employee_id: str, selfie_url: str, coordinate: Coordinate
    ) -> AttendanceRecord:
        check_coordinate(coordinate)
        now = self.clock()
        record = self.record_for(employee_id, now.astimezone(self.tz).date())

        if record is None:
            record = AttendanceRecord(
                employee_id=employee_id,
                date=now.astimezone(self.tz).date(),
                created_at=now,
            )
            self.db.add(record)
        elif record.clock_in is not None and not self.allow_overwrite:
            raise AlreadyClockedIn()

        record.clock_in = now
        record.status = AttendanceStatus.PRESENT
        record.selfie_url = selfie_url
        record.clock_in_latitude = coordinate.lat
        record.clock_in_longitude = coordinate.lng
        record.updated_at = now

        self._commit(record)
        logger.info("%s clocked in at %s", employee_id, now.isoformat())
        return record

    def clock_out(
        self,
        employee_id: str,
        selfie_url: Optional[str],
        coordinate: Coordinate,
    ) -> AttendanceRecord:
        check_coordinate(coordinate)
        now = self.clock()
        record = self.record_for(employee_id, now.astimezone(self.tz).date())
        if record is None or record.clock_in is None:
            raise NotClockedIn()

        record.clock_out = now
        record.clock_out_latitude = coordinate.lat
        record.clock_out_longitude = coordinate.lng
        if selfie_url:
            record.clock_out_selfie_url = selfie_url
        record.updated_at = now

        self._commit(record)
        logger.info("%s clocked out at %s", employee_id, now.isoformat())
        return record

    def history(
        self,
        employee_id: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> List[AttendanceRecord]:
        """Records of one employee, newest first."""
        query = self.db.query(AttendanceRecord).filter(
            AttendanceRecord.employee_id == employee_id
        )
        if start is not None:
            query = query.filter(AttendanceRecord.date >= start)
        if end is not None:
            query = query.filter(AttendanceRecord.date <= end)
        return query.order_by(AttendanceRecord.date.desc()).limit(limit).all()

    def records_on(
        self, day: date, status: Optional[AttendanceStatus] = None
    ) -> List[AttendanceRecord]:
        query = self.db.query(AttendanceRecord).filter(AttendanceRecord.date == day)
        if status is not None:
            query = query.filter(AttendanceRecord.status == status)
        return query.order_by(AttendanceRecord.clock_in).all()

    def summary(self, day: date) -> dict:
        """Totals of ``day``'s records, overall and per status."""
        counts = dict(
            self.db.query(AttendanceRecord.status, func.count(AttendanceRecord.id))
            .filter(AttendanceRecord.date == day)
            .group_by(AttendanceRecord.status)
            .all()
        )
        totals = {s.value: counts.get(s, 0) for s in AttendanceStatus}
        return {"date": day, "total": sum(totals.values()), **totals}

    def _commit(self, record):
        employee_id = record.employee_id
        try:
            self.db.commit()
            self.db.refresh(record)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error saving attendance for {employee_id}: {e}")
            raise PersistenceFailed() from e
