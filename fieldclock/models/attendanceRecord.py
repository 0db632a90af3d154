import enum

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from fieldclock.database.session import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EARLY_DEPARTURE = "early_departure"


class AttendanceRecord(Base):
    __tablename__ = "AttendanceRecords"
    __table_args__ = (UniqueConstraint("employee_id", "date", name="uq_employee_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    employee_id = Column(String(50), ForeignKey("Users.employee_id"), nullable=False)
    date = Column(Date, nullable=False)
    clock_in = Column(DateTime(timezone=True))
    clock_out = Column(DateTime(timezone=True))
    status = Column(
        Enum(AttendanceStatus, values_callable=lambda e: [m.value for m in e]),
        default=AttendanceStatus.PRESENT,
        nullable=False,
    )
    selfie_url = Column(String(500))
    clock_out_selfie_url = Column(String(500))
    clock_in_latitude = Column(Float)
    clock_in_longitude = Column(Float)
    clock_out_latitude = Column(Float)
    clock_out_longitude = Column(Float)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True))
    updated_at = Column(DateTime(timezone=True))

    employee = relationship("User", back_populates="attendance_records")
