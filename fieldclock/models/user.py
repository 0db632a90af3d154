from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from fieldclock.database.session import Base

class User(Base):
    __tablename__ = "Users"

    id = Column(Integer, autoincrement=True, primary_key=True)
    employee_id = Column(String(50), unique=True, nullable=False)
    email = Column(String(120), unique=True, nullable=False)
    username = Column(String(60))
    hashed_password = Column(String(128))
    role = Column(String(15), default="employee")
    last_seen_at = Column(DateTime(timezone=True))

    work_site_id = Column(Integer, ForeignKey("WorkSites.id"))

    work_site = relationship("WorkSiteConfig", foreign_keys=[work_site_id])
    attendance_records = relationship("AttendanceRecord", back_populates="employee")
