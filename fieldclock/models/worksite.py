from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String

from fieldclock.database.session import Base
from fieldclock.geofence import Coordinate, WorkSite


class WorkSiteConfig(Base):
    """Admin managed work location. ``as_site()`` gives the value object the validator uses."""

    __tablename__ = "WorkSites"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(60), unique=True, nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    radius = Column(Float, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    time_created = Column(DateTime(timezone=True))

    creator_id = Column(String(50))

    def as_site(self):
        return WorkSite(Coordinate(self.latitude, self.longitude), self.radius)
