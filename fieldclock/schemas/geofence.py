from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class CoordinateIn(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class GeofenceCheck(BaseModel):
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


class GeofenceResultOut(BaseModel):
    within_fence: bool | None
    distance_meters: float | None
    radius: float | None = None
    site_name: str | None = None


class WorkSiteCreate(BaseModel):
    name: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    radius: float = Field(gt=0)


class WorkSiteOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    latitude: float
    longitude: float
    radius: float
    is_active: bool
    time_created: datetime | None = None
