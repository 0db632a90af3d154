import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

from fieldclock.errors import InvalidCoordinate

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class WorkSite:
    center: Coordinate
    radius: float  # meters


@dataclass(frozen=True)
class GeofenceResult:
    """Outcome of a fence check. Both fields are None while the location is still unknown."""

    within_fence: Optional[bool] = None
    distance_meters: Optional[float] = None

    @property
    def is_unknown(self):
        return self.within_fence is None


UNKNOWN = GeofenceResult()


# ----------------------------------------Geolocation Logic/Algorithm--------------------------------------------
def check_coordinate(coordinate: Coordinate) -> Coordinate:
    lat, lng = coordinate.lat, coordinate.lng
    if math.isnan(lat) or math.isnan(lng):
        raise InvalidCoordinate()
    if not (-90 <= lat <= 90 and -180 <= lng <= 180):
        raise InvalidCoordinate()
    return coordinate


def haversine(lat1, lon1, lat2, lon2):
    """Great-circle distance in meters between two points given in decimal degrees."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = (
        math.sin(dphi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def distance(a: Coordinate, b: Coordinate) -> float:
    check_coordinate(a)
    check_coordinate(b)
    return haversine(a.lat, a.lng, b.lat, b.lng)


def validate(
    user_location: Optional[Coordinate],
    site: WorkSite,
    on_result: Optional[Callable[[GeofenceResult], None]] = None,
) -> GeofenceResult:
    """Check ``user_location`` against the circular fence around ``site``.

    A missing location yields the unknown result (awaiting location), never a verdict.
    The boundary is inclusive. ``on_result`` is called with every computed result.
    """
    if user_location is None:
        result = UNKNOWN
    else:
        meters = distance(user_location, site.center)
        result = GeofenceResult(within_fence=meters <= site.radius, distance_meters=meters)

    if on_result is not None:
        on_result(result)
    return result


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.1f}km"


class GeofenceMonitor:
    """Re-validates whenever the tracked location changes and reports to ``on_change``."""

    def __init__(self, site: WorkSite, on_change: Callable[[GeofenceResult], None]):
        self.site = site
        self.on_change = on_change
        self.location: Optional[Coordinate] = None
        self.result = UNKNOWN

    def update(self, location: Optional[Coordinate]) -> GeofenceResult:
        if location == self.location and not self.result.is_unknown:
            return self.result
        self.location = location
        self.result = validate(location, self.site, self.on_change)
        if not self.result.is_unknown:
            logger.debug(
                "Location %s is %s from site (within=%s)",
                location,
                format_distance(self.result.distance_meters),
                self.result.within_fence,
            )
        return self.result
