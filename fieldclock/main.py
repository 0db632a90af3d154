import logging
import os
from datetime import date, datetime, timezone
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette import status

import fieldclock.api.auth as auth
from fieldclock.api.auth import (
    get_current_admin_user,
    get_current_manager_user,
    get_current_user,
)
from fieldclock.api.deps import (
    clock_dependency,
    db_dependency,
    settings_dependency,
    storage_dependency,
)
from fieldclock.config import Settings
from fieldclock.database.session import build_engine, build_session_factory, create_tables
from fieldclock.errors import (
    AlreadyClockedIn,
    AttendanceError,
    NotClockedIn,
    PersistenceFailed,
)
from fieldclock.geofence import Coordinate, format_distance, validate
from fieldclock.models import AttendanceStatus, User, WorkSiteConfig
from fieldclock.presence import is_online, touch
from fieldclock.recorder import AttendanceRecorder, utcnow
from fieldclock.schemas.attendance import (
    AdminAttendanceOut,
    AttendanceRecordOut,
    AttendanceSummary,
    ClockInRequest,
    ClockOutRequest,
    SelfieUploaded,
)
from fieldclock.schemas.geofence import (
    GeofenceCheck,
    GeofenceResultOut,
    WorkSiteCreate,
    WorkSiteOut,
)
from fieldclock.schemas.user import AssignWorkSite, PresenceOut
from fieldclock.storage import (
    ACTIONS,
    SELFIE_CONTENT_TYPE,
    LocalObjectStorage,
    selfie_key,
    selfie_prefix,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ----------------------------------------Dependencies--------------------------------------------
admin_dependency = Annotated[dict, Depends(get_current_admin_user)]
manager_dependency = Annotated[dict, Depends(get_current_manager_user)]
general_user = Annotated[dict, Depends(get_current_user)]


def get_recorder(db: db_dependency, settings: settings_dependency, clock: clock_dependency):
    return AttendanceRecorder(
        db,
        settings.org_timezone,
        clock=clock,
        allow_overwrite=settings.allow_clock_in_overwrite,
    )


recorder_dependency = Annotated[AttendanceRecorder, Depends(get_recorder)]


# ----------------------------------------Helpers--------------------------------------------
def http_error(error: AttendanceError, status_code: int) -> HTTPException:
    return HTTPException(status_code=status_code, detail=error.message)


def assigned_site(db, employee_id) -> Optional[WorkSiteConfig]:
    user = db.query(User).filter(User.employee_id == employee_id).first()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    site = user.work_site
    if site is None or not site.is_active:
        return None
    return site


def ensure_within_site(db, employee_id, coordinate: Coordinate):
    site = assigned_site(db, employee_id)
    if site is None:
        return
    result = validate(coordinate, site.as_site())
    if not result.within_fence:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"User is {format_distance(result.distance_meters)} from {site.name} "
                f"(allowed {format_distance(site.radius)}), attendance not recorded"
            ),
        )


def ensure_own_selfie(storage, employee_id, selfie_url: Optional[str]):
    """Only selfies uploaded by the caller, i.e. under their own key prefix, are accepted."""
    if selfie_url is None:
        return
    prefix = storage.url_for(selfie_prefix(employee_id))
    name = selfie_url[len(prefix):]
    if not selfie_url.startswith(prefix) or not name or "/" in name or ".." in name:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Selfie must be one uploaded by this user",
        )


# ----------------------------------------Routes--------------------------------------------
@router.get("/")
def index():
    return "Hello! Access our documentation by adding '/docs' to the url above"


# ---------------------------- Endpoint to upload a verification selfie
@router.post("/selfies/", response_model=SelfieUploaded, status_code=status.HTTP_201_CREATED)
async def upload_selfie(
    user: general_user,
    storage: storage_dependency,
    clock: clock_dependency,
    action: Annotated[str, Form()],
    file: Annotated[UploadFile, File()],
):
    """Stores the selfie under ``selfies/{employee_id}/{action}_{timestamp}.jpg``."""
    if action not in ACTIONS:
        raise HTTPException(status_code=400, detail=f"Unknown action: {action}")

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty selfie upload")

    key = selfie_key(user["employee_id"], action, clock())
    try:
        url = await storage.upload(key, data, SELFIE_CONTENT_TYPE)
    except (OSError, ValueError) as e:
        logger.error(f"Error uploading selfie {key}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to upload selfie. Please try again.",
        )
    return {"url": url}


# ---------------------------- Endpoint to clock in for today
@router.post("/attendance/clock_in", response_model=AttendanceRecordOut)
def clock_in(
    body: ClockInRequest,
    db: db_dependency,
    user: general_user,
    recorder: recorder_dependency,
    storage: storage_dependency,
):
    ensure_own_selfie(storage, user["employee_id"], body.selfie_url)
    coordinate = Coordinate(body.latitude, body.longitude)
    ensure_within_site(db, user["employee_id"], coordinate)
    try:
        return recorder.clock_in(user["employee_id"], body.selfie_url, coordinate)
    except AlreadyClockedIn as e:
        raise http_error(e, status.HTTP_409_CONFLICT) from e
    except PersistenceFailed as e:
        raise http_error(e, status.HTTP_500_INTERNAL_SERVER_ERROR) from e


# ---------------------------- Endpoint to clock out of today's record
@router.post("/attendance/clock_out", response_model=AttendanceRecordOut)
def clock_out(
    body: ClockOutRequest,
    db: db_dependency,
    user: general_user,
    recorder: recorder_dependency,
    storage: storage_dependency,
):
    ensure_own_selfie(storage, user["employee_id"], body.selfie_url)
    coordinate = Coordinate(body.latitude, body.longitude)
    ensure_within_site(db, user["employee_id"], coordinate)
    try:
        return recorder.clock_out(user["employee_id"], body.selfie_url, coordinate)
    except NotClockedIn as e:
        raise http_error(e, status.HTTP_400_BAD_REQUEST) from e
    except PersistenceFailed as e:
        raise http_error(e, status.HTTP_500_INTERNAL_SERVER_ERROR) from e


@router.get("/attendance/today", response_model=Optional[AttendanceRecordOut])
def get_today(user: general_user, recorder: recorder_dependency):
    return recorder.today_record(user["employee_id"])


# ---------------------------- Endpoint to list user attendance records
@router.get("/attendance/me", response_model=List[AttendanceRecordOut])
def my_attendance(
    user: general_user,
    recorder: recorder_dependency,
    start: Optional[date] = None,
    end: Optional[date] = None,
    limit: int = 30,
):
    """Attendance history of the caller, newest first.
    Without a range, returns the last ``limit`` records."""
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="start must not be after end")
    return recorder.history(user["employee_id"], start, end, limit)


# ---------------------------- Endpoint to list everyone's attendance for a day
@router.get("/attendance/", response_model=List[AdminAttendanceOut])
def day_attendance(
    db: db_dependency,
    _: manager_dependency,
    recorder: recorder_dependency,
    day: Optional[date] = None,
    status_filter: Annotated[Optional[AttendanceStatus], Query(alias="status")] = None,
    search: Optional[str] = None,
):
    """Gets the attendance of every employee for ``day`` (today by default)."""
    records = recorder.records_on(day or recorder.today(), status_filter)
    names = dict(db.query(User.employee_id, User.username).all())

    rows = []
    for record in records:
        username = names.get(record.employee_id)
        if search and search.lower() not in f"{record.employee_id} {username or ''}".lower():
            continue
        row = AdminAttendanceOut.model_validate(record)
        row.username = username
        rows.append(row)
    return rows


# ---------------------------- Endpoint to count everyone's attendance for a day
@router.get("/attendance/summary", response_model=AttendanceSummary)
def attendance_summary(
    _: manager_dependency,
    recorder: recorder_dependency,
    day: Optional[date] = None,
):
    return recorder.summary(day or recorder.today())


# ---------------------------- Endpoint to check a position against the caller's work site
@router.post("/geofence/check", response_model=GeofenceResultOut)
def check_geofence(body: GeofenceCheck, db: db_dependency, user: general_user):
    site = assigned_site(db, user["employee_id"])
    if site is None:
        raise HTTPException(status_code=404, detail="No active work site assigned")

    location = None
    if body.latitude is not None and body.longitude is not None:
        location = Coordinate(body.latitude, body.longitude)
    result = validate(location, site.as_site())
    return {
        "within_fence": result.within_fence,
        "distance_meters": result.distance_meters,
        "radius": site.radius,
        "site_name": site.name,
    }


# ---------------------------- Work site management
@router.post("/worksites/", response_model=WorkSiteOut, status_code=status.HTTP_201_CREATED)
def create_worksite(body: WorkSiteCreate, db: db_dependency, user: admin_dependency):
    if db.query(WorkSiteConfig).filter(WorkSiteConfig.name == body.name).first():
        raise HTTPException(status_code=400, detail="Work site with this name already exists")

    site = WorkSiteConfig(
        name=body.name,
        latitude=body.latitude,
        longitude=body.longitude,
        radius=body.radius,
        is_active=True,
        creator_id=user["employee_id"],
        time_created=datetime.now(timezone.utc),
    )
    db.add(site)
    db.commit()
    db.refresh(site)
    return site


@router.get("/worksites/", response_model=List[WorkSiteOut])
def list_worksites(db: db_dependency, _: general_user, active_only: bool = True):
    query = db.query(WorkSiteConfig)
    if active_only:
        query = query.filter(WorkSiteConfig.is_active.is_(True))
    return query.order_by(WorkSiteConfig.name).all()


@router.put("/worksites/{site_id}/deactivate", response_model=WorkSiteOut)
def deactivate_worksite(site_id: int, db: db_dependency, _: admin_dependency):
    site = db.get(WorkSiteConfig, site_id)
    if site is None:
        raise HTTPException(status_code=404, detail="Work site not found")
    if not site.is_active:
        raise HTTPException(status_code=400, detail="Work site is already inactive")

    site.is_active = False
    db.commit()
    db.refresh(site)
    return site


@router.put("/users/{employee_id}/worksite")
def assign_worksite(
    employee_id: str, body: AssignWorkSite, db: db_dependency, _: admin_dependency
):
    user = db.query(User).filter(User.employee_id == employee_id).first()
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    if body.work_site_id is not None and db.get(WorkSiteConfig, body.work_site_id) is None:
        raise HTTPException(status_code=404, detail="Work site not found")

    user.work_site_id = body.work_site_id
    db.commit()
    return {"employee_id": employee_id, "work_site_id": body.work_site_id}


# ---------------------------- Presence
@router.post("/presence/heartbeat", status_code=status.HTTP_204_NO_CONTENT)
def heartbeat(db: db_dependency, user: general_user, clock: clock_dependency):
    db_user = db.query(User).filter(User.employee_id == user["employee_id"]).first()
    if db_user is None:
        raise HTTPException(status_code=404, detail="User not found")
    touch(db_user, clock())
    db.commit()


@router.get("/presence/", response_model=List[PresenceOut])
def presence(
    db: db_dependency,
    settings: settings_dependency,
    clock: clock_dependency,
    _: general_user,
):
    now = clock()
    return [
        {
            "employee_id": u.employee_id,
            "username": u.username,
            "online": is_online(u.last_seen_at, settings.presence_timeout_seconds, now),
            "last_seen_at": u.last_seen_at,
        }
        for u in db.query(User).order_by(User.username).all()
    ]


# ----------------------------------------FastAPI App Init--------------------------------------------
def create_app(settings: Optional[Settings] = None, clock=None) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(level=settings.log_level)

    engine = build_engine(settings.database_url)
    create_tables(engine)
    os.makedirs(settings.media_root, exist_ok=True)

    app = FastAPI(title="fieldclock")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    app.state.storage = LocalObjectStorage(settings.media_root, settings.media_url)
    app.state.clock = clock or utcnow

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(auth.router)
    app.include_router(router)
    if settings.media_url.startswith("/"):
        app.mount(settings.media_url, StaticFiles(directory=settings.media_root), name="media")
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="127.0.0.1", port=8000)
