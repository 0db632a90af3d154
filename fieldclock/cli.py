import asyncio
import logging

import click

from fieldclock.capture import CaptureAction, CaptureOrchestrator, CaptureState
from fieldclock.config import Settings
from fieldclock.database.session import build_engine, build_session_factory, create_tables
from fieldclock.errors import AttendanceError
from fieldclock.geofence import GeofenceMonitor, format_distance
from fieldclock.models import User
from fieldclock.recorder import AttendanceRecorder
from fieldclock.storage import LocalObjectStorage


@click.group()
@click.pass_context
def cli(ctx):
    """fieldclock management commands."""
    ctx.obj = Settings.from_env()
    logging.basicConfig(level=ctx.obj.log_level)


@cli.command("init-db")
@click.pass_obj
def init_db(settings):
    """Create all tables."""
    create_tables(build_engine(settings.database_url))
    click.echo("Tables created successfully")


@cli.command()
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=8000, type=int)
def serve(host, port):
    """Run the API server."""
    import uvicorn

    uvicorn.run("fieldclock.main:create_app", factory=True, host=host, port=port)


def report_fence(result):
    if result.is_unknown:
        click.echo("Getting your location...")
    elif result.within_fence:
        click.echo(f"Within work area ({format_distance(result.distance_meters)} from site)")
    else:
        click.echo(f"Outside work area ({format_distance(result.distance_meters)} from site)")


async def run_kiosk(settings, session_factory, employee_id, action, camera, geolocator):
    """Walk one employee through selfie capture and record the result.

    Returns the saved attendance record, or None when the employee gave up.
    """
    storage = LocalObjectStorage(settings.media_root, settings.media_url)
    orchestrator = CaptureOrchestrator(employee_id, action, camera, geolocator, storage)

    with session_factory() as db:
        user = db.query(User).filter(User.employee_id == employee_id).first()
        if user is None:
            raise click.ClickException(f"Unknown employee {employee_id}")
        site = user.work_site if user.work_site and user.work_site.is_active else None

        result = None
        await orchestrator.start()
        try:
            while result is None:
                if orchestrator.state is CaptureState.ERROR:
                    click.echo(orchestrator.error.message, err=True)
                    if not click.confirm("Try again?", default=True):
                        return None
                    if orchestrator.session.has_capture:
                        result = await orchestrator.confirm()
                    elif orchestrator.session.stream is not None:
                        await orchestrator.capture()
                    else:
                        await orchestrator.start()
                elif orchestrator.state is CaptureState.LIVE_PREVIEW:
                    click.prompt(
                        "Position your face and press Enter to capture",
                        default="",
                        show_default=False,
                    )
                    await orchestrator.capture()
                elif orchestrator.state is CaptureState.CAPTURED:
                    if site is not None:
                        monitor = GeofenceMonitor(site.as_site(), report_fence)
                        if not monitor.update(orchestrator.session.location).within_fence:
                            click.echo("You must be at your work site to record attendance.", err=True)
                            return None
                    choice = click.prompt(
                        "Confirm photo? [y]es / [r]etake / [n]o",
                        type=click.Choice(["y", "r", "n"]),
                        default="y",
                    )
                    if choice == "y":
                        result = await orchestrator.confirm()
                    elif choice == "r":
                        await orchestrator.retake()
                    else:
                        return None
                else:
                    return None
        finally:
            orchestrator.cancel()

        recorder = AttendanceRecorder(
            db, settings.org_timezone, allow_overwrite=settings.allow_clock_in_overwrite
        )
        if CaptureAction(action) is CaptureAction.CLOCK_IN:
            return recorder.clock_in(employee_id, result.selfie_url, result.location)
        return recorder.clock_out(employee_id, result.selfie_url, result.location)


@cli.command()
@click.argument("employee_id")
@click.option(
    "--action",
    type=click.Choice([a.value for a in CaptureAction]),
    default=CaptureAction.CLOCK_IN.value,
)
@click.pass_obj
def kiosk(settings, employee_id, action):
    """Clock an employee in or out with the kiosk camera."""
    from fieldclock.devices import FixedGeolocator, OpenCVCamera

    engine = build_engine(settings.database_url)
    create_tables(engine)
    camera = OpenCVCamera(settings.kiosk_camera_index)
    geolocator = FixedGeolocator(settings.kiosk_latitude, settings.kiosk_longitude)
    try:
        record = asyncio.run(
            run_kiosk(
                settings, build_session_factory(engine), employee_id, action, camera, geolocator
            )
        )
    except AttendanceError as e:
        raise click.ClickException(e.message)

    if record is None:
        click.echo("Cancelled.")
        return
    click.echo(f"{employee_id} {action.replace('_', ' ')} recorded for {record.date}")


if __name__ == "__main__":
    cli()
