from datetime import datetime
from typing import Annotated, Callable

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from fieldclock.config import Settings
from fieldclock.storage import LocalObjectStorage


def get_db(request: Request):
    db = request.app.state.session_factory()  # Create a new session
    try:
        yield db  # Yield the session to be used
    finally:
        db.close()  # Close the session when done


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_storage(request: Request) -> LocalObjectStorage:
    return request.app.state.storage


def get_clock(request: Request):
    return request.app.state.clock


db_dependency = Annotated[Session, Depends(get_db)]
settings_dependency = Annotated[Settings, Depends(get_settings)]
storage_dependency = Annotated[LocalObjectStorage, Depends(get_storage)]
clock_dependency = Annotated[Callable[[], datetime], Depends(get_clock)]
