"""Shared fixtures."""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from fieldclock.config import Settings
from fieldclock.database.session import build_engine, build_session_factory, create_tables
from fieldclock.main import create_app


class FakeClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc))


@pytest.fixture
def db():
    """In-memory database session."""
    engine = build_engine("sqlite://")
    create_tables(engine)
    session = build_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        secret_key="test-secret-key",
        media_root=str(tmp_path / "media"),
        org_timezone="UTC",
        log_level="WARNING",
    )


@pytest.fixture
def app(settings, clock):
    app = create_app(settings, clock=clock)
    yield app
    app.state.engine.dispose()


@pytest.fixture
def client(app):
    return TestClient(app)


def register(client, employee_id, role="employee", password="password123", token=None):
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    return client.post(
        "/auth/create_user/",
        json={
            "email": f"{employee_id}@example.com",
            "employee_id": employee_id,
            "username": f"User {employee_id}",
            "password": password,
            "role": role,
        },
        headers=headers,
    )


def login(client, employee_id, password="password123"):
    response = client.post(
        "/auth/token/", data={"username": employee_id, "password": password}
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    assert register(client, "admin1", role="admin").status_code == 201
    return login(client, "admin1")


@pytest.fixture
def employee_headers(client, admin_headers):
    assert register(client, "u1").status_code == 201
    return login(client, "u1")
