"""HTTP API tests."""
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from tests.conftest import login, register

OFFICE = {"latitude": 40.0, "longitude": -74.0}
NEARBY = {"latitude": 40.0009, "longitude": -74.0}
FAR = {"latitude": 40.01, "longitude": -74.0}
OWN_SELFIE = "/media/selfies/u1/clock_in_2026-10-19T14-30-00-000Z.jpg"


def upload(client, headers, action="clock_in"):
    response = client.post(
        "/selfies/",
        data={"action": action},
        files={"file": ("selfie.jpg", b"\xff\xd8jpeg", "image/jpeg")},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["url"]


def create_site(client, admin_headers, radius=100, name="HQ"):
    response = client.post(
        "/worksites/",
        json={"name": name, "radius": radius, **OFFICE},
        headers=admin_headers,
    )
    assert response.status_code == 201
    return response.json()


def test_index(client):
    assert client.get("/").status_code == 200


def test_first_account_may_be_admin_but_later_ones_need_an_admin(client):
    assert register(client, "boss", role="admin").status_code == 201
    assert register(client, "sneaky", role="admin").status_code == 403

    headers = login(client, "boss")
    assert register(client, "mgr", role="manager", token=headers["Authorization"].split()[1]).status_code == 201


def test_duplicate_registration_is_rejected(client, employee_headers):
    assert register(client, "u1").status_code == 400


def test_wrong_password(client, employee_headers):
    response = client.post("/auth/token/", data={"username": "u1", "password": "nope"})
    assert response.status_code == 401


def test_requests_need_a_token(client):
    assert client.get("/attendance/today").status_code == 401


def test_selfie_upload_is_stored_under_employee_and_action(client, employee_headers, settings):
    url = upload(client, employee_headers)

    assert url == "/media/selfies/u1/clock_in_2026-10-19T14-30-00-000Z.jpg"
    assert client.get(url).content == b"\xff\xd8jpeg"


def test_selfie_upload_rejects_unknown_action(client, employee_headers):
    response = client.post(
        "/selfies/",
        data={"action": "nap"},
        files={"file": ("selfie.jpg", b"jpeg", "image/jpeg")},
        headers=employee_headers,
    )
    assert response.status_code == 400


def test_clock_in_and_out(client, employee_headers, clock):
    selfie = upload(client, employee_headers)
    response = client.post(
        "/attendance/clock_in", json={"selfie_url": selfie, **OFFICE}, headers=employee_headers
    )
    assert response.status_code == 200
    assert response.json()["status"] == "present"

    clock.advance(hours=8)
    response = client.post("/attendance/clock_out", json=OFFICE, headers=employee_headers)
    assert response.status_code == 200

    today = client.get("/attendance/today", headers=employee_headers).json()
    assert today["clock_in"] is not None
    assert today["clock_out"] is not None
    assert today["selfie_url"] == selfie
    assert today["status"] == "present"


def test_clock_out_without_clock_in(client, employee_headers):
    response = client.post("/attendance/clock_out", json=OFFICE, headers=employee_headers)

    assert response.status_code == 400
    assert client.get("/attendance/today", headers=employee_headers).json() is None


def test_out_of_range_coordinates_are_unprocessable(client, employee_headers):
    response = client.post(
        "/attendance/clock_in",
        json={"selfie_url": OWN_SELFIE, "latitude": 95, "longitude": 0},
        headers=employee_headers,
    )
    assert response.status_code == 422


def test_clock_in_outside_assigned_site_is_refused(client, admin_headers, employee_headers):
    site = create_site(client, admin_headers)
    response = client.put(
        "/users/u1/worksite", json={"work_site_id": site["id"]}, headers=admin_headers
    )
    assert response.status_code == 200

    far = client.post(
        "/attendance/clock_in", json={"selfie_url": OWN_SELFIE, **FAR}, headers=employee_headers
    )
    assert far.status_code == 400
    assert "HQ" in far.json()["detail"]

    near = client.post(
        "/attendance/clock_in", json={"selfie_url": OWN_SELFIE, **NEARBY}, headers=employee_headers
    )
    assert near.status_code == 200


def test_deactivated_site_is_not_enforced(client, admin_headers, employee_headers):
    site = create_site(client, admin_headers)
    client.put("/users/u1/worksite", json={"work_site_id": site["id"]}, headers=admin_headers)

    assert client.put(f"/worksites/{site['id']}/deactivate", headers=admin_headers).status_code == 200
    assert client.put(f"/worksites/{site['id']}/deactivate", headers=admin_headers).status_code == 400

    response = client.post(
        "/attendance/clock_in", json={"selfie_url": OWN_SELFIE, **FAR}, headers=employee_headers
    )
    assert response.status_code == 200
    assert client.get("/worksites/", headers=employee_headers).json() == []


def test_geofence_check(client, admin_headers, employee_headers):
    assert client.post("/geofence/check", json=NEARBY, headers=employee_headers).status_code == 404

    site = create_site(client, admin_headers)
    client.put("/users/u1/worksite", json={"work_site_id": site["id"]}, headers=admin_headers)

    unknown = client.post("/geofence/check", json={}, headers=employee_headers).json()
    assert unknown["within_fence"] is None
    assert unknown["distance_meters"] is None

    near = client.post("/geofence/check", json=NEARBY, headers=employee_headers).json()
    assert near["within_fence"] is True
    assert 100 < near["distance_meters"] < 100.1
    assert near["site_name"] == "HQ"


def test_only_admins_manage_sites(client, employee_headers):
    response = client.post(
        "/worksites/", json={"name": "X", "radius": 50, **OFFICE}, headers=employee_headers
    )
    assert response.status_code == 403


def test_history(client, employee_headers, clock):
    for _ in range(3):
        client.post("/attendance/clock_in", json={"selfie_url": OWN_SELFIE, **OFFICE}, headers=employee_headers)
        clock.advance(days=1)

    records = client.get("/attendance/me", headers=employee_headers).json()
    assert [r["date"] for r in records] == ["2026-10-21", "2026-10-20", "2026-10-19"]

    ranged = client.get(
        "/attendance/me", params={"start": "2026-10-20", "end": "2026-10-21"}, headers=employee_headers
    ).json()
    assert len(ranged) == 2

    bad = client.get(
        "/attendance/me", params={"start": "2026-10-21", "end": "2026-10-20"}, headers=employee_headers
    )
    assert bad.status_code == 400


def test_day_view_is_for_managers(client, admin_headers, employee_headers):
    client.post("/attendance/clock_in", json={"selfie_url": OWN_SELFIE, **OFFICE}, headers=employee_headers)

    assert client.get("/attendance/", headers=employee_headers).status_code == 403

    rows = client.get("/attendance/", headers=admin_headers).json()
    assert [(r["employee_id"], r["username"]) for r in rows] == [("u1", "User u1")]

    assert client.get("/attendance/", params={"status": "late"}, headers=admin_headers).json() == []
    assert client.get("/attendance/", params={"search": "nobody"}, headers=admin_headers).json() == []
    assert len(client.get("/attendance/", params={"day": "2026-10-19"}, headers=admin_headers).json()) == 1


def test_presence_uses_heartbeats(client, admin_headers, employee_headers, clock, settings):
    assert client.post("/presence/heartbeat", headers=employee_headers).status_code == 204

    online = {p["employee_id"]: p["online"] for p in client.get("/presence/", headers=admin_headers).json()}
    assert online == {"admin1": False, "u1": True}

    clock.advance(seconds=settings.presence_timeout_seconds + 1)
    online = {p["employee_id"]: p["online"] for p in client.get("/presence/", headers=admin_headers).json()}
    assert online["u1"] is False


def test_attendance_summary(client, admin_headers, employee_headers):
    client.post("/attendance/clock_in", json={"selfie_url": OWN_SELFIE, **OFFICE}, headers=employee_headers)

    assert client.get("/attendance/summary", headers=employee_headers).status_code == 403

    summary = client.get("/attendance/summary", headers=admin_headers).json()
    assert summary == {
        "date": "2026-10-19",
        "total": 1,
        "present": 1,
        "late": 0,
        "absent": 0,
        "early_departure": 0,
    }
    other_day = client.get("/attendance/summary", params={"day": "2026-10-18"}, headers=admin_headers)
    assert other_day.json()["total"] == 0


def test_clock_in_needs_the_callers_own_selfie(client, admin_headers, employee_headers):
    assert register(client, "u2").status_code == 201
    someone_else = "/media/selfies/u2/clock_in_2026-10-19T14-30-00-000Z.jpg"

    for selfie_url in (someone_else, "https://elsewhere.example.com/me.jpg", "/media/selfies/u1/../u2/x.jpg"):
        response = client.post(
            "/attendance/clock_in", json={"selfie_url": selfie_url, **OFFICE}, headers=employee_headers
        )
        assert response.status_code == 400
    assert client.get("/attendance/today", headers=employee_headers).json() is None

    own = upload(client, employee_headers)
    response = client.post("/attendance/clock_in", json={"selfie_url": own, **OFFICE}, headers=employee_headers)
    assert response.status_code == 200

    response = client.post(
        "/attendance/clock_out", json={"selfie_url": someone_else, **OFFICE}, headers=employee_headers
    )
    assert response.status_code == 400


def test_database_failure_is_a_server_error(client, employee_headers, monkeypatch):
    def failing_commit(self):
        raise OperationalError("COMMIT", {}, Exception("database is locked"))

    monkeypatch.setattr(Session, "commit", failing_commit)
    response = client.post(
        "/attendance/clock_in", json={"selfie_url": OWN_SELFIE, **OFFICE}, headers=employee_headers
    )
    monkeypatch.undo()

    assert response.status_code == 500
    assert client.get("/attendance/today", headers=employee_headers).json() is None
