from datetime import timedelta

from examtrack import models
from examtrack.schemas import LocationUpdate
from examtrack.services import locations

from conftest import PICKUP, auth_headers


def ping(task_id, lat, lng, **extra):
    return LocationUpdate(task_id=task_id, latitude=lat, longitude=lng, recorded_at=models.utcnow(), **extra)


def test_upsert_keeps_one_row_per_officer(db, officer, make_task):
    task = make_task(officer)
    locations.upsert_location(db, officer.id, task.id, ping(task.id, PICKUP[0], PICKUP[1]))
    locations.upsert_location(db, officer.id, task.id, ping(task.id, 26.15, 91.74, heading=90, speed=12.5))

    db.expire_all()
    rows = db.query(models.AgentCurrentLocation).all()
    assert len(rows) == 1
    assert (rows[0].latitude, rows[0].longitude) == (26.15, 91.74)
    assert rows[0].heading == 90
    assert rows[0].speed == 12.5


def test_history_only_when_requested(db, officer, make_task):
    task = make_task(officer)
    locations.upsert_location(db, officer.id, task.id, ping(task.id, 26.15, 91.74))
    assert locations.location_history(db, task.id) == []

    locations.upsert_location(db, officer.id, task.id, ping(task.id, 26.16, 91.75), store_history=True)
    locations.upsert_location(db, officer.id, task.id, ping(task.id, 26.17, 91.76), store_history=True)
    history = locations.location_history(db, task.id)
    assert [h.latitude for h in history] == [26.16, 26.17]
    assert len(locations.location_history(db, task.id, limit=1)) == 1


def test_clear_location(db, officer, make_task):
    task = make_task(officer)
    locations.upsert_location(db, officer.id, task.id, ping(task.id, 26.15, 91.74))
    locations.clear_location(db, officer.id, task.id)
    assert locations.current_location(db, officer.id) is None
    # clearing again is harmless
    locations.clear_location(db, officer.id, task.id)


def test_clear_location_leaves_other_task_marker(db, officer, make_task):
    finished = make_task(officer)
    ongoing = make_task(officer)
    locations.upsert_location(db, officer.id, ongoing.id, ping(ongoing.id, 26.15, 91.74))
    locations.clear_location(db, officer.id, finished.id)
    db.expire_all()
    assert locations.current_location_for_task(db, ongoing.id).latitude == 26.15


def test_serialize_location(db, officer, make_task):
    assert locations.serialize_location(None) is None

    task = make_task(officer)
    locations.upsert_location(db, officer.id, task.id, ping(task.id, 26.15, 91.74, accuracy=5))
    data = locations.serialize_location(locations.current_location_for_task(db, task.id), "Officer One")
    assert data["agent_id"] == officer.id
    assert data["agent_name"] == "Officer One"
    assert data["accuracy"] == 5
    assert data["updated_at"]


def test_admin_location_endpoints(client, db, admin, officer, make_task):
    task = make_task(officer)
    resp = client.get(f"/api/admin/tasks/{task.id}/location", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.json()["current_location"] is None

    locations.upsert_location(
        db, officer.id, task.id,
        LocationUpdate(task_id=task.id, latitude=26.15, longitude=91.74,
                       recorded_at=models.utcnow() - timedelta(seconds=5)),
        store_history=True,
    )
    resp = client.get(f"/api/admin/tasks/{task.id}/location", headers=auth_headers(admin))
    current = resp.json()["current_location"]
    assert current["latitude"] == 26.15
    assert current["agent_name"] == "Officer One"

    resp = client.get(f"/api/admin/tasks/{task.id}/location-history?limit=10", headers=auth_headers(admin))
    assert resp.status_code == 200
    assert [h["latitude"] for h in resp.json()["history"]] == [26.15]

    assert client.get(f"/api/admin/tasks/{task.id}/location", headers=auth_headers(officer)).status_code == 403
    assert client.get("/api/admin/tasks/999/location", headers=auth_headers(admin)).status_code == 404
