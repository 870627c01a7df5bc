from __future__ import annotations

import pytest

from adapters.rest_client import RestError
from app import create_app


@pytest.fixture()
def app(gateway):
    app = create_app({
        "TESTING": True,
        "ROSTER_GATEWAY": gateway,
        "ROSTER_START": "2024-01-01",
        "ROSTER_AUTO_LOAD": True,
    })
    yield app
    app.extensions["roster"]["shutdown"]()


@pytest.fixture()
def client(app):
    with app.test_client() as client:
        yield client


def test_healthz(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.data == b"OK"


def test_state_reflects_loaded_window(client):
    data = client.get("/api/roster/state").get_json()
    assert data["window"]["start_date"] == "2024-01-01"
    assert data["window"]["end_date"] == "2024-01-07"
    assert [member["name"] for member in data["crew"]] == ["Alex", "Blake"]
    assert data["status"]["save_paused"] is False


def test_edit_and_flush(client, gateway):
    resp = client.post("/api/roster/assign", json={"date": "2024-01-02", "crew_id": 11, "track_id": 6})
    assert resp.status_code == 200
    assert resp.get_json()["status"]["pending"] == 1

    resp_flush = client.post("/api/roster/flush")
    assert resp_flush.get_json()["ok"] is True
    assert gateway.assignments[("2024-01-02", None, 11)]["track_id"] == 6

    state = client.get("/api/roster/state").get_json()
    assert state["assignments"][0]["track_id"] == 6


def test_invalid_edits_return_400(client):
    assert client.post("/api/roster/track", json={"date": "2024-01-02", "crew_id": 11, "track_id": 6}).status_code == 400
    assert client.post("/api/roster/working", json={"date": "02/01/2024", "crew_id": 11, "value": True}).status_code == 400
    assert client.post("/api/roster/clear-day", json={"date": "bad"}).status_code == 400


def test_paused_session_refuses_edits_until_retry(client, gateway):
    gateway.write_error = RestError("store offline", status_code=503)
    client.post("/api/roster/working", json={"date": "2024-01-03", "crew_id": 12, "value": True})

    flushed = client.post("/api/roster/flush").get_json()
    assert flushed["ok"] is False
    assert flushed["status"]["save_paused"] is True
    assert flushed["status"]["save_error"] == "store offline"

    refused = client.post("/api/roster/working", json={"date": "2024-01-04", "crew_id": 12, "value": True})
    assert refused.status_code == 409
    assert refused.get_json()["paused"] is True

    gateway.write_error = None
    retried = client.post("/api/roster/retry").get_json()
    assert retried["ok"] is True
    assert retried["status"]["pending"] == 0
    assert gateway.assignments[("2024-01-03", None, 12)]["is_working"] is True


def test_shows_and_window_endpoints(client):
    created = client.post("/api/roster/shows", json={"date": "2024-01-02", "time": "7:00 PM"})
    assert created.status_code == 201
    show = created.get_json()["show"]
    assert show["show_time"] == "19:00:00"

    patched = client.patch(f"/api/roster/shows/{show['id']}", json={"time": "20:00"})
    assert patched.get_json()["show"]["show_time"] == "20:00:00"
    assert client.delete(f"/api/roster/shows/{show['id']}").get_json()["ok"] is True

    moved = client.post("/api/roster/shift-week", json={"delta": 1}).get_json()
    assert moved["start_date"] == "2024-01-08"


def test_remote_read_failure_maps_to_502(client, gateway):
    gateway.read_errors["fetch_assignments"] = RestError("offline", status_code=503)
    resp = client.post("/api/roster/copy-previous-week")
    assert resp.status_code == 502


def test_shutdown_drains_pending_edits(app, client, gateway):
    response = client.post("/api/roster/assign", json={"date": "2024-01-02", "crew_id": 12, "track_id": 4})
    assert response.status_code == 200
    assert ("2024-01-02", None, 12) not in gateway.assignments

    roster = app.extensions["roster"]
    roster["shutdown"]()
    roster["shutdown"]()

    assert gateway.assignments[("2024-01-02", None, 12)]["track_id"] == 4
    assert not roster["runtime"].running
