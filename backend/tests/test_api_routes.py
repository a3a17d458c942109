import pytest
from fastapi.testclient import TestClient

from conftest import RecordingNotifier
from dropsniper.config import Settings
from dropsniper.main import create_app
from dropsniper.runtime import build_runtime


@pytest.fixture
def runtime(session_factory, registry):
    rt = build_runtime(Settings(), session_factory=session_factory, registry=registry, notifier=RecordingNotifier())
    rt.engine._sleep = lambda seconds: None
    yield rt
    rt.close()


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime=runtime, start_scheduler=False))


def _create_target(client, **overrides):
    body = {
        "restaurant_name": "Carbone",
        "platform": "resy",
        "target_date": "2025-01-22",
        "drop_date": "2025-01-01",
        "drop_time": "10:00",
        "drop_timezone": "America/New_York",
        "resy_venue_id": 6194,
    }
    body.update(overrides)
    r = client.post("/targets/", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "scheduler_running": False}


def test_target_crud(client):
    target = _create_target(client)

    assert client.get(f"/targets/{target['id']}").json()["restaurant_name"] == "Carbone"
    assert [t["id"] for t in client.get("/targets/", params={"status": "watching"}).json()] == [target["id"]]

    r = client.put(f"/targets/{target['id']}/status", json={"status": "FAILED", "note": "gave up"})
    assert r.json()["status"] == "FAILED"

    assert client.delete(f"/targets/{target['id']}").json() == {"ok": True, "id": target["id"]}
    assert client.get(f"/targets/{target['id']}").status_code == 404


def test_target_validation_errors(client):
    assert client.post("/targets/", json={"restaurant_name": "X", "platform": "yelp"}).status_code == 422
    assert client.post("/targets/", json={"restaurant_name": "X", "platform": "resy", "drop_timezone": "Nowhere/City"}).status_code == 422
    assert client.delete("/targets/missing").status_code == 404


def test_manual_trigger_creates_transfer_and_history(client):
    target = _create_target(client)

    r = client.post(f"/sniper/trigger/{target['id']}")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["confirmation_code"] == "CONF-1"

    [transfer] = client.get("/transfers/").json()
    assert transfer["id"] == body["transfer_id"]
    [attempt] = client.get("/patterns/history", params={"target_id": target["id"]}).json()
    assert attempt["trigger_type"] == "manual"

    assert client.post(f"/sniper/trigger/{target['id']}").status_code == 409
    assert client.post("/sniper/trigger/missing").status_code == 404

    undated = client.post("/targets/", json={"restaurant_name": "Lilia", "platform": "resy"}).json()
    assert client.post(f"/sniper/trigger/{undated['id']}").status_code == 422


def test_sniper_status_and_platforms(client):
    _create_target(client)
    client.post("/sniper/poll")

    status = client.get("/sniper/status").json()
    assert status["running"] is False
    assert status["platforms_ready"]["resy"] is True

    platforms = client.get("/sniper/platforms/status").json()
    assert platforms["opentable"]["registered"] is False


def test_adhoc_acquire(client):
    r = client.post(
        "/sniper/acquire",
        json={"platform": "resy", "restaurant_name": "Carbone", "date": "2025-01-22", "resy_venue_id": 6194},
    )
    assert r.status_code == 200
    assert r.json()["success"] is True
    # ad-hoc acquisitions are not part of the attempt log
    assert client.get("/patterns/history").json() == []

    r = client.post("/sniper/acquire", json={"platform": "yelp", "restaurant_name": "X", "date": "2025-01-22"})
    assert r.status_code == 422


def test_transfer_lifecycle_over_http(client):
    r = client.post(
        "/transfers/",
        json={
            "restaurant_name": "Carbone",
            "platform": "resy",
            "reservation_date": "2025-06-14",
            "reservation_time": "19:30",
            "party_size": 2,
            "reservation_timezone": "America/New_York",
        },
    )
    assert r.status_code == 201
    transfer_id = r.json()["id"]

    r = client.put(
        f"/transfers/{transfer_id}/sold",
        json={"buyer_name": "Ana", "sale_price": 300, "transfer_method": "NAME_CHANGE"},
    )
    assert r.json()["transfer_deadline"] == "2025-06-13T23:30:00+00:00"

    r = client.put(f"/transfers/{transfer_id}/listed", json={"listing_id": "L-1", "listing_price": 200})
    assert r.status_code == 409

    assert client.put(f"/transfers/{transfer_id}/transferred", json={"notes": "done"}).json()["status"] == "TRANSFERRED"
    assert client.get("/transfers/stats").json()["total_revenue"] == 300.0
    assert client.get(f"/transfers/{transfer_id}/listing").json()["price_suggestion"] == 150.0
    assert client.get("/transfers/999").status_code == 404


def test_patterns_add_and_suggest(client):
    r = client.post(
        "/patterns/",
        json={"restaurant_name": "Carbone", "platform": "resy", "lead_days": 21, "drop_time": "10:00", "drop_timezone": "America/New_York"},
    )
    assert r.status_code == 201

    r = client.get("/patterns/suggest", params={"restaurant_name": "Carbone", "target_date": "2025-02-01"})
    assert r.json()["suggestion"]["drop_date"] == "2025-01-11"
    assert client.get("/patterns/").json()[0]["lead_days"] == 21
    assert client.get("/patterns/stats").json()["total_attempts"] == 0
