import pytest

from web_app import Station, __version__, create_app

from tests.conftest import FakeTimer


@pytest.fixture
def station(station_config):
    station_config["scheduler"]["schedules"] = [
        {"id": "morning", "time": "07:00", "days": ["monday"], "durationSeconds": 60},
        {"id": "broken", "time": "07:00"},
    ]
    station = Station(station_config, scheduler_kwargs={"timer_factory": FakeTimer})
    yield station
    station.close()


@pytest.fixture
def client(station):
    app = create_app(station)
    app.testing = True
    return app.test_client()


def test_station_loads_schedules_and_rules(station):
    assert [s.id for s in station.scheduler.get_schedules()] == ["morning"]
    assert "soil_moisture" in station.loop.evaluator.rules


def test_health(client):
    data = client.get("/health").get_json()
    assert data["status"] == "ok"
    assert data["version"] == __version__
    assert data["running"] is False
    assert "manualWatering" in data["commands"]


def test_state(client):
    data = client.get("/api/state").get_json()
    assert data["isWatering"] is False
    assert "soilMoisture" in data["config"]


def test_command_round_trip(client):
    resp = client.post("/api/command", json={"type": "manualWatering", "action": "start"})
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True}
    assert client.get("/api/state").get_json()["isWatering"] is True


def test_command_with_reply(client):
    resp = client.post("/api/command", json={
        "type": "saveSchedule",
        "schedule": {"id": "evening", "time": "19:00", "days": ["friday"], "duration": 30},
    })
    assert resp.get_json()["success"] is True
    ids = [s["id"] for s in client.get("/api/schedules").get_json()["schedules"]]
    assert ids == ["morning", "evening"]


def test_command_requires_json_object(client):
    assert client.post("/api/command", json=["manualWatering"]).status_code == 400
    assert client.post("/api/command", data="not json", content_type="text/plain").status_code == 400


def test_profiles(client):
    data = client.get("/api/profiles").get_json()
    assert any(p["id"] == "tomato" for p in data["profiles"])
    assert "soil_moisture" in data["alertMessages"]
