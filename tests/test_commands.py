from datetime import datetime

import pytest

from core.commands import CommandRouter
from core.control_loop import ControlLoop
from core.profile_store import ProfileStore
from core.scheduler import Scheduler
from core.web_event_bus import WebEventBus

from tests.conftest import REPO_ROOT, FakeTimer

TUESDAY_NOON = datetime(2024, 1, 2, 12, 0)


@pytest.fixture
def bus():
    return WebEventBus()


@pytest.fixture
def router(bus, tmp_path):
    loop = ControlLoop(bus)
    scheduler = Scheduler(loop.machine, bus, clock=lambda: TUESDAY_NOON, timer_factory=FakeTimer)
    profiles = ProfileStore(REPO_ROOT / "profiles.yaml", tmp_path / "custom.json")
    router = CommandRouter(loop, scheduler, profiles, bus)
    yield router
    scheduler.shutdown()


def test_manual_watering_start_and_stop(router, bus):
    assert router.handle({"type": "manualWatering", "action": "start"}) is None
    assert router.loop.machine.is_on
    assert bus.get_latest("state")["isWatering"] is True

    router.handle({"type": "manualWatering", "action": "stop"})
    assert not router.loop.machine.is_on
    assert bus.get_latest("state")["manualMode"] is False


def test_unknown_manual_action_is_ignored(router):
    router.handle({"type": "manualWatering", "action": "flood"})
    assert not router.loop.machine.is_on


@pytest.mark.parametrize("message", [
    {"type": "reboot"},
    {"action": "start"},
    ["manualWatering"],
    "getState",
])
def test_unknown_or_malformed_messages_are_ignored(router, message):
    assert router.handle(message) is None


def test_config_update(router, bus):
    router.handle({
        "type": "configUpdate",
        "settings": {"thresholds": {"soilMoisture": {"min": 50, "optimal": [65, 65], "max": 90}}},
    })
    assert router.loop.thresholds.to_dict()["soilMoisture"] == {
        "min": 50, "optimalMin": 65, "optimalMax": 65, "max": 90,
    }
    assert bus.get_latest("state")["config"]["soilMoisture"]["min"] == 50


def test_legacy_config_update(router):
    router.handle({"type": "configUpdate", "settings": {"minThreshold": 45, "optimalMin": 55, "optimalMax": 65}})
    assert router.loop.thresholds.moisture.min == 45


def test_switch_profile(router):
    router.handle({"type": "switchProfile", "profileId": "lemon"})
    config = router.loop.thresholds.to_dict()
    assert config["soilMoisture"] == {"min": 40, "optimalMin": 50, "optimalMax": 50, "max": 60}


def test_switch_to_unknown_profile_keeps_thresholds(router):
    before = router.loop.thresholds.to_dict()
    router.handle({"type": "switchProfile", "profileId": "cactus"})
    assert router.loop.thresholds.to_dict() == before


def test_profile_crud(router, bus):
    reply = router.handle({"type": "getProfiles"})
    assert reply["type"] == "profiles"
    assert "soil_moisture" in reply["automationRules"]

    custom = {"id": "basil", "name": "Basil", "thresholds": {"soilMoisture": {"min": 50, "optimal": [60, 60], "max": 70}}}
    reply = router.handle({"type": "saveProfile", "profile": custom})
    assert reply["success"] is True
    assert any(p["id"] == "basil" for p in bus.get_latest("profiles")["data"])

    reply = router.handle({"type": "deleteProfile", "profileId": "tomato"})
    assert reply == {"type": "profileDeleted", "success": False, "profileId": "tomato"}

    reply = router.handle({"type": "deleteProfile", "profileId": "basil"})
    assert reply["success"] is True


def test_schedule_crud(router):
    reply = router.handle({
        "type": "saveSchedule",
        "schedule": {"id": "evening", "time": "19:30", "days": ["tuesday"], "duration": 120},
    })
    assert reply["type"] == "scheduleSaved"
    assert reply["success"] is True
    assert reply["schedule"]["durationSeconds"] == 120.0

    reply = router.handle({"type": "getSchedules"})
    assert [s["id"] for s in reply["data"]["schedules"]] == ["evening"]

    reply = router.handle({"type": "deleteSchedule", "scheduleId": "evening"})
    assert reply == {"type": "scheduleDeleted", "success": True, "scheduleId": "evening"}


def test_bad_schedule_is_rejected(router):
    reply = router.handle({"type": "saveSchedule", "schedule": {"time": "07:00"}})
    assert reply["type"] == "scheduleSaved"
    assert reply["success"] is False
    assert "duration" in reply["error"]
    assert router.scheduler.get_schedules() == []


def test_set_scheduler_enabled(router, bus):
    reply = router.handle({"type": "setSchedulerEnabled", "enabled": True})
    assert reply["data"]["enabled"] is True
    assert router.scheduler.enabled
    assert bus.get_latest("schedules")["data"]["enabled"] is True

    router.handle({"type": "setSchedulerEnabled", "enabled": False})
    assert not router.scheduler.enabled


def test_set_scheduler_enabled_needs_flag(router):
    assert router.handle({"type": "setSchedulerEnabled"}) is None
    assert not router.scheduler.enabled


def test_handler_errors_become_error_replies(router, monkeypatch):
    def boom():
        raise RuntimeError("valve jammed")

    monkeypatch.setattr(router.loop, "snapshot", boom)
    reply = router.handle({"type": "getState"})
    assert reply == {"type": "error", "command": "getState", "message": "valve jammed"}


def test_get_state(router):
    assert router.handle({"type": "getState"})["isWatering"] is False
