import random
import threading

import pytest

from core.automation import AutomationEvaluator
from core.control_loop import ControlLoop
from core.web_event_bus import WebEventBus
from sensors.synthesizer import SignalSynthesizer, SimulationClock

from tests.conftest import SteppingClock


@pytest.fixture
def loop():
    synth = SignalSynthesizer(SimulationClock(), rng=random.Random(7))
    evaluator = AutomationEvaluator({"soil_moisture": {"if_below_min": "start_irrigation"}})
    return ControlLoop(WebEventBus(), synthesizer=synth, evaluator=evaluator, clock=SteppingClock())


def test_dry_soil_starts_and_optimal_stops(loop):
    loop.synthesizer.set_moisture(55)
    loop.tick()
    assert loop.machine.is_on

    for _ in range(30):
        if not loop.machine.is_on:
            break
        loop.tick()
    assert not loop.machine.is_on

    events = loop.event_log.events()
    assert len(events) == 1
    assert 52.5 <= events[0].moisture_start <= 55
    assert events[0].moisture_end >= 70
    assert events[0].duration_seconds > 0


def test_manual_mode_ignores_dry_soil(loop):
    loop.machine.set_manual_mode(True)
    loop.synthesizer.set_moisture(40)
    loop.tick()
    assert not loop.machine.is_on


def test_manual_start_stop(loop):
    loop.start_manual()
    assert loop.snapshot()["isWatering"] is True
    assert loop.snapshot()["manualMode"] is True
    loop.stop_manual()
    state = loop.snapshot()
    assert state["isWatering"] is False
    assert state["manualMode"] is False
    assert len(state["wateringEvents"]) == 1


def test_snapshot_shape(loop):
    loop.synthesizer.set_moisture(50)
    loop.tick()
    state = loop.snapshot()
    assert set(state) == {
        "timestamp", "sensors", "isWatering", "manualMode",
        "wateringEvents", "config", "triggeredActions",
    }
    assert state["sensors"]["soilMoisture"] <= 50
    assert state["config"]["soilMoisture"]["min"] == 60
    assert state["triggeredActions"][0]["action"] == "start_irrigation"


def test_apply_config_changes_control_envelope(loop):
    assert loop.apply_config({"thresholds": {"soilMoisture": {"min": 50, "optimal": [65, 65], "max": 90}}})
    assert loop.thresholds.moisture.min == 50
    loop.synthesizer.set_moisture(55)
    loop.tick()
    assert not loop.machine.is_on


def test_apply_config_without_thresholds(loop):
    assert loop.apply_config({"unrelated": True}) is False


def test_fetch_ticks_and_returns_snapshot(loop):
    state = loop.fetch()
    assert "sensors" in state


def test_broadcast_publishes_state(loop):
    data = loop.broadcast()
    assert loop.bus.get_latest("state") == data


@pytest.mark.parametrize("thresholds", [
    {"airTemperature": {"max": "30"}, "soilMoisture": {"min": "60", "optimal": ["70", "70"]}},
    {"airTemperature": {"max": "hot"}, "soilMoisture": {"min": "dry", "optimalMin": None}},
])
def test_string_thresholds_keep_control_running(loop, thresholds):
    loop.set_automation_rules({
        "soil_moisture": {"if_below_min": "start_irrigation"},
        "air_temperature": {"if_above_max": "activate_cooling"},
    })
    loop.apply_config({"thresholds": thresholds})
    loop.synthesizer.set_moisture(55)
    loop.tick()
    assert loop.machine.is_on

    for _ in range(30):
        if not loop.machine.is_on:
            break
        loop.tick()
    assert not loop.machine.is_on
    assert len(loop.event_log) == 1
    assert loop.fetch()["config"]["airTemperature"]["max"] == 30


def test_concurrent_writers_keep_actuator_consistent(loop):
    machine = loop.machine
    real_start, real_stop = machine.start, machine.stop
    counts = {"starts": 0, "stops": 0}

    def counting_start(reason="command"):
        with machine.lock:
            started = real_start(reason)
            counts["starts"] += started
            return started

    def counting_stop(reason="command"):
        with machine.lock:
            event = real_stop(reason)
            counts["stops"] += event is not None
            return event

    machine.start = counting_start
    machine.stop = counting_stop
    loop.synthesizer.set_moisture(62)

    rounds = 200
    barrier = threading.Barrier(4)
    done = threading.Event()
    violations = []

    def ticks():
        barrier.wait()
        for _ in range(rounds):
            loop.tick()

    def operator():
        barrier.wait()
        for n in range(rounds):
            if n % 2:
                loop.stop_manual()
            else:
                loop.start_manual()

    def schedule_timers():
        barrier.wait()
        for n in range(rounds):
            if n % 3:
                machine.stop()
            else:
                machine.start()

    def observer():
        barrier.wait()
        while not done.is_set():
            actuator = machine.actuator
            if actuator.is_on != (actuator.episode_start is not None):
                violations.append(actuator)

    workers = [threading.Thread(target=fn) for fn in (ticks, operator, schedule_timers)]
    watcher = threading.Thread(target=observer)
    for thread in workers + [watcher]:
        thread.start()
    for thread in workers:
        thread.join(30)
    done.set()
    watcher.join(5)

    assert violations == []
    actuator = machine.actuator
    assert actuator.is_on == (actuator.episode_start is not None)

    events = loop.event_log.events()
    assert len(events) == counts["stops"]
    assert counts["starts"] == counts["stops"] + actuator.is_on
    starts = [e.start for e in events]
    assert starts == sorted(set(starts))
    assert all(e.end > e.start for e in events)
