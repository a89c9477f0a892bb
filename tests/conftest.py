import copy
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from config import DEFAULT_CONFIG

REPO_ROOT = Path(__file__).resolve().parent.parent

# 2024-01-01 was a Monday
MONDAY_7AM = datetime(2024, 1, 1, 7, 0)


class FakeTimer:
    """Stands in for threading.Timer; fires only when the test says so."""

    instances = []

    def __init__(self, seconds, fn):
        self.seconds = seconds
        self.fn = fn
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.fn()


class SteppingClock:
    """datetime.now replacement that advances a fixed step per call."""

    def __init__(self, start=MONDAY_7AM, step=timedelta(seconds=2)):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture(autouse=True)
def _reset_fake_timers():
    FakeTimer.instances = []
    yield
    FakeTimer.instances = []


@pytest.fixture
def station_config(tmp_path):
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["storage"] = {
        "profiles_path": str(REPO_ROOT / "profiles.yaml"),
        "custom_profiles_path": str(tmp_path / "custom_profiles.json"),
    }
    return config
