"""Irrigation Station - Configuration

Built-in defaults for the simulated irrigation controller. Everything
here can be overridden from station.yaml (see load_config()).

Metric naming:
  Threshold keys   soilMoisture, airTemperature, ...   (dashboard config)
  Reading ids      soilMoisture, temperature, ...      (snapshot "sensors")
  Rule ids         soil_moisture, air_temperature, ... (automation rule table)
"""

import copy
import logging
import os
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "station.yaml"

# ---------------------------------------------------------------------------
# Simulation timing
# ---------------------------------------------------------------------------
TICK_INTERVAL = 2.0         # seconds between control loop ticks
SCHEDULER_INTERVAL = 60.0   # seconds between schedule checks
CYCLE_DURATION = 120.0      # full min -> max -> min waveform cycle, seconds

# Fractional start position in the cycle, keeps metrics out of step
PHASE_OFFSETS = {
    "temperature": 0.0,     # starts at min
    "airHumidity": 0.25,    # starts at optimal, rising
    "light": 0.5,           # starts at max
    "pH": 0.75,             # starts at optimal, falling
}

# ---------------------------------------------------------------------------
# Soil moisture random walk (percent per tick)
# ---------------------------------------------------------------------------
MOISTURE_INITIAL = 65.0
MOISTURE_DRY_RATE = (0.3, 1.8)      # evaporation + uptake while idle
MOISTURE_WATER_RATE = (1.0, 3.0)    # rise while the valve is open
MOISTURE_NOISE = 0.5                # full span of the idle jitter

# ---------------------------------------------------------------------------
# Light is simulated in percent of full sun
# ---------------------------------------------------------------------------
LUX_FULL_SCALE = 60000.0
LUX_PER_PERCENT = LUX_FULL_SCALE / 100.0

# ---------------------------------------------------------------------------
# Waveform-driven sensors
# ---------------------------------------------------------------------------
METRICS = {
    "temperature": {
        "label": "Temperature",
        "unit": "°C",
        "threshold_key": "airTemperature",
        "initial": 22.0,
        "noise": 0.2,
        "precision": 1,
    },
    "airHumidity": {
        "label": "Air Humidity",
        "unit": "%",
        "threshold_key": "airHumidity",
        "initial": 55.0,
        "noise": 0.5,
        "precision": 1,
    },
    "light": {
        "label": "Light",
        "unit": "%",
        "threshold_key": "lightLux",
        "initial": 50.0,
        "noise": 1.0,
        "precision": 1,
        "clamp": (0.0, 100.0),
        "scale": 100.0 / LUX_FULL_SCALE,   # lux envelope -> percent
    },
    "pH": {
        "label": "Soil pH",
        "unit": "pH",
        "threshold_key": "soilPH",
        "initial": 6.8,
        "noise": 0.02,
        "precision": 2,
    },
}

SOIL_MOISTURE = {
    "label": "Soil Moisture",
    "unit": "%",
    "threshold_key": "soilMoisture",
    "initial": MOISTURE_INITIAL,
    "precision": 1,
}

# Automation rule id -> (threshold key, reading id, reading multiplier)
# Soil temperature has no probe of its own; air temperature stands in.
RULE_METRICS = {
    "soil_moisture": ("soilMoisture", "soilMoisture", 1.0),
    "soil_temperature": ("soilTemperature", "temperature", 1.0),
    "air_temperature": ("airTemperature", "temperature", 1.0),
    "air_humidity": ("airHumidity", "airHumidity", 1.0),
    "light_lux": ("lightLux", "light", LUX_PER_PERCENT),
    "soil_ph": ("soilPH", "pH", 1.0),
}

# ---------------------------------------------------------------------------
# Thresholds used until a profile or config update replaces them
# ---------------------------------------------------------------------------
DEFAULT_THRESHOLDS = {
    "soilMoisture": {"min": 60, "optimalMin": 70, "optimalMax": 80, "max": 100},
    "soilTemperature": {"min": 14, "optimal": 20, "max": 28},
    "airTemperature": {"min": 15, "optimal": 22, "max": 30},
    "airHumidity": {"min": 40, "optimal": 60, "max": 75},
    "lightLux": {"min": 30000, "optimal": 50000, "max": 70000},
    "soilPH": {"min": 6.0, "optimal": 6.5, "max": 7.0},
}

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

# ---------------------------------------------------------------------------
# station.yaml defaults
# ---------------------------------------------------------------------------
DEFAULT_CONFIG = {
    "simulation": {
        "tick_interval": TICK_INTERVAL,
        "cycle_duration": CYCLE_DURATION,
        "phase_offsets": dict(PHASE_OFFSETS),
    },
    "scheduler": {
        "check_interval": SCHEDULER_INTERVAL,
        "enabled": False,
        "schedules": [],
    },
    "storage": {
        "profiles_path": "profiles.yaml",
        "custom_profiles_path": "data/custom_profiles.json",
    },
    "server": {
        "host": "0.0.0.0",
        "port": 5000,
    },
}


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: str = DEFAULT_CONFIG_FILE) -> Dict[str, Any]:
    """Load station.yaml on top of DEFAULT_CONFIG.

    A missing or broken file is not fatal; the station runs on defaults.
    The PORT environment variable overrides server.port.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if not os.path.exists(path):
        logger.warning("Config file not found: %s (using defaults)", path)
    else:
        try:
            with open(path) as f:
                loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                config = _deep_merge(config, loaded)
            else:
                logger.error("Config file %s is not a mapping, ignoring it", path)
        except (OSError, yaml.YAMLError) as exc:
            logger.error("Failed to read config %s: %s", path, exc)

    port = os.environ.get("PORT")
    if port:
        try:
            config["server"]["port"] = int(port)
        except ValueError:
            logger.warning("Ignoring non-numeric PORT=%r", port)

    return config
