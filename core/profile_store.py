"""Plant profiles, automation rules and alert texts.

Defaults ship in profiles.yaml:

    profiles:
      - id: tomato
        name: Tomato
        thresholds: {soilMoisture: {min: 55, optimal: [65, 65], max: 75}, ...}
    automation_rules:
      soil_moisture: {if_below_min: start_irrigation, ...}
    alerts:
      soil_moisture: {below_min: "Soil is too dry", ...}

Profiles created from the dashboard are written to a separate JSON file
so the shipped defaults are never modified. Default profiles cannot be
deleted, and a custom profile reusing a default id is ignored on load.
"""

import copy
import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

FALLBACK_PROFILES = [
    {
        "id": "tomato",
        "name": "Tomato",
        "icon": "🍅",
        "description": "Vegetable crop, medium moisture",
        "thresholds": {
            "soilMoisture": {"min": 55, "optimal": [65, 65], "max": 75},
            "soilTemperature": {"min": 14, "optimal": 20, "max": 28},
            "airTemperature": {"min": 15, "optimal": 22, "max": 30},
            "airHumidity": {"min": 40, "optimal": 60, "max": 75},
            "lightLux": {"min": 30000, "optimal": 50000, "max": 70000},
            "soilPH": {"min": 6.0, "optimal": 6.5, "max": 7.0},
        },
    },
]


def _write_json_atomic(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp_path, path)


class ProfileStore:
    """Profile lookup by id, backed by YAML defaults + JSON custom profiles."""

    def __init__(self, profiles_path: str = "profiles.yaml",
                 custom_path: str = "data/custom_profiles.json"):
        self._profiles_path = Path(profiles_path)
        self._custom_path = Path(custom_path)
        self._lock = threading.Lock()

        defaults = self._load_defaults()
        self._default_ids = {p["id"] for p in defaults["profiles"]}
        self._automation_rules: Dict[str, Dict] = defaults["automation_rules"]
        self._alert_messages: Dict[str, Dict] = defaults["alerts"]
        self._profiles: List[Dict] = defaults["profiles"] + self._load_custom()
        logger.info(
            "ProfileStore loaded %d profiles (%d custom)",
            len(self._profiles), len(self._profiles) - len(self._default_ids),
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load_defaults(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        try:
            with open(self._profiles_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Profile file not found: %s", self._profiles_path)
        except (OSError, yaml.YAMLError) as exc:
            logger.error("Error loading %s: %s", self._profiles_path, exc)
        if not isinstance(data, dict):
            logger.error("Profile file %s is not a mapping, ignoring it", self._profiles_path)
            data = {}

        profiles = [p for p in data.get("profiles") or [] if isinstance(p, dict) and p.get("id")]
        if not profiles:
            logger.warning("No default profiles loaded, using fallback profile")
            profiles = copy.deepcopy(FALLBACK_PROFILES)

        return {
            "profiles": profiles,
            "automation_rules": data.get("automation_rules") or {},
            "alerts": data.get("alerts") or {},
        }

    def _load_custom(self) -> List[Dict]:
        if not self._custom_path.exists():
            return []
        try:
            with self._custom_path.open(encoding="utf-8") as f:
                saved = json.load(f)
        except (OSError, ValueError) as exc:
            logger.error("Error loading custom profiles %s: %s", self._custom_path, exc)
            return []
        profiles = saved.get("profiles", []) if isinstance(saved, dict) else []
        return [
            p for p in profiles
            if isinstance(p, dict) and p.get("id") and p["id"] not in self._default_ids
        ]

    def _save_custom(self) -> bool:
        custom = [p for p in self._profiles if p["id"] not in self._default_ids]
        try:
            _write_json_atomic(self._custom_path, {"profiles": custom})
        except OSError as exc:
            logger.error("Error saving profiles to %s: %s", self._custom_path, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_all_profiles(self) -> List[Dict]:
        with self._lock:
            return copy.deepcopy(self._profiles)

    def get_profile(self, profile_id: str) -> Optional[Dict]:
        with self._lock:
            for profile in self._profiles:
                if profile["id"] == profile_id:
                    return copy.deepcopy(profile)
        return None

    def get_automation_rules(self) -> Dict[str, Dict]:
        return copy.deepcopy(self._automation_rules)

    def get_alert_messages(self) -> Dict[str, Dict]:
        return copy.deepcopy(self._alert_messages)

    def is_default(self, profile_id: str) -> bool:
        return profile_id in self._default_ids

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def save_profile(self, profile: Dict) -> bool:
        """Insert or replace a profile by id and persist custom profiles."""
        if not isinstance(profile, dict) or not profile.get("id"):
            logger.warning("Refusing to save profile without an id: %r", profile)
            return False
        profile = copy.deepcopy(profile)
        with self._lock:
            for index, existing in enumerate(self._profiles):
                if existing["id"] == profile["id"]:
                    self._profiles[index] = profile
                    logger.info("Profile updated: %s", profile.get("name", profile["id"]))
                    break
            else:
                self._profiles.append(profile)
                logger.info("New profile added: %s", profile.get("name", profile["id"]))
            return self._save_custom()

    def delete_profile(self, profile_id: str) -> bool:
        if profile_id in self._default_ids:
            logger.warning("Cannot delete default profile: %s", profile_id)
            return False
        with self._lock:
            for index, existing in enumerate(self._profiles):
                if existing["id"] == profile_id:
                    del self._profiles[index]
                    logger.info("Profile deleted: %s", profile_id)
                    return self._save_custom()
        logger.warning("Profile not found: %s", profile_id)
        return False
