"""Inbound command handling, independent of the transport.

Clients send JSON objects with a ``type`` field:

    {"type": "manualWatering", "action": "start"}
    {"type": "configUpdate", "settings": {"thresholds": {...}}}
    {"type": "switchProfile", "profileId": "tomato"}
    {"type": "saveSchedule", "schedule": {"id": "morning", "time": "07:00", ...}}

handle() returns the reply for the sender (or None when there is
nothing to say) and broadcasts state changes to every client itself.
Bad input never raises: unknown types and unknown actions are logged
and ignored, missing fields mean "leave it as it is".
"""

import logging
from typing import Any, Callable, Dict, Optional

from core.scheduler import Schedule

logger = logging.getLogger(__name__)


class CommandRouter:
    """Dispatches command messages to the control loop, scheduler and profile store."""

    def __init__(self, loop, scheduler, profiles, bus=None):
        self.loop = loop
        self.scheduler = scheduler
        self.profiles = profiles
        self.bus = bus
        self._handlers: Dict[str, Callable[[Dict], Optional[Dict]]] = {
            "configUpdate": self._config_update,
            "manualWatering": self._manual_watering,
            "switchProfile": self._switch_profile,
            "getProfiles": self._get_profiles,
            "saveProfile": self._save_profile,
            "deleteProfile": self._delete_profile,
            "getSchedules": self._get_schedules,
            "saveSchedule": self._save_schedule,
            "deleteSchedule": self._delete_schedule,
            "setSchedulerEnabled": self._set_scheduler_enabled,
            "getState": self._get_state,
        }

    @property
    def command_types(self):
        return sorted(self._handlers)

    def handle(self, message: Any) -> Optional[Dict]:
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object command: %r", message)
            return None
        msg_type = message.get("type")
        handler = self._handlers.get(msg_type)
        if handler is None:
            logger.warning("Ignoring unknown command type: %r", msg_type)
            return None
        try:
            return handler(message)
        except Exception as exc:
            logger.error("Command %s failed: %s", msg_type, exc, exc_info=True)
            return {"type": "error", "command": msg_type, "message": str(exc)}

    # ------------------------------------------------------------------
    # Broadcast helpers
    # ------------------------------------------------------------------

    def _publish(self, topic: str, payload: Dict) -> None:
        if self.bus is not None:
            self.bus.publish(topic, payload)

    def _profiles_payload(self) -> Dict:
        return {
            "type": "profiles",
            "data": self.profiles.get_all_profiles(),
            "automationRules": self.profiles.get_automation_rules(),
            "alertMessages": self.profiles.get_alert_messages(),
        }

    def _schedules_payload(self) -> Dict:
        return {"type": "schedules", "data": self.scheduler.status()}

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _config_update(self, message: Dict) -> Optional[Dict]:
        settings = message.get("settings")
        if settings is None and "thresholds" in message:
            settings = {"thresholds": message["thresholds"]}
        self.loop.apply_config(settings or {})
        self.loop.broadcast()
        return None

    def _manual_watering(self, message: Dict) -> Optional[Dict]:
        action = message.get("action")
        if action == "start":
            self.loop.start_manual()
        elif action == "stop":
            self.loop.stop_manual()
        else:
            logger.warning("Ignoring unknown manual watering action: %r", action)
            return None
        self.loop.broadcast()
        return None

    def _switch_profile(self, message: Dict) -> Optional[Dict]:
        profile_id = message.get("profileId")
        profile = self.profiles.get_profile(profile_id)
        if profile and profile.get("thresholds"):
            self.loop.apply_config({"thresholds": profile["thresholds"]})
            logger.info("Switched to profile: %s (%s)", profile.get("name", profile_id), profile_id)
        else:
            logger.warning("Unknown profile or profile without thresholds: %r", profile_id)
        self.loop.broadcast()
        return None

    def _get_profiles(self, message: Dict) -> Dict:
        return self._profiles_payload()

    def _save_profile(self, message: Dict) -> Dict:
        profile = message.get("profile")
        success = self.profiles.save_profile(profile)
        if success:
            self._publish("profiles", self._profiles_payload())
        return {"type": "profileSaved", "success": success, "profile": profile}

    def _delete_profile(self, message: Dict) -> Dict:
        profile_id = message.get("profileId")
        success = self.profiles.delete_profile(profile_id)
        if success:
            self._publish("profiles", self._profiles_payload())
        return {"type": "profileDeleted", "success": success, "profileId": profile_id}

    def _get_schedules(self, message: Dict) -> Dict:
        return self._schedules_payload()

    def _save_schedule(self, message: Dict) -> Dict:
        raw = message.get("schedule")
        try:
            schedule = Schedule.from_dict(raw)
        except ValueError as exc:
            logger.warning("Rejected schedule %r: %s", raw, exc)
            return {"type": "scheduleSaved", "success": False, "schedule": raw, "error": str(exc)}
        success = self.scheduler.add_schedule(schedule)
        return {"type": "scheduleSaved", "success": success, "schedule": schedule.to_dict()}

    def _delete_schedule(self, message: Dict) -> Dict:
        schedule_id = message.get("scheduleId")
        success = self.scheduler.delete_schedule(schedule_id)
        return {"type": "scheduleDeleted", "success": success, "scheduleId": schedule_id}

    def _set_scheduler_enabled(self, message: Dict) -> Optional[Dict]:
        if "enabled" not in message:
            logger.warning("setSchedulerEnabled without 'enabled', ignoring")
            return None
        self.scheduler.set_enabled(bool(message["enabled"]))
        payload = self._schedules_payload()
        self._publish("schedules", payload)
        # The immediate check may have opened the valve.
        self.loop.broadcast()
        return payload

    def _get_state(self, message: Dict) -> Dict:
        return self.loop.snapshot()
