"""Control core for Irrigation Station.

Architecture:
    DataSource           -- periodic background worker, publishes to the bus
    WebEventBus          -- thread-safe fan-out to SSE clients
    ControlLoop          -- fixed-period tick: synthesize, evaluate, control
    WateringStateMachine -- the valve, its authority and its episodes
    EventLog             -- today's completed watering episodes
    AutomationEvaluator  -- advisory threshold rules
    Scheduler            -- time-of-day watering on its own authority
    CommandRouter        -- applies inbound client commands
    ProfileStore         -- plant profiles and rule tables
"""

from core.automation import AutomationEvaluator
from core.commands import CommandRouter
from core.control_loop import ControlLoop
from core.data_source import DataSource
from core.event_log import EventLog, WateringEvent
from core.profile_store import ProfileStore
from core.scheduler import Schedule, Scheduler
from core.thresholds import ThresholdConfig
from core.watering import ActuatorState, WateringState, WateringStateMachine
from core.web_event_bus import WebEventBus

__all__ = [
    "AutomationEvaluator",
    "CommandRouter",
    "ControlLoop",
    "DataSource",
    "EventLog",
    "WateringEvent",
    "ProfileStore",
    "Schedule",
    "Scheduler",
    "ThresholdConfig",
    "ActuatorState",
    "WateringState",
    "WateringStateMachine",
    "WebEventBus",
]
