#!/usr/bin/env python3
"""Irrigation Control - push commands to a running station.

Every subcommand becomes one message on POST /api/command:

    python3 tools/irrigation_ctl.py state
    python3 tools/irrigation_ctl.py water start
    python3 tools/irrigation_ctl.py profile tomato
    python3 tools/irrigation_ctl.py thresholds soilMoisture --min 50 --optimal 65 --max 90
    python3 tools/irrigation_ctl.py schedules
    python3 tools/irrigation_ctl.py schedule-add --id morning --time 07:00 --days mon,wed --duration 300
    python3 tools/irrigation_ctl.py schedule-del morning
    python3 tools/irrigation_ctl.py scheduler on

Use --url (or STATION_URL) when the station is not on localhost:5000.
"""

import argparse
import json
import os
import sys

import requests

DEFAULT_URL = os.environ.get("STATION_URL", "http://localhost:5000")
TIMEOUT = 10  # seconds

DAY_ALIASES = {
    "mon": "monday", "tue": "tuesday", "wed": "wednesday", "thu": "thursday",
    "fri": "friday", "sat": "saturday", "sun": "sunday",
}


def _days(value):
    days = []
    for part in value.split(","):
        part = part.strip().lower()
        if part:
            days.append(DAY_ALIASES.get(part, part))
    return days


def build_message(args):
    """Translate parsed CLI args into a command message."""
    if args.cmd == "state":
        return {"type": "getState"}
    if args.cmd == "water":
        return {"type": "manualWatering", "action": args.action}
    if args.cmd == "profile":
        return {"type": "switchProfile", "profileId": args.profile_id}
    if args.cmd == "thresholds":
        envelope = {}
        if args.min is not None:
            envelope["min"] = args.min
        if args.optimal:
            envelope["optimal"] = args.optimal if len(args.optimal) > 1 else args.optimal[0]
        if args.max is not None:
            envelope["max"] = args.max
        return {"type": "configUpdate", "settings": {"thresholds": {args.metric: envelope}}}
    if args.cmd == "schedules":
        return {"type": "getSchedules"}
    if args.cmd == "schedule-add":
        schedule = {
            "time": args.time,
            "days": _days(args.days),
            "durationSeconds": args.duration,
            "enabled": not args.disabled,
        }
        if args.id:
            schedule["id"] = args.id
        return {"type": "saveSchedule", "schedule": schedule}
    if args.cmd == "schedule-del":
        return {"type": "deleteSchedule", "scheduleId": args.schedule_id}
    if args.cmd == "scheduler":
        return {"type": "setSchedulerEnabled", "enabled": args.state == "on"}
    raise ValueError(f"unknown command: {args.cmd}")


def send(url, message):
    resp = requests.post(f"{url.rstrip('/')}/api/command", json=message, timeout=TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Send commands to an Irrigation Station")
    parser.add_argument("--url", default=DEFAULT_URL, help="Station base URL")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sub.add_parser("state", help="Print the current state snapshot")

    p = sub.add_parser("water", help="Manual watering")
    p.add_argument("action", choices=["start", "stop"])

    p = sub.add_parser("profile", help="Switch to a plant profile")
    p.add_argument("profile_id")

    p = sub.add_parser("thresholds", help="Update one metric's thresholds")
    p.add_argument("metric", help="e.g. soilMoisture, airTemperature, soilPH")
    p.add_argument("--min", type=float)
    p.add_argument("--optimal", type=float, nargs="+", help="one value, or low high")
    p.add_argument("--max", type=float)

    sub.add_parser("schedules", help="List schedules")

    p = sub.add_parser("schedule-add", help="Add or replace a schedule")
    p.add_argument("--id")
    p.add_argument("--time", required=True, help="HH:MM")
    p.add_argument("--days", required=True, help="comma separated, e.g. mon,wed,fri")
    p.add_argument("--duration", type=float, required=True, help="seconds")
    p.add_argument("--disabled", action="store_true")

    p = sub.add_parser("schedule-del", help="Delete a schedule")
    p.add_argument("schedule_id")

    p = sub.add_parser("scheduler", help="Enable or disable the scheduler")
    p.add_argument("state", choices=["on", "off"])

    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    message = build_message(args)
    try:
        reply = send(args.url, message)
    except requests.RequestException as exc:
        print(f"Error talking to {args.url}: {exc}", file=sys.stderr)
        return 1
    print(json.dumps(reply, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
