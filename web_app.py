#!/usr/bin/env python3
"""Irrigation Station - web mode.

Runs the simulated irrigation controller and serves it to dashboards:
SSE for the periodic state broadcast, one JSON endpoint for commands,
and a few read-only REST views.

Usage:
    python3 web_app.py                      # station.yaml next to this file
    python3 web_app.py --config my.yaml     # Custom config
    python3 web_app.py --port 8080          # Custom port
"""

__version__ = "1.0.0"

import argparse
import json
import logging
from typing import Any, Dict, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from config import DEFAULT_CONFIG_FILE, load_config
from core.commands import CommandRouter
from core.control_loop import ControlLoop
from core.profile_store import ProfileStore
from core.scheduler import Schedule, Scheduler
from core.web_event_bus import KEEPALIVE, WebEventBus

logger = logging.getLogger(__name__)


class Station:
    """Everything one running controller owns, wired together."""

    def __init__(self, config: Dict[str, Any], bus: Optional[WebEventBus] = None,
                 scheduler_kwargs: Optional[Dict[str, Any]] = None):
        self.config = config
        self.bus = bus or WebEventBus()

        storage = config.get("storage", {})
        self.profiles = ProfileStore(
            storage.get("profiles_path", "profiles.yaml"),
            storage.get("custom_profiles_path", "data/custom_profiles.json"),
        )

        self.loop = ControlLoop(self.bus, config.get("simulation", {}))
        self.loop.set_automation_rules(self.profiles.get_automation_rules())

        sched_cfg = config.get("scheduler", {})
        self.scheduler = Scheduler(
            self.loop.machine, self.bus, sched_cfg, **(scheduler_kwargs or {})
        )
        for raw in sched_cfg.get("schedules") or []:
            try:
                self.scheduler.add_schedule(Schedule.from_dict(raw))
            except ValueError as exc:
                logger.warning("Skipping schedule from config %r: %s", raw, exc)

        self.router = CommandRouter(self.loop, self.scheduler, self.profiles, self.bus)

    def start(self):
        self.loop.start()
        if self.config.get("scheduler", {}).get("enabled"):
            self.scheduler.set_enabled(True)

    def close(self):
        self.scheduler.shutdown()
        self.loop.close()


def _sse(topic: str, payload: Any) -> str:
    return f"event: {topic}\ndata: {json.dumps(payload)}\n\n"


def create_app(station: Station) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    CORS(app)  # the dashboard is served from elsewhere
    app.config["STATION"] = station

    # ─── Routes: Health ───

    @app.route("/health")
    def health():
        return jsonify({
            "status": "ok",
            "version": __version__,
            "running": station.loop.running,
            "clients": station.bus.client_count,
            "commands": station.router.command_types,
        })

    # ─── Routes: State stream ───

    @app.route("/api/stream")
    def state_stream():
        """SSE endpoint: current state first, then every broadcast."""
        initial = [
            ("state", station.loop.snapshot()),
            ("schedules", {"type": "schedules", "data": station.scheduler.status()}),
        ]

        def generate():
            for topic, payload in station.bus.sse_stream(initial):
                if topic == KEEPALIVE:
                    yield ": keepalive\n\n"
                    continue
                try:
                    yield _sse(topic, payload)
                except (TypeError, ValueError) as exc:
                    logger.debug("SSE serialize error for %s: %s", topic, exc)

        return Response(
            generate(),
            mimetype="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
                "Connection": "keep-alive",
            },
        )

    # ─── Routes: Commands ───

    @app.route("/api/command", methods=["POST"])
    def command():
        """Accept one command message, e.g. {"type": "manualWatering", "action": "start"}."""
        message = request.get_json(silent=True)
        if not isinstance(message, dict):
            return jsonify({"error": "JSON object required"}), 400
        reply = station.router.handle(message)
        if reply is None:
            return jsonify({"ok": True})
        return jsonify(reply)

    # ─── Routes: Read-only views ───

    @app.route("/api/state")
    def state():
        return jsonify(station.loop.snapshot())

    @app.route("/api/schedules")
    def schedules():
        return jsonify(station.scheduler.status())

    @app.route("/api/profiles")
    def profiles():
        return jsonify({
            "profiles": station.profiles.get_all_profiles(),
            "automationRules": station.profiles.get_automation_rules(),
            "alertMessages": station.profiles.get_alert_messages(),
        })

    return app


def main():
    parser = argparse.ArgumentParser(description="Irrigation Station Web Server")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="Config file path")
    parser.add_argument("--port", type=int, default=None, help="Web server port")
    parser.add_argument("--host", default=None, help="Bind address")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--version", action="version",
                        version=f"Irrigation Station {__version__}")
    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s  %(levelname)-7s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    logger.info("Irrigation Station v%s starting", __version__)

    config = load_config(args.config)
    host = args.host or config["server"]["host"]
    port = args.port or config["server"]["port"]

    station = Station(config)
    station.start()

    app = create_app(station)
    logger.info("Station API at http://%s:%d", host, port)

    try:
        app.run(host=host, port=port, threaded=True, debug=False)
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        station.close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    main()
