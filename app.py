from __future__ import annotations

import atexit

from flask import Flask, jsonify

from adapters.config_loader import load_config
from adapters.rest_client import SupabaseRestClient
from services.gateway import RosterGateway
from services.roster_session import RosterSession
from services.runtime import RosterRuntime


BLUEPRINTS = [
    ("blueprints.roster.routes", "bp"),
]


def build_gateway(cfg: dict) -> RosterGateway:
    rest = cfg["rest"]
    location_id = cfg["roster"].get("location_id")
    if not rest.get("url") or location_id in (None, ""):
        raise RuntimeError("rest.url and roster.location_id must be configured")
    client = SupabaseRestClient(
        rest["url"],
        rest.get("anon_key", ""),
        get_cache_ms=int(rest.get("get_cache_ms", 30000)),
        timeout=float(rest.get("timeout", 10.0)),
    )
    return RosterGateway(client, int(location_id), resources=cfg.get("resources"))


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_mapping(
        ROSTER_CONFIG=None,
        ROSTER_GATEWAY=None,
        ROSTER_START=None,
        ROSTER_AUTO_LOAD=True,
    )

    if test_config:
        app.config.update(test_config)

    cfg = load_config(app.config["ROSTER_CONFIG"])
    runtime = RosterRuntime()
    owns_gateway = app.config["ROSTER_GATEWAY"] is None
    gateway = app.config["ROSTER_GATEWAY"] or runtime.call_sync(build_gateway, cfg)
    session = runtime.call_sync(
        lambda: RosterSession.from_config(gateway, cfg, start=app.config["ROSTER_START"])
    )
    app.extensions["roster"] = {"runtime": runtime, "session": session, "config": cfg}

    for import_path, attr in BLUEPRINTS:
        module = __import__(import_path, fromlist=[attr])
        blueprint = getattr(module, attr)
        app.register_blueprint(blueprint)

    @app.route("/healthz")
    def healthcheck() -> tuple[str, int]:
        return "OK", 200

    @app.route("/")
    def index():
        return jsonify(runtime.call_sync(session.status))

    @app.cli.command("load-window")
    def load_window_command() -> None:
        """Load the current window and print what every slice returned."""
        reports = runtime.call(session.load)
        print(f"[INFO] window {session.start_date}..{session.end_date}")
        for name, report in reports.items():
            line = f"[INFO] {name}: loaded={report.loaded} dropped={report.dropped}"
            if report.error:
                line += f" error={report.error}"
            print(line)

    def shutdown() -> None:
        """Drain pending writes, release the HTTP client and stop the loop; safe to repeat."""
        if not runtime.running:
            return
        try:
            runtime.call(session.close)
            if session.buffer:
                app.logger.warning("%d write(s) still pending at shutdown", len(session.buffer))
            if owns_gateway:
                runtime.call(gateway.aclose)
        finally:
            runtime.stop()

    app.extensions["roster"]["shutdown"] = shutdown
    atexit.register(shutdown)

    if app.config.get("ROSTER_AUTO_LOAD", True):
        reports = runtime.call(session.load)
        failed = [name for name, report in reports.items() if report.error]
        if failed:
            app.logger.warning("initial load failed for: %s", ", ".join(failed))

    return app


if __name__ == "__main__":
    app = create_app()
    app.run(debug=True)
