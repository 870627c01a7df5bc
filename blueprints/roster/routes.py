from __future__ import annotations

from dataclasses import asdict
from typing import Any, Callable, Dict

from flask import Blueprint, current_app, jsonify, request

from adapters.rest_client import RestError
from domain import keys
from services.errors import LoadError, PausedError, RosterError

bp = Blueprint("roster", __name__, url_prefix="/api/roster")


def _roster():
    return current_app.extensions["roster"]


def _payload() -> Dict[str, Any]:
    return request.get_json(silent=True) or {}


def _state(session) -> Dict[str, Any]:
    return {
        "window": {
            "start_date": session.start_date,
            "end_date": session.end_date,
            "range_length": session.window.range_length,
            "dates": session.date_list,
        },
        "crew": [asdict(member) for member in session.cache.crew],
        "shows": {day: [asdict(show) for show in shows] for day, shows in session.cache.shows_by_date.items()},
        "assignments": [asdict(a) for a in session.cache.assignments.values() if a.is_working],
        "shifts": [asdict(s) for s in session.cache.shifts.values()],
        "day_hours": [asdict(h) for h in session.cache.day_hours.values()],
        "errors": {name: message for name, message in session.cache.errors.items() if message},
        "status": session.status(),
    }


def _edit(apply: Callable[[Any], Any]):
    """Run a synchronous mutation on the loop thread, refusing it while paused."""
    roster = _roster()
    session = roster["session"]

    def run():
        if session.save_paused:
            raise PausedError(session.save_error or "saving is paused")
        return apply(session)

    result = roster["runtime"].call_sync(run)
    if result is False or result is None:
        return jsonify({"ok": False, "error": "invalid input", "status": session.status()}), 400
    return jsonify({"ok": True, "result": result, "status": session.status()})


def _remote(apply: Callable[[Any], Any], *, check_paused: bool = True):
    roster = _roster()
    session = roster["session"]

    async def run():
        if check_paused and session.save_paused:
            raise PausedError(session.save_error or "saving is paused")
        return await apply(session)

    return roster["runtime"].call(run), session


@bp.errorhandler(PausedError)
def handle_paused(exc: PausedError):
    return jsonify({"ok": False, "error": str(exc), "paused": True}), 409


@bp.errorhandler(LoadError)
@bp.errorhandler(RestError)
@bp.errorhandler(RosterError)
def handle_remote_error(exc: Exception):
    return jsonify({"ok": False, "error": str(exc)}), 502


@bp.route("/state", methods=["GET"])
def get_state():
    roster = _roster()
    return jsonify(roster["runtime"].call_sync(_state, roster["session"]))


@bp.route("/status", methods=["GET"])
def get_status():
    roster = _roster()
    return jsonify(roster["runtime"].call_sync(lambda: roster["session"].status()))


@bp.route("/working", methods=["POST"])
def set_working():
    data = _payload()
    return _edit(lambda s: s.set_working_for(data.get("date"), data.get("crew_id"), data.get("show_id"), data.get("value")))


@bp.route("/toggle", methods=["POST"])
def toggle_cell():
    data = _payload()
    return _edit(lambda s: s.toggle_cell(data.get("date"), data.get("crew_id"), data.get("show_id")))


@bp.route("/track", methods=["POST"])
def set_track():
    data = _payload()
    return _edit(lambda s: s.set_track_for(data.get("date"), data.get("crew_id"), data.get("show_id"), data.get("track_id")))


@bp.route("/assign", methods=["POST"])
def assign_track():
    data = _payload()
    return _edit(
        lambda s: s.assign_crew_to_track(data.get("date"), data.get("crew_id"), data.get("show_id"), data.get("track_id"))
    )


@bp.route("/shift", methods=["POST"])
def set_shift():
    data = _payload()
    if data.get("default"):
        return _edit(lambda s: s.apply_default_shift(data.get("date"), data.get("crew_id")))
    args = [data.get("date"), data.get("crew_id"), data.get("start"), data.get("end")]
    if "day_note" in data:
        args.append(data["day_note"])
    return _edit(lambda s: s.set_shift_for(*args))


@bp.route("/clear-day", methods=["POST"])
def clear_day():
    data = _payload()
    if data.get("crew_id") is not None:
        return _edit(lambda s: s.clear_day_for_crew(data.get("date"), data.get("crew_id")))

    def apply(session):
        if not keys.normalize_date(data.get("date")):
            return None
        return {"cleared": session.clear_day(data.get("date"))}

    return _edit(apply)


@bp.route("/copy-previous-week", methods=["POST"])
def copy_previous_week():
    written, session = _remote(lambda s: s.copy_previous_week())
    return jsonify({"ok": True, "written": written, "status": session.status()})


@bp.route("/clear-week", methods=["POST"])
def clear_week():
    _, session = _remote(lambda s: s.clear_week())
    return jsonify({"ok": True, "status": session.status()})


@bp.route("/shift-week", methods=["POST"])
def shift_week():
    data = _payload()
    moved, session = _remote(lambda s: s.shift_week(data.get("delta", 0)), check_paused=False)
    return jsonify({"ok": True, "moved": moved, "start_date": session.start_date, "end_date": session.end_date})


@bp.route("/refresh", methods=["POST"])
def refresh():
    reports, _ = _remote(lambda s: s.refresh(), check_paused=False)
    return jsonify({"ok": True, "slices": {name: asdict(report) for name, report in reports.items()}})


@bp.route("/flush", methods=["POST"])
def flush():
    saved, session = _remote(lambda s: s.flush(), check_paused=False)
    return jsonify({"ok": saved, "status": session.status()})


@bp.route("/retry", methods=["POST"])
def retry():
    saved, session = _remote(lambda s: s.retry_saving(), check_paused=False)
    return jsonify({"ok": saved, "status": session.status()})


@bp.route("/shows", methods=["POST"])
def create_show():
    data = _payload()
    show, _ = _remote(lambda s: s.create_show(data.get("date"), data.get("time"), data.get("sort_order")))
    if show is None:
        return jsonify({"ok": False, "error": "show not created"}), 400
    return jsonify({"ok": True, "show": asdict(show)}), 201


@bp.route("/shows/<int:show_id>", methods=["PATCH"])
def update_show(show_id: int):
    data = _payload()
    show, _ = _remote(lambda s: s.update_show(show_id, data.get("time")))
    if show is None:
        return jsonify({"ok": False, "error": "show not updated"}), 400
    return jsonify({"ok": True, "show": asdict(show)})


@bp.route("/shows/<int:show_id>", methods=["DELETE"])
def delete_show(show_id: int):
    deleted, _ = _remote(lambda s: s.delete_show(show_id))
    return jsonify({"ok": deleted})
