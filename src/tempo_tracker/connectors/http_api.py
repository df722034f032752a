# src/tempo_tracker/connectors/http_api.py

"""
JSON HTTP API (Flask).

Thin translation layer: parse request -> call TrackerService -> jsonify.
All rules (cascade policy, single running timer, validation) live in the
service. Runs in a background thread next to the console REPL.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Any

from flask import Flask, Response, jsonify, request
from werkzeug.serving import BaseWSGIServer, make_server

from ..core.state import AppState
from ..tracking.aggregate import UNASSIGNED, Period, PeriodSummary
from ..tracking.models import NotFoundError, format_instant, parse_instant

logger = logging.getLogger(__name__)


def _body() -> dict[str, Any]:
    raw = request.get_json(silent=True)
    return raw if isinstance(raw, dict) else {}


def _query_day(name: str) -> date | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        raise ValueError(f"{name} must be a date like 2024-01-31") from None


def _instant(body: dict[str, Any], key: str):
    try:
        return parse_instant(body.get(key))
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be an ISO-8601 timestamp") from None


def _str_field(body: dict[str, Any], key: str) -> str | None:
    value = body.get(key)
    if value is None or isinstance(value, str):
        return value
    raise ValueError(f"{key} must be a string")


def _bool_field(body: dict[str, Any], key: str) -> bool | None:
    value = body.get(key)
    if value is None or isinstance(value, bool):
        return value
    raise ValueError(f"{key} must be true or false")


def _description(body: dict[str, Any]) -> str:
    return _str_field(body, "description") or _str_field(body, "notes") or ""


def _summary_to_dict(summary: PeriodSummary) -> dict[str, Any]:
    def _key(k: Any) -> str | None:
        return None if k == UNASSIGNED else str(k)

    return {
        "start": format_instant(summary.start),
        "end": format_instant(summary.end),
        "totalDuration": round(summary.total_seconds),
        "entries": summary.entries,
        "projects": [
            {
                "projectId": _key(p.project_id),
                "duration": round(p.seconds),
                "entries": p.entries,
                "percentage": round(p.percentage, 1),
                "tasks": [
                    {"taskId": _key(t.key), "duration": round(t.seconds), "entries": t.entries}
                    for t in p.tasks
                ],
            }
            for p in summary.projects
        ],
    }


def create_app(state: AppState) -> Flask:
    app = Flask(__name__)
    tracker = state.tracker

    @app.errorhandler(NotFoundError)
    def _not_found(e: NotFoundError):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(ValueError)
    def _bad_request(e: ValueError):
        return jsonify({"error": str(e)}), 400

    # ---- projects ----

    @app.get("/api/projects")
    def list_projects():
        include_archived = request.args.get("archived", "").lower() in {"1", "true", "yes"}
        return jsonify([p.to_dict() for p in tracker.list_projects(include_archived=include_archived)])

    @app.post("/api/projects")
    def create_project():
        body = _body()
        project = tracker.add_project(_str_field(body, "name") or "", _str_field(body, "color"))
        return jsonify(project.to_dict()), 201

    @app.put("/api/projects/<project_id>")
    def update_project(project_id: str):
        body = _body()
        project = tracker.update_project(
            project_id,
            name=_str_field(body, "name"),
            color=_str_field(body, "color"),
            archived=_bool_field(body, "archived"),
        )
        return jsonify(project.to_dict())

    @app.delete("/api/projects/<project_id>")
    def delete_project(project_id: str):
        tracker.delete_project(project_id)
        return jsonify({"success": True})

    # ---- tasks ----

    @app.get("/api/tasks")
    def list_tasks():
        include_archived = request.args.get("archived", "").lower() in {"1", "true", "yes"}
        tasks = tracker.list_tasks(request.args.get("projectId") or None, include_archived=include_archived)
        return jsonify([t.to_dict() for t in tasks])

    @app.post("/api/tasks")
    def create_task():
        body = _body()
        task = tracker.add_task(_str_field(body, "name") or "", _str_field(body, "projectId") or "")
        return jsonify(task.to_dict()), 201

    @app.put("/api/tasks/<task_id>")
    def update_task(task_id: str):
        body = _body()
        task = tracker.update_task(task_id, name=_str_field(body, "name"), archived=_bool_field(body, "archived"))
        return jsonify(task.to_dict())

    @app.delete("/api/tasks/<task_id>")
    def delete_task(task_id: str):
        tracker.delete_task(task_id)
        return jsonify({"success": True})

    # ---- entries ----

    @app.get("/api/entries")
    def list_entries():
        day = _query_day("date")
        first, last = _query_day("startDate"), _query_day("endDate")
        if day is not None:
            entries = tracker.entries_for_days(day, day)
        elif first is not None and last is not None:
            entries = tracker.entries_for_days(first, last)
        else:
            entries = tracker.list_entries()
        return jsonify([e.to_dict() for e in entries])

    @app.post("/api/entries")
    def create_entry():
        body = _body()
        entry = tracker.add_entry(
            start_time=_instant(body, "startTime"),
            end_time=_instant(body, "endTime"),
            project_id=_str_field(body, "projectId") or None,
            task_id=_str_field(body, "taskId") or None,
            description=_description(body),
        )
        return jsonify(entry.to_dict()), 201

    @app.put("/api/entries/<entry_id>")
    def update_entry(entry_id: str):
        body = _body()
        changes: dict[str, Any] = {}
        if "startTime" in body:
            changes["start_time"] = _instant(body, "startTime")
        if "endTime" in body:
            changes["end_time"] = _instant(body, "endTime")
        if "projectId" in body:
            changes["project_id"] = _str_field(body, "projectId") or None
        if "taskId" in body:
            changes["task_id"] = _str_field(body, "taskId") or None
        if "description" in body or "notes" in body:
            changes["description"] = _description(body)
        entry = tracker.update_entry(entry_id, **changes)
        return jsonify(entry.to_dict())

    @app.delete("/api/entries/<entry_id>")
    def delete_entry(entry_id: str):
        tracker.delete_entry(entry_id)
        return jsonify({"success": True})

    # ---- timer ----

    @app.post("/api/timer/start")
    def timer_start():
        body = _body()
        result = tracker.start_timer(
            _str_field(body, "projectId") or None,
            _str_field(body, "taskId") or None,
            _description(body),
        )
        payload = result.started.to_dict()
        payload["stopped"] = result.stopped.to_dict() if result.stopped else None
        return jsonify(payload)

    @app.post("/api/timer/stop")
    def timer_stop():
        entry = tracker.stop_timer()
        if entry is None:
            return jsonify({"error": "No active timer"})
        return jsonify(entry.to_dict())

    @app.get("/api/timer/active")
    def timer_active():
        entry = tracker.active_entry()
        if entry is None:
            return jsonify(None)
        payload = entry.to_dict()
        payload["elapsed"] = round(tracker.elapsed(entry))
        return jsonify(payload)

    # ---- reports ----

    @app.get("/api/stats/daily")
    def stats_daily():
        stats = tracker.daily_stats(_query_day("date"))
        return jsonify(
            [
                {
                    "projectId": s.project_id,
                    "projectName": s.project_name,
                    "projectColor": s.project_color,
                    "duration": s.seconds,
                    "entries": s.entries,
                    "durationHours": f"{s.hours:.2f}",
                }
                for s in stats
            ]
        )

    @app.get("/api/reports/<period>")
    def report(period: str):
        summary = tracker.summary(Period.parse(period), _query_day("date"))
        return jsonify(_summary_to_dict(summary))

    @app.get("/api/export/<fmt>")
    def export(fmt: str):
        if fmt == "json":
            return Response(
                tracker.export_json(),
                mimetype="application/json",
                headers={"Content-Disposition": 'attachment; filename="time-tracker-export.json"'},
            )
        if fmt == "csv":
            return Response(
                tracker.export_csv(),
                mimetype="text/csv",
                headers={"Content-Disposition": 'attachment; filename="time-tracker-export.csv"'},
            )
        return jsonify({"error": "Invalid format"}), 400

    return app


@dataclass(slots=True)
class HttpBackgroundRunner:
    thread: threading.Thread
    server: BaseWSGIServer

    def stop(self) -> None:
        try:
            self.server.shutdown()
        except Exception:
            logger.debug("Failed to signal HTTP stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_http_in_background(state: AppState) -> HttpBackgroundRunner | None:
    """
    Start the HTTP API in a background thread (so the console REPL can run in parallel).

    Returns None if the server could not bind.
    """
    settings = state.settings
    host = str(getattr(settings, "http_host", "127.0.0.1"))
    port = int(getattr(settings, "http_port", 3001))

    try:
        server = make_server(host, port, create_app(state), threaded=True)
    except OSError:
        logger.exception("HTTP API could not bind %s:%s", host, port)
        return None

    t = threading.Thread(target=server.serve_forever, name="http-api", daemon=True)
    t.start()

    logger.info("HTTP API listening on http://%s:%s/api", host, port)
    return HttpBackgroundRunner(thread=t, server=server)
