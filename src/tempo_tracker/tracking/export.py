# src/tempo_tracker/tracking/export.py

from __future__ import annotations

import json
from typing import Any

from .models import StoreData, format_instant
from .store import data_to_json

CSV_HEADER = "Project,Task,Start Time,End Time,Duration (seconds),Duration (hours),Notes"


def csv_quote(value: str | None) -> str:
    """Always-quoted CSV text field; empty string when there is no value."""
    if not value:
        return ""
    return '"' + value.replace('"', '""') + '"'


def export_csv(data: StoreData) -> str:
    """
    One row per entry, in start-time order.

    Running entries have empty End Time / Duration columns.
    """
    lines = [CSV_HEADER]
    for entry in sorted(data.entries, key=lambda e: e.start_time):
        project = data.find_project(entry.project_id)
        task = data.find_task(entry.task_id)
        seconds = entry.duration
        row = [
            csv_quote(project.name if project else None),
            csv_quote(task.name if task else None),
            format_instant(entry.start_time) or "",
            format_instant(entry.end_time) or "",
            "" if seconds is None else str(seconds),
            "" if seconds is None else f"{seconds / 3600:.2f}",
            csv_quote(entry.description),
        ]
        lines.append(",".join(row))
    return "\n".join(lines) + "\n"


def export_document(data: StoreData) -> dict[str, Any]:
    return data_to_json(data)


def export_json(data: StoreData) -> str:
    return json.dumps(export_document(data), ensure_ascii=False, indent=2)
