# src/tempo_tracker/tracking/store.py

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from .models import Project, StoreData, Task, TimeEntry

logger = logging.getLogger(__name__)


def _items(raw: Any) -> list[dict[str, Any]]:
    if not isinstance(raw, list):
        return []
    return [x for x in raw if isinstance(x, dict) and x.get("id")]


def data_from_json(doc: Any) -> StoreData:
    """
    Build StoreData from a decoded JSON document.

    Unknown keys are ignored; malformed items are skipped with a warning.
    Accepts the older layouts too ("entries" instead of "timeEntries",
    top-level "runningEntryId" instead of settings.activeEntryId).
    """
    if not isinstance(doc, dict):
        return StoreData()

    data = StoreData()

    for raw in _items(doc.get("projects")):
        try:
            data.projects.append(Project.from_dict(raw))
        except Exception:
            logger.warning("Skipping malformed project %r", raw.get("id"), exc_info=True)

    for raw in _items(doc.get("tasks")):
        try:
            data.tasks.append(Task.from_dict(raw))
        except Exception:
            logger.warning("Skipping malformed task %r", raw.get("id"), exc_info=True)

    raw_entries = doc.get("timeEntries")
    if raw_entries is None:
        raw_entries = doc.get("entries")
    for raw in _items(raw_entries):
        try:
            data.entries.append(TimeEntry.from_dict(raw))
        except Exception:
            logger.warning("Skipping malformed entry %r", raw.get("id"), exc_info=True)

    settings = doc.get("settings")
    active = settings.get("activeEntryId") if isinstance(settings, dict) else None
    if active is None:
        active = doc.get("runningEntryId")
    data.active_entry_id = str(active) if active else None

    repair(data)
    return data


def data_to_json(data: StoreData) -> dict[str, Any]:
    return {
        "projects": [p.to_dict() for p in data.projects],
        "tasks": [t.to_dict() for t in data.tasks],
        "timeEntries": [e.to_dict() for e in data.entries],
        "settings": {"activeEntryId": data.active_entry_id},
    }


def repair(data: StoreData) -> None:
    """
    Restore document invariants after loading.

    - tasks whose project is gone are removed (their entries are detached)
    - active_entry_id points at the single open entry, or is None
    - any other open entry is closed at its own start time
    """
    project_ids = {p.id for p in data.projects}
    orphans = {t.id for t in data.tasks if t.project_id not in project_ids}
    if orphans:
        logger.warning("Removing %d task(s) without a project: %s", len(orphans), sorted(orphans))
        data.tasks = [t for t in data.tasks if t.id not in orphans]
        for e in data.entries:
            if e.task_id in orphans:
                e.task_id = None

    current = data.find_entry(data.active_entry_id)
    if data.active_entry_id and (current is None or not current.is_running):
        logger.warning("Clearing stale active entry pointer %s", data.active_entry_id)
        data.active_entry_id = None
        current = None

    open_entries = [e for e in data.entries if e.is_running]
    if not open_entries:
        return

    keep = current or max(open_entries, key=lambda e: e.start_time)
    for e in open_entries:
        if e is keep:
            continue
        logger.warning("Closing extra open entry %s at its start time", e.id)
        e.end_time = e.start_time
    data.active_entry_id = keep.id


class JsonFileStore:
    """
    Single-document JSON store.

    Every load reads the file again; every save rewrites it in full
    (temp file + os.replace). A missing or unreadable file reads as an
    empty document.
    """

    def __init__(self, path: str | Path = "store.json") -> None:
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("JsonFileStore ready path=%s exists=%s", self._path, self._path.exists())

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> StoreData:
        if not self._path.exists():
            return StoreData()
        try:
            doc = json.loads(self._path.read_text("utf-8"))
        except Exception:
            logger.exception("Failed to read store from %s; starting empty", self._path)
            return StoreData()
        return data_from_json(doc)

    def save(self, data: StoreData) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data_to_json(data), ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, self._path)
        with contextlib.suppress(Exception):
            os.chmod(self._path, 0o600)
        logger.debug(
            "Store saved path=%s projects=%d tasks=%d entries=%d",
            self._path,
            len(data.projects),
            len(data.tasks),
            len(data.entries),
        )
