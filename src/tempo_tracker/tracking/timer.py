# src/tempo_tracker/tracking/timer.py

"""
Timer engine.

Pure functions over an in-memory StoreData. The caller (TrackerService)
owns locking and persistence.

Invariant: at most one entry has end_time=None, and active_entry_id names it.
Stopping the old entry and creating the new one happen in a single call, so
no caller can observe two open entries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from .models import StoreData, TimeEntry, new_id

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class TimerStart:
    started: TimeEntry
    stopped: TimeEntry | None


def active_entry(data: StoreData) -> TimeEntry | None:
    entry = data.find_entry(data.active_entry_id)
    if entry is None or not entry.is_running:
        return None
    return entry


def resolve_association(
    data: StoreData, project_id: str | None, task_id: str | None
) -> tuple[str | None, str | None]:
    """
    Validate a (project, task) pair.

    A task without a project implies the task's project. A task must belong
    to the given project.
    """
    project_id = project_id or None
    task_id = task_id or None

    if project_id is not None:
        data.require_project(project_id)

    if task_id is not None:
        task = data.require_task(task_id)
        if project_id is None:
            project_id = task.project_id
        elif task.project_id != project_id:
            raise ValueError(f"task {task_id} does not belong to project {project_id}")

    return project_id, task_id


def stop_timer(data: StoreData, *, now: datetime) -> TimeEntry | None:
    """Finish the running entry at `now`. Returns None when nothing runs."""
    entry = active_entry(data)
    data.active_entry_id = None
    if entry is None:
        return None

    # A clock that went backwards must not produce a negative interval.
    entry.end_time = max(now, entry.start_time)
    logger.info("Timer stopped entry=%s duration=%ss", entry.id, entry.duration)
    return entry


def start_timer(
    data: StoreData,
    *,
    now: datetime,
    project_id: str | None = None,
    task_id: str | None = None,
    description: str = "",
) -> TimerStart:
    project_id, task_id = resolve_association(data, project_id, task_id)

    stopped = stop_timer(data, now=now)

    entry = TimeEntry(
        id=new_id(),
        start_time=now,
        end_time=None,
        project_id=project_id,
        task_id=task_id,
        description=(description or "").strip(),
        created_at=now,
    )
    data.entries.append(entry)
    data.active_entry_id = entry.id

    logger.info(
        "Timer started entry=%s project=%s task=%s (stopped=%s)",
        entry.id,
        project_id,
        task_id,
        stopped.id if stopped else None,
    )
    return TimerStart(started=entry, stopped=stopped)
