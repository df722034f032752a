# src/tempo_tracker/tracking/service.py

from __future__ import annotations

import contextlib
import logging
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Any

from ..core.ports import Clock, StoreBackend
from . import aggregate, export, timer
from .models import (
    DEFAULT_PROJECT_COLOR,
    NotFoundError,
    Project,
    StoreData,
    Task,
    TimeEntry,
    new_id,
    utc_now,
)

logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass(frozen=True, slots=True)
class DailyStat:
    project_id: str | None
    project_name: str
    project_color: str
    seconds: int
    entries: int

    @property
    def hours(self) -> float:
        return round(self.seconds / 3600, 2)


def _require_name(name: str | None, what: str) -> str:
    clean = (name or "").strip()
    if not clean:
        raise ValueError(f"{what} name is required")
    return clean


class TrackerService:
    """
    The only way to read or change tracked data.

    Each public method is one step: load the document, mutate it in memory,
    save it in full. A lock serializes steps inside the process (console and
    HTTP threads share one service). Errors raised before the save leave the
    stored document untouched.

    Delete policy:
    - project: its tasks are removed, its entries are kept but detached
    - task: its entries are kept, task_id cleared
    """

    def __init__(
        self,
        backend: StoreBackend,
        *,
        clock: Clock = utc_now,
        tz: tzinfo | None = None,
        default_color: str = DEFAULT_PROJECT_COLOR,
    ) -> None:
        self._backend = backend
        self._clock = clock
        self._tz = tz
        self._default_color = default_color or DEFAULT_PROJECT_COLOR
        self._lock = threading.RLock()

    # ---- low-level helpers ----

    def now(self) -> datetime:
        return self._clock()

    def today(self) -> date:
        return self.now().astimezone(self._tz).date()

    @contextlib.contextmanager
    def _mutate(self) -> Iterator[StoreData]:
        with self._lock:
            data = self._backend.load()
            yield data
            self._backend.save(data)

    def snapshot(self) -> StoreData:
        with self._lock:
            return self._backend.load()

    # ---- projects ----

    def list_projects(self, *, include_archived: bool = False) -> list[Project]:
        projects = self.snapshot().projects
        if include_archived:
            return projects
        return [p for p in projects if not p.archived]

    def get_project(self, project_id: str) -> Project:
        return self.snapshot().require_project(project_id)

    def find_project(self, ref: str) -> Project:
        """Look a project up by id, then by case-insensitive name."""
        data = self.snapshot()
        hit = data.find_project(ref)
        if hit is not None:
            return hit
        wanted = (ref or "").strip().lower()
        matches = [p for p in data.projects if p.name.lower() == wanted]
        if not matches:
            raise NotFoundError("project", ref)
        # Prefer an active project over an archived one with the same name.
        matches.sort(key=lambda p: p.archived)
        return matches[0]

    def add_project(self, name: str, color: str | None = None) -> Project:
        with self._mutate() as data:
            project = Project(
                id=new_id(),
                name=_require_name(name, "project"),
                color=(color or "").strip() or self._default_color,
                created_at=self.now(),
            )
            data.projects.append(project)
        logger.info("Project added id=%s name=%s", project.id, project.name)
        return project

    def update_project(
        self,
        project_id: str,
        *,
        name: str | None = None,
        color: str | None = None,
        archived: bool | None = None,
    ) -> Project:
        with self._mutate() as data:
            project = data.require_project(project_id)
            if name is not None:
                project.name = _require_name(name, "project")
            if color is not None:
                project.color = color.strip() or self._default_color
            if archived is not None:
                project.archived = bool(archived)
        logger.debug("Project updated id=%s", project_id)
        return project

    def delete_project(self, project_id: str) -> Project:
        with self._mutate() as data:
            project = data.require_project(project_id)
            task_ids = {t.id for t in data.tasks if t.project_id == project_id}

            data.projects = [p for p in data.projects if p.id != project_id]
            data.tasks = [t for t in data.tasks if t.project_id != project_id]

            detached = 0
            for e in data.entries:
                if e.project_id == project_id or e.task_id in task_ids:
                    e.project_id = None
                    e.task_id = None
                    detached += 1

        logger.info(
            "Project deleted id=%s tasks_removed=%d entries_detached=%d",
            project_id,
            len(task_ids),
            detached,
        )
        return project

    # ---- tasks ----

    def list_tasks(
        self, project_id: str | None = None, *, include_archived: bool = False
    ) -> list[Task]:
        tasks = self.snapshot().tasks
        if project_id is not None:
            tasks = [t for t in tasks if t.project_id == project_id]
        if not include_archived:
            tasks = [t for t in tasks if not t.archived]
        return tasks

    def get_task(self, task_id: str) -> Task:
        return self.snapshot().require_task(task_id)

    def find_task(self, ref: str, project_id: str | None = None) -> Task:
        """Look a task up by id, then by case-insensitive name (optionally within a project)."""
        data = self.snapshot()
        hit = data.find_task(ref)
        if hit is not None:
            return hit
        wanted = (ref or "").strip().lower()
        matches = [
            t
            for t in data.tasks
            if t.name.lower() == wanted and (project_id is None or t.project_id == project_id)
        ]
        if not matches:
            raise NotFoundError("task", ref)
        matches.sort(key=lambda t: t.archived)
        return matches[0]

    def add_task(self, name: str, project_id: str) -> Task:
        with self._mutate() as data:
            data.require_project(project_id)
            task = Task(
                id=new_id(),
                name=_require_name(name, "task"),
                project_id=project_id,
                created_at=self.now(),
            )
            data.tasks.append(task)
        logger.info("Task added id=%s project=%s name=%s", task.id, project_id, task.name)
        return task

    def update_task(
        self,
        task_id: str,
        *,
        name: str | None = None,
        archived: bool | None = None,
    ) -> Task:
        with self._mutate() as data:
            task = data.require_task(task_id)
            if name is not None:
                task.name = _require_name(name, "task")
            if archived is not None:
                task.archived = bool(archived)
        logger.debug("Task updated id=%s", task_id)
        return task

    def delete_task(self, task_id: str) -> Task:
        with self._mutate() as data:
            task = data.require_task(task_id)
            data.tasks = [t for t in data.tasks if t.id != task_id]
            detached = 0
            for e in data.entries:
                if e.task_id == task_id:
                    e.task_id = None
                    detached += 1
        logger.info("Task deleted id=%s entries_detached=%d", task_id, detached)
        return task

    # ---- entries ----

    def list_entries(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
        *,
        project_id: str | None = None,
    ) -> list[TimeEntry]:
        entries = aggregate.filter_by_date_range(self.snapshot().entries, start, end)
        if project_id is not None:
            entries = [e for e in entries if e.project_id == project_id]
        return sorted(entries, key=lambda e: e.start_time)

    def entries_for_days(self, first: date, last: date) -> list[TimeEntry]:
        """Entries starting on any calendar day from `first` to `last`, both included."""
        start, _ = aggregate.period_bounds(aggregate.Period.DAY, first, self._tz)
        _, end = aggregate.period_bounds(aggregate.Period.DAY, last, self._tz)
        return self.list_entries(start, end)

    def get_entry(self, entry_id: str) -> TimeEntry:
        return self.snapshot().require_entry(entry_id)

    def add_entry(
        self,
        *,
        start_time: datetime,
        end_time: datetime,
        project_id: str | None = None,
        task_id: str | None = None,
        description: str = "",
    ) -> TimeEntry:
        """Record a finished interval by hand. Running entries come from start_timer()."""
        if start_time is None or end_time is None:
            raise ValueError("start_time and end_time are required; use the timer for running entries")
        if end_time < start_time:
            raise ValueError("end_time must not be before start_time")

        with self._mutate() as data:
            project_id, task_id = timer.resolve_association(data, project_id, task_id)
            entry = TimeEntry(
                id=new_id(),
                start_time=start_time,
                end_time=end_time,
                project_id=project_id,
                task_id=task_id,
                description=(description or "").strip(),
                created_at=self.now(),
            )
            data.entries.append(entry)
        logger.info("Entry added id=%s duration=%ss", entry.id, entry.duration)
        return entry

    def update_entry(
        self,
        entry_id: str,
        *,
        start_time: Any = _UNSET,
        end_time: Any = _UNSET,
        project_id: Any = _UNSET,
        task_id: Any = _UNSET,
        description: Any = _UNSET,
    ) -> TimeEntry:
        """
        Partial update. Omitted fields keep their value; passing None for
        project_id/task_id clears the association.

        Giving a running entry an end_time stops it. A finished entry can not
        be reopened (end_time=None) because that could leave two timers open.
        """
        with self._mutate() as data:
            entry = data.require_entry(entry_id)

            new_start = entry.start_time if start_time is _UNSET else start_time
            new_end = entry.end_time if end_time is _UNSET else end_time
            if new_start is None:
                raise ValueError("start_time is required")
            if new_end is None and not entry.is_running:
                raise ValueError("a finished entry can not be reopened; start the timer instead")
            if new_end is not None and new_end < new_start:
                raise ValueError("end_time must not be before start_time")

            new_project = entry.project_id if project_id is _UNSET else project_id
            new_task = entry.task_id if task_id is _UNSET else task_id
            if project_id is not _UNSET and task_id is _UNSET and new_task is not None:
                # Moving to another project drops a task that belongs elsewhere.
                old_task = data.find_task(new_task)
                if old_task is None or old_task.project_id != new_project:
                    new_task = None
            new_project, new_task = timer.resolve_association(data, new_project, new_task)

            entry.start_time = new_start
            entry.end_time = new_end
            entry.project_id = new_project
            entry.task_id = new_task
            if description is not _UNSET:
                entry.description = (description or "").strip()

            if new_end is not None and data.active_entry_id == entry.id:
                data.active_entry_id = None
                logger.info("Running entry %s stopped by edit", entry.id)

        logger.debug("Entry updated id=%s", entry_id)
        return entry

    def delete_entry(self, entry_id: str) -> TimeEntry:
        with self._mutate() as data:
            entry = data.require_entry(entry_id)
            data.entries = [e for e in data.entries if e.id != entry_id]
            if data.active_entry_id == entry_id:
                data.active_entry_id = None
        logger.info("Entry deleted id=%s", entry_id)
        return entry

    # ---- timer ----

    def start_timer(
        self,
        project_id: str | None = None,
        task_id: str | None = None,
        description: str = "",
    ) -> timer.TimerStart:
        with self._mutate() as data:
            return timer.start_timer(
                data,
                now=self.now(),
                project_id=project_id,
                task_id=task_id,
                description=description,
            )

    def stop_timer(self) -> TimeEntry | None:
        with self._mutate() as data:
            return timer.stop_timer(data, now=self.now())

    def active_entry(self) -> TimeEntry | None:
        return timer.active_entry(self.snapshot())

    def elapsed(self, entry: TimeEntry) -> float:
        return aggregate.duration_of(entry, self.now())

    # ---- reports ----

    def summary(
        self, period: aggregate.Period, anchor: date | None = None
    ) -> aggregate.PeriodSummary:
        start, end = aggregate.period_bounds(period, anchor or self.today(), self._tz)
        return aggregate.summarize(self.snapshot().entries, start, end, self.now())

    def daily_breakdown(
        self, period: aggregate.Period, anchor: date | None = None
    ) -> list[tuple[date, float]]:
        start, end = aggregate.period_bounds(period, anchor or self.today(), self._tz)
        return aggregate.daily_totals(self.snapshot().entries, start, end, self.now(), self._tz)

    def daily_stats(self, day: date | None = None) -> list[DailyStat]:
        """Per-project totals of the finished entries that started on `day`."""
        data = self.snapshot()
        start, end = aggregate.period_bounds(aggregate.Period.DAY, day or self.today(), self._tz)
        finished = [
            e for e in aggregate.filter_by_date_range(data.entries, start, end) if not e.is_running
        ]

        out: list[DailyStat] = []
        for key, group in aggregate.totals_by_group(finished, aggregate.by_project, self.now()).items():
            project = data.find_project(None if key == aggregate.UNASSIGNED else str(key))
            out.append(
                DailyStat(
                    project_id=project.id if project else None,
                    project_name=project.name if project else "Unassigned",
                    project_color=project.color if project else self._default_color,
                    seconds=round(group.seconds),
                    entries=group.entries,
                )
            )
        out.sort(key=lambda s: s.seconds, reverse=True)
        return out

    def export_csv(self) -> str:
        return export.export_csv(self.snapshot())

    def export_json(self) -> str:
        return export.export_json(self.snapshot())
