# src/tempo_tracker/tracking/models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

DEFAULT_PROJECT_COLOR = "#6366f1"


class NotFoundError(LookupError):
    """Raised when a project/task/entry id does not exist."""

    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(f"{kind.capitalize()} not found: {item_id}")
        self.kind = kind
        self.item_id = item_id


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def parse_instant(raw: Any) -> datetime | None:
    """
    Parse an ISO-8601 instant.

    Accepts the trailing "Z" written by JavaScript clients. Naive values are
    taken as UTC.
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        dt = raw
    else:
        s = str(raw).strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def format_instant(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


_TRUE_WORDS = {"true", "1", "yes", "on"}
_FALSE_WORDS = {"false", "0", "no", "off", ""}


def parse_flag(raw: Any) -> bool:
    """Stored booleans: real bools, 0/1, or words like "true"/"false"."""
    if raw is None:
        return False
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str):
        word = raw.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ValueError(f"not a boolean: {raw!r}")


def _opt_str(raw: Any) -> str | None:
    if raw is None:
        return None
    s = str(raw).strip()
    return s or None


@dataclass(slots=True)
class Project:
    id: str
    name: str
    color: str = DEFAULT_PROJECT_COLOR
    created_at: datetime = field(default_factory=utc_now)
    archived: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "createdAt": format_instant(self.created_at),
            "archived": self.archived,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Project:
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            color=str(raw.get("color") or DEFAULT_PROJECT_COLOR),
            created_at=parse_instant(raw.get("createdAt")) or utc_now(),
            archived=parse_flag(raw.get("archived")),
        )


@dataclass(slots=True)
class Task:
    id: str
    name: str
    project_id: str
    created_at: datetime = field(default_factory=utc_now)
    archived: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "projectId": self.project_id,
            "createdAt": format_instant(self.created_at),
            "archived": self.archived,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        return cls(
            id=str(raw["id"]),
            name=str(raw.get("name") or ""),
            project_id=str(raw.get("projectId") or ""),
            created_at=parse_instant(raw.get("createdAt")) or utc_now(),
            archived=parse_flag(raw.get("archived")),
        )


@dataclass(slots=True)
class TimeEntry:
    id: str
    start_time: datetime
    end_time: datetime | None = None
    project_id: str | None = None
    task_id: str | None = None
    description: str = ""
    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    @property
    def duration(self) -> int | None:
        """Whole seconds for a finished entry, None while running."""
        if self.end_time is None:
            return None
        return max(0, round((self.end_time - self.start_time).total_seconds()))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "projectId": self.project_id,
            "taskId": self.task_id,
            "startTime": format_instant(self.start_time),
            "endTime": format_instant(self.end_time),
            "duration": self.duration,
            "createdAt": format_instant(self.created_at),
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> TimeEntry:
        start = parse_instant(raw.get("startTime"))
        if start is None:
            raise ValueError(f"entry {raw.get('id')!r} has no startTime")
        # Older documents stored the free text as "notes".
        description = raw.get("description")
        if description is None:
            description = raw.get("notes")
        return cls(
            id=str(raw["id"]),
            start_time=start,
            end_time=parse_instant(raw.get("endTime")),
            project_id=_opt_str(raw.get("projectId")),
            task_id=_opt_str(raw.get("taskId")),
            description=str(description or ""),
            created_at=parse_instant(raw.get("createdAt")) or start,
        )


@dataclass(slots=True)
class StoreData:
    """The whole persisted document."""

    projects: list[Project] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    entries: list[TimeEntry] = field(default_factory=list)
    active_entry_id: str | None = None

    def find_project(self, project_id: str | None) -> Project | None:
        if not project_id:
            return None
        return next((p for p in self.projects if p.id == project_id), None)

    def find_task(self, task_id: str | None) -> Task | None:
        if not task_id:
            return None
        return next((t for t in self.tasks if t.id == task_id), None)

    def find_entry(self, entry_id: str | None) -> TimeEntry | None:
        if not entry_id:
            return None
        return next((e for e in self.entries if e.id == entry_id), None)

    def require_project(self, project_id: str) -> Project:
        project = self.find_project(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    def require_task(self, task_id: str) -> Task:
        task = self.find_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def require_entry(self, entry_id: str) -> TimeEntry:
        entry = self.find_entry(entry_id)
        if entry is None:
            raise NotFoundError("entry", entry_id)
        return entry
