# src/tempo_tracker/tracking/aggregate.py

"""
Duration arithmetic over time entries.

All functions are read-only: they never mutate entries. Running entries are
measured against an explicit `now` so results are reproducible.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, tzinfo
from enum import StrEnum

from .models import TimeEntry

UNASSIGNED = "__unassigned__"

KeyFn = Callable[[TimeEntry], Hashable | None]


class Period(StrEnum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, raw: str | None) -> Period:
        s = (raw or "").strip().lower()
        aliases = {"daily": "day", "today": "day", "weekly": "week", "monthly": "month"}
        return cls(aliases.get(s, s))


@dataclass(slots=True)
class GroupTotal:
    key: Hashable
    seconds: float = 0.0
    entries: int = 0


@dataclass(slots=True)
class ProjectTotal:
    project_id: str
    seconds: float
    entries: int
    percentage: float
    tasks: list[GroupTotal] = field(default_factory=list)


@dataclass(slots=True)
class PeriodSummary:
    start: datetime
    end: datetime
    total_seconds: float
    entries: int
    projects: list[ProjectTotal]


def duration_of(entry: TimeEntry, now: datetime) -> float:
    """Elapsed seconds: (end or now) - start, never negative."""
    end = entry.end_time if entry.end_time is not None else now
    return max(0.0, (end - entry.start_time).total_seconds())


def by_project(entry: TimeEntry) -> str | None:
    return entry.project_id


def by_task(entry: TimeEntry) -> str | None:
    return entry.task_id


def by_project_task(entry: TimeEntry) -> tuple[str, str]:
    return (entry.project_id or UNASSIGNED, entry.task_id or UNASSIGNED)


def totals_by_group(
    entries: Iterable[TimeEntry], key_fn: KeyFn, now: datetime
) -> dict[Hashable, GroupTotal]:
    """Sum durations per key. A None key lands in the UNASSIGNED bucket."""
    out: dict[Hashable, GroupTotal] = {}
    for entry in entries:
        key = key_fn(entry)
        if key is None:
            key = UNASSIGNED
        bucket = out.get(key)
        if bucket is None:
            bucket = out[key] = GroupTotal(key=key)
        bucket.seconds += duration_of(entry, now)
        bucket.entries += 1
    return out


def filter_by_date_range(
    entries: Iterable[TimeEntry], start: datetime | None, end: datetime | None
) -> list[TimeEntry]:
    """
    Entries whose start_time is in [start, end).

    Either bound may be None (open). Entries are never split: one that
    starts inside the range counts in full, one that starts before it not
    at all.
    """
    out = []
    for e in entries:
        if start is not None and e.start_time < start:
            continue
        if end is not None and e.start_time >= end:
            continue
        out.append(e)
    return out


def percentage(part: float, total: float) -> float:
    if not total:
        return 0.0
    return part / total * 100.0


def local_midnight(day: date, tz: tzinfo | None = None) -> datetime:
    if tz is None:
        # astimezone() on a naive value interprets it as local time.
        return datetime.combine(day, time.min).astimezone()
    return datetime.combine(day, time.min, tzinfo=tz)


def _as_date(anchor: date | datetime, tz: tzinfo | None) -> date:
    if isinstance(anchor, datetime):
        if anchor.tzinfo is not None:
            return anchor.astimezone(tz).date()
        return anchor.date()
    return anchor


def _first_of_next_month(day: date) -> date:
    if day.month == 12:
        return date(day.year + 1, 1, 1)
    return date(day.year, day.month + 1, 1)


def period_bounds(
    period: Period, anchor: date | datetime, tz: tzinfo | None = None
) -> tuple[datetime, datetime]:
    """
    [start, end) of the day/week/month containing `anchor`.

    Weeks start on Monday (ISO). Boundaries are midnights in `tz`
    (the local zone when tz is None).
    """
    day = _as_date(anchor, tz)

    if period == Period.DAY:
        first, nxt = day, day + timedelta(days=1)
    elif period == Period.WEEK:
        first = day - timedelta(days=day.weekday())
        nxt = first + timedelta(days=7)
    elif period == Period.MONTH:
        first = day.replace(day=1)
        nxt = _first_of_next_month(first)
    else:
        raise ValueError(f"unknown period: {period!r}")

    return local_midnight(first, tz), local_midnight(nxt, tz)


def shift_anchor(period: Period, anchor: date, steps: int) -> date:
    """Move `anchor` by whole periods (negative = back in time)."""
    if period == Period.DAY:
        return anchor + timedelta(days=steps)
    if period == Period.WEEK:
        return anchor + timedelta(days=7 * steps)
    month_index = anchor.year * 12 + (anchor.month - 1) + steps
    return date(month_index // 12, month_index % 12 + 1, 1)


def summarize(
    entries: Iterable[TimeEntry], start: datetime, end: datetime, now: datetime
) -> PeriodSummary:
    """Per-project totals (with nested per-task totals) for [start, end)."""
    selected = filter_by_date_range(entries, start, end)
    total = sum(duration_of(e, now) for e in selected)

    per_project = totals_by_group(selected, by_project, now)
    per_pair = totals_by_group(selected, by_project_task, now)

    projects: list[ProjectTotal] = []
    for key, group in per_project.items():
        tasks = [
            GroupTotal(key=task_key, seconds=g.seconds, entries=g.entries)
            for (proj_key, task_key), g in per_pair.items()
            if proj_key == key
        ]
        tasks.sort(key=lambda g: g.seconds, reverse=True)
        projects.append(
            ProjectTotal(
                project_id=str(key),
                seconds=group.seconds,
                entries=group.entries,
                percentage=percentage(group.seconds, total),
                tasks=tasks,
            )
        )
    projects.sort(key=lambda p: p.seconds, reverse=True)

    return PeriodSummary(
        start=start,
        end=end,
        total_seconds=total,
        entries=len(selected),
        projects=projects,
    )


def daily_totals(
    entries: Iterable[TimeEntry],
    start: datetime,
    end: datetime,
    now: datetime,
    tz: tzinfo | None = None,
) -> list[tuple[date, float]]:
    """Seconds per calendar day for each day in [start, end)."""
    items = list(entries)
    out: list[tuple[date, float]] = []
    day = _as_date(start, tz)
    while True:
        lo, hi = period_bounds(Period.DAY, day, tz)
        if lo >= end:
            break
        seconds = sum(duration_of(e, now) for e in filter_by_date_range(items, lo, hi))
        out.append((day, seconds))
        day += timedelta(days=1)
    return out


def format_duration(seconds: float) -> str:
    """1800 -> "0h 30m". Partial minutes are dropped."""
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    return f"{hours}h {rem // 60}m"


def format_clock(seconds: float) -> str:
    """Running-timer display: 3725 -> "01:02:05"."""
    total = max(0, int(seconds))
    hours, rem = divmod(total, 3600)
    minutes, secs = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
