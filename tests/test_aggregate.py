# tests/test_aggregate.py

from __future__ import annotations

from datetime import UTC, date

from tempo_tracker.tracking.aggregate import (
    UNASSIGNED,
    Period,
    by_project,
    by_project_task,
    by_task,
    daily_totals,
    duration_of,
    filter_by_date_range,
    format_clock,
    format_duration,
    percentage,
    period_bounds,
    shift_anchor,
    summarize,
    totals_by_group,
)
from tempo_tracker.tracking.models import TimeEntry

from .fakes import at


def _entry(
    eid: str,
    start,
    end=None,
    project_id: str | None = None,
    task_id: str | None = None,
) -> TimeEntry:
    return TimeEntry(id=eid, start_time=start, end_time=end, project_id=project_id, task_id=task_id)


def test_duration_of_running_entry_grows_and_is_never_negative() -> None:
    running = _entry("r", at(10, 0))

    assert duration_of(running, at(9, 0)) == 0.0
    a = duration_of(running, at(10, 0, 1))
    b = duration_of(running, at(10, 0, 2))
    assert 0 < a < b

    finished = _entry("f", at(9, 0), at(9, 30))
    assert duration_of(finished, at(23, 0)) == 1800.0


def test_totals_by_group_keeps_unassigned_and_matches_direct_sum() -> None:
    now = at(12, 0)
    entries = [
        _entry("1", at(9, 0), at(9, 30), "p1", "t1"),
        _entry("2", at(9, 30), at(10, 0), "p1", None),
        _entry("3", at(10, 0), at(10, 15), "p2", "t2"),
        _entry("4", at(10, 15), at(10, 20)),
        _entry("5", at(11, 0), None, None, None),
    ]
    direct = sum(duration_of(e, now) for e in entries)

    for key_fn in (by_project, by_task, by_project_task):
        groups = totals_by_group(entries, key_fn, now)
        assert sum(g.seconds for g in groups.values()) == direct
        assert sum(g.entries for g in groups.values()) == len(entries)

    per_project = totals_by_group(entries, by_project, now)
    assert per_project["p1"].seconds == 3600
    assert per_project[UNASSIGNED].seconds == 300 + 3600
    assert per_project[UNASSIGNED].entries == 2

    per_pair = totals_by_group(entries, by_project_task, now)
    assert per_pair[("p1", UNASSIGNED)].seconds == 1800


def test_filter_is_inclusive_start_exclusive_end_and_never_splits() -> None:
    entries = [
        _entry("before", at(23, 0, day=1), None),
        _entry("at-start", at(0, 0, day=2), at(1, 0, day=2)),
        _entry("inside", at(12, 0, day=2), at(13, 0, day=2)),
        _entry("at-end", at(0, 0, day=3), at(1, 0, day=3)),
    ]
    start, end = at(0, 0, day=2), at(0, 0, day=3)

    got = [e.id for e in filter_by_date_range(entries, start, end)]

    assert got == ["at-start", "inside"]
    assert [e.id for e in filter_by_date_range(entries, None, None)] == [e.id for e in entries]


def test_period_bounds_day_week_month() -> None:
    wed = date(2024, 1, 3)

    assert period_bounds(Period.DAY, wed, UTC) == (at(0, 0, day=3), at(0, 0, day=4))
    # ISO week: Monday 2024-01-01 .. Monday 2024-01-08
    assert period_bounds(Period.WEEK, wed, UTC) == (at(0, 0, day=1), at(0, 0, day=8))
    # Sunday still belongs to the week that started the Monday before.
    sunday = date(2024, 1, 7)
    assert period_bounds(Period.WEEK, sunday, UTC)[0] == at(0, 0, day=1)

    dec = date(2023, 12, 15)
    start, end = period_bounds(Period.MONTH, dec, UTC)
    assert start == at(0, 0, day=1, month=12, year=2023)
    assert end == at(0, 0, day=1, month=1, year=2024)


def test_period_bounds_accepts_aware_datetimes() -> None:
    start, end = period_bounds(Period.DAY, at(18, 30, day=5), UTC)
    assert start == at(0, 0, day=5)
    assert end == at(0, 0, day=6)


def test_shift_anchor_moves_whole_periods() -> None:
    assert shift_anchor(Period.DAY, date(2024, 3, 1), -1) == date(2024, 2, 29)
    assert shift_anchor(Period.WEEK, date(2024, 1, 3), 1) == date(2024, 1, 10)
    assert shift_anchor(Period.MONTH, date(2024, 12, 20), 1) == date(2025, 1, 1)
    assert shift_anchor(Period.MONTH, date(2024, 1, 31), -1) == date(2023, 12, 1)


def test_period_parse_aliases() -> None:
    assert Period.parse("weekly") == Period.WEEK
    assert Period.parse(" Month ") == Period.MONTH
    assert Period.parse("today") == Period.DAY


def test_percentage_guards_zero_total() -> None:
    assert percentage(10, 0) == 0.0
    assert percentage(0, 0) == 0.0
    assert percentage(1, 4) == 25.0


def test_summarize_sorts_projects_and_tasks_by_duration() -> None:
    now = at(23, 0)
    entries = [
        _entry("1", at(9, 0), at(9, 30), "p1", "t1"),
        _entry("2", at(10, 0), at(11, 0), "p1", "t2"),
        _entry("3", at(11, 0), at(13, 0), "p2", None),
        _entry("4", at(14, 0), at(14, 30)),
        _entry("next-day", at(9, 0, day=2), at(10, 0, day=2), "p1", "t1"),
    ]

    s = summarize(entries, at(0, 0), at(0, 0, day=2), now)

    assert s.total_seconds == 4 * 3600
    assert s.entries == 4
    assert [p.project_id for p in s.projects] == ["p2", "p1", UNASSIGNED]
    assert s.projects[0].percentage == 50.0
    assert [t.key for t in s.projects[1].tasks] == ["t2", "t1"]
    assert [t.key for t in s.projects[0].tasks] == [UNASSIGNED]
    assert sum(p.percentage for p in s.projects) == 100.0


def test_summarize_empty_period() -> None:
    s = summarize([], at(0, 0), at(0, 0, day=2), at(12, 0))
    assert s.total_seconds == 0
    assert s.projects == []


def test_daily_totals_has_one_row_per_day() -> None:
    entries = [
        _entry("mon", at(9, 0, day=1), at(10, 0, day=1)),
        _entry("wed", at(9, 0, day=3), at(9, 45, day=3)),
    ]
    start, end = period_bounds(Period.WEEK, date(2024, 1, 3), UTC)

    rows = daily_totals(entries, start, end, at(23, 0, day=7), UTC)

    assert [d for d, _ in rows] == [date(2024, 1, d) for d in range(1, 8)]
    assert dict(rows)[date(2024, 1, 1)] == 3600
    assert dict(rows)[date(2024, 1, 3)] == 2700
    assert dict(rows)[date(2024, 1, 2)] == 0


def test_formatting() -> None:
    assert format_duration(1800) == "0h 30m"
    assert format_duration(3600 * 2 + 60 * 5 + 59) == "2h 5m"
    assert format_duration(-5) == "0h 0m"
    assert format_clock(3725) == "01:02:05"
