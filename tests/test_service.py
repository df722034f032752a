# tests/test_service.py

from __future__ import annotations

from datetime import UTC, date

import pytest

from tempo_tracker.tracking.aggregate import UNASSIGNED, Period
from tempo_tracker.tracking.models import NotFoundError
from tempo_tracker.tracking.service import TrackerService
from tempo_tracker.tracking.store import JsonFileStore

from .fakes import FakeClock, at


def test_projects_and_tasks_crud(tracker: TrackerService) -> None:
    p = tracker.add_project("  Alpha  ")
    assert p.name == "Alpha"
    assert p.color == "#6366f1"
    assert p.created_at == at(9, 0)

    t = tracker.add_task("Design", p.id)
    tracker.update_project(p.id, name="Alpha 2", color="#ff0000")
    tracker.update_task(t.id, archived=True)

    assert tracker.get_project(p.id).name == "Alpha 2"
    assert tracker.get_project(p.id).color == "#ff0000"
    assert tracker.list_tasks(p.id) == []
    assert [x.id for x in tracker.list_tasks(p.id, include_archived=True)] == [t.id]

    tracker.update_project(p.id, archived=True)
    assert tracker.list_projects() == []
    assert len(tracker.list_projects(include_archived=True)) == 1


def test_names_are_required(tracker: TrackerService) -> None:
    with pytest.raises(ValueError):
        tracker.add_project("   ")
    p = tracker.add_project("Alpha")
    with pytest.raises(ValueError):
        tracker.add_task("", p.id)
    with pytest.raises(NotFoundError):
        tracker.add_task("Design", "nope")


def test_data_survives_a_new_service_instance(tracker: TrackerService, settings, clock: FakeClock) -> None:
    p = tracker.add_project("Alpha")
    tracker.start_timer(p.id)

    other = TrackerService(JsonFileStore(settings.store_path), clock=clock, tz=UTC)

    active = other.active_entry()
    assert active is not None
    assert active.project_id == p.id


def test_delete_project_removes_tasks_and_detaches_entries(tracker: TrackerService, clock: FakeClock) -> None:
    keep = tracker.add_project("Keep")
    gone = tracker.add_project("Gone")
    t_keep = tracker.add_task("A", keep.id)
    t_gone = tracker.add_task("B", gone.id)

    e1 = tracker.add_entry(start_time=at(7, 0), end_time=at(7, 30), project_id=gone.id, task_id=t_gone.id)
    e2 = tracker.add_entry(start_time=at(7, 30), end_time=at(8, 0), project_id=keep.id, task_id=t_keep.id)
    running = tracker.start_timer(gone.id).started

    tracker.delete_project(gone.id)
    data = tracker.snapshot()

    project_ids = {p.id for p in data.projects}
    assert project_ids == {keep.id}
    assert all(t.project_id in project_ids for t in data.tasks)
    assert [t.id for t in data.tasks] == [t_keep.id]

    detached = data.find_entry(e1.id)
    assert detached is not None
    assert (detached.project_id, detached.task_id) == (None, None)
    assert detached.duration == 1800
    assert data.find_entry(e2.id).project_id == keep.id

    # The running entry keeps running, just without a project.
    active = tracker.active_entry()
    assert active is not None and active.id == running.id
    assert active.project_id is None


def test_delete_task_keeps_entries(tracker: TrackerService) -> None:
    p = tracker.add_project("Alpha")
    t = tracker.add_task("Design", p.id)
    e = tracker.add_entry(start_time=at(7, 0), end_time=at(8, 0), project_id=p.id, task_id=t.id)

    tracker.delete_task(t.id)

    entry = tracker.get_entry(e.id)
    assert entry.task_id is None
    assert entry.project_id == p.id
    with pytest.raises(NotFoundError):
        tracker.get_task(t.id)


def test_not_found_leaves_the_file_untouched(tracker: TrackerService, settings) -> None:
    tracker.add_project("Alpha")
    before = settings.store_path.read_bytes()

    for call in (
        lambda: tracker.update_project("nope", name="x"),
        lambda: tracker.delete_project("nope"),
        lambda: tracker.update_task("nope", name="x"),
        lambda: tracker.delete_task("nope"),
        lambda: tracker.update_entry("nope", description="x"),
        lambda: tracker.delete_entry("nope"),
    ):
        with pytest.raises(NotFoundError):
            call()

    assert settings.store_path.read_bytes() == before


def test_add_entry_validation(tracker: TrackerService) -> None:
    with pytest.raises(ValueError):
        tracker.add_entry(start_time=at(10, 0), end_time=at(9, 0))
    with pytest.raises(ValueError):
        tracker.add_entry(start_time=at(10, 0), end_time=None)  # type: ignore[arg-type]
    assert tracker.snapshot().entries == []


def test_update_entry_rules(tracker: TrackerService, clock: FakeClock) -> None:
    p1 = tracker.add_project("P1")
    p2 = tracker.add_project("P2")
    t1 = tracker.add_task("T1", p1.id)
    e = tracker.add_entry(start_time=at(7, 0), end_time=at(8, 0), project_id=p1.id, task_id=t1.id)

    with pytest.raises(ValueError):
        tracker.update_entry(e.id, end_time=None)
    with pytest.raises(ValueError):
        tracker.update_entry(e.id, end_time=at(6, 0))

    moved = tracker.update_entry(e.id, project_id=p2.id, description=" moved ")
    assert moved.project_id == p2.id
    assert moved.task_id is None
    assert moved.description == "moved"

    stretched = tracker.update_entry(e.id, end_time=at(8, 30))
    assert stretched.duration == 5400

    cleared = tracker.update_entry(e.id, project_id=None)
    assert cleared.project_id is None


def test_editing_the_running_entry_end_time_stops_it(tracker: TrackerService, clock: FakeClock) -> None:
    running = tracker.start_timer().started
    clock.set(at(9, 45))

    tracker.update_entry(running.id, end_time=at(9, 40))

    assert tracker.active_entry() is None
    assert tracker.get_entry(running.id).duration == 2400


def test_delete_running_entry_clears_pointer(tracker: TrackerService) -> None:
    running = tracker.start_timer().started
    tracker.delete_entry(running.id)
    assert tracker.active_entry() is None
    assert tracker.snapshot().active_entry_id is None


def test_list_entries_by_days(tracker: TrackerService) -> None:
    tracker.add_entry(start_time=at(23, 59, day=1), end_time=at(0, 30, day=2))
    tracker.add_entry(start_time=at(0, 0, day=2), end_time=at(1, 0, day=2))
    tracker.add_entry(start_time=at(0, 0, day=4), end_time=at(1, 0, day=4))

    assert len(tracker.entries_for_days(date(2024, 1, 2), date(2024, 1, 2))) == 1
    assert len(tracker.entries_for_days(date(2024, 1, 1), date(2024, 1, 3))) == 2
    assert len(tracker.list_entries()) == 3


def test_summary_and_daily_stats(tracker: TrackerService, clock: FakeClock) -> None:
    p = tracker.add_project("Alpha", "#123456")
    tracker.add_entry(start_time=at(7, 0), end_time=at(8, 0), project_id=p.id)
    tracker.add_entry(start_time=at(8, 0), end_time=at(8, 30))
    clock.set(at(10, 0))
    tracker.start_timer(p.id)
    clock.set(at(10, 30))

    summary = tracker.summary(Period.DAY)
    assert summary.total_seconds == 3600 + 1800 + 1800
    assert summary.projects[0].project_id == p.id
    assert summary.projects[1].project_id == UNASSIGNED

    # Daily stats count finished entries only.
    stats = tracker.daily_stats(date(2024, 1, 1))
    assert [(s.project_name, s.seconds, s.entries) for s in stats] == [
        ("Alpha", 3600, 1),
        ("Unassigned", 1800, 1),
    ]
    assert stats[0].project_color == "#123456"
    assert stats[0].hours == 1.0


def test_find_by_name_is_case_insensitive(tracker: TrackerService) -> None:
    p = tracker.add_project("Client Work")
    t = tracker.add_task("Review", p.id)

    assert tracker.find_project("client work").id == p.id
    assert tracker.find_project(p.id).id == p.id
    assert tracker.find_task("REVIEW", p.id).id == t.id
    with pytest.raises(NotFoundError):
        tracker.find_project("unknown")
