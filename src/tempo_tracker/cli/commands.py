# src/tempo_tracker/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Callable
from datetime import date
from pathlib import Path
from typing import cast

from ..core.state import AppState
from ..tracking.aggregate import UNASSIGNED, Period, format_clock, format_duration, shift_anchor
from ..tracking.models import NotFoundError, StoreData, TimeEntry

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /start, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Unknown ids and invalid input come back as "Error: ..." replies.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return h2(state, args)
        except (NotFoundError, ValueError) as e:
            logger.debug("/%s rejected: %s", name, e)
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _parse_day(args: list[str], index: int = 0) -> date | None:
    if len(args) <= index:
        return None
    try:
        return date.fromisoformat(args[index])
    except ValueError:
        raise ValueError(f"expected a date like 2024-01-31, got {args[index]!r}") from None


def _label(data: StoreData, entry: TimeEntry) -> str:
    project = data.find_project(entry.project_id)
    task = data.find_task(entry.task_id)
    parts = [project.name if project else "(no project)"]
    if task:
        parts.append(task.name)
    label = " / ".join(parts)
    if entry.description:
        label += f" - {entry.description}"
    return label


def _local_hm(entry: TimeEntry) -> str:
    start = entry.start_time.astimezone().strftime("%H:%M")
    end = entry.end_time.astimezone().strftime("%H:%M") if entry.end_time else "..."
    return f"{start}-{end}"


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    tracker = state.tracker
    data = tracker.snapshot()
    active = tracker.active_entry()
    today = tracker.summary(Period.DAY)

    if active is None:
        timer_line = "  Timer: stopped"
    else:
        timer_line = f"  Timer: running {format_clock(tracker.elapsed(active))} on {_label(data, active)}"

    store = getattr(state.settings, "store_path", "?")
    return (
        "Status:\n"
        f"{timer_line}\n"
        f"  Today: {format_duration(today.total_seconds)} in {today.entries} entries\n"
        f"  Store: {store}"
    )


def cmd_start(state: AppState, args: list[str]) -> str:
    """
    /start                          -> timer without project
    /start <project> [task]         -> timer on a project/task (id or name)
    /start <project> -- text...     -> with a description
    """
    description = ""
    if "--" in args:
        cut = args.index("--")
        description = " ".join(args[cut + 1 :])
        args = args[:cut]

    tracker = state.tracker
    project_id = tracker.find_project(args[0]).id if args else None
    task_id = tracker.find_task(args[1], project_id).id if len(args) > 1 else None

    result = tracker.start_timer(project_id, task_id, description)
    data = tracker.snapshot()

    lines = []
    if result.stopped is not None:
        lines.append(
            f"Stopped {_label(data, result.stopped)} after {format_duration(result.stopped.duration or 0)}."
        )
    lines.append(f"Started {_label(data, result.started)}.")
    return "\n".join(lines)


def cmd_stop(state: AppState, args: list[str]) -> str:
    entry = state.tracker.stop_timer()
    if entry is None:
        return "No active timer."
    data = state.tracker.snapshot()
    return f"Stopped {_label(data, entry)} after {format_duration(entry.duration or 0)}."


def cmd_projects(state: AppState, args: list[str]) -> str:
    include_archived = bool(args) and args[0].lower() == "all"
    projects = state.tracker.list_projects(include_archived=include_archived)
    if not projects:
        return "No projects yet. Use /project add <name> [color]."
    lines = ["Projects:"]
    for p in projects:
        flag = " [archived]" if p.archived else ""
        lines.append(f"  {p.name} ({p.color}){flag}  id={p.id}")
    return "\n".join(lines)


_PROJECT_USAGE = (
    "Usage:\n"
    "  /project add <name> [color]\n"
    "  /project rename <project> <new name>\n"
    "  /project color <project> <color>\n"
    "  /project archive|unarchive <project>\n"
    "  /project delete <project>   (tasks removed, entries kept)"
)


def cmd_project(state: AppState, args: list[str]) -> str:
    if not args:
        return _PROJECT_USAGE

    tracker = state.tracker
    sub, rest = args[0].lower(), args[1:]

    if sub == "add" and rest:
        color = rest[1] if len(rest) > 1 else None
        p = tracker.add_project(rest[0], color)
        return f"Project added: {p.name} ({p.color})"

    if sub == "rename" and len(rest) >= 2:
        p = tracker.update_project(tracker.find_project(rest[0]).id, name=" ".join(rest[1:]))
        return f"Project renamed: {p.name}"

    if sub == "color" and len(rest) == 2:
        p = tracker.update_project(tracker.find_project(rest[0]).id, color=rest[1])
        return f"Project {p.name} color: {p.color}"

    if sub in ("archive", "unarchive") and len(rest) == 1:
        p = tracker.update_project(tracker.find_project(rest[0]).id, archived=sub == "archive")
        return f"Project {p.name} {sub}d."

    if sub == "delete" and len(rest) == 1:
        p = tracker.delete_project(tracker.find_project(rest[0]).id)
        return f"Project deleted: {p.name}"

    return _PROJECT_USAGE


def cmd_tasks(state: AppState, args: list[str]) -> str:
    tracker = state.tracker
    include_archived = bool(args) and args[-1].lower() == "all"
    if include_archived:
        args = args[:-1]
    project = tracker.find_project(args[0]) if args else None

    tasks = tracker.list_tasks(project.id if project else None, include_archived=include_archived)
    if not tasks:
        return "No tasks."

    data = tracker.snapshot()
    lines = ["Tasks:"]
    for t in tasks:
        owner = data.find_project(t.project_id)
        flag = " [archived]" if t.archived else ""
        lines.append(f"  {owner.name if owner else '?'} / {t.name}{flag}  id={t.id}")
    return "\n".join(lines)


_TASK_USAGE = (
    "Usage:\n"
    "  /task add <project> <name>\n"
    "  /task rename <task> <new name>\n"
    "  /task archive|unarchive <task>\n"
    "  /task delete <task>   (entries kept)"
)


def cmd_task(state: AppState, args: list[str]) -> str:
    if not args:
        return _TASK_USAGE

    tracker = state.tracker
    sub, rest = args[0].lower(), args[1:]

    if sub == "add" and len(rest) >= 2:
        project = tracker.find_project(rest[0])
        t = tracker.add_task(" ".join(rest[1:]), project.id)
        return f"Task added: {project.name} / {t.name}"

    if sub == "rename" and len(rest) >= 2:
        t = tracker.update_task(tracker.find_task(rest[0]).id, name=" ".join(rest[1:]))
        return f"Task renamed: {t.name}"

    if sub in ("archive", "unarchive") and len(rest) == 1:
        t = tracker.update_task(tracker.find_task(rest[0]).id, archived=sub == "archive")
        return f"Task {t.name} {sub}d."

    if sub == "delete" and len(rest) == 1:
        t = tracker.delete_task(tracker.find_task(rest[0]).id)
        return f"Task deleted: {t.name}"

    return _TASK_USAGE


def cmd_log(state: AppState, args: list[str]) -> str:
    """/log [YYYY-MM-DD] -> entries of one day (today by default)."""
    tracker = state.tracker
    day = _parse_day(args) or tracker.today()
    entries = tracker.entries_for_days(day, day)
    if not entries:
        return f"No entries on {day.isoformat()}."

    data = tracker.snapshot()
    total = 0.0
    lines = [f"Entries on {day.isoformat()}:"]
    for e in entries:
        seconds = tracker.elapsed(e)
        total += seconds
        lines.append(f"  {_local_hm(e)}  {format_duration(seconds):>8}  {_label(data, e)}")
    lines.append(f"  Total: {format_duration(total)}")
    return "\n".join(lines)


def cmd_report(state: AppState, args: list[str]) -> str:
    """/report [day|week|month] [YYYY-MM-DD | -N | +N]"""
    tracker = state.tracker
    period = Period.parse(args[0]) if args else Period.DAY
    if len(args) > 1 and args[1][:1] in "+-" and args[1][1:].isdigit():
        anchor = shift_anchor(period, tracker.today(), int(args[1]))
    else:
        anchor = _parse_day(args, 1)
    summary = tracker.summary(period, anchor)
    data = tracker.snapshot()

    first = summary.start.date().isoformat()
    last = summary.end.date().isoformat()
    lines = [f"Report ({period.value}) {first} .. {last} (end exclusive): {format_duration(summary.total_seconds)}"]
    if not summary.projects:
        lines.append("  No tracked time.")
        return "\n".join(lines)

    for row in summary.projects:
        project = data.find_project(row.project_id)
        name = project.name if project else "Unassigned"
        lines.append(f"  {name}: {format_duration(row.seconds)} ({row.percentage:.1f}%)")
        for t in row.tasks:
            task = None if t.key == UNASSIGNED else data.find_task(str(t.key))
            lines.append(f"    - {task.name if task else 'No task'}: {format_duration(t.seconds)}")

    if period != Period.DAY:
        lines.append("  By day:")
        for day, seconds in tracker.daily_breakdown(period, anchor):
            lines.append(f"    {day.isoformat()} {day.strftime('%a')}: {format_duration(seconds)}")
    return "\n".join(lines)


def cmd_export(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """/export csv|json [path]"""
    fmt = args[0].lower() if args else ""
    if fmt not in ("csv", "json"):
        return "Usage: /export csv|json [path]"

    data_dir = Path(getattr(state.settings, "data_dir", "."))
    path = Path(args[1]).expanduser() if len(args) > 1 else data_dir / f"time-tracker-export.{fmt}"

    if emit:
        emit(f"[EXPORT] Writing {fmt.upper()} to {path} ...")

    text = state.tracker.export_csv() if fmt == "csv" else state.tracker.export_json()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, "utf-8")
    logger.info("Exported %s to %s", fmt, path)
    return f"Exported to {path}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show the running timer and today's total.")
registry.register(
    "start", cmd_start, help_text="Start the timer: /start [project] [task] [-- description]."
)
registry.register("stop", cmd_stop, help_text="Stop the running timer.")
registry.register("projects", cmd_projects, help_text="List projects (/projects all includes archived).")
registry.register("project", cmd_project, help_text="Manage projects: /project add|rename|color|archive|delete.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [project] [all].")
registry.register("task", cmd_task, help_text="Manage tasks: /task add|rename|archive|delete.")
registry.register("log", cmd_log, help_text="Entries of a day: /log [YYYY-MM-DD].")
registry.register("report", cmd_report, help_text="Totals: /report day|week|month [YYYY-MM-DD | -N | +N].")
registry.register("export", cmd_export, help_text="Export data: /export csv|json [path].")
