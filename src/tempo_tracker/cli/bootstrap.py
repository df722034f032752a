# src/tempo_tracker/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the JSON store into the tracker service and AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.state import AppState
from ..tracking.service import TrackerService
from ..tracking.store import JsonFileStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.store_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, clock=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the clock) injectable makes the app easier to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    kwargs = {"default_color": getattr(settings, "default_project_color", "")}
    if clock is not None:
        kwargs["clock"] = clock

    tracker = TrackerService(JsonFileStore(settings.store_path), **kwargs)

    active = tracker.active_entry()
    if active is not None:
        logger.info("Timer is running since %s (entry=%s)", active.start_time.isoformat(), active.id)

    return AppState(settings=settings, tracker=tracker)
