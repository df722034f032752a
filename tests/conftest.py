# tests/conftest.py

from __future__ import annotations

from datetime import UTC
from pathlib import Path
from types import SimpleNamespace

import pytest

from tempo_tracker.core.state import AppState
from tempo_tracker.tracking.service import TrackerService
from tempo_tracker.tracking.store import JsonFileStore

from .fakes import FakeClock, at


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the connectors.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tempo-test",
        data_dir=tmp_path,
        store_path=tmp_path / "store.json",
        default_project_color="#6366f1",
        http_host="127.0.0.1",
        http_port=0,
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(at(9, 0))


@pytest.fixture()
def tracker(settings: SimpleNamespace, clock: FakeClock) -> TrackerService:
    """
    TrackerService over a real JSON file in tmp_path, UTC day boundaries.

    NOTE: We keep the real file store here because read-modify-write
    persistence is part of what we want to test.
    """
    return TrackerService(JsonFileStore(settings.store_path), clock=clock, tz=UTC)


@pytest.fixture()
def state(settings: SimpleNamespace, tracker: TrackerService) -> AppState:
    return AppState(settings=settings, tracker=tracker)
