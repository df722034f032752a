# src/tempo_tracker/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..tracking.service import TrackerService


@dataclass
class AppState:
    # Store Settings on the state for easy access in connectors.
    settings: object

    tracker: TrackerService
