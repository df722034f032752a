# src/tempo_tracker/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the tracker service.

The service depends on Protocols instead of concrete implementations, so the
JSON file backend can be swapped for an in-memory one in tests.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Protocol

from ..tracking.models import StoreData

Clock = Callable[[], datetime]
# Returns a timezone-aware "now".


class StoreBackend(Protocol):
    """Whole-document persistence: load everything, save everything."""

    def load(self) -> StoreData: ...
    def save(self, data: StoreData) -> None: ...
