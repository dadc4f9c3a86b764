# src/clickup_focus/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from .classifier import StatusClassifier
from .errors import TransportError
from .models import DisplayEntity, Snapshot, TaskGroup
from .ports import OverlayRepo, SnapshotCache, TaskSource


@dataclass
class AppState:
    """
    Explicit state container passed into every engine operation.

    The stores and the current snapshot are separate owned fields; all mutation
    goes through core.engine. `lock` serializes command handling and refresh
    application (single writer for the overlay store).
    """

    # Store Settings on the state for easy access in other modules later.
    settings: Any

    source: TaskSource
    overlays: OverlayRepo
    cache: SnapshotCache
    classifier: StatusClassifier = field(default_factory=StatusClassifier)

    snapshot: Snapshot | None = None
    entities: list[DisplayEntity] = field(default_factory=list)

    selected_group: TaskGroup = TaskGroup.MY_ACTION
    query: str = ""
    search_all_groups: bool = False

    last_error: TransportError | None = None
    warnings: list[str] = field(default_factory=list)

    refresh_in_flight: bool = False
    refresh_generation: int = 0

    lock: threading.RLock = field(default_factory=threading.RLock)

    @property
    def is_stale(self) -> bool:
        return self.snapshot is None or self.snapshot.is_stale
