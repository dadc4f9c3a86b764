# src/clickup_focus/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The engine depends on Protocols instead of concrete implementations.
This keeps the ClickUp transport and the on-disk stores swappable and makes testing easier.
"""

from datetime import datetime
from typing import Protocol

from .models import Overlay, Snapshot


class TaskSource(Protocol):
    """
    Remote task source (ClickUp or an offline stand-in).

    Must raise TransportError on any failure; never returns partial data.
    """

    async def fetch_tasks(self, user_id: str) -> Snapshot: ...


class OverlayRepo(Protocol):
    def get(self, task_id: str) -> Overlay: ...
    def all(self) -> dict[str, Overlay]: ...

    def set_pin(self, task_id: str, pinned: bool) -> None: ...
    def toggle_pin(self, task_id: str) -> bool: ...
    def set_snooze(self, task_id: str, until: datetime) -> None: ...
    def clear_snooze(self, task_id: str) -> None: ...
    def set_order(self, task_id: str, key: int | None) -> None: ...
    def clear(self, task_id: str) -> None: ...

    @property
    def last_refresh(self) -> datetime | None: ...
    def set_last_refresh(self, ts: datetime) -> None: ...


class SnapshotCache(Protocol):
    def load(self) -> Snapshot | None: ...
    def save(self, snapshot: Snapshot) -> None: ...
