# src/clickup_focus/core/models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, StrEnum
from typing import Any


class TaskGroup(StrEnum):
    """
    Responsibility group (one tab per group).

    Notes:
    - SNOOZED is never produced by status classification; it is an overlay effect.
    - PERSON holds long-standing role/person tasks (task type based, not status based).
    """

    MY_ACTION = "my_action"
    WAITING = "waiting"
    BACKLOG = "backlog"
    DONE = "done"
    SNOOZED = "snoozed"
    PERSON = "person"

    @property
    def label(self) -> str:
        return _GROUP_LABELS[self]

    @property
    def tab_number(self) -> int:
        return TAB_ORDER.index(self) + 1

    @classmethod
    def parse(cls, raw: str) -> TaskGroup:
        """Accept a value ("my_action"), a label ("My Action") or a 1-based tab number."""
        s = " ".join((raw or "").strip().lower().replace("_", " ").replace("-", " ").split())
        if not s:
            raise ValueError("empty group name")
        if s.isdigit():
            idx = int(s) - 1
            if 0 <= idx < len(TAB_ORDER):
                return TAB_ORDER[idx]
            raise ValueError(f"no tab number {s}")
        for g in cls:
            if s in (g.value.replace("_", " "), g.label.lower()):
                return g
        raise ValueError(f"unknown group: {raw!r}")


_GROUP_LABELS = {
    TaskGroup.MY_ACTION: "My Action",
    TaskGroup.WAITING: "Waiting",
    TaskGroup.BACKLOG: "Backlog",
    TaskGroup.DONE: "Done",
    TaskGroup.SNOOZED: "Snoozed",
    TaskGroup.PERSON: "Person",
}

TAB_ORDER: tuple[TaskGroup, ...] = (
    TaskGroup.MY_ACTION,
    TaskGroup.WAITING,
    TaskGroup.BACKLOG,
    TaskGroup.DONE,
    TaskGroup.SNOOZED,
    TaskGroup.PERSON,
)

_PRIORITY_LABELS = {1: "Urgent", 2: "High", 3: "Normal", 4: "Low"}

_TASK_TYPE_LABELS = {
    0: "Task",
    1004: "Bug",
    1005: "Milestone",
    1006: "Feature",
    1007: "Epic",
    1008: "Story",
    1009: "Spike",
    1020: "Person",
}


def utcnow() -> datetime:
    return datetime.now(UTC)


def to_iso(ts: datetime | None) -> str | None:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).isoformat()


def optional_str(raw: Any) -> str | None:
    """None or empty -> None; strings and numbers -> str. Raises ValueError for anything else."""
    if raw is None or raw == "":
        return None
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return str(raw)
    raise ValueError(f"expected a string, got {type(raw).__name__}")


def from_iso(raw: Any) -> datetime | None:
    """Parse an ISO timestamp; naive values are taken as UTC. Raises ValueError on garbage."""
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValueError(f"timestamp must be a string, got {type(raw).__name__}")
    ts = datetime.fromisoformat(raw)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts


@dataclass(frozen=True, slots=True)
class RemoteTask:
    """A task as fetched from ClickUp. Read-only; never written back."""

    id: str
    title: str
    status: str
    list_name: str = ""
    url: str = ""
    assignees: frozenset[str] = frozenset()

    space_name: str | None = None
    priority: int | None = None
    due_date: datetime | None = None
    tags: tuple[str, ...] = ()
    description: str | None = None
    custom_item_id: int | None = None
    custom_id: str | None = None
    parent_id: str | None = None

    @property
    def priority_label(self) -> str | None:
        if self.priority is None:
            return None
        return _PRIORITY_LABELS.get(self.priority)

    @property
    def task_type_label(self) -> str | None:
        if self.custom_item_id is None:
            return None
        return _TASK_TYPE_LABELS.get(self.custom_item_id, "Custom")

    @property
    def is_subtask(self) -> bool:
        return self.parent_id is not None

    def is_assigned_to(self, user_id: str) -> bool:
        return str(user_id) in self.assignees

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "list_name": self.list_name,
            "url": self.url,
            "assignees": sorted(self.assignees),
            "space_name": self.space_name,
            "priority": self.priority,
            "due_date": to_iso(self.due_date),
            "tags": list(self.tags),
            "description": self.description,
            "custom_item_id": self.custom_item_id,
            "custom_id": self.custom_id,
            "parent_id": self.parent_id,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> RemoteTask:
        task_id = d.get("id")
        if not isinstance(task_id, str) or not task_id:
            raise ValueError("task id is required")
        priority = d.get("priority")
        custom_item_id = d.get("custom_item_id")
        tags = d.get("tags") or []
        assignees = d.get("assignees") or []
        if not isinstance(tags, list) or not isinstance(assignees, list):
            raise ValueError("tags and assignees must be lists")
        return cls(
            id=task_id,
            title=str(d.get("title") or ""),
            status=str(d.get("status") or ""),
            list_name=str(d.get("list_name") or ""),
            url=str(d.get("url") or ""),
            assignees=frozenset(str(a) for a in assignees),
            space_name=optional_str(d.get("space_name")),
            priority=int(priority) if priority is not None else None,
            due_date=from_iso(d.get("due_date")),
            tags=tuple(str(t) for t in tags),
            description=optional_str(d.get("description")),
            custom_item_id=int(custom_item_id) if custom_item_id is not None else None,
            custom_id=optional_str(d.get("custom_id")),
            parent_id=optional_str(d.get("parent_id")),
        )


@dataclass(slots=True)
class Overlay:
    """
    Local per-task metadata. Never sent to ClickUp.

    `extra` keeps fields this version does not know about, so rewriting a file
    produced by a newer version does not drop them.
    """

    pinned: bool = False
    snoozed_until: datetime | None = None
    sort_order: int | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_default(self) -> bool:
        return not self.pinned and self.snoozed_until is None and self.sort_order is None and not self.extra

    def is_snoozed(self, now: datetime) -> bool:
        return self.snoozed_until is not None and self.snoozed_until > now

    def copy(self) -> Overlay:
        return Overlay(
            pinned=self.pinned,
            snoozed_until=self.snoozed_until,
            sort_order=self.sort_order,
            extra=dict(self.extra),
        )


@dataclass(frozen=True, slots=True)
class DisplayEntity:
    """
    A RemoteTask joined with its overlay and effective group. Derived, never persisted.

    `context` marks a parent fetched only to show where an assigned subtask
    lives; context entities are never members of a tab.
    """

    task: RemoteTask
    group: TaskGroup
    pinned: bool = False
    sort_order: int | None = None
    snoozed_until: datetime | None = None
    context: bool = False

    @property
    def id(self) -> str:
        return self.task.id

    @property
    def title(self) -> str:
        return self.task.title

    def order_key(self) -> tuple[Any, ...]:
        # pinned first; manual order before title order inside each partition; id breaks ties
        has_order = self.sort_order is not None
        return (
            not self.pinned,
            not has_order,
            self.sort_order if has_order else 0,
            self.task.title.casefold(),
            self.task.id,
        )


class SnapshotOrigin(str, Enum):
    LIVE = "live"
    CACHED = "cached"


@dataclass(frozen=True, slots=True)
class Snapshot:
    """
    One fetch result. `context_ids` are tasks present only as ancestors of
    assigned subtasks (not assigned to the user themselves).
    """

    tasks: tuple[RemoteTask, ...]
    fetched_at: datetime
    origin: SnapshotOrigin = SnapshotOrigin.LIVE
    context_ids: frozenset[str] = frozenset()

    @classmethod
    def build(
        cls,
        tasks: list[RemoteTask] | tuple[RemoteTask, ...],
        *,
        fetched_at: datetime | None = None,
        origin: SnapshotOrigin = SnapshotOrigin.LIVE,
        context_ids: Iterable[str] = (),
    ) -> Snapshot:
        """Build a snapshot, keeping only the first task for any repeated id."""
        seen: set[str] = set()
        unique: list[RemoteTask] = []
        for t in tasks:
            if t.id in seen:
                continue
            seen.add(t.id)
            unique.append(t)
        return cls(
            tasks=tuple(unique),
            fetched_at=fetched_at or utcnow(),
            origin=origin,
            context_ids=frozenset(context_ids) & seen,
        )

    @property
    def is_stale(self) -> bool:
        return self.origin == SnapshotOrigin.CACHED

    def get(self, task_id: str) -> RemoteTask | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def as_cached(self) -> Snapshot:
        return Snapshot(
            tasks=self.tasks,
            fetched_at=self.fetched_at,
            origin=SnapshotOrigin.CACHED,
            context_ids=self.context_ids,
        )

    def is_context(self, task_id: str) -> bool:
        return task_id in self.context_ids
