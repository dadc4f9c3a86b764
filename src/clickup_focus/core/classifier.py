# src/clickup_focus/core/classifier.py

"""
Status classifier: ClickUp status label -> responsibility group.

The mapping is data (DEFAULT_STATUS_TABLE + optional overrides from settings),
so new remote status vocabulary is handled without touching call sites.

Composite labels ("in testing / blocked") that are not in the table as a whole
are split into parts; the winning group is picked by an explicit precedence
order, never by table order.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping

from .models import RemoteTask, TaskGroup

DEFAULT_STATUS_TABLE: dict[str, TaskGroup] = {
    # I need to do something
    "to do": TaskGroup.MY_ACTION,
    "to-do": TaskGroup.MY_ACTION,
    "todo": TaskGroup.MY_ACTION,
    "in progress": TaskGroup.MY_ACTION,
    "in review": TaskGroup.MY_ACTION,
    "review": TaskGroup.MY_ACTION,
    "to review": TaskGroup.MY_ACTION,
    # ball is in someone else's court
    "blocked": TaskGroup.WAITING,
    "in testing": TaskGroup.WAITING,
    "testing": TaskGroup.WAITING,
    "to validate": TaskGroup.WAITING,
    "validation": TaskGroup.WAITING,
    "pending review": TaskGroup.WAITING,
    # not yet prioritized
    "backlog": TaskGroup.BACKLOG,
    "open": TaskGroup.BACKLOG,
    "new": TaskGroup.BACKLOG,
    # finished one way or another
    "done": TaskGroup.DONE,
    "complete": TaskGroup.DONE,
    "completed": TaskGroup.DONE,
    "closed": TaskGroup.DONE,
    "released": TaskGroup.DONE,
    "deployed": TaskGroup.DONE,
    "shipped": TaskGroup.DONE,
    "cancelled": TaskGroup.DONE,
    "canceled": TaskGroup.DONE,
    "won't do": TaskGroup.DONE,
    "wontdo": TaskGroup.DONE,
    "for reference": TaskGroup.DONE,
}

DEFAULT_PRECEDENCE: tuple[TaskGroup, ...] = (
    TaskGroup.WAITING,
    TaskGroup.MY_ACTION,
    TaskGroup.DONE,
    TaskGroup.BACKLOG,
)

DEFAULT_PERSON_ITEM_IDS: frozenset[int] = frozenset({1020})

FALLBACK_GROUP = TaskGroup.BACKLOG

_SPLIT_RE = re.compile(r"\s*(?:[/,|+&]|\band\b)\s*")

# Only these can come out of a status label.
STATUS_GROUPS = frozenset({TaskGroup.MY_ACTION, TaskGroup.WAITING, TaskGroup.BACKLOG, TaskGroup.DONE})


def normalize_status(label: str | None) -> str:
    return " ".join((label or "").strip().lower().split())


class StatusClassifier:
    """Pure, total classifier. Unknown labels fall back to Backlog."""

    def __init__(
        self,
        table: Mapping[str, TaskGroup] | None = None,
        *,
        overrides: Mapping[str, TaskGroup] | None = None,
        precedence: Iterable[TaskGroup] = DEFAULT_PRECEDENCE,
        person_item_ids: Iterable[int] = DEFAULT_PERSON_ITEM_IDS,
    ) -> None:
        merged: dict[str, TaskGroup] = {}
        for source in (table if table is not None else DEFAULT_STATUS_TABLE, overrides or {}):
            for label, group in source.items():
                group = TaskGroup(group)
                if group not in STATUS_GROUPS:
                    raise ValueError(f"status {label!r} cannot map to {group.value}")
                merged[normalize_status(label)] = group
        self._table = merged

        order = list(dict.fromkeys(TaskGroup(g) for g in precedence))
        # groups missing from the precedence list rank after the listed ones
        for g in DEFAULT_PRECEDENCE:
            if g not in order:
                order.append(g)
        self._rank = {g: i for i, g in enumerate(order)}
        self._person_item_ids = frozenset(int(i) for i in person_item_ids)

    @property
    def table(self) -> dict[str, TaskGroup]:
        return dict(self._table)

    @property
    def precedence(self) -> tuple[TaskGroup, ...]:
        return tuple(sorted(self._rank, key=self._rank.__getitem__))

    def classify(self, status_label: str | None) -> TaskGroup:
        key = normalize_status(status_label)
        if not key:
            return FALLBACK_GROUP

        group = self._table.get(key)
        if group is not None:
            return group

        parts = [p for p in _SPLIT_RE.split(key) if p]
        if len(parts) < 2:
            return FALLBACK_GROUP

        found = [self._table[p] for p in parts if p in self._table]
        if not found:
            return FALLBACK_GROUP
        return min(found, key=self._rank.__getitem__)

    def classify_task(self, task: RemoteTask) -> TaskGroup:
        if task.custom_item_id is not None and task.custom_item_id in self._person_item_ids:
            return TaskGroup.PERSON
        return self.classify(task.status)


_default: StatusClassifier | None = None


def classify(status_label: str | None) -> TaskGroup:
    """Classify with the default table."""
    global _default
    if _default is None:
        _default = StatusClassifier()
    return _default.classify(status_label)
