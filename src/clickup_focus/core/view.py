# src/clickup_focus/core/view.py

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from .models import TAB_ORDER, DisplayEntity, TaskGroup
from .search import search


def build_view(
    entities: Sequence[DisplayEntity],
    selected_group: TaskGroup,
    query: str | None = None,
    *,
    all_groups: bool = False,
) -> list[DisplayEntity]:
    """
    Entities to render for one tab.

    Tab members are the non-context entities of `selected_group`. Each member
    brings its ancestor chain (up to and including the first ancestor that is
    not assigned to the user), and parents are listed right before their
    children. Siblings and roots are ordered pinned first, then manual sort
    key, then title (never due date).

    A non-empty query filters and ranks through `search` instead (flat list,
    no ancestors); with `all_groups` the tab filter is skipped (global search).
    """
    q = (query or "").strip()
    members = [e for e in entities if not e.context]

    if q:
        pool = members if all_groups else [e for e in members if e.group == selected_group]
        return search(sorted(pool, key=DisplayEntity.order_key), q)

    by_id = {e.id: e for e in entities}
    visible = _with_ancestors([e for e in members if e.group == selected_group], by_id)
    return _tree_order(visible)


def _with_ancestors(members: Iterable[DisplayEntity], by_id: Mapping[str, DisplayEntity]) -> dict[str, DisplayEntity]:
    visible: dict[str, DisplayEntity] = {}
    for e in members:
        visible[e.id] = e
        seen = {e.id}
        parent_id = e.task.parent_id
        while parent_id and parent_id not in seen:
            parent = by_id.get(parent_id)
            if parent is None:
                break
            visible.setdefault(parent.id, parent)
            seen.add(parent.id)
            if parent.context:
                break
            parent_id = parent.task.parent_id
    return visible


def _tree_order(visible: Mapping[str, DisplayEntity]) -> list[DisplayEntity]:
    children: dict[str, list[DisplayEntity]] = {}
    roots: list[DisplayEntity] = []
    for e in visible.values():
        parent_id = e.task.parent_id
        if parent_id and parent_id != e.id and parent_id in visible:
            children.setdefault(parent_id, []).append(e)
        else:
            roots.append(e)

    out: list[DisplayEntity] = []
    placed: set[str] = set()

    def walk(e: DisplayEntity) -> None:
        if e.id in placed:
            return
        placed.add(e.id)
        out.append(e)
        for child in sorted(children.get(e.id, ()), key=DisplayEntity.order_key):
            walk(child)

    for root in sorted(roots, key=DisplayEntity.order_key):
        walk(root)
    # a parent cycle has no root; list what is left in plain order
    for e in sorted(visible.values(), key=DisplayEntity.order_key):
        walk(e)
    return out


def tree_depths(view: Sequence[DisplayEntity]) -> dict[str, int]:
    """Nesting depth of each row: how many of its ancestors are in the same view."""
    by_id = {e.id: e for e in view}
    depths: dict[str, int] = {}
    for e in view:
        depth = 0
        seen = {e.id}
        parent_id = e.task.parent_id
        while parent_id in by_id and parent_id not in seen:
            depth += 1
            seen.add(parent_id)
            parent_id = by_id[parent_id].task.parent_id
        depths[e.id] = depth
    return depths


def group_counts(entities: Iterable[DisplayEntity]) -> dict[TaskGroup, int]:
    counts = {g: 0 for g in TAB_ORDER}
    for e in entities:
        if not e.context:
            counts[e.group] += 1
    return counts
