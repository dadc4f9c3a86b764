# src/clickup_focus/core/engine.py

"""
Engine operations over AppState.

This module is transport-agnostic:
- connectors call these functions with the explicit AppState,
- the engine swaps snapshots, writes overlays through the store contract and re-reconciles,
- connectors decide how to render `current_view(state)`.

Key invariants:
- at most one refresh in flight; a second request is skipped, not queued,
- a failed fetch never clears what is shown: the cached snapshot is used and flagged stale,
- cache and last-refresh writes are best effort (warnings), overlay writes are not
  (the store rolls back and the error reaches the caller),
- entities are recomputed after every snapshot change or overlay mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from .errors import PersistenceError, TransportError, UnknownTaskError
from .models import TAB_ORDER, DisplayEntity, Snapshot, TaskGroup, utcnow
from .reconcile import reconcile
from .state import AppState
from .view import build_view, group_counts

logger = logging.getLogger(__name__)


class RefreshStatus(str, Enum):
    LIVE = "live"
    STALE = "stale"
    FAILED = "failed"
    SKIPPED = "skipped"
    DISCARDED = "discarded"


@dataclass(slots=True)
class RefreshResult:
    status: RefreshStatus
    task_count: int = 0
    error: TransportError | None = None
    warnings: list[str] = field(default_factory=list)


# ---- reconciliation ----


def reconcile_state(state: AppState, now: datetime | None = None) -> list[DisplayEntity]:
    """Recompute state.entities from the current snapshot and overlays (lazy snooze expiry)."""
    now = now or utcnow()
    if state.snapshot is None:
        state.entities = []
        return state.entities

    def expire(task_id: str) -> None:
        try:
            state.overlays.clear_snooze(task_id)
        except PersistenceError as e:
            msg = f"Could not save expired snooze for {task_id}: {e}"
            logger.warning(msg)
            state.warnings.append(msg)

    state.entities = reconcile(
        state.snapshot,
        state.overlays.all(),
        now,
        classifier=state.classifier,
        on_expired=expire,
    )
    return state.entities


def load_cached(state: AppState, now: datetime | None = None) -> bool:
    """Startup: show the cached snapshot (stale) until a live fetch succeeds."""
    with state.lock:
        cached = state.cache.load()
        if cached is None:
            return False
        state.snapshot = cached
        reconcile_state(state, now)
        logger.info("Showing cached snapshot: %d tasks", len(cached.tasks))
        return True


# ---- refresh ----


async def refresh(state: AppState, *, now: datetime | None = None) -> RefreshResult:
    """
    Fetch a live snapshot and reconcile it.

    The fetch runs without holding state.lock; applying the result does.
    """
    with state.lock:
        if state.refresh_in_flight:
            logger.debug("Refresh already in flight; request coalesced.")
            return RefreshResult(RefreshStatus.SKIPPED)
        state.refresh_in_flight = True
        generation = state.refresh_generation

    try:
        snapshot: Snapshot | None = None
        error: TransportError | None = None
        user_id = str(getattr(state.settings, "user_id", "") or "")

        try:
            snapshot = await state.source.fetch_tasks(user_id)
        except TransportError as e:
            error = e
        except Exception as e:
            logger.exception("Task source failed unexpectedly")
            error = TransportError(f"Unexpected fetch failure: {e}", retryable=False)

        with state.lock:
            if generation != state.refresh_generation:
                logger.info("Refresh result discarded (superseded).")
                return RefreshResult(RefreshStatus.DISCARDED)
            if snapshot is not None:
                return _apply_live(state, snapshot, now)
            assert error is not None
            return _apply_fallback(state, error, now)
    finally:
        with state.lock:
            if generation == state.refresh_generation:
                state.refresh_in_flight = False


def _apply_live(state: AppState, snapshot: Snapshot, now: datetime | None) -> RefreshResult:
    state.snapshot = snapshot
    state.last_error = None
    state.warnings = []

    try:
        state.cache.save(snapshot)
    except PersistenceError as e:
        logger.warning("Task cache not saved: %s", e)
        state.warnings.append(f"Cache not saved: {e}")

    try:
        state.overlays.set_last_refresh(snapshot.fetched_at)
    except PersistenceError as e:
        logger.warning("Last refresh time not saved: %s", e)
        state.warnings.append(f"Last refresh time not saved: {e}")

    reconcile_state(state, now)
    logger.info("Refresh complete: %d tasks (live)", len(snapshot.tasks))
    return RefreshResult(RefreshStatus.LIVE, task_count=len(snapshot.tasks), warnings=list(state.warnings))


def _apply_fallback(state: AppState, error: TransportError, now: datetime | None) -> RefreshResult:
    state.last_error = error
    logger.warning("Refresh failed (retryable=%s): %s", error.retryable, error)

    if state.snapshot is not None:
        # Keep what is on screen, just flag it.
        state.snapshot = state.snapshot.as_cached()
    else:
        state.snapshot = state.cache.load()

    reconcile_state(state, now)

    if state.snapshot is None:
        return RefreshResult(RefreshStatus.FAILED, error=error, warnings=list(state.warnings))
    return RefreshResult(
        RefreshStatus.STALE,
        task_count=len(state.snapshot.tasks),
        error=error,
        warnings=list(state.warnings),
    )


def cancel_refresh(state: AppState) -> None:
    """Abandon the in-flight refresh; its result will be discarded."""
    with state.lock:
        if not state.refresh_in_flight:
            return
        state.refresh_generation += 1
        state.refresh_in_flight = False
        logger.info("Refresh cancelled.")


# ---- view ----


def current_view(state: AppState) -> list[DisplayEntity]:
    return build_view(
        state.entities,
        state.selected_group,
        state.query,
        all_groups=state.search_all_groups,
    )


def tab_counts(state: AppState) -> dict[TaskGroup, int]:
    return group_counts(state.entities)


def is_stale(state: AppState) -> bool:
    return state.is_stale


def find_entity(state: AppState, task_id: str) -> DisplayEntity | None:
    for e in state.entities:
        if e.id == task_id:
            return e
    return None


def select_tab(state: AppState, group: TaskGroup | str) -> TaskGroup:
    if not isinstance(group, TaskGroup):
        group = TaskGroup.parse(group)
    state.selected_group = group
    return group


def next_tab(state: AppState) -> TaskGroup:
    idx = (TAB_ORDER.index(state.selected_group) + 1) % len(TAB_ORDER)
    return select_tab(state, TAB_ORDER[idx])


def prev_tab(state: AppState) -> TaskGroup:
    idx = (TAB_ORDER.index(state.selected_group) - 1) % len(TAB_ORDER)
    return select_tab(state, TAB_ORDER[idx])


def set_query(state: AppState, text: str | None, *, all_groups: bool = False) -> None:
    state.query = (text or "").strip()
    state.search_all_groups = bool(all_groups) and bool(state.query)


def clear_query(state: AppState) -> None:
    set_query(state, "")


# ---- overlay commands ----


def _require_task(state: AppState, task_id: str) -> None:
    if state.snapshot is None or state.snapshot.get(task_id) is None:
        raise UnknownTaskError(task_id)


def toggle_pin(state: AppState, task_id: str, now: datetime | None = None) -> bool:
    _require_task(state, task_id)
    pinned = state.overlays.toggle_pin(task_id)
    logger.info("Task %s %s", task_id, "pinned" if pinned else "unpinned")
    reconcile_state(state, now)
    return pinned


def snooze(state: AppState, task_id: str, days: int, now: datetime | None = None) -> datetime:
    if isinstance(days, bool) or not isinstance(days, int) or days < 1:
        raise ValueError("days must be a positive integer")
    _require_task(state, task_id)

    now = now or utcnow()
    until = now + timedelta(days=days)
    state.overlays.set_snooze(task_id, until)
    logger.info("Task %s snoozed until %s", task_id, until.isoformat())
    reconcile_state(state, now)
    return until


def unsnooze(state: AppState, task_id: str, now: datetime | None = None) -> None:
    _require_task(state, task_id)
    state.overlays.clear_snooze(task_id)
    logger.info("Task %s unsnoozed", task_id)
    reconcile_state(state, now)


def set_order(state: AppState, task_id: str, key: int | None, now: datetime | None = None) -> None:
    _require_task(state, task_id)
    state.overlays.set_order(task_id, key)
    logger.info("Task %s sort order -> %s", task_id, key)
    reconcile_state(state, now)
