# src/clickup_focus/core/reconcile.py

"""
Reconciliation: Snapshot + overlays -> display entities.

Key invariants:
- exactly one DisplayEntity per task id in the snapshot, in snapshot order,
- overlays for ids missing from the snapshot are ignored and left untouched,
- ancestors fetched only for context keep their status group but are flagged `context`,
- snooze expiry is lazy: an expired snooze is reported through `on_expired`
  and the entity gets its status-derived group (no timer thread).
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime

from .classifier import StatusClassifier
from .models import DisplayEntity, Overlay, Snapshot, TaskGroup

logger = logging.getLogger(__name__)

_DEFAULT_OVERLAY = Overlay()


def reconcile(
    snapshot: Snapshot,
    overlays: Mapping[str, Overlay],
    now: datetime,
    *,
    classifier: StatusClassifier | None = None,
    on_expired: Callable[[str], None] | None = None,
) -> list[DisplayEntity]:
    """
    Merge every task in `snapshot` with its overlay.

    Never raises: a failing `on_expired` callback is logged and the pass continues.
    """
    classifier = classifier or StatusClassifier()
    out: list[DisplayEntity] = []

    for task in snapshot.tasks:
        overlay = overlays.get(task.id, _DEFAULT_OVERLAY)
        snoozed_until = overlay.snoozed_until

        if overlay.is_snoozed(now):
            group = TaskGroup.SNOOZED
        else:
            group = classifier.classify_task(task)
            if snoozed_until is not None:
                logger.info("Snooze expired task_id=%s until=%s", task.id, snoozed_until.isoformat())
                snoozed_until = None
                if on_expired is not None:
                    try:
                        on_expired(task.id)
                    except Exception:
                        logger.warning("Failed to clear expired snooze task_id=%s", task.id, exc_info=True)

        out.append(
            DisplayEntity(
                task=task,
                group=group,
                pinned=overlay.pinned,
                sort_order=overlay.sort_order,
                snoozed_until=snoozed_until,
                context=snapshot.is_context(task.id),
            )
        )

    return out
