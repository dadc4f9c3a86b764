# src/clickup_focus/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local data directory exists,
- wires concrete implementations into AppState (ClickUp source, overlay/cache stores, classifier).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.classifier import STATUS_GROUPS, StatusClassifier
from ..core.models import TaskGroup
from ..core.ports import TaskSource
from ..core.state import AppState
from ..remote.clickup_client import ClickUpClient
from ..remote.offline import OfflineTaskSource
from ..storage.cache_store import CacheStore
from ..storage.overlay_store import OverlayStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.overlay_path.parent.mkdir(parents=True, exist_ok=True)
    settings.cache_path.parent.mkdir(parents=True, exist_ok=True)


def build_task_source(settings) -> TaskSource:
    missing = settings.missing_required() if hasattr(settings, "missing_required") else []
    if missing:
        logger.warning("ClickUp not configured (missing %s); running offline from cache.", ", ".join(missing))
        return OfflineTaskSource(f"missing {', '.join(missing)}.")
    try:
        return ClickUpClient.from_settings(settings)
    except ValueError as e:
        # Fallback for local runs without a usable token.
        logger.warning("ClickUp client unavailable (%s); running offline from cache.", e)
        return OfflineTaskSource(str(e))


def _status_overrides(settings) -> dict[str, TaskGroup]:
    """Status map overrides from settings; entries targeting Snoozed or Person are dropped."""
    out: dict[str, TaskGroup] = {}
    for label, group in (getattr(settings, "status_map", None) or {}).items():
        try:
            target = TaskGroup(group)
        except ValueError:
            logger.warning("Ignoring status override %r: unknown group %r", label, group)
            continue
        if target not in STATUS_GROUPS:
            logger.warning("Ignoring status override %r: a status cannot map to %s", label, target.label)
            continue
        out[label] = target
    return out


def create_initial_state(*, settings=None, source: TaskSource | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the task source) injectable makes the app easier to test
    and avoids hidden global config reads. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    classifier = StatusClassifier(
        overrides=_status_overrides(settings),
        person_item_ids=getattr(settings, "person_item_ids", (1020,)),
    )

    return AppState(
        settings=settings,
        source=source if source is not None else build_task_source(settings),
        overlays=OverlayStore(settings.overlay_path),
        cache=CacheStore(settings.cache_path),
        classifier=classifier,
    )
