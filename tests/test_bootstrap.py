# tests/test_bootstrap.py

from __future__ import annotations

from clickup_focus.cli.bootstrap import build_task_source, create_initial_state
from clickup_focus.core.models import TaskGroup
from clickup_focus.remote.offline import OfflineTaskSource


def test_overlay_only_groups_in_status_map_are_dropped(settings, source) -> None:
    settings.status_map = {"parked": TaskGroup.SNOOZED, "owner": "person", "qa": TaskGroup.WAITING}

    state = create_initial_state(settings=settings, source=source)

    assert state.classifier.classify("qa") == TaskGroup.WAITING
    assert state.classifier.classify("parked") == TaskGroup.BACKLOG
    assert state.classifier.classify("owner") == TaskGroup.BACKLOG


def test_missing_token_selects_offline_source(settings) -> None:
    settings.missing_required = lambda: ["CLICKUP_FOCUS_API_TOKEN"]
    assert isinstance(build_task_source(settings), OfflineTaskSource)
