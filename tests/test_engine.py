# tests/test_engine.py

from __future__ import annotations

import asyncio
import json
from datetime import timedelta

import pytest

from clickup_focus.cli.bootstrap import create_initial_state
from clickup_focus.core import engine
from clickup_focus.core.engine import RefreshStatus
from clickup_focus.core.errors import PersistenceError, TransportError, UnknownTaskError
from clickup_focus.core.models import TaskGroup
from clickup_focus.storage import cache_store as cache_store_module
from clickup_focus.storage import overlay_store as overlay_store_module
from clickup_focus.storage.overlay_store import OverlayStore

from .fakes import NOW, FakeTaskSource, make_snapshot, make_task


def _ids(entities) -> list[str]:
    return [e.id for e in entities]


@pytest.mark.asyncio
async def test_live_refresh_updates_state_cache_and_last_refresh(state, source, settings) -> None:
    source.snapshot = make_snapshot(make_task("t1", "Write docs"), make_task("t2", "Wait", "blocked"))

    result = await engine.refresh(state, now=NOW)

    assert result.status == RefreshStatus.LIVE
    assert result.task_count == 2
    assert source.calls == ["42"]
    assert not state.is_stale
    assert state.refresh_in_flight is False
    assert _ids(engine.current_view(state)) == ["t1"]
    assert engine.tab_counts(state)[TaskGroup.WAITING] == 1

    assert state.cache.load() is not None
    assert OverlayStore(settings.overlay_path).last_refresh == NOW


@pytest.mark.asyncio
async def test_failed_refresh_keeps_shown_snapshot_and_flags_it_stale(state, source) -> None:
    source.snapshot = make_snapshot(make_task("t1"), make_task("t2"))
    await engine.refresh(state, now=NOW)

    source.error = TransportError("timed out", retryable=True)
    result = await engine.refresh(state, now=NOW)

    assert result.status == RefreshStatus.STALE
    assert result.error is source.error
    assert result.task_count == 2
    assert engine.is_stale(state)
    assert state.last_error is source.error
    assert _ids(state.entities) == ["t1", "t2"]


@pytest.mark.asyncio
async def test_failed_refresh_on_startup_falls_back_to_disk_cache(state, source, settings) -> None:
    source.snapshot = make_snapshot(make_task("t1"))
    await engine.refresh(state, now=NOW)

    offline = FakeTaskSource(error=TransportError("no network", retryable=True))
    restarted = create_initial_state(settings=settings, source=offline)
    result = await engine.refresh(restarted, now=NOW)

    assert result.status == RefreshStatus.STALE
    assert restarted.is_stale
    assert _ids(restarted.entities) == ["t1"]


@pytest.mark.asyncio
async def test_failed_refresh_without_cache_reports_failure(state, source) -> None:
    source.error = TransportError("401 unauthorized", retryable=False, status_code=401)

    result = await engine.refresh(state, now=NOW)

    assert result.status == RefreshStatus.FAILED
    assert state.snapshot is None
    assert state.entities == []
    assert engine.current_view(state) == []


@pytest.mark.asyncio
async def test_unexpected_source_exception_is_reported_as_transport_error(state, source) -> None:
    async def broken(user_id: str):
        raise RuntimeError("bug")

    source.fetch_tasks = broken
    result = await engine.refresh(state, now=NOW)

    assert result.status == RefreshStatus.FAILED
    assert isinstance(result.error, TransportError)
    assert result.error.retryable is False


@pytest.mark.asyncio
async def test_second_refresh_while_in_flight_is_skipped(state, source) -> None:
    source.snapshot = make_snapshot(make_task("t1"))
    source.gate = asyncio.Event()

    first = asyncio.create_task(engine.refresh(state, now=NOW))
    await asyncio.sleep(0)
    assert state.refresh_in_flight is True

    second = await engine.refresh(state, now=NOW)
    assert second.status == RefreshStatus.SKIPPED
    assert len(source.calls) == 1

    source.gate.set()
    result = await first
    assert result.status == RefreshStatus.LIVE
    assert state.refresh_in_flight is False


@pytest.mark.asyncio
async def test_cancelled_refresh_result_is_discarded(state, source) -> None:
    source.snapshot = make_snapshot(make_task("t1"))
    source.gate = asyncio.Event()

    pending = asyncio.create_task(engine.refresh(state, now=NOW))
    await asyncio.sleep(0)

    engine.cancel_refresh(state)
    assert state.refresh_in_flight is False

    source.gate.set()
    result = await pending

    assert result.status == RefreshStatus.DISCARDED
    assert state.snapshot is None
    assert state.cache.load() is None


@pytest.mark.asyncio
async def test_cache_write_failure_is_only_a_warning(state, source, monkeypatch) -> None:
    def boom(path, data) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(cache_store_module, "atomic_write_json", boom)
    source.snapshot = make_snapshot(make_task("t1"))

    result = await engine.refresh(state, now=NOW)

    assert result.status == RefreshStatus.LIVE
    assert any("Cache not saved" in w for w in result.warnings)
    assert _ids(state.entities) == ["t1"]


@pytest.mark.asyncio
async def test_expired_snooze_is_cleared_on_disk(state, source, settings) -> None:
    state.overlays.set_snooze("t1", NOW - timedelta(hours=1))
    source.snapshot = make_snapshot(make_task("t1", status="in progress"))

    await engine.refresh(state, now=NOW)

    assert engine.find_entity(state, "t1").group == TaskGroup.MY_ACTION
    assert OverlayStore(settings.overlay_path).get("t1").snoozed_until is None


@pytest.mark.asyncio
async def test_overlay_for_missing_task_survives_and_reapplies(state, source) -> None:
    source.snapshot = make_snapshot(make_task("t1"), make_task("t2"))
    await engine.refresh(state, now=NOW)
    engine.toggle_pin(state, "t2", now=NOW)

    source.snapshot = make_snapshot(make_task("t1"))
    await engine.refresh(state, now=NOW)
    assert _ids(state.entities) == ["t1"]
    assert "t2" in state.overlays

    source.snapshot = make_snapshot(make_task("t1"), make_task("t2"))
    await engine.refresh(state, now=NOW)
    assert engine.find_entity(state, "t2").pinned is True
    assert _ids(engine.current_view(state)) == ["t2", "t1"]


@pytest.mark.asyncio
async def test_load_cached_shows_stale_snapshot(state, source, settings) -> None:
    assert engine.load_cached(state) is False

    source.snapshot = make_snapshot(make_task("t1"))
    await engine.refresh(state, now=NOW)

    restarted = create_initial_state(settings=settings, source=FakeTaskSource())
    assert engine.load_cached(restarted, now=NOW) is True
    assert restarted.is_stale
    assert _ids(restarted.entities) == ["t1"]


# ---- overlay commands ----


@pytest.fixture()
def loaded(state, source):
    source.snapshot = make_snapshot(
        make_task("t1", "Alpha"),
        make_task("t2", "Beta"),
        make_task("t3", "Gamma", "blocked"),
    )
    asyncio.run(engine.refresh(state, now=NOW))
    return state


def test_commands_reject_unknown_task(loaded) -> None:
    with pytest.raises(UnknownTaskError):
        engine.toggle_pin(loaded, "nope")
    with pytest.raises(LookupError):
        engine.snooze(loaded, "nope", 1, now=NOW)
    with pytest.raises(UnknownTaskError):
        engine.set_order(loaded, "nope", 1)
    assert len(loaded.overlays) == 0


def test_commands_require_a_snapshot(state) -> None:
    with pytest.raises(UnknownTaskError):
        engine.unsnooze(state, "t1")


def test_pin_moves_task_to_top_and_back(loaded) -> None:
    assert engine.toggle_pin(loaded, "t2", now=NOW) is True
    assert _ids(engine.current_view(loaded)) == ["t2", "t1"]

    assert engine.toggle_pin(loaded, "t2", now=NOW) is False
    assert _ids(engine.current_view(loaded)) == ["t1", "t2"]


def test_manual_order_beats_title_order(loaded) -> None:
    engine.set_order(loaded, "t2", 1, now=NOW)
    assert _ids(engine.current_view(loaded)) == ["t2", "t1"]

    engine.set_order(loaded, "t2", None, now=NOW)
    assert _ids(engine.current_view(loaded)) == ["t1", "t2"]


def test_snooze_and_unsnooze(loaded) -> None:
    until = engine.snooze(loaded, "t1", 3, now=NOW)

    assert until == NOW + timedelta(days=3)
    assert _ids(engine.current_view(loaded)) == ["t2"]
    engine.select_tab(loaded, TaskGroup.SNOOZED)
    assert _ids(engine.current_view(loaded)) == ["t1"]

    engine.unsnooze(loaded, "t1", now=NOW)
    assert engine.current_view(loaded) == []
    assert engine.find_entity(loaded, "t1").group == TaskGroup.MY_ACTION


@pytest.mark.parametrize("days", [0, -1, True, 1.5, "2"])
def test_snooze_rejects_bad_durations(loaded, days) -> None:
    with pytest.raises(ValueError):
        engine.snooze(loaded, "t1", days, now=NOW)
    assert "t1" not in loaded.overlays


def test_failed_overlay_write_leaves_view_unchanged(loaded, monkeypatch) -> None:
    def boom(path, data) -> None:
        raise OSError("read-only")

    monkeypatch.setattr(overlay_store_module, "atomic_write_json", boom)

    with pytest.raises(PersistenceError):
        engine.toggle_pin(loaded, "t2", now=NOW)
    assert engine.find_entity(loaded, "t2").pinned is False
    assert _ids(engine.current_view(loaded)) == ["t1", "t2"]


# ---- tabs and search ----


def test_tab_navigation_wraps(loaded) -> None:
    assert loaded.selected_group == TaskGroup.MY_ACTION
    assert engine.prev_tab(loaded) == TaskGroup.PERSON
    assert engine.next_tab(loaded) == TaskGroup.MY_ACTION
    assert engine.next_tab(loaded) == TaskGroup.WAITING
    assert _ids(engine.current_view(loaded)) == ["t3"]

    assert engine.select_tab(loaded, "3") == TaskGroup.BACKLOG
    assert engine.select_tab(loaded, "my action") == TaskGroup.MY_ACTION
    with pytest.raises(ValueError):
        engine.select_tab(loaded, "nowhere")


def test_query_filters_current_tab_or_all_tabs(loaded) -> None:
    engine.set_query(loaded, "gam")
    assert engine.current_view(loaded) == []

    engine.set_query(loaded, "gam", all_groups=True)
    assert _ids(engine.current_view(loaded)) == ["t3"]

    engine.clear_query(loaded)
    assert loaded.query == ""
    assert loaded.search_all_groups is False
    assert _ids(engine.current_view(loaded)) == ["t1", "t2"]


def test_wrongly_typed_cached_fields_do_not_break_search(state, settings) -> None:
    settings.cache_path.write_text(
        json.dumps(
            {
                "version": 1,
                "fetched_at": NOW.isoformat(),
                "tasks": [{"id": "t1", "title": "Cached", "status": "to do", "description": 5, "custom_id": 7}],
            }
        ),
        "utf-8",
    )
    assert engine.load_cached(state, now=NOW) is True

    engine.set_query(state, "zzz", all_groups=True)
    assert engine.current_view(state) == []
    engine.set_query(state, "7", all_groups=True)
    assert _ids(engine.current_view(state)) == ["t1"]
