# tests/test_cache_store.py

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

import pytest

from clickup_focus.core.errors import PersistenceError
from clickup_focus.core.models import Snapshot, SnapshotOrigin
from clickup_focus.storage import cache_store as cache_store_module
from clickup_focus.storage.cache_store import CacheStore

from .fakes import NOW, make_snapshot, make_task


def test_missing_cache_loads_none(tmp_path: Path) -> None:
    assert CacheStore(tmp_path / "cache.json").load() is None


def test_saved_snapshot_loads_as_cached(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    task = make_task(
        "t1",
        "Ship it",
        "in review",
        assignees=frozenset({"42", "7"}),
        priority=2,
        due_date=datetime(2026, 4, 1, 9, 30, tzinfo=UTC),
        tags=("backend",),
        custom_item_id=1004,
        custom_id="PROJ-1",
        parent_id="p0",
        description="details",
    )
    CacheStore(path).save(make_snapshot(task, make_task("t2")))

    loaded = CacheStore(path).load()
    assert loaded is not None
    assert loaded.origin == SnapshotOrigin.CACHED
    assert loaded.is_stale
    assert loaded.fetched_at == NOW
    assert loaded.tasks[0] == task
    assert [t.id for t in loaded.tasks] == ["t1", "t2"]


def test_corrupt_cache_is_ignored(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    path = tmp_path / "cache.json"
    path.write_text("[]", "utf-8")
    assert CacheStore(path).load() is None
    path.write_text("garbage", "utf-8")
    assert CacheStore(path).load() is None
    assert "recoverable data loss" in caplog.text


def test_bad_task_entries_are_skipped(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "fetched_at": NOW.isoformat(),
                "tasks": [{"id": "ok", "title": "fine", "status": "open"}, {"title": "no id"}, 5],
            }
        ),
        "utf-8",
    )
    loaded = CacheStore(path).load()
    assert loaded is not None
    assert [t.id for t in loaded.tasks] == ["ok"]


def test_save_failure_raises_persistence_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def boom(path: Path, data) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(cache_store_module, "atomic_write_json", boom)
    with pytest.raises(PersistenceError):
        CacheStore(tmp_path / "cache.json").save(make_snapshot(make_task("t1")))


def test_wrongly_typed_text_fields_do_not_leak_into_snapshot(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    path.write_text(
        json.dumps(
            {
                "version": 1,
                "fetched_at": NOW.isoformat(),
                "tasks": [
                    {"id": "num", "title": "Numbers", "status": "open", "description": 5, "custom_id": 7},
                    {"id": "obj", "title": "Object", "status": "open", "parent_id": {"id": "p"}},
                    {"id": "tags", "title": "Tags", "status": "open", "tags": "frontend"},
                ],
            }
        ),
        "utf-8",
    )

    loaded = CacheStore(path).load()

    assert loaded is not None
    assert [t.id for t in loaded.tasks] == ["num"]
    assert loaded.tasks[0].description == "5"
    assert loaded.tasks[0].custom_id == "7"


def test_context_ids_survive_a_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "cache.json"
    parent = make_task("p1", "Epic")
    child = make_task("c1", "Subtask", parent_id="p1")
    CacheStore(path).save(Snapshot.build([child, parent], fetched_at=NOW, context_ids={"p1", "gone"}))

    loaded = CacheStore(path).load()

    assert loaded is not None
    assert loaded.context_ids == frozenset({"p1"})
    assert loaded.as_cached().is_context("p1")
