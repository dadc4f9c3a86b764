# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from clickup_focus.cli.bootstrap import create_initial_state
from clickup_focus.core.state import AppState

from .fakes import FakeTaskSource


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the developer's environment and .env.
    """
    return SimpleNamespace(
        app_name="clickup-focus-test",
        user_id="42",
        data_dir=tmp_path,
        overlay_path=tmp_path / "local_state.json",
        cache_path=tmp_path / "tasks_cache.json",
        status_map={},
        person_item_ids=(1020,),
        auto_refresh=False,
    )


@pytest.fixture()
def source() -> FakeTaskSource:
    return FakeTaskSource()


@pytest.fixture()
def state(settings: SimpleNamespace, source: FakeTaskSource) -> AppState:
    """
    AppState wired with a fake task source.

    NOTE: We keep the real JSON stores here (OverlayStore/CacheStore) because
    their persistence behaviour is part of what we want to test.
    """
    return create_initial_state(settings=settings, source=source)
