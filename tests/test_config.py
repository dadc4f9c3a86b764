# tests/test_config.py

from __future__ import annotations

import os
from pathlib import Path

import pytest

from clickup_focus import config
from clickup_focus.config import Settings
from clickup_focus.core.models import TaskGroup


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # keep a developer's .env and shell out of these tests
    monkeypatch.setattr(config, "_load_dotenv_if_available", lambda: None)
    for key in list(os.environ):
        if key.startswith("CLICKUP_"):
            monkeypatch.delenv(key, raising=False)


def test_defaults_need_token_and_user(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CLICKUP_FOCUS_DATA_DIR", str(tmp_path))

    s = Settings.from_env()

    assert s.missing_required() == ["CLICKUP_FOCUS_API_TOKEN", "CLICKUP_FOCUS_USER_ID"]
    assert s.data_dir == tmp_path
    assert s.overlay_path == tmp_path / "local_state.json"
    assert s.cache_path == tmp_path / "tasks_cache.json"
    assert s.auto_refresh is True
    assert s.status_map == {}
    assert s.person_item_ids == (1020,)


def test_env_values_are_read(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("CLICKUP_FOCUS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("CLICKUP_API_TOKEN", " pk_123 ")
    monkeypatch.setenv("CLICKUP_FOCUS_USER_ID", "42")
    monkeypatch.setenv("CLICKUP_FOCUS_READ_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("CLICKUP_FOCUS_AUTO_REFRESH", "no")
    monkeypatch.setenv("CLICKUP_FOCUS_PERSON_ITEM_IDS", "1020, 2000, x")

    s = Settings.from_env()

    assert s.missing_required() == []
    assert s.api_token == "pk_123"
    assert s.user_id == "42"
    assert s.read_timeout == 12.5
    assert s.auto_refresh is False
    assert s.person_item_ids == (1020, 2000)


def test_status_map_parsing_skips_bad_entries(monkeypatch) -> None:
    monkeypatch.setenv(
        "CLICKUP_FOCUS_STATUS_MAP",
        "qa=waiting, ready to ship = Done, broken, x=nowhere, triage=1",
    )

    s = Settings.from_env()

    assert s.status_map == {
        "qa": TaskGroup.WAITING,
        "ready to ship": TaskGroup.DONE,
        "triage": TaskGroup.MY_ACTION,
    }


def test_status_map_rejects_overlay_only_groups(monkeypatch, caplog) -> None:
    monkeypatch.setenv("CLICKUP_FOCUS_STATUS_MAP", "parked=snoozed, owner=person, qa=waiting")

    s = Settings.from_env()

    assert s.status_map == {"qa": TaskGroup.WAITING}
    assert "parked=snoozed" in caplog.text
