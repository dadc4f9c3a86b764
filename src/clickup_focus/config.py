# src/clickup_focus/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time (missing token => offline mode from cache).
- Settings are loaded once; the core receives them as plain input.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .core.classifier import STATUS_GROUPS
from .core.models import TaskGroup

logger = logging.getLogger(__name__)

ENV_PREFIX = "CLICKUP_FOCUS"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


def _env_status_map(name: str) -> dict[str, TaskGroup]:
    """
    Parse "qa=waiting, ready for dev=my_action" into a status table override.

    Bad entries are skipped with a warning; labels may contain spaces, so only
    commas separate entries.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return {}
    out: dict[str, TaskGroup] = {}
    for part in raw.split(","):
        if not part.strip():
            continue
        label, sep, group = part.partition("=")
        if not sep or not label.strip():
            logger.warning("Ignoring malformed %s entry: %r", name, part)
            continue
        try:
            target = TaskGroup.parse(group)
        except ValueError:
            logger.warning("Ignoring %s entry with unknown group: %r", name, part)
            continue
        if target not in STATUS_GROUPS:
            logger.warning("Ignoring %s entry: a status cannot map to %s: %r", name, target.label, part)
            continue
        out[label.strip()] = target
    return out


def _default_data_dir() -> Path:
    return Path.home() / ".config" / "clickup-focus"


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- ClickUp ----
    api_token: str | None
    user_id: str
    team_id: str | None
    api_base_url: str
    connect_timeout: float
    read_timeout: float

    # ---- Behaviour ----
    auto_refresh: bool

    # ---- Local data paths ----
    data_dir: Path
    overlay_path: Path
    cache_path: Path

    # ---- Classification ----
    status_map: dict[str, TaskGroup] = field(default_factory=dict)
    person_item_ids: tuple[int, ...] = (1020,)

    def missing_required(self) -> list[str]:
        missing: list[str] = []
        if not (self.api_token or "").strip():
            missing.append(_k("API_TOKEN"))
        if not self.user_id.strip():
            missing.append(_k("USER_ID"))
        return missing

    @staticmethod
    def from_env() -> "Settings":
        _load_dotenv_if_available()

        app_name = _env(_k("APP_NAME"), "clickup-focus")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        # Accept the generic ClickUp variable too, it is what most tooling uses.
        api_token = _first_env(_k("API_TOKEN"), "CLICKUP_API_TOKEN", default=None)
        user_id = (_first_env(_k("USER_ID"), "CLICKUP_USER_ID", default="") or "").strip()
        team_id = _first_env(_k("TEAM_ID"), default=None)
        api_base_url = _env(_k("API_BASE_URL"), "https://api.clickup.com/api/v2").rstrip("/")
        connect_timeout = _env_float(_k("CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout = _env_float(_k("READ_TIMEOUT_SECONDS"), 30.0)

        auto_refresh = _env_bool(_k("AUTO_REFRESH"), True)

        data_dir = _env_path(_k("DATA_DIR"), _default_data_dir())
        overlay_path = _env_path(_k("OVERLAY_PATH"), data_dir / "local_state.json")
        cache_path = _env_path(_k("CACHE_PATH"), data_dir / "tasks_cache.json")

        status_map = _env_status_map(_k("STATUS_MAP"))

        person_item_ids: list[int] = []
        for raw in _env_list(_k("PERSON_ITEM_IDS"), ["1020"]):
            try:
                person_item_ids.append(int(raw))
            except ValueError:
                logger.warning("Ignoring non-numeric person item id: %r", raw)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            api_token=api_token.strip() if api_token else None,
            user_id=user_id,
            team_id=team_id.strip() if team_id else None,
            api_base_url=api_base_url,
            connect_timeout=connect_timeout,
            read_timeout=read_timeout,
            auto_refresh=auto_refresh,
            data_dir=data_dir,
            overlay_path=overlay_path,
            cache_path=cache_path,
            status_map=status_map,
            person_item_ids=tuple(person_item_ids),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
