# src/clickup_focus/storage/cache_store.py

from __future__ import annotations

import logging
from pathlib import Path

from ..core.errors import PersistenceError
from ..core.models import RemoteTask, Snapshot, SnapshotOrigin, from_iso, to_iso
from ._files import atomic_write_json, read_json

logger = logging.getLogger(__name__)

FILE_VERSION = 1


class CacheStore:
    """
    Last live snapshot on disk, used only when a live fetch is unavailable.

    load() always returns a snapshot tagged CACHED (or None).
    save() raises PersistenceError; callers treat that as a warning.
    """

    def __init__(self, path: str | Path = "tasks_cache.json") -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Snapshot | None:
        try:
            data = read_json(self._path)
        except Exception:
            logger.error(
                "Task cache %s is unreadable; ignoring it (recoverable data loss).",
                self._path,
                exc_info=True,
            )
            return None

        if data is None:
            return None

        try:
            if not isinstance(data, dict):
                raise ValueError("cache root must be an object")
            fetched_at = from_iso(data.get("fetched_at"))
            if fetched_at is None:
                raise ValueError("fetched_at is missing")
            raw_tasks = data.get("tasks")
            if not isinstance(raw_tasks, list):
                raise ValueError("tasks must be a list")
        except ValueError as e:
            logger.error("Task cache %s is malformed (%s); ignoring it (recoverable data loss).", self._path, e)
            return None

        tasks: list[RemoteTask] = []
        for raw in raw_tasks:
            if not isinstance(raw, dict):
                logger.warning("Skipping malformed cached task entry in %s", self._path)
                continue
            try:
                tasks.append(RemoteTask.from_dict(raw))
            except (TypeError, ValueError):
                logger.warning("Skipping malformed cached task id=%r", raw.get("id"))

        raw_context = data.get("context_ids")
        context_ids = [str(i) for i in raw_context] if isinstance(raw_context, list) else []

        snapshot = Snapshot.build(tasks, fetched_at=fetched_at, origin=SnapshotOrigin.CACHED, context_ids=context_ids)
        logger.info("Loaded task cache: %d tasks from %s (fetched_at=%s)", len(snapshot.tasks), self._path, fetched_at)
        return snapshot

    def save(self, snapshot: Snapshot) -> None:
        doc = {
            "version": FILE_VERSION,
            "fetched_at": to_iso(snapshot.fetched_at),
            "tasks": [t.to_dict() for t in snapshot.tasks],
            "context_ids": sorted(snapshot.context_ids),
        }
        try:
            atomic_write_json(self._path, doc)
        except OSError as e:
            raise PersistenceError(f"Failed to save task cache to {self._path}: {e}", path=self._path) from e
        logger.debug("Saved task cache: %d tasks to %s", len(snapshot.tasks), self._path)
