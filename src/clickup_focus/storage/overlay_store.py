# src/clickup_focus/storage/overlay_store.py

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.errors import PersistenceError
from ..core.models import Overlay, from_iso, to_iso
from ._files import atomic_write_json, read_json

logger = logging.getLogger(__name__)

FILE_VERSION = 1
_KNOWN_ROW_FIELDS = ("pinned", "snoozed_until", "sort_order")
_KNOWN_TOP_FIELDS = ("version", "last_refresh", "overlays")


class OverlayStore:
    """
    JSON-backed overlay store (pins, snoozes, manual order), keyed by task id.

    Every mutation rewrites the whole file before returning:
    - write a temp file next to the target, fsync, then os.replace
    - if persisting fails, the in-memory change is rolled back and PersistenceError is raised

    So the file and the in-memory map never diverge after a completed call,
    and a crash mid-write leaves the previous file intact.

    Rows are created lazily on the first mutation. A row that goes back to all
    defaults is dropped (absent == default), which keeps pin/unpin byte-stable.
    Rows for tasks missing from the latest fetch are kept until cleared.
    """

    def __init__(self, path: str | Path = "local_state.json") -> None:
        self._path = Path(path)
        self._overlays: dict[str, Overlay] = {}
        self._last_refresh: datetime | None = None
        self._extra: dict[str, Any] = {}
        # absent file == no overlays; if we created it, going back to empty removes it again
        self._file_existed = self._path.exists()
        self._load()
        logger.info("OverlayStore ready path=%s overlays=%d", self._path, len(self._overlays))

    @property
    def path(self) -> Path:
        return self._path

    # ---- load / persist ----

    def _load(self) -> None:
        try:
            data = read_json(self._path)
        except Exception:
            logger.error(
                "Overlay file %s is unreadable; starting with empty overlays (recoverable data loss).",
                self._path,
                exc_info=True,
            )
            return

        if data is None:
            return
        if not isinstance(data, dict):
            logger.error(
                "Overlay file %s has unexpected shape; starting with empty overlays (recoverable data loss).",
                self._path,
            )
            return

        self._extra = {k: v for k, v in data.items() if k not in _KNOWN_TOP_FIELDS}

        try:
            self._last_refresh = from_iso(data.get("last_refresh"))
        except ValueError:
            logger.warning("Ignoring malformed last_refresh in %s", self._path)

        rows = data.get("overlays") or {}
        if not isinstance(rows, dict):
            logger.error("Overlay map in %s is not an object; ignoring it (recoverable data loss).", self._path)
            return

        for task_id, row in rows.items():
            overlay = self._row_to_overlay(task_id, row)
            if overlay is not None and not overlay.is_default:
                self._overlays[str(task_id)] = overlay

    def _row_to_overlay(self, task_id: str, row: Any) -> Overlay | None:
        if not isinstance(row, dict):
            logger.warning("Skipping malformed overlay row task_id=%s", task_id)
            return None

        snoozed_until = None
        try:
            snoozed_until = from_iso(row.get("snoozed_until"))
        except ValueError:
            logger.warning("Dropping malformed snooze date task_id=%s value=%r", task_id, row.get("snoozed_until"))

        sort_order = row.get("sort_order")
        if sort_order is not None and (isinstance(sort_order, bool) or not isinstance(sort_order, int)):
            logger.warning("Dropping malformed sort_order task_id=%s value=%r", task_id, sort_order)
            sort_order = None

        return Overlay(
            pinned=row.get("pinned") is True,
            snoozed_until=snoozed_until,
            sort_order=sort_order,
            extra={k: v for k, v in row.items() if k not in _KNOWN_ROW_FIELDS},
        )

    @staticmethod
    def _overlay_to_row(overlay: Overlay) -> dict[str, Any]:
        row: dict[str, Any] = dict(overlay.extra)
        row["pinned"] = overlay.pinned
        row["snoozed_until"] = to_iso(overlay.snoozed_until)
        row["sort_order"] = overlay.sort_order
        return row

    def _to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = dict(self._extra)
        doc["version"] = FILE_VERSION
        doc["last_refresh"] = to_iso(self._last_refresh)
        doc["overlays"] = {tid: self._overlay_to_row(o) for tid, o in self._overlays.items()}
        return doc

    def _is_empty(self) -> bool:
        return not self._overlays and self._last_refresh is None and not self._extra

    def _persist(self) -> None:
        try:
            if self._is_empty() and not self._file_existed:
                self._path.unlink(missing_ok=True)
            else:
                atomic_write_json(self._path, self._to_document())
        except OSError as e:
            raise PersistenceError(f"Failed to save overlays to {self._path}: {e}", path=self._path) from e

    def _mutate(self, task_id: str, change) -> Overlay:
        """Apply `change` to the row for task_id, persist, roll back on failure."""
        if not task_id:
            raise ValueError("task_id is required")

        previous = self._overlays.get(task_id)
        updated = previous.copy() if previous is not None else Overlay()
        change(updated)

        if updated.is_default:
            self._overlays.pop(task_id, None)
        else:
            self._overlays[task_id] = updated

        try:
            self._persist()
        except PersistenceError:
            if previous is None:
                self._overlays.pop(task_id, None)
            else:
                self._overlays[task_id] = previous
            logger.error("Overlay change rolled back task_id=%s", task_id)
            raise

        return updated.copy()

    # ---- public API ----

    def get(self, task_id: str) -> Overlay:
        o = self._overlays.get(task_id)
        return o.copy() if o is not None else Overlay()

    def all(self) -> dict[str, Overlay]:
        return {tid: o.copy() for tid, o in self._overlays.items()}

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._overlays

    def __len__(self) -> int:
        return len(self._overlays)

    def set_pin(self, task_id: str, pinned: bool) -> None:
        def change(o: Overlay) -> None:
            o.pinned = bool(pinned)

        self._mutate(task_id, change)
        logger.debug("Pin set task_id=%s pinned=%s", task_id, pinned)

    def toggle_pin(self, task_id: str) -> bool:
        def change(o: Overlay) -> None:
            o.pinned = not o.pinned

        return self._mutate(task_id, change).pinned

    def set_snooze(self, task_id: str, until: datetime) -> None:
        if until.tzinfo is None:
            raise ValueError("snooze date must be timezone-aware")

        def change(o: Overlay) -> None:
            o.snoozed_until = until

        self._mutate(task_id, change)
        logger.debug("Snooze set task_id=%s until=%s", task_id, until.isoformat())

    def clear_snooze(self, task_id: str) -> None:
        current = self._overlays.get(task_id)
        if current is None or current.snoozed_until is None:
            return

        def change(o: Overlay) -> None:
            o.snoozed_until = None

        self._mutate(task_id, change)
        logger.debug("Snooze cleared task_id=%s", task_id)

    def set_order(self, task_id: str, key: int | None) -> None:
        if key is not None and (isinstance(key, bool) or not isinstance(key, int)):
            raise ValueError("sort key must be an integer or None")

        def change(o: Overlay) -> None:
            o.sort_order = key

        self._mutate(task_id, change)

    def clear(self, task_id: str) -> None:
        """Explicitly forget everything stored for task_id."""
        previous = self._overlays.pop(task_id, None)
        if previous is None:
            return
        try:
            self._persist()
        except PersistenceError:
            self._overlays[task_id] = previous
            raise

    @property
    def last_refresh(self) -> datetime | None:
        return self._last_refresh

    def set_last_refresh(self, ts: datetime) -> None:
        previous = self._last_refresh
        self._last_refresh = ts
        try:
            self._persist()
        except PersistenceError:
            self._last_refresh = previous
            raise
