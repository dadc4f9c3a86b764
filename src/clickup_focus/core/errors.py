# src/clickup_focus/core/errors.py

from __future__ import annotations

from pathlib import Path


class ClickUpFocusError(Exception):
    """Base class for errors raised by the core."""


class TransportError(ClickUpFocusError):
    """
    Remote fetch failed.

    `retryable` is surfaced to the user (e.g. "try again later") but the core
    never retries on its own: it falls back to the cached snapshot.
    """

    def __init__(self, message: str, *, retryable: bool, status_code: int | None = None) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class PersistenceError(ClickUpFocusError):
    """Writing a local file (overlay or cache) failed."""

    def __init__(self, message: str, *, path: str | Path | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class UnknownTaskError(ClickUpFocusError, LookupError):
    """A command referenced a task id that is not in the current snapshot."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Unknown task: {task_id}")
        self.task_id = task_id
