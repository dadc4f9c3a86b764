# src/clickup_focus/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

APP_LOGGER_PREFIX = "clickup_focus."
LOG_FILE_NAME = "clickup-focus.log"

_LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that log every request at INFO/DEBUG.
_CHATTY_LIBRARIES = ("httpx", "httpcore")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Keep the task list readable on stderr.

    The REPL prints its own refresh/status lines, so our records reach the
    console only from WARNING (or the configured level, if stricter).
    Everything else, captured `warnings` included, needs ERROR.
    """

    def __init__(self, console_level: int) -> None:
        super().__init__()
        self._app_level = max(console_level, logging.WARNING)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name.startswith(APP_LOGGER_PREFIX):
            return record.levelno >= self._app_level
        return record.levelno >= logging.ERROR


def level_from_name(name: str | None, default: int = logging.INFO) -> int:
    """'debug' -> logging.DEBUG; unknown names fall back to `default`."""
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/clickup-focus",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Install the console handler (filtered) and a rotating file handler (full detail).

    Call once at startup; existing root handlers are replaced. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(fmt)
    console.addFilter(_ConsoleNoiseFilter(console_level))
    root.addHandler(console)

    file_handler = logging.handlers.RotatingFileHandler(
        str(log_file), maxBytes=1_000_000, backupCount=3, encoding="utf-8"
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    for name in _CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
