# src/clickup_focus/storage/_files.py

from __future__ import annotations

import contextlib
import json
import os
from pathlib import Path
from typing import Any


def read_json(path: Path) -> Any | None:
    """Return parsed JSON, or None if the file does not exist. Parse errors propagate."""
    if not path.exists():
        return None
    return json.loads(path.read_text("utf-8"))


def atomic_write_json(path: Path, data: Any) -> None:
    """
    Write JSON via temp file + os.replace.

    The temp file lives in the target directory so the replace stays on one filesystem.
    Raises OSError (and TypeError/ValueError for unserializable data).
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + "\n"

    tmp = path.with_name(path.name + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            tmp.unlink()
        raise

    with contextlib.suppress(Exception):
        # Local workflow data; keep it private on disk.
        os.chmod(path, 0o600)
