# src/clickup_focus/remote/offline.py

from __future__ import annotations

from ..core.errors import TransportError
from ..core.models import Snapshot


class OfflineTaskSource:
    """
    Task source used when ClickUp is not configured (no token / user id).

    Every fetch fails with a non-retryable TransportError, so the app keeps
    running from the cached snapshot and shows it as stale.
    """

    def __init__(self, reason: str = "ClickUp is not configured.") -> None:
        self.reason = reason

    async def fetch_tasks(self, user_id: str) -> Snapshot:
        raise TransportError(
            f"Offline mode: {self.reason} Set CLICKUP_FOCUS_API_TOKEN and CLICKUP_FOCUS_USER_ID in .env.",
            retryable=False,
        )
