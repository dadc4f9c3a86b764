# src/clickup_focus/remote/clickup_client.py

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

import httpx

from ..core.errors import TransportError
from ..core.models import RemoteTask, Snapshot, optional_str

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.clickup.com/api/v2"

# ClickUp returns at most 100 tasks per page; stop anyway if something loops.
MAX_PAGES = 50

# How many levels of missing ancestors are fetched above an assigned subtask.
MAX_PARENT_DEPTH = 5


def _is_retryable_status(code: int) -> bool:
    return code == 429 or code >= 500


def _is_connection_error(exc: Exception) -> bool:
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError))


def _parse_due_date(raw: Any) -> datetime | None:
    """ClickUp sends due dates as unix milliseconds in a string."""
    if raw in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(raw) / 1000.0, tz=UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _parse_int(raw: Any) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def convert_task(raw: dict[str, Any]) -> RemoteTask:
    """Map a ClickUp task payload into a RemoteTask. Raises ValueError if the id is missing or a field is malformed."""
    task_id = raw.get("id")
    if not task_id:
        raise ValueError("ClickUp task without id")

    status = raw.get("status") or {}
    lst = raw.get("list") or {}
    space = raw.get("space") or {}
    priority = raw.get("priority") or {}

    return RemoteTask(
        id=str(task_id),
        title=str(raw.get("name") or ""),
        status=str(status.get("status") or "") if isinstance(status, dict) else str(status),
        list_name=str(lst.get("name") or "") if isinstance(lst, dict) else "",
        url=str(raw.get("url") or ""),
        assignees=frozenset(
            str(a.get("id")) for a in (raw.get("assignees") or []) if isinstance(a, dict) and a.get("id") is not None
        ),
        space_name=optional_str(space.get("name")) if isinstance(space, dict) else None,
        priority=_parse_int(priority.get("id")) if isinstance(priority, dict) else None,
        due_date=_parse_due_date(raw.get("due_date")),
        tags=tuple(str(t.get("name")) for t in (raw.get("tags") or []) if isinstance(t, dict) and t.get("name")),
        description=optional_str(raw.get("text_content")),
        custom_item_id=_parse_int(raw.get("custom_item_id")),
        custom_id=optional_str(raw.get("custom_id")),
        parent_id=optional_str(raw.get("parent")),
    )


class ClickUpClient:
    """
    Read-only ClickUp API client (TaskSource implementation).

    Every failure is raised as TransportError with a retryable flag:
    - timeouts, network errors, 429 and 5xx -> retryable
    - auth errors, other 4xx and unparseable payloads -> not retryable

    No automatic retries here: the engine falls back to the cached snapshot.
    """

    def __init__(
        self,
        api_token: str,
        *,
        team_id: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        connect_timeout: float = 5.0,
        read_timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not api_token or not api_token.strip():
            raise ValueError("ClickUp API token is not set.")
        self._api_token = api_token.strip()
        self._team_id = team_id
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(connect=connect_timeout, read=read_timeout, write=10.0, pool=connect_timeout)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings) -> ClickUpClient:
        return cls(
            str(settings.api_token or ""),
            team_id=getattr(settings, "team_id", None),
            base_url=getattr(settings, "api_base_url", DEFAULT_BASE_URL),
            connect_timeout=float(getattr(settings, "connect_timeout", 5.0)),
            read_timeout=float(getattr(settings, "read_timeout", 30.0)),
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": self._api_token, "Accept": "application/json"},
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _get_json(self, client: httpx.AsyncClient, path: str, params: Any = None) -> dict[str, Any]:
        try:
            resp = await client.get(path, params=params)
        except httpx.HTTPError as e:
            retryable = _is_connection_error(e)
            raise TransportError(f"ClickUp request failed ({e.__class__.__name__}): {e}", retryable=retryable) from e

        if resp.status_code >= 400:
            body = resp.text[:200]
            raise TransportError(
                f"ClickUp API error ({resp.status_code}): {body}",
                retryable=_is_retryable_status(resp.status_code),
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError("ClickUp returned invalid JSON.", retryable=False, status_code=resp.status_code) from e
        if not isinstance(data, dict):
            raise TransportError("ClickUp returned an unexpected payload.", retryable=False)
        return data

    async def _resolve_team_id(self, client: httpx.AsyncClient) -> str:
        if self._team_id:
            return self._team_id

        data = await self._get_json(client, "/team")
        teams = data.get("teams") or []
        if not teams or not isinstance(teams[0], dict) or not teams[0].get("id"):
            raise TransportError("No teams found in ClickUp workspace.", retryable=False)

        self._team_id = str(teams[0]["id"])
        logger.info("ClickUp team resolved team_id=%s", self._team_id)
        return self._team_id

    async def _fetch_task(self, client: httpx.AsyncClient, task_id: str) -> RemoteTask:
        data = await self._get_json(client, f"/task/{task_id}")
        try:
            return convert_task(data)
        except ValueError as e:
            raise TransportError(f"ClickUp task {task_id} payload is malformed: {e}", retryable=False) from e

    async def fetch_task_by_id(self, task_id: str) -> RemoteTask:
        """Fetch a single task (used for parents of assigned subtasks)."""
        async with self._client() as client:
            return await self._fetch_task(client, task_id)

    async def _fetch_missing_parents(
        self, client: httpx.AsyncClient, tasks: list[RemoteTask], user_id: str
    ) -> set[str]:
        """
        Append ancestors of subtasks that the assignee query did not return.

        Walks up at most MAX_PARENT_DEPTH levels. A parent that cannot be fetched
        is skipped (its subtask is then shown as a root). Returns the ids of the
        fetched parents that are not assigned to user_id.
        """
        known = {t.id for t in tasks}
        context_ids: set[str] = set()
        frontier = list(tasks)

        for _ in range(MAX_PARENT_DEPTH):
            missing = list(dict.fromkeys(t.parent_id for t in frontier if t.parent_id and t.parent_id not in known))
            if not missing:
                break
            frontier = []
            for parent_id in missing:
                known.add(parent_id)
                try:
                    parent = await self._fetch_task(client, parent_id)
                except TransportError as e:
                    logger.warning("Parent task %s not fetched: %s", parent_id, e)
                    continue
                tasks.append(parent)
                frontier.append(parent)
                if not parent.is_assigned_to(user_id):
                    context_ids.add(parent.id)
        return context_ids

    async def fetch_tasks(self, user_id: str) -> Snapshot:
        """
        Fetch every task assigned to user_id (closed tasks and subtasks included),
        plus the missing ancestors of assigned subtasks as context.
        """
        if not user_id:
            raise TransportError("ClickUp user id is not set.", retryable=False)

        tasks: list[RemoteTask] = []
        async with self._client() as client:
            team_id = await self._resolve_team_id(client)

            for page in range(MAX_PAGES):
                params = [
                    ("assignees[]", user_id),
                    ("include_closed", "true"),
                    ("subtasks", "true"),
                    ("page", str(page)),
                ]
                data = await self._get_json(client, f"/team/{team_id}/task", params=params)

                raw_tasks = data.get("tasks")
                if not isinstance(raw_tasks, list):
                    raise TransportError("ClickUp task list payload is malformed.", retryable=False)

                for raw in raw_tasks:
                    if not isinstance(raw, dict):
                        continue
                    try:
                        tasks.append(convert_task(raw))
                    except ValueError:
                        logger.warning("Skipping malformed ClickUp task on page %d", page)

                if not raw_tasks or data.get("last_page", True):
                    break
            else:
                logger.warning("ClickUp pagination stopped after %d pages", MAX_PAGES)

            context_ids = await self._fetch_missing_parents(client, tasks, user_id)

        snapshot = Snapshot.build(tasks, context_ids=context_ids)
        logger.info(
            "Fetched %d tasks from ClickUp (user_id=%s, context parents=%d)",
            len(snapshot.tasks),
            user_id,
            len(snapshot.context_ids),
        )
        return snapshot
