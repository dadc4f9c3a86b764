# src/clickup_focus/cli/commands.py

from __future__ import annotations

import inspect
import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import cast

from ..core import engine
from ..core.errors import PersistenceError, UnknownTaskError
from ..core.models import TAB_ORDER, DisplayEntity
from ..core.state import AppState
from ..core.view import tree_depths

CommandEmitter = Callable[[str], None]


@dataclass(slots=True)
class CommandContext:
    """What a connector lends to command handlers (feedback channel, refresh trigger)."""

    emit: CommandEmitter | None = None
    request_refresh: Callable[[], bool] | None = None


CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandContext], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /pin, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, ctx: CommandContext | None = None) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, ctx or CommandContext())

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  /exit - Quit.")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering helpers (shared with the console connector) ----


def _fmt_ts(ts: datetime | None) -> str:
    if ts is None:
        return "never"
    return ts.astimezone().strftime("%Y-%m-%d %H:%M")


def render_tabs(state: AppState) -> str:
    counts = engine.tab_counts(state)
    parts = []
    for g in TAB_ORDER:
        label = f"{g.tab_number}:{g.label} ({counts[g]})"
        parts.append(f"[{label}]" if g == state.selected_group else f" {label} ")
    return " ".join(parts)


def render_row(n: int, e: DisplayEntity, *, show_group: bool = False, depth: int = 0, context: bool = False) -> str:
    marks = ("*" if e.pinned else " ") + ("z" if e.snoozed_until else " ")
    extra = [e.task.status or "-"]
    if e.task.list_name:
        extra.append(e.task.list_name)
    if e.task.priority_label:
        extra.append(e.task.priority_label)
    if show_group:
        extra.append(e.group.label)
    indent = "  " * depth
    title = f"{indent}{'^ ' if context else ''}{e.title}"
    return f"{n:>3}. {marks} {title}  ({' | '.join(extra)})  #{e.id}"


def render_view(state: AppState) -> str:
    lines = [render_tabs(state)]

    if state.snapshot is None:
        lines.append("No tasks loaded yet. Use /refresh.")
    elif state.is_stale:
        reason = f": {state.last_error}" if state.last_error else ""
        lines.append(f"[STALE] showing cached data from {_fmt_ts(state.snapshot.fetched_at)}{reason}")

    if state.query:
        scope = "all groups" if state.search_all_groups else state.selected_group.label
        lines.append(f"Search '{state.query}' in {scope}:")

    view = engine.current_view(state)
    if not view and state.snapshot is not None:
        lines.append("  (nothing here)")
    # rows outside the tab are ancestors shown for context (marked ^)
    depths = tree_depths(view) if not state.query else {}
    for i, e in enumerate(view, start=1):
        outside = not state.query and (e.context or e.group != state.selected_group)
        lines.append(
            render_row(
                i,
                e,
                show_group=state.search_all_groups or outside,
                depth=depths.get(e.id, 0),
                context=outside,
            )
        )

    for w in state.warnings:
        lines.append(f"[WARN] {w}")
    return "\n".join(lines)


def resolve_ref(state: AppState, ref: str) -> str:
    """Row number in the current view, task id, or custom id (e.g. PROJ-123) -> task id."""
    ref = ref.strip().lstrip("#")
    if ref.isdigit():
        view = engine.current_view(state)
        idx = int(ref) - 1
        if 0 <= idx < len(view):
            return view[idx].id
    snapshot = state.snapshot
    if snapshot is not None:
        if snapshot.get(ref) is not None:
            return ref
        for t in snapshot.tasks:
            if t.custom_id and t.custom_id.lower() == ref.lower():
                return t.id
    raise UnknownTaskError(ref)


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    snap = state.snapshot
    source = "live" if snap is not None and not snap.is_stale else "cached" if snap is not None else "none"
    lines = [
        "Status:",
        f"  Data: {source} ({len(snap.tasks) if snap else 0} tasks, fetched {_fmt_ts(snap.fetched_at if snap else None)})",
        f"  Last successful refresh: {_fmt_ts(state.overlays.last_refresh)}",
        f"  Refresh in flight: {'yes' if state.refresh_in_flight else 'no'}",
        f"  Tab: {state.selected_group.label}",
    ]
    if state.last_error is not None:
        hint = "retryable" if state.last_error.retryable else "not retryable"
        lines.append(f"  Last error ({hint}): {state.last_error}")
    return "\n".join(lines)


def cmd_tab(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /tab <name|number>. " + ", ".join(f"{g.tab_number}={g.label}" for g in TAB_ORDER)
    try:
        engine.select_tab(state, " ".join(args))
    except ValueError as e:
        return str(e)
    return render_view(state)


def cmd_next(state: AppState, args: list[str]) -> str:
    engine.next_tab(state)
    return render_view(state)


def cmd_prev(state: AppState, args: list[str]) -> str:
    engine.prev_tab(state)
    return render_view(state)


def cmd_search(state: AppState, args: list[str]) -> str:
    """/search <text> -> fuzzy search across every group"""
    if not args:
        return "Usage: /search <text>"
    engine.set_query(state, " ".join(args), all_groups=True)
    return render_view(state)


def cmd_filter(state: AppState, args: list[str]) -> str:
    """/filter <text> -> fuzzy filter inside the current tab"""
    if not args:
        return "Usage: /filter <text>"
    engine.set_query(state, " ".join(args), all_groups=False)
    return render_view(state)


def cmd_clear(state: AppState, args: list[str]) -> str:
    engine.clear_query(state)
    return render_view(state)


def _overlay_action(state: AppState, action: Callable[[], str]) -> str:
    try:
        return action()
    except UnknownTaskError as e:
        return f"{e}. Use a row number from the list or a task id."
    except PersistenceError as e:
        logger.error("Overlay change failed: %s", e)
        return f"Failed to save local state; change reverted. ({e})"


def cmd_pin(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /pin <row|id>"

    def action() -> str:
        task_id = resolve_ref(state, args[0])
        pinned = engine.toggle_pin(state, task_id)
        return f"Task {'pinned' if pinned else 'unpinned'}: {task_id}"

    return _overlay_action(state, action)


def cmd_snooze(state: AppState, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /snooze <row|id> <days>"
    try:
        days = int(args[1])
    except ValueError:
        return "Invalid number of days."
    if days < 1:
        return "Snooze for at least 1 day."

    def action() -> str:
        task_id = resolve_ref(state, args[0])
        until = engine.snooze(state, task_id, days)
        return f"Task snoozed for {days} day(s), until {_fmt_ts(until)}: {task_id}"

    return _overlay_action(state, action)


def cmd_unsnooze(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /unsnooze <row|id>"

    def action() -> str:
        task_id = resolve_ref(state, args[0])
        engine.unsnooze(state, task_id)
        return f"Task unsnoozed: {task_id}"

    return _overlay_action(state, action)


def cmd_order(state: AppState, args: list[str]) -> str:
    """/order <row|id> <n>  or  /order <row|id> -   (clear manual order)"""
    if len(args) != 2:
        return "Usage: /order <row|id> <number|->"
    key: int | None
    if args[1] == "-":
        key = None
    else:
        try:
            key = int(args[1])
        except ValueError:
            return "Sort key must be a number (or - to clear)."

    def action() -> str:
        task_id = resolve_ref(state, args[0])
        engine.set_order(state, task_id, key)
        return f"Sort order {'cleared' if key is None else f'set to {key}'}: {task_id}"

    return _overlay_action(state, action)


def cmd_show(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /show <row|id>"
    try:
        task_id = resolve_ref(state, args[0])
    except UnknownTaskError as e:
        return str(e)
    e = engine.find_entity(state, task_id)
    if e is None:
        return f"Unknown task: {task_id}"

    t = e.task
    lines = [
        f"{t.title}",
        f"  id: {t.id}" + (f" ({t.custom_id})" if t.custom_id else ""),
        f"  status: {t.status or '-'}  ->  {e.group.label}",
        f"  list: {t.list_name or '-'}" + (f"  space: {t.space_name}" if t.space_name else ""),
    ]
    if t.task_type_label:
        lines.append(f"  type: {t.task_type_label}")
    if t.priority_label:
        lines.append(f"  priority: {t.priority_label}")
    if t.due_date:
        lines.append(f"  due: {_fmt_ts(t.due_date)}")
    if t.tags:
        lines.append(f"  tags: {', '.join(t.tags)}")
    if t.parent_id:
        lines.append(f"  parent: {t.parent_id}")
    lines.append(f"  pinned: {'yes' if e.pinned else 'no'}")
    if e.snoozed_until:
        lines.append(f"  snoozed until: {_fmt_ts(e.snoozed_until)}")
    if e.sort_order is not None:
        lines.append(f"  manual order: {e.sort_order}")
    if t.url:
        lines.append(f"  url: {t.url}")
    if t.description:
        lines.append("")
        lines.append(t.description.strip())
    return "\n".join(lines)


def cmd_open(state: AppState, args: list[str]) -> str:
    if len(args) != 1:
        return "Usage: /open <row|id>"
    try:
        task_id = resolve_ref(state, args[0])
    except UnknownTaskError as e:
        return str(e)
    task = state.snapshot.get(task_id) if state.snapshot is not None else None
    if task is None or not task.url:
        return f"No URL for task {task_id}."

    try:
        opened = webbrowser.open(task.url)
    except webbrowser.Error as e:
        logger.warning("Browser open failed task_id=%s: %s", task_id, e)
        return f"Failed to open browser: {e}. URL: {task.url}"
    if not opened:
        return f"No browser available. URL: {task.url}"
    return f"Opened in browser: {task_id}"


def cmd_refresh(state: AppState, args: list[str], ctx: CommandContext) -> str:
    if ctx.request_refresh is None:
        return "Refresh is not available in this context."
    if not ctx.request_refresh():
        return "Refresh already in progress."
    return "Refreshing from ClickUp..."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show data source, staleness and last error.")
registry.register("tab", cmd_tab, help_text="Switch tab: /tab <name|1-6>.", aliases=["t"])
registry.register("next", cmd_next, help_text="Next tab.", aliases=["n"])
registry.register("prev", cmd_prev, help_text="Previous tab.", aliases=["p"])
registry.register("search", cmd_search, help_text="Fuzzy search across all groups: /search <text>.", aliases=["s"])
registry.register("filter", cmd_filter, help_text="Fuzzy filter the current tab: /filter <text>.", aliases=["f"])
registry.register("clear", cmd_clear, help_text="Clear the search/filter.")
registry.register("pin", cmd_pin, help_text="Toggle pin: /pin <row|id>.")
registry.register("snooze", cmd_snooze, help_text="Snooze: /snooze <row|id> <days>.", aliases=["z"])
registry.register("unsnooze", cmd_unsnooze, help_text="Release a snooze: /unsnooze <row|id>.")
registry.register("order", cmd_order, help_text="Manual order: /order <row|id> <n|->.")
registry.register("show", cmd_show, help_text="Show task details: /show <row|id>.")
registry.register("open", cmd_open, help_text="Open the task in a browser: /open <row|id>.", aliases=["o"])
registry.register("refresh", cmd_refresh, help_text="Fetch fresh tasks from ClickUp.", aliases=["r"])
