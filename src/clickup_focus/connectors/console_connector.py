# src/clickup_focus/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import CommandContext, render_view
from ..cli.commands import registry as command_registry
from ..core import engine
from ..core.engine import RefreshResult, RefreshStatus
from ..core.state import AppState
from .refresh_runner import RefreshRunner

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def describe_refresh(result: RefreshResult) -> str:
    if result.status == RefreshStatus.LIVE:
        msg = f"Refreshed: {result.task_count} tasks."
    elif result.status == RefreshStatus.STALE:
        hint = " (will likely work on retry)" if result.error and result.error.retryable else ""
        msg = f"Refresh failed{hint}; showing {result.task_count} cached tasks. {result.error}"
    elif result.status == RefreshStatus.FAILED:
        msg = f"Refresh failed and no cached data is available. {result.error}"
    else:
        msg = f"Refresh {result.status.value}."
    for w in result.warnings:
        msg += f"\n[WARN] {w}"
    return msg


def run_console_loop(state: AppState, *, auto_refresh: bool = True) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands, Enter to redraw, /exit to quit.\n")

    def on_refresh_done(result: RefreshResult) -> None:
        # Runs on the refresh thread; printing is all we do here.
        _print_ts(describe_refresh(result) + " Press Enter to redraw.")

    runner = RefreshRunner(state, on_done=on_refresh_done)
    runner.start()
    ctx = CommandContext(emit=_print_ts, request_refresh=lambda: runner.request() is not None)

    try:
        with state.lock:
            engine.load_cached(state)
            print(render_view(state))

        if auto_refresh:
            ctx.request_refresh()
            _print_ts("Refreshing from ClickUp...")

        while True:
            try:
                user_input = input(">>> ").strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if user_input.lower() in ("/exit", "/quit", "q"):
                logger.info("Console exit command received.")
                break

            try:
                with state.lock:
                    if not user_input:
                        # Redraw; also lets expired snoozes fall back into their tabs.
                        engine.reconcile_state(state)
                        response: str | None = render_view(state)
                    else:
                        response = command_registry.handle(state, user_input, ctx)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is None:
                # Plain text is a shortcut for a global search.
                with state.lock:
                    engine.set_query(state, user_input, all_groups=True)
                    response = render_view(state)

            print(response)
    finally:
        runner.stop()
        logger.info("Console connector finished.")
