# src/clickup_focus/connectors/refresh_runner.py

from __future__ import annotations

import asyncio
import concurrent.futures
import contextlib
import logging
import threading
from collections.abc import Callable

from ..core import engine
from ..core.engine import RefreshResult, RefreshStatus
from ..core.state import AppState

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[RefreshResult], None]


class RefreshRunner:
    """
    Runs engine.refresh on a background thread with its own event loop.

    Why a thread:
    - console REPL is blocking (input()).
    - the ClickUp fetch is async (httpx) and wants its own event loop.

    At most one refresh is in flight: request() returns None while one is pending.
    """

    def __init__(self, state: AppState, on_done: RefreshCallback | None = None) -> None:
        self._state = state
        self._on_done = on_done
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._ready = threading.Event()
        self._pending: concurrent.futures.Future[RefreshResult] | None = None

    def start(self) -> None:
        if self._thread is not None:
            return

        def runner() -> None:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._loop = loop
            self._ready.set()
            try:
                loop.run_forever()
            finally:
                # Abandon a fetch still in flight. Applying a result has no await
                # points, so an overlay write is never interrupted here.
                pending = asyncio.all_tasks(loop)
                for task in pending:
                    task.cancel()
                with contextlib.suppress(Exception):
                    loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
                with contextlib.suppress(Exception):
                    loop.close()

        self._thread = threading.Thread(target=runner, name="refresh-runner", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5.0)
        logger.debug("Refresh runner started.")

    def request(self) -> concurrent.futures.Future[RefreshResult] | None:
        """Schedule a refresh. Returns None if one is already in flight (coalesced)."""
        if self._loop is None:
            raise RuntimeError("RefreshRunner is not started.")
        if self._pending is not None and not self._pending.done():
            return None
        with self._state.lock:
            if self._state.refresh_in_flight:
                return None

        fut = asyncio.run_coroutine_threadsafe(engine.refresh(self._state), self._loop)
        self._pending = fut
        fut.add_done_callback(self._finished)
        return fut

    def _finished(self, fut: concurrent.futures.Future[RefreshResult]) -> None:
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("Background refresh crashed", exc_info=exc)
            return
        result = fut.result()
        if result.status in (RefreshStatus.SKIPPED, RefreshStatus.DISCARDED):
            return
        if self._on_done is not None:
            try:
                self._on_done(result)
            except Exception:
                logger.exception("Refresh callback failed.")

    def stop(self, timeout: float = 5.0) -> None:
        engine.cancel_refresh(self._state)
        loop = self._loop
        if loop is not None:
            try:
                loop.call_soon_threadsafe(loop.stop)
            except Exception:
                logger.debug("Failed to signal refresh loop stop.", exc_info=True)
        if self._thread is not None:
            self._thread.join(timeout=timeout)
        self._thread = None
        self._loop = None
        self._pending = None
