# src/clickup_focus/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console connector
(the ClickUp refresh runs on a background thread).
"""

from __future__ import annotations

import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import level_from_name, setup_logging

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    log_file = setup_logging(log_dir=settings.data_dir, console_level=level_from_name(settings.log_level))

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    missing = settings.missing_required()
    if missing:
        print(f"ClickUp is not configured: set {', '.join(missing)} (see .env.example). Running offline.")

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        run_console_loop(state, auto_refresh=settings.auto_refresh and not missing)
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
