# src/merlin/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console dashboard on an
asyncio event loop until /exit, EOF or Ctrl+C.
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import print_ts, run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    state = create_initial_state(settings=settings, notify=lambda text: print_ts(f"[!] {text}"))
    try:
        await run_console_loop(state)
    finally:
        await state.http.aclose()


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = max(getattr(logging, level_name, logging.INFO), logging.WARNING)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (api=%s)...", settings.app_name, settings.api_url)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
