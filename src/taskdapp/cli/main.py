# src/taskdapp/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one asyncio loop:
- console front-end (optional),
- otherwise just the wallet session, until SIGINT/SIGTERM.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal

from ..cli.bootstrap import create_initial_state, shutdown_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.errors import TaskAppError
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run_headless(state: AppState) -> None:
    stop_main = asyncio.Event()
    loop = asyncio.get_running_loop()

    for signum in (signal.SIGINT, signal.SIGTERM):
        # Some platforms (Windows) do not support loop signal handlers.
        with contextlib.suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, stop_main.set)

    try:
        await state.session.connect()
    except TaskAppError as e:
        logger.error("Wallet connection failed: %s", e.message)
        return

    logger.info("Console disabled. Keeping the wallet session alive. Press Ctrl+C to stop.")
    await stop_main.wait()


async def _amain(state: AppState) -> None:
    try:
        if state.settings.console_enabled:
            await run_console_loop(state)
        else:
            await _run_headless(state)
    finally:
        await shutdown_state(state)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    try:
        asyncio.run(_amain(state))
    except KeyboardInterrupt:
        logger.info("Interrupted.")
    logger.info("Bye.")


if __name__ == "__main__":
    main()
