# src/taskdapp/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime
from typing import Any

from ..cli.commands import format_tasks
from ..cli.commands import registry as command_registry
from ..core.events import NOTICE_ERROR, NOTICE_SUCCESS
from ..core.models import SessionStatus, short_address
from ..core.state import AppState

logger = logging.getLogger(__name__)

_NOTICE_TAGS = {NOTICE_ERROR: "[ERROR]", NOTICE_SUCCESS: "[OK]"}


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    try:
        if sys.stdout.isatty():
            sys.stdout.write("\033[1A\033[2K\r")
            sys.stdout.write(line + "\n")
            sys.stdout.flush()
        else:
            print(line)
    except OSError:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleView:
    """Renders core events as console lines (the transient notifications)."""

    def __init__(self, state: AppState) -> None:
        self.state = state

    def attach(self) -> None:
        ev = self.state.events
        ev.register_callback("notice", self.on_notice)
        ev.register_callback("state_changed", self.on_state_changed)
        ev.register_callback("tasks_changed", self.on_tasks_changed)
        ev.register_callback("reload_requested", self.on_reload_requested)

    def detach(self) -> None:
        ev = self.state.events
        ev.unregister_callback("notice", self.on_notice)
        ev.unregister_callback("state_changed", self.on_state_changed)
        ev.unregister_callback("tasks_changed", self.on_tasks_changed)
        ev.unregister_callback("reload_requested", self.on_reload_requested)

    def on_notice(self, data: dict[str, Any]) -> None:
        tag = _NOTICE_TAGS.get(str(data.get("level")), "[INFO]")
        _print_ts(f"{tag} {data.get('text', '')}")

    def on_state_changed(self, data: dict[str, Any]) -> None:
        session = data["session"]
        if session.status == SessionStatus.CONNECTED:
            _print_ts(f"[WALLET] {short_address(session.address)} (chain {session.network_id})")
        elif session.status == SessionStatus.CONNECTING:
            _print_ts("[WALLET] Connecting...")

    def on_tasks_changed(self, data: dict[str, Any]) -> None:
        if not self.state.session.session.is_connected:
            return
        _print_ts("[TASKS]\n" + format_tasks(data["tasks"]))

    def on_reload_requested(self, data: dict[str, Any]) -> None:
        _print_ts(f"[WALLET] Network changed (chain {data.get('chain_id')}); reloading...")


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (offline=%s).", getattr(state.settings, "offline", False))
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    view = ConsoleView(state)
    view.attach()

    def emit(text: str) -> None:
        print(f"[{_ts_local()}] {text}", flush=True)

    try:
        if getattr(state.settings, "auto_connect", True):
            await command_registry.handle(state, "/connect", emit=emit)

        while True:
            try:
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
                _rewrite_prev_line(f"[{_ts_local()}] >>> {user_input}")
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            try:
                reply = await command_registry.handle(state, user_input, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                reply = "Internal error while handling a command."

            if reply is None:
                reply = "Commands start with '/'. Use /help to list available commands."
            if reply:
                print(f"[{_ts_local()}] {reply}")
    finally:
        view.detach()

    logger.info("Console connector finished.")
