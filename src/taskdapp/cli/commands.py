# src/taskdapp/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ..core.errors import TaskAppError
from ..core.models import short_address
from ..core.state import AppState
from ..tasks.task_models import TEXT_MAX_LEN, TITLE_MAX_LEN, Task

CommandEmitter = Callable[[str], None]
CommandHandler = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

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

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        TaskAppError is not re-raised: the session manager and synchronizer already
        surfaced it as a notice, so the reply is empty.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split(maxsplit=1)
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        rest = parts[1] if len(parts) > 1 else ""
        args = [rest] if rest else []

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return await handler(state, args, emit)
        except TaskAppError as e:
            logger.debug("/%s failed: %s", name, e.message)
            return ""

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_tasks(tasks: tuple[Task, ...]) -> str:
    if not tasks:
        return "No tasks found"
    lines = []
    for t in tasks:
        lines.append(f"[{t.id}] {t.title}")
        lines.append(f"      {t.text}")
    return "\n".join(lines)


async def cmd_help(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    session = state.session.session
    sync = state.tasks
    account = short_address(session.address) if session.address else "-"
    mode = "offline ledger" if getattr(state.settings, "offline", False) else "RPC node"
    return (
        "Status:\n"
        f"  Wallet: {session.status.value} ({account})\n"
        f"  Network: {session.network_id if session.network_id is not None else '-'}"
        f" (expected {state.settings.expected_chain_id}, {mode})\n"
        f"  Tasks: {len(sync.tasks)}{' (loading)' if sync.loading else ''}\n"
        f"  Draft: title={len(sync.draft.title)}/{TITLE_MAX_LEN} text={len(sync.draft.text)}/{TEXT_MAX_LEN}"
    )


async def cmd_connect(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if state.session.session.is_connected:
        return f"Already connected as {short_address(state.session.session.address)}."
    if emit:
        emit("Connecting...")
    await state.session.connect()
    return ""


async def cmd_disconnect(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not state.session.session.is_connected:
        return "Wallet is not connected."
    state.session.disconnect()
    return ""


async def cmd_tasks(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /tasks          -> show the local list
    /tasks refresh  -> reload from the ledger first
    """
    if not state.session.session.is_connected:
        return "Please connect your wallet to view tasks"
    if args and args[0].strip().lower() in ("refresh", "reload", "r"):
        await state.tasks.load()
    return format_tasks(state.tasks.tasks)


async def cmd_title(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    value = args[0] if args else ""
    state.tasks.draft.title = value[:TITLE_MAX_LEN]
    return f"Title set ({len(state.tasks.draft.title)}/{TITLE_MAX_LEN})."


async def cmd_text(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    value = args[0] if args else ""
    state.tasks.draft.text = value[:TEXT_MAX_LEN]
    return f"Description set ({len(state.tasks.draft.text)}/{TEXT_MAX_LEN})."


async def cmd_draft(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    d = state.tasks.draft
    if d.is_empty():
        return "Draft is empty. Use /title and /text, or /add <title> | <description>."
    return f"Draft:\n  Title: {d.title}\n  Description: {d.text}"


async def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /add                         -> submit the current draft
    /add <title> | <description> -> fill the draft, then submit
    """
    if args:
        title, sep, text = args[0].partition("|")
        if not sep:
            return "Usage: /add <title> | <description>"
        # Same caps as the form inputs.
        state.tasks.draft.title = title.strip()[:TITLE_MAX_LEN]
        state.tasks.draft.text = text.strip()[:TEXT_MAX_LEN]
    await state.tasks.add_task()
    return ""


async def cmd_delete(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args:
        return "Usage: /delete <task id>"
    try:
        task_id = int(args[0].strip())
    except ValueError:
        return f"Not a task id: {args[0].strip()}"
    await state.tasks.delete_task(task_id)
    return ""


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show wallet, network and draft status.")
registry.register("connect", cmd_connect, help_text="Connect the wallet.")
registry.register("disconnect", cmd_disconnect, help_text="Disconnect the wallet (local only).")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks | /tasks refresh.", aliases=["ls"])
registry.register("title", cmd_title, help_text=f"Set the draft title (max {TITLE_MAX_LEN} chars).")
registry.register("text", cmd_text, help_text=f"Set the draft description (max {TEXT_MAX_LEN} chars).")
registry.register("draft", cmd_draft, help_text="Show the current draft.")
registry.register("add", cmd_add, help_text="Add a task: /add | /add <title> | <description>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
