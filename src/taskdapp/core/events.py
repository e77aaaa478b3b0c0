# src/taskdapp/core/events.py

"""Explicit event emission for the rendering layer.

The session manager and the task synchronizer never talk to a UI directly.
They broadcast named events with a dict payload; any consumer (console,
tests) registers callbacks.

Events:
    - state_changed: session transition (data: {"session": Session})
    - tasks_changed: task list replaced (data: {"tasks": tuple[Task, ...]})
    - loading_changed: loading flag flipped (data: {"loading": bool})
    - reload_requested: network changed, host must rebuild (data: {"chain_id": int | None})
    - notice: transient user notification (data: {"level": str, "text": str})
"""

from __future__ import annotations

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

EventCallback = Callable[[dict[str, Any]], None]

NOTICE_INFO = "info"
NOTICE_SUCCESS = "success"
NOTICE_ERROR = "error"


class EventBus:
    def __init__(self) -> None:
        self._callbacks: dict[str, list[EventCallback]] = {}

    def register_callback(self, event: str, callback: EventCallback) -> None:
        """Register callback for an event name."""
        self._callbacks.setdefault(event, []).append(callback)
        logger.debug("Registered callback for event: %s", event)

    def unregister_callback(self, event: str, callback: EventCallback) -> None:
        if event in self._callbacks:
            try:
                self._callbacks[event].remove(callback)
                logger.debug("Unregistered callback for event: %s", event)
            except ValueError:
                logger.warning("Callback not found for event: %s", event)

    def emit(self, event: str, data: dict[str, Any]) -> None:
        """Broadcast event to all registered callbacks.

        A failing callback is logged and never breaks the emitter.
        """
        for callback in list(self._callbacks.get(event, ())):
            try:
                callback(data)
            except Exception:
                logger.exception("Error in callback for event %s", event)

    def notice(self, level: str, text: str) -> None:
        self.emit("notice", {"level": level, "text": text})
