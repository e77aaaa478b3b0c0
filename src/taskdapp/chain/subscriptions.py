# src/taskdapp/chain/subscriptions.py

from __future__ import annotations

import logging
from typing import Any

from ..core.ports import NotificationHandler

logger = logging.getLogger(__name__)


class ListenerSubscription:
    def __init__(self, registry: ListenerRegistry, event: str, handler: NotificationHandler) -> None:
        self._registry = registry
        self._event = event
        self._handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._registry._remove(self._event, self._handler)


class ListenerRegistry:
    """Per-event handler lists shared by the wallet adapters."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[NotificationHandler]] = {}

    def subscribe(self, event: str, handler: NotificationHandler) -> ListenerSubscription:
        self._handlers.setdefault(event, []).append(handler)
        logger.debug("Listener added for %s (%d total)", event, self.count(event))
        return ListenerSubscription(self, event, handler)

    def count(self, event: str | None = None) -> int:
        if event is None:
            return sum(len(v) for v in self._handlers.values())
        return len(self._handlers.get(event, ()))

    async def dispatch(self, event: str, payload: Any) -> None:
        # Handlers may unsubscribe while we iterate (chainChanged tears the session down).
        for handler in list(self._handlers.get(event, ())):
            try:
                await handler(payload)
            except Exception:
                logger.exception("Listener for %s failed", event)

    def _remove(self, event: str, handler: NotificationHandler) -> None:
        handlers = self._handlers.get(event)
        if not handlers:
            return
        try:
            handlers.remove(handler)
        except ValueError:
            logger.warning("Listener not found for %s", event)
