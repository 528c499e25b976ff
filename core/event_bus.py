"""Simple in-process event bus for decoupled event emission."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

EventHandler = Callable[[dict[str, Any]], None]

logger = logging.getLogger("cs.event_bus")


class EventBus:
    """Dispatches events to subscribers by event name.

    Delivery is best effort: a failing handler is logged and skipped so the
    publisher never observes subscriber errors.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_name: str, handler: EventHandler) -> None:
        """Register a callback for an event."""
        self._handlers[event_name].append(handler)

    def emit(self, event_name: str, payload: dict[str, Any]) -> int:
        """Emit an event to all subscribers and return how many succeeded."""
        delivered = 0
        for handler in list(self._handlers.get(event_name, [])):
            try:
                handler(payload)
                delivered += 1
            except Exception as exc:
                logger.warning("Handler for %s failed: %s", event_name, exc)
        return delivered
