"""Single-threaded event dispatcher.

Every input to the coordinator (pointer events, timer expirations, output
changes, focus notifications, control commands) is a typed event routed
through one dispatcher. Handlers run to completion one at a time: an event
emitted while a handler is running is queued and delivered after that handler
returns, so no handler is ever re-entered from a nested synchronous callback.
A failing handler is logged and counted; later events are still delivered.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Type

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventDispatcher:
    """Routes events to handlers registered by event type."""

    def __init__(self) -> None:
        self._handlers: Dict[Type, List[Handler]] = {}
        self._queue: Deque[Any] = deque()
        self._dispatching = False
        self.events_processed = 0
        self.errors = 0

    def register(self, event_type: Type, handler: Handler) -> None:
        """Register a handler for an event type (several handlers run in order)."""
        self._handlers.setdefault(event_type, []).append(handler)

    def unregister(self, event_type: Type, handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def clear(self) -> None:
        """Drop all handlers and queued events."""
        self._handlers.clear()
        self._queue.clear()

    def has_handlers(self, event_type: Type) -> bool:
        return bool(self._handlers.get(event_type))

    @property
    def is_dispatching(self) -> bool:
        return self._dispatching

    def dispatch(self, event: Any) -> None:
        """Deliver an event, or queue it if a handler is currently running."""
        self._queue.append(event)
        if self._dispatching:
            return

        self._dispatching = True
        try:
            while self._queue:
                self._deliver(self._queue.popleft())
        finally:
            self._dispatching = False

    def _deliver(self, event: Any) -> None:
        handlers = list(self._handlers.get(type(event), []))
        if not handlers:
            logger.debug(f"No handler for {type(event).__name__}")
            return

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self.errors += 1
                logger.error(
                    f"Error handling {type(event).__name__}: {e}",
                    exc_info=True,
                )
        self.events_processed += 1
