"""
Event bus implementation for domain event publishing and subscription.

The event bus is the EventSink the engine emits into; the surrounding
application subscribes handlers (push notifications, activity log, live
views) per event type.
"""

import threading
from collections import defaultdict, deque
from collections.abc import Callable

from ...core.observability import get_logger
from ...domain.production.events.domain_events import DomainEvent
from ...domain.production.repositories.providers import EventSink

logger = get_logger(__name__)

EventHandler = Callable[[DomainEvent], None]


class InMemoryEventBus(EventSink):
    """
    In-memory, synchronous event bus.

    Handlers run in subscription order on the emitting thread. A failing
    handler is logged and does not stop the others. Handlers subscribed to
    ``DomainEvent`` receive every event.
    """

    def __init__(self, max_history_size: int = 1000) -> None:
        self._handlers: dict[type[DomainEvent], list[EventHandler]] = defaultdict(
            list
        )
        self._event_history: deque[DomainEvent] = deque(maxlen=max_history_size)
        self._lock = threading.Lock()

    def emit(self, event: DomainEvent) -> None:
        """
        Publish a domain event to all handlers registered for its type.

        Args:
            event: Domain event to publish
        """
        with self._lock:
            self._event_history.append(event)
            handlers = [
                handler
                for event_type, registered in self._handlers.items()
                if isinstance(event, event_type)
                for handler in registered
            ]

        if not handlers:
            logger.debug("No handlers for event", event_type=event.event_type)
            return

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    "Event handler failed",
                    event_type=event.event_type,
                    handler=getattr(handler, "__name__", repr(handler)),
                    error=str(e),
                )

    def subscribe(
        self, event_type: type[DomainEvent], handler: EventHandler
    ) -> None:
        """
        Subscribe a handler to a specific event type.

        Args:
            event_type: Type of event to subscribe to
            handler: Handler function to call when event is published
        """
        with self._lock:
            if handler in self._handlers[event_type]:
                logger.warning(
                    "Handler already subscribed", event_type=event_type.__name__
                )
                return
            self._handlers[event_type].append(handler)

    def unsubscribe(
        self, event_type: type[DomainEvent], handler: EventHandler
    ) -> None:
        """Remove a handler from an event type, if subscribed."""
        with self._lock:
            if handler in self._handlers.get(event_type, []):
                self._handlers[event_type].remove(handler)

    def clear_handlers(self, event_type: type[DomainEvent] | None = None) -> None:
        """
        Clear event handlers.

        Args:
            event_type: Optional event type to clear handlers for. If None, clears all.
        """
        with self._lock:
            if event_type is None:
                self._handlers.clear()
            else:
                self._handlers.pop(event_type, None)

    def get_event_history(
        self, event_type: type[DomainEvent] | None = None
    ) -> list[DomainEvent]:
        """Events emitted so far, oldest first, optionally of one type."""
        with self._lock:
            history = list(self._event_history)
        if event_type is None:
            return history
        return [event for event in history if isinstance(event, event_type)]

    def clear_history(self) -> None:
        with self._lock:
            self._event_history.clear()
