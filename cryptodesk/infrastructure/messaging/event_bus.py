"""In-process event bus for mutation lifecycle events.

MutationGateway публікує MutationConfirmed / RolledBack / Rejected, а
notification handlers показують toasts. Gateway не знає, хто слухає.

Кожен CryptoAggregator має свій EventBus, тому handlers двох views
ніколи не перетинаються.
"""

import logging
from typing import Awaitable, Callable, Type

from cryptodesk.domain.shared import DomainEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], Awaitable[None]]


def _describe(handler: EventHandler) -> str:
    return getattr(handler, "__qualname__", None) or type(handler).__name__


class EventBus:
    """Async publish/subscribe keyed by event class.

    A handler registered for a base class also receives its subclasses
    (subscribe to DomainEvent to see everything).

    Example:
        >>> bus = EventBus()
        >>> unsubscribe = bus.subscribe(MutationRolledBackEvent, show_error_toast)
        >>> await bus.publish(MutationRolledBackEvent(action="place_order", ...))
        >>> unsubscribe()
    """

    def __init__(self) -> None:
        self._handlers: dict[Type[DomainEvent], list[EventHandler]] = {}

    def subscribe(
        self, event_type: Type[DomainEvent], handler: EventHandler
    ) -> Callable[[], None]:
        """Register handler; returns a function that removes it (safe to call twice)."""
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(
            "event_bus.subscribed",
            extra={"event_type": event_type.__name__, "handler": _describe(handler)},
        )

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type, [])
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def handlers_for(self, event_type: Type[DomainEvent]) -> list[EventHandler]:
        """Handlers that would run for event_type, most specific class first."""
        return [
            handler
            for cls in event_type.__mro__
            for handler in self._handlers.get(cls, [])
        ]

    async def publish(self, event: DomainEvent) -> None:
        """Run every matching handler in order.

        A failing handler is logged and does not stop the others; the
        publisher never sees handler errors.
        """
        handlers = self.handlers_for(type(event))
        if not handlers:
            logger.debug("event_bus.unhandled", extra={"event_type": event.event_name})
            return

        for handler in handlers:
            try:
                await handler(event)
            except Exception as e:
                logger.error(
                    "event_bus.handler_failed",
                    extra={
                        "event_type": event.event_name,
                        "event_id": str(event.event_id),
                        "handler": _describe(handler),
                        "error": str(e),
                    },
                    exc_info=True,
                )

    def clear(self) -> None:
        """Drop all handlers (aggregator teardown)."""
        self._handlers.clear()
