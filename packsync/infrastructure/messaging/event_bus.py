"""In-memory event bus for toasts and cross-service notifications.

Publishers do not know their subscribers: the mutation wrapper publishes a
``Toast`` and whichever UI shell is attached renders it; the network status
publishes ``ConnectivityChanged`` and the sync service reacts to it.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import TypeVar

from packsync.domain.events import DomainEvent

logger = logging.getLogger(__name__)

TEvent = TypeVar("TEvent", bound=DomainEvent)

# Event handler type - async function that takes an event and returns None
EventHandler = Callable[[TEvent], Awaitable[None]]


class EventBus:
    """Dispatches published events to the handlers of their exact type.

    Example:
        ```python
        bus = EventBus()

        async def show(toast: Toast) -> None:
            print(toast.title)

        bus.subscribe(Toast, show)
        await bus.publish(Toast(title="Connection Restored"))
        ```
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: type[TEvent], handler: EventHandler[TEvent]) -> None:
        """Subscribe ``handler`` to ``event_type``."""
        self._handlers[event_type].append(handler)
        logger.debug(
            "event_handler_subscribed",
            extra={
                "event_type": event_type.__name__,
                "handler": getattr(handler, "__name__", repr(handler)),
                "total_handlers": len(self._handlers[event_type]),
            },
        )

    def unsubscribe(self, event_type: type[TEvent], handler: EventHandler[TEvent]) -> None:
        """Remove ``handler``; unknown handlers are logged and ignored."""
        try:
            self._handlers[event_type].remove(handler)
        except ValueError:
            logger.warning(
                "event_handler_not_found",
                extra={
                    "event_type": event_type.__name__,
                    "handler": getattr(handler, "__name__", repr(handler)),
                },
            )

    async def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribed handlers, in subscription order.

        If a handler fails, the error is logged and the remaining handlers
        still run.
        """
        event_type = type(event)
        handlers = list(self._handlers.get(event_type, []))

        if not handlers:
            logger.debug("event_published_no_handlers", extra={"event_type": event_type.__name__})
            return

        logger.debug(
            "event_published",
            extra={"event_type": event_type.__name__, "handler_count": len(handlers)},
        )

        for handler in handlers:
            try:
                await handler(event)
            except Exception as exc:
                logger.exception(
                    "event_handler_failed",
                    extra={
                        "event_type": event_type.__name__,
                        "handler": getattr(handler, "__name__", repr(handler)),
                        "error": str(exc),
                    },
                )

    def clear_handlers(self, event_type: type[TEvent] | None = None) -> None:
        if event_type is not None:
            self._handlers.pop(event_type, None)
        else:
            self._handlers.clear()

    def get_handler_count(self, event_type: type[TEvent]) -> int:
        return len(self._handlers.get(event_type, []))
