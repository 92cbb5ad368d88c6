"""
Event Bus Infrastructure

Architectural Intent:
- In-memory event bus receiving the per-host and per-run results of a deployment
- Supports async subscription handlers, registered per event type
- A failing handler is logged and skipped; the deployment it reports on is already over
"""

import logging
from collections import defaultdict
from typing import Awaitable, Callable
from tarship.domain.events.event_base import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], Awaitable[None]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self.published: list[DomainEvent] = []

    async def publish(self, events: list[DomainEvent]) -> None:
        for event in events:
            self.published.append(event)
            for event_type, handlers in list(self._handlers.items()):
                if not isinstance(event, event_type):
                    continue
                for handler in handlers:
                    try:
                        await handler(event)
                    except Exception as e:
                        logger.warning(
                            "Handler %r for %s failed: %s",
                            handler, type(event).__name__, e,
                        )

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)
