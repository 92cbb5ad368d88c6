"""
Event Bus Port

Architectural Intent:
- Lets the pipeline announce per-host and per-run results without knowing who listens
- Implementation is in-memory by default
"""

from typing import Protocol, Callable, Awaitable, runtime_checkable
from tarship.domain.events.event_base import DomainEvent


@runtime_checkable
class EventBusPort(Protocol):
    async def publish(self, events: list[DomainEvent]) -> None: ...

    def subscribe(
        self, event_type: type, handler: Callable[[DomainEvent], Awaitable[None]]
    ) -> None: ...
