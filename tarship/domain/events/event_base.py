"""
Domain Events Module

Architectural Intent:
- Immutable records of what happened to a deployment run
- Collected after each run and dispatched via the event bus
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, UTC
from typing import Any


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: str = field(
        default_factory=lambda: datetime.now(UTC).isoformat(), init=False, repr=False
    )
    aggregate_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["event_type"] = self.__class__.__name__
        return data


@dataclass(frozen=True)
class HostDeployedEvent(DomainEvent):
    host: str = ""
    attempts: int = 0


@dataclass(frozen=True)
class HostFailedEvent(DomainEvent):
    host: str = ""
    error_kind: str = ""
    error_message: str = ""


@dataclass(frozen=True)
class DeploymentFinishedEvent(DomainEvent):
    outcome: str = ""
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0
