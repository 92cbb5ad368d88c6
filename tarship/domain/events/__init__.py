"""
Domain Events Package
"""

from tarship.domain.events.event_base import (
    DomainEvent,
    HostDeployedEvent,
    HostFailedEvent,
    DeploymentFinishedEvent,
)

__all__ = [
    "DomainEvent",
    "HostDeployedEvent",
    "HostFailedEvent",
    "DeploymentFinishedEvent",
]
