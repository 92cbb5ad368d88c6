"""
Domain Ports Package

Architectural Intent:
- Contracts for the collaborators the pipeline drives (transport, build, archive, prompt)
- Ports define what the pipeline needs, adapters implement how
"""

from tarship.domain.ports.transport_port import (
    CommandResult,
    RemoteStat,
    TransportPort,
    TransportSession,
)
from tarship.domain.ports.archive_port import ArchivePort
from tarship.domain.ports.build_port import BuildPort
from tarship.domain.ports.confirm_port import ConfirmPort
from tarship.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "CommandResult",
    "RemoteStat",
    "TransportPort",
    "TransportSession",
    "ArchivePort",
    "BuildPort",
    "ConfirmPort",
    "EventBusPort",
]
