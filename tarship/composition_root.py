"""
Composition Root

Architectural Intent:
- Dependency injection composition root for tarship
- Single place where all adapters and the pipeline are wired together
- No adapter instantiation should occur outside this module (except tests)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- Factory function creates and wires all dependencies
"""

import logging
from dataclasses import dataclass
from typing import Optional
from tarship.application.orchestration.pipeline import DeploymentPipeline
from tarship.infrastructure.adapters.fabric_adapter import FabricTransport
from tarship.infrastructure.adapters.subprocess_builder import SubprocessBuilder
from tarship.infrastructure.adapters.tar_archiver import TarArchiver
from tarship.infrastructure.adapters.typer_confirm import TyperConfirm
from tarship.infrastructure.event_bus import EventBus


@dataclass
class TarshipContainer:
    """DI container holding all wired dependencies."""

    transport: FabricTransport
    builder: SubprocessBuilder
    archiver: TarArchiver
    confirm: TyperConfirm
    event_bus: EventBus
    pipeline: DeploymentPipeline


def create_container(
    connect_timeout: int = 30,
    logger: Optional[logging.Logger] = None,
) -> TarshipContainer:
    """Create and wire all dependencies."""
    transport = FabricTransport(connect_timeout=connect_timeout)
    builder = SubprocessBuilder()
    archiver = TarArchiver()
    confirm = TyperConfirm()
    event_bus = EventBus()

    pipeline = DeploymentPipeline(
        transport,
        builder,
        archiver,
        confirm=confirm,
        event_bus=event_bus,
        logger=logger or logging.getLogger("tarship.deploy"),
    )

    return TarshipContainer(
        transport=transport,
        builder=builder,
        archiver=archiver,
        confirm=confirm,
        event_bus=event_bus,
        pipeline=pipeline,
    )
