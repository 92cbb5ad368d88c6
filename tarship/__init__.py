"""
tarship: build, archive and ship an artifact to a fleet of SSH hosts.
"""

from tarship.application.dtos.deployment_dtos import DeployRequest, DeploySummary, Outcome
from tarship.application.hooks.hook_bus import ErrorContext, HookPoint, HookSet, StageContext
from tarship.application.orchestration.pipeline import DeploymentPipeline
from tarship.application.use_cases.remote_shell import RemoteShell, sftp_remote, ssh_remote
from tarship.domain.errors import DeployError, DeploymentCancelled, ErrorKind, ErrorScope
from tarship.domain.value_objects.stage import Stage
from tarship.domain.value_objects.target_host import TargetHost

__version__ = "0.1.0"

__all__ = [
    "DeployRequest",
    "DeploySummary",
    "Outcome",
    "ErrorContext",
    "HookPoint",
    "HookSet",
    "StageContext",
    "DeploymentPipeline",
    "RemoteShell",
    "sftp_remote",
    "ssh_remote",
    "DeployError",
    "DeploymentCancelled",
    "ErrorKind",
    "ErrorScope",
    "Stage",
    "TargetHost",
    "deploy",
]


async def deploy(request: DeployRequest, connect_timeout: int = 30) -> DeploySummary:
    """Runs `request` with the default Fabric/tarfile/subprocess adapters."""
    from tarship.composition_root import create_container

    container = create_container(connect_timeout=connect_timeout)
    return await container.pipeline.deploy(request)
