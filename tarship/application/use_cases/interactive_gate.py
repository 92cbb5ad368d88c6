"""
Interactive Gate

Architectural Intent:
- Optional yes/no checkpoint in front of build, compress, upload/deploy and cleanup
- Describes what the next stage is about to do before asking
- Declining raises DeploymentCancelled, which ends the run with a neutral outcome
"""

import logging
from typing import Optional
from tarship.domain.errors import DeploymentCancelled
from tarship.domain.ports.confirm_port import ConfirmPort
from tarship.domain.services.progress import Log
from tarship.domain.value_objects.stage import Stage

logger = logging.getLogger(__name__)


class InteractiveGate:
    def __init__(self, confirm: ConfirmPort, log: Optional[Log] = None) -> None:
        self.confirm = confirm
        self.log = log or logger

    def announce(self) -> None:
        self.log.info("Interactive deployment enabled: each stage asks before it runs")

    async def confirm_build(self, request) -> None:
        if request.skip_build:
            self.log.info("Build stage skipped (skip_build is set)")
            return
        self.log.info("Build stage: will run %r", request.build_command)
        await self._ask(Stage.BUILD, "Run the build?")

    async def confirm_compress(self, request) -> None:
        self.log.info(
            "Compress stage: %s -> %s", request.local_dir, request.local_archive
        )
        await self._ask(Stage.COMPRESS, "Compress the build output?")

    async def confirm_upload(self, request) -> None:
        hosts = ", ".join(h.label for h in request.hosts)
        self.log.info("Upload and deploy stage: %d host(s): %s", len(request.hosts), hosts)
        self.log.info("Remote archive: %s", request.remote_archive)
        self.log.info("Activation directory: %s", request.remote_dir)
        if request.remote_backup_dir:
            self.log.info(
                "Backups: %s (keep %d)", request.remote_backup_dir, request.max_backup_count
            )
        await self._ask(Stage.UPLOAD, "Upload and deploy?")

    async def confirm_cleanup(self, request) -> None:
        if not request.remove_local_archive:
            self.log.info("Cleanup stage skipped (remove_local_archive is not set)")
            return
        self.log.info("Cleanup stage: will delete %s", request.local_archive)
        await self._ask(Stage.CLEANUP, "Delete the local archive?")

    async def _ask(self, stage: Stage, question: str) -> None:
        if not await self.confirm.confirm(question, default=True):
            self.log.warning("Deployment stopped by user before the %s stage", stage.value)
            raise DeploymentCancelled(stage.value)
