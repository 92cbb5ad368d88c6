"""
Subprocess Builder

Architectural Intent:
- Infrastructure adapter implementing BuildPort by running the build command
  through the local shell
- Build output is inherited so the operator sees it live
"""

import asyncio
import logging
import subprocess
from typing import Optional
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.ports.build_port import BuildPort

logger = logging.getLogger(__name__)


class SubprocessBuilder(BuildPort):
    async def run(self, command: str, cwd: Optional[str] = None) -> None:
        def _run() -> subprocess.CompletedProcess:
            return subprocess.run(command, shell=True, cwd=cwd or None)

        try:
            result = await asyncio.get_event_loop().run_in_executor(None, _run)
        except OSError as e:
            raise DeployError(
                ErrorKind.BUILD, f"Could not start build command {command!r}: {e}", cause=e
            ) from e

        if result.returncode != 0:
            raise DeployError(
                ErrorKind.BUILD,
                f"Build command {command!r} exited with code {result.returncode}",
            )
