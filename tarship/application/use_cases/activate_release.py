"""
Activate Release Use Case

Architectural Intent:
- Runs the activation command (clear target dir, extract archive, remove archive)
  through an interactive shell channel of a ready host session
- Exit code 0 is success; a non-zero code or a channel that closed without an
  exit status is a failure carrying the captured stderr
"""

import logging
from typing import Optional
from tarship.domain.entities.host_session import HostSession
from tarship.domain.errors import DeployError, ErrorKind
from tarship.domain.ports.transport_port import CommandResult
from tarship.domain.services.progress import Log

logger = logging.getLogger(__name__)


class ActivateRelease:
    async def execute(
        self, session: HostSession, command: str, log: Optional[Log] = None
    ) -> CommandResult:
        log = log or logger
        handle = session.handle
        if handle is None:
            raise DeployError(
                ErrorKind.ACTIVATE, "No open transport session", host=session.host.label
            )

        log.info("Running activation command: %s", command.strip())
        try:
            result = await handle.shell(command)
        except DeployError:
            raise
        except Exception as e:
            raise DeployError(
                ErrorKind.ACTIVATE,
                f"Could not open shell channel: {e}",
                cause=e,
                host=session.host.label,
            ) from e

        stderr = result.stderr.strip()
        if result.exit_code is None:
            raise DeployError(
                ErrorKind.ACTIVATE,
                f"Shell channel closed without an exit status: {stderr}".rstrip(": "),
                host=session.host.label,
            )
        if result.exit_code != 0:
            raise DeployError(
                ErrorKind.ACTIVATE,
                f"Activation command exited with code {result.exit_code}: {stderr}".rstrip(": "),
                host=session.host.label,
            )

        if stderr:
            log.warning("Activation stderr: %s", stderr)
        log.info("Activation finished")
        return result
